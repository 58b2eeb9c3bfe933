"""
Model-backed routes: note analysis, proofreading, template fill and the
two-stage image pipeline.

Vendor and validation errors are raised as domain exceptions and turned
into JSON responses by the handlers registered in ``cliprelay.main``.
"""
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from cliprelay.deps import GatewayDep, SettingsDep, StorageDep
from cliprelay.schemas import (
    AIResultOut,
    AnalyzeImagesRequest,
    AnalyzeNoteRequest,
    FillTemplateRequest,
    ImageSessionListOut,
    ImageSessionOut,
    ProofreadRequest,
    ReinterpretRequest,
)
from cliprelay.services import notes, pipeline

router = APIRouter(tags=["ai"])


# === Text ===

@router.post("/analyze-note", response_model=AIResultOut)
async def analyze_note(
    request: AnalyzeNoteRequest,
    gateway: GatewayDep,
    storage: StorageDep,
    settings: SettingsDep,
):
    return await notes.analyze_note(
        gateway, storage, settings,
        text=request.text,
        storage_code=request.storage_code,
        model=request.model,
        depth=request.depth,
        include_suggestions=request.include_suggestions,
        profile=request.profile,
    )


@router.post("/proofread", response_model=AIResultOut)
async def proofread(
    request: ProofreadRequest,
    gateway: GatewayDep,
    storage: StorageDep,
    settings: SettingsDep,
):
    """Only the enabled categories (grammar, spelling, punctuation) are corrected."""
    if not (request.grammar or request.spelling or request.punctuation):
        raise HTTPException(
            status_code=422,
            detail="At least one of grammar, spelling or punctuation must be enabled",
        )
    return await notes.proofread(
        gateway, storage, settings,
        text=request.text,
        storage_code=request.storage_code,
        model=request.model,
        grammar=request.grammar,
        spelling=request.spelling,
        punctuation=request.punctuation,
        profile=request.profile,
    )


@router.post("/fill-template", response_model=AIResultOut)
async def fill_template(
    request: FillTemplateRequest,
    gateway: GatewayDep,
    storage: StorageDep,
    settings: SettingsDep,
):
    try:
        return await notes.fill_template(
            gateway, storage, settings,
            text=request.text,
            storage_code=request.storage_code,
            template_id=request.template_id,
            model=request.model,
            depth=request.depth,
            profile=request.profile,
        )
    except notes.TemplateNotFound:
        raise HTTPException(status_code=404, detail="Template not found")


# === Images ===

@router.post("/analyze-images", response_model=ImageSessionOut)
async def analyze_images(
    request: AnalyzeImagesRequest,
    gateway: GatewayDep,
    storage: StorageDep,
    settings: SettingsDep,
):
    """
    Reader -> Interpreter over one or more document photos.

    The stored session (without image bytes) is returned, including the
    per-stage cost and timing breakdown.
    """
    record = await pipeline.analyze_images(
        gateway, storage, settings,
        images=[pipeline.RawImage(data=i.data, media_type=i.media_type) for i in request.images],
        storage_code=request.storage_code,
        document_type=request.document_type,
        mode=request.mode,
        reader_model=request.reader_model,
        interpreter_model=request.interpreter_model,
        depth=request.depth,
        include_suggestions=request.include_suggestions,
        profile=request.profile,
        thinking_budget=request.thinking_budget,
        reasoning_effort=request.reasoning_effort,
        reader_only=request.reader_only,
    )
    return ImageSessionOut.model_validate(record)


@router.get("/image-sessions", response_model=ImageSessionListOut)
def list_image_sessions(
    storage: StorageDep,
    storage_code: str = Query(..., min_length=1),
    limit: int = Query(20, ge=1, le=100),
):
    """Sessions for a storage code, newest first."""
    records = storage.list_image_sessions(storage_code, limit=limit)
    return ImageSessionListOut(
        items=[ImageSessionOut.model_validate(r) for r in records],
        total=len(records),
    )


@router.get("/image-sessions/{session_id}", response_model=ImageSessionOut)
def get_image_session(session_id: str, storage: StorageDep):
    record = storage.get_image_session(session_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Image session not found")
    return ImageSessionOut.model_validate(record)


@router.post("/image-sessions/{session_id}/reinterpret", response_model=ImageSessionOut)
async def reinterpret_image_session(
    session_id: str,
    gateway: GatewayDep,
    storage: StorageDep,
    settings: SettingsDep,
    request: Optional[ReinterpretRequest] = None,
):
    """Run the interpreter again on stored extracted data (new mode or model)."""
    request = request or ReinterpretRequest()
    try:
        record = await pipeline.reinterpret_session(
            gateway, storage, settings, session_id,
            mode=request.mode,
            interpreter_model=request.interpreter_model,
            depth=request.depth,
            include_suggestions=request.include_suggestions,
            profile=request.profile,
            thinking_budget=request.thinking_budget,
            reasoning_effort=request.reasoning_effort,
        )
    except pipeline.SessionNotFound:
        raise HTTPException(status_code=404, detail="Image session not found")
    return ImageSessionOut.model_validate(record)
