"""
Two-stage image analysis: Reader (images -> structured JSON) then
Interpreter (JSON -> clinical interpretation).

Every run is recorded as an ``ImageSession`` whose status moves
reading -> interpreting -> completed, or to failed with the error.
"""
from dataclasses import dataclass
from typing import Any, Optional
import base64
import binascii
import hashlib
import logging
import re
import time

from cliprelay.config import Settings
from cliprelay.db.models import ImageSession
from cliprelay.doctypes import AUTO, DOCUMENT_TYPES
from cliprelay.llm import ImageInput, ModelGateway, ModelRequest, ModelResult, parse_json_response
from cliprelay.prompts.common import PromptOptions, resolve_options, setting_str
from cliprelay.prompts.imaging import (
    INTERPRETER_MODES,
    build_interpreter_prompt,
    build_reader_prompt,
)
from cliprelay.services.notes import load_context
from cliprelay.storage import Storage

logger = logging.getLogger("cliprelay.services.pipeline")

SUPPORTED_MEDIA_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")

_DATA_URL_RE = re.compile(r"^data:(?P<media>[\w/+.-]+);base64,(?P<data>.*)$", re.DOTALL)


class ImageValidationError(ValueError):
    """Raised for missing, oversized, undecodable or unsupported images."""
    pass


class SessionNotFound(LookupError):
    pass


@dataclass
class RawImage:
    """Image as received from a client: base64 or a data URL."""
    data: str
    media_type: Optional[str] = None


def prepare_images(
    images: list[RawImage],
    settings: Settings,
) -> tuple[list[ImageInput], list[dict[str, Any]]]:
    """
    Validate and normalize client images.

    Returns:
        Model inputs and the metadata stored with the session (no bytes)

    Raises:
        ImageValidationError: on any invalid image
    """
    if not images:
        raise ImageValidationError("At least one image is required")
    if len(images) > settings.MAX_IMAGES:
        raise ImageValidationError(f"Too many images ({len(images)} > {settings.MAX_IMAGES})")

    inputs: list[ImageInput] = []
    metadata: list[dict[str, Any]] = []
    for index, image in enumerate(images):
        data = image.data.strip()
        media_type = image.media_type
        match = _DATA_URL_RE.match(data)
        if match:
            media_type = media_type or match.group("media")
            data = match.group("data")
        data = "".join(data.split())
        media_type = (media_type or "image/jpeg").lower()
        if media_type == "image/jpg":
            media_type = "image/jpeg"
        if media_type not in SUPPORTED_MEDIA_TYPES:
            raise ImageValidationError(f"Image {index}: unsupported media type {media_type}")

        try:
            raw = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError):
            raise ImageValidationError(f"Image {index}: invalid base64 data")
        if not raw:
            raise ImageValidationError(f"Image {index}: empty image")
        if len(raw) > settings.MAX_IMAGE_BYTES:
            raise ImageValidationError(
                f"Image {index}: {len(raw)} bytes exceeds limit of {settings.MAX_IMAGE_BYTES}"
            )

        inputs.append(ImageInput(media_type=media_type, data=data))
        metadata.append({
            "index": index,
            "media_type": media_type,
            "bytes": len(raw),
            "sha256": hashlib.sha256(raw).hexdigest(),
        })
    return inputs, metadata


def stage_cost(result: ModelResult) -> dict[str, Any]:
    return {
        "model": result.model,
        "input_tokens": result.input_tokens,
        "output_tokens": result.output_tokens,
        "reasoning_tokens": result.reasoning_tokens,
        "cost_usd": result.cost_usd,
    }


def merge_costs(*stages: Optional[ModelResult]) -> dict[str, Any]:
    """Per-stage breakdown plus totals for reader and interpreter results."""
    names = ("reader", "interpreter")
    cost: dict[str, Any] = {}
    total = 0.0
    tokens = 0
    for name, result in zip(names, stages):
        if result is None:
            continue
        cost[name] = stage_cost(result)
        total += result.cost_usd
        tokens += result.input_tokens + result.output_tokens
    cost["total_usd"] = round(total, 6)
    cost["total_tokens"] = tokens
    return cost


def total_ms(timing: dict[str, int], started: float) -> int:
    """Wall-clock run time, never less than the sum of the stage times."""
    wall = int((time.perf_counter() - started) * 1000)
    return max(wall, timing.get("reader_ms", 0) + timing.get("interpreter_ms", 0))


async def run_reader(
    gateway: ModelGateway,
    settings: Settings,
    model: str,
    images: list[ImageInput],
    document_type: str,
) -> tuple[dict[str, Any], ModelResult]:
    system, user = build_reader_prompt(document_type, len(images))
    result = await gateway.complete(
        model,
        ModelRequest(
            system=system,
            user_text=user,
            images=images,
            max_tokens=settings.MAX_OUTPUT_TOKENS,
        ),
    )
    return parse_json_response(result.text), result


async def run_interpreter(
    gateway: ModelGateway,
    settings: Settings,
    model: str,
    extracted: dict[str, Any],
    document_type: str,
    mode: str,
    options: PromptOptions,
    thinking_budget: int,
    reasoning_effort: Optional[str] = None,
) -> tuple[dict[str, Any], ModelResult]:
    system, user = build_interpreter_prompt(extracted, document_type, mode, options)
    result = await gateway.complete(
        model,
        ModelRequest(
            system=system,
            user_text=user,
            max_tokens=settings.MAX_OUTPUT_TOKENS,
            thinking_budget=thinking_budget,
            reasoning_effort=reasoning_effort,
        ),
    )
    return parse_json_response(result.text), result


def _validate_choices(document_type: str, mode: str) -> None:
    if document_type not in DOCUMENT_TYPES:
        raise ImageValidationError(f"Unknown document type: {document_type}")
    if mode not in INTERPRETER_MODES:
        raise ImageValidationError(f"Unknown interpreter mode: {mode}")


async def analyze_images(
    gateway: ModelGateway,
    storage: Storage,
    settings: Settings,
    *,
    images: list[RawImage],
    storage_code: Optional[str] = None,
    document_type: str = AUTO,
    mode: str = "standard",
    reader_model: Optional[str] = None,
    interpreter_model: Optional[str] = None,
    depth: Optional[str] = None,
    include_suggestions: Optional[bool] = None,
    profile: Optional[str] = None,
    thinking_budget: Optional[int] = None,
    reasoning_effort: Optional[str] = None,
    reader_only: bool = False,
) -> ImageSession:
    """
    Run reader then interpreter and persist the session.

    Raises:
        ImageValidationError: invalid input (nothing is persisted)
        ModelUnavailable / ModelCallError: vendor failure (session marked failed)
    """
    _validate_choices(document_type, mode)
    inputs, metadata = prepare_images(images, settings)

    room_settings, rules = load_context(storage, storage_code)
    options = resolve_options(
        room_settings, rules,
        depth=depth, include_suggestions=include_suggestions, profile=profile,
    )
    reader_model = reader_model or setting_str(room_settings, "reader_model") or settings.READER_MODEL
    interpreter_model = None if reader_only else (
        interpreter_model or setting_str(room_settings, "interpreter_model") or settings.INTERPRETER_MODEL
    )
    budget = settings.THINKING_BUDGET if thinking_budget is None else thinking_budget

    record = storage.create_image_session(ImageSession(
        storage_code=storage_code,
        document_type=document_type,
        mode=mode,
        reader_model=reader_model,
        interpreter_model=interpreter_model,
        images=metadata,
        status="reading",
    ))
    logger.info(
        "image_session=%s start images=%d type=%s mode=%s reader=%s interpreter=%s",
        record.id, len(inputs), document_type, mode, reader_model, interpreter_model,
    )

    started = time.perf_counter()
    try:
        extracted, reader_result = await run_reader(
            gateway, settings, reader_model, inputs, document_type,
        )
        timing = {"reader_ms": reader_result.elapsed_ms}
        reader_note = None
        if extracted.get("parse_error"):
            reader_note = "Reader output was not valid JSON"
            logger.warning(
                "image_session=%s reader model %s returned non-JSON output (%d chars)",
                record.id, reader_model, len(reader_result.text),
            )

        if reader_only:
            timing["total_ms"] = total_ms(timing, started)
            return storage.update_image_session(
                record.id,
                extracted_data=extracted,
                cost=merge_costs(reader_result),
                timing=timing,
                status="completed",
                error=reader_note,
            )

        storage.update_image_session(
            record.id,
            extracted_data=extracted,
            cost=merge_costs(reader_result),
            timing=dict(timing),
            status="interpreting",
        )

        interpretation, interpreter_result = await run_interpreter(
            gateway, settings, interpreter_model, extracted, document_type, mode,
            options, budget, reasoning_effort,
        )
        timing["interpreter_ms"] = interpreter_result.elapsed_ms
        timing["total_ms"] = total_ms(timing, started)

        record = storage.update_image_session(
            record.id,
            interpretation=interpretation,
            cost=merge_costs(reader_result, interpreter_result),
            timing=timing,
            status="completed",
            error=reader_note,
        )
    except Exception as e:
        logger.error("image_session=%s failed: %s", record.id, e)
        storage.update_image_session(record.id, status="failed", error=str(e))
        raise

    logger.info(
        "image_session=%s completed total_ms=%s total_usd=%s",
        record.id, record.timing.get("total_ms"), record.cost.get("total_usd"),
    )
    return record


async def reinterpret_session(
    gateway: ModelGateway,
    storage: Storage,
    settings: Settings,
    session_id: str,
    *,
    mode: str = "standard",
    interpreter_model: Optional[str] = None,
    depth: Optional[str] = None,
    include_suggestions: Optional[bool] = None,
    profile: Optional[str] = None,
    thinking_budget: Optional[int] = None,
    reasoning_effort: Optional[str] = None,
) -> ImageSession:
    """
    Run the interpreter again on a stored session's extracted data.

    The new stage's cost is added to the session total; the previous
    interpretation is replaced and ``total_ms`` becomes reader plus the new
    interpreter time.

    Raises:
        SessionNotFound: unknown id
        ImageValidationError: unknown mode or session has no extracted data
    """
    record = storage.get_image_session(session_id)
    if record is None:
        raise SessionNotFound(session_id)
    if mode not in INTERPRETER_MODES:
        raise ImageValidationError(f"Unknown interpreter mode: {mode}")
    if not record.extracted_data:
        raise ImageValidationError("Session has no extracted data to interpret")

    room_settings, rules = load_context(storage, record.storage_code)
    options = resolve_options(
        room_settings, rules,
        depth=depth, include_suggestions=include_suggestions, profile=profile,
    )
    model = interpreter_model or setting_str(room_settings, "interpreter_model") or settings.INTERPRETER_MODEL
    budget = settings.THINKING_BUDGET if thinking_budget is None else thinking_budget

    interpretation, result = await run_interpreter(
        gateway, settings, model, record.extracted_data, record.document_type, mode,
        options, budget, reasoning_effort,
    )

    cost = dict(record.cost or {})
    cost["interpreter"] = stage_cost(result)
    cost["reinterpretations"] = list(cost.get("reinterpretations", [])) + [stage_cost(result)]
    cost["total_usd"] = round(cost.get("total_usd", 0.0) + result.cost_usd, 6)
    cost["total_tokens"] = cost.get("total_tokens", 0) + result.input_tokens + result.output_tokens

    timing = dict(record.timing or {})
    timing["interpreter_ms"] = result.elapsed_ms
    timing["total_ms"] = timing.get("reader_ms", 0) + result.elapsed_ms

    logger.info("image_session=%s reinterpreted mode=%s model=%s", session_id, mode, model)
    return storage.update_image_session(
        session_id,
        mode=mode,
        interpreter_model=model,
        interpretation=interpretation,
        cost=cost,
        timing=timing,
        status="completed",
        error=None if record.status == "failed" else record.error,
    )
