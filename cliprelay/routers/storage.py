"""
Per-storage-code CRUD: templates, favorites, ignore rules and room settings.
"""
from fastapi import APIRouter, HTTPException

from cliprelay.deps import StorageDep
from cliprelay.schemas import (
    FavoritesOut,
    FavoritesSaveRequest,
    IgnoreRuleIn,
    IgnoreRuleOut,
    IgnoreRulesOut,
    RoomSettingsIn,
    RoomSettingsOut,
    SuccessOut,
    TemplatesOut,
    TemplatesSaveRequest,
)

router = APIRouter(tags=["storage"])


# === Templates ===

@router.get("/templates/{code}", response_model=TemplatesOut)
def get_templates(code: str, storage: StorageDep):
    return TemplatesOut(storage_code=code, templates=storage.get_templates(code))


@router.put("/templates/{code}", response_model=TemplatesOut)
def save_templates(code: str, request: TemplatesSaveRequest, storage: StorageDep):
    """
    Replace the template list, or merge into it with ``merge: true``.

    Merging dedupes by id: a template with a known id replaces the stored
    one in place, new ids are appended.
    """
    items = [t.model_dump(exclude_none=True) for t in request.templates]
    saved = storage.save_templates(code, items, merge=request.merge)
    return TemplatesOut(storage_code=code, templates=saved)


@router.delete("/templates/{code}/{template_id}", response_model=SuccessOut)
def delete_template(code: str, template_id: str, storage: StorageDep):
    if not storage.delete_template(code, template_id):
        raise HTTPException(status_code=404, detail="Template not found")
    return SuccessOut()


# === Favorites ===

@router.get("/favorites/{code}", response_model=FavoritesOut)
def get_favorites(code: str, storage: StorageDep):
    return FavoritesOut(storage_code=code, favorites=storage.get_favorites(code))


@router.put("/favorites/{code}", response_model=FavoritesOut)
def save_favorites(code: str, request: FavoritesSaveRequest, storage: StorageDep):
    """Replace favorites, or merge (deduped by exact text) with ``merge: true``."""
    saved = storage.save_favorites(code, request.favorites, merge=request.merge)
    return FavoritesOut(storage_code=code, favorites=saved)


@router.delete("/favorites/{code}/{index}", response_model=FavoritesOut)
def delete_favorite(code: str, index: int, storage: StorageDep):
    """Delete by position; returns the remaining favorites."""
    if not storage.delete_favorite(code, index):
        raise HTTPException(status_code=404, detail="Favorite not found")
    return FavoritesOut(storage_code=code, favorites=storage.get_favorites(code))


# === Ignore Rules ===

@router.get("/ignore-rules/{code}", response_model=IgnoreRulesOut)
def list_ignore_rules(code: str, storage: StorageDep):
    rules = storage.list_ignore_rules(code)
    return IgnoreRulesOut(
        storage_code=code,
        rules=[IgnoreRuleOut.model_validate(r) for r in rules],
    )


@router.post("/ignore-rules/{code}", response_model=IgnoreRuleOut, status_code=201)
def add_ignore_rule(code: str, request: IgnoreRuleIn, storage: StorageDep):
    rule = storage.add_ignore_rule(code, request.rule_text)
    return IgnoreRuleOut.model_validate(rule)


@router.delete("/ignore-rules/{code}/{rule_id}", response_model=SuccessOut)
def delete_ignore_rule(code: str, rule_id: int, storage: StorageDep):
    if not storage.delete_ignore_rule(code, rule_id):
        raise HTTPException(status_code=404, detail="Ignore rule not found")
    return SuccessOut()


# === Room Settings ===

@router.get("/settings/{code}", response_model=RoomSettingsOut)
def get_room_settings(code: str, storage: StorageDep):
    return RoomSettingsOut(storage_code=code, settings=storage.get_room_settings(code))


@router.put("/settings/{code}", response_model=RoomSettingsOut)
def save_room_settings(code: str, request: RoomSettingsIn, storage: StorageDep):
    saved = storage.save_room_settings(code, request.settings)
    return RoomSettingsOut(storage_code=code, settings=saved)
