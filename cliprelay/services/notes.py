"""
Text services: note analysis, proofreading and template fill.

Each call loads the storage code's context (room settings, ignore rules),
builds a prompt, runs one model call and parses the JSON answer.
"""
from typing import Any, Optional
import logging

from cliprelay.config import Settings
from cliprelay.llm import ModelGateway, ModelRequest, parse_json_response
from cliprelay.prompts.common import PromptOptions, resolve_options, setting_str
from cliprelay.prompts.notes import (
    build_analysis_prompt,
    build_proofread_prompt,
    build_template_prompt,
)
from cliprelay.storage import Storage

logger = logging.getLogger("cliprelay.services.notes")


class TemplateNotFound(LookupError):
    """Raised when a template id is not stored under the storage code."""
    pass


def load_context(
    storage: Storage,
    storage_code: Optional[str],
) -> tuple[dict[str, Any], list[str]]:
    """Room settings and ignore-rule texts for a storage code (empty when none)."""
    if not storage_code:
        return {}, []
    room_settings = storage.get_room_settings(storage_code)
    rules = [r.rule_text for r in storage.list_ignore_rules(storage_code)]
    return room_settings, rules


def pick_model(requested: Optional[str], room_settings: dict[str, Any], default: str) -> str:
    return requested or setting_str(room_settings, "model") or default


async def _run(
    gateway: ModelGateway,
    settings: Settings,
    model: str,
    system: str,
    user: str,
    task: str,
) -> dict[str, Any]:
    result = await gateway.complete(
        model,
        ModelRequest(system=system, user_text=user, max_tokens=settings.MAX_OUTPUT_TOKENS),
    )
    parsed = parse_json_response(result.text)
    if parsed.get("parse_error"):
        logger.warning("%s: model %s returned non-JSON output (%d chars)", task, model, len(result.text))
    return {"result": parsed, "usage": result.usage()}


async def analyze_note(
    gateway: ModelGateway,
    storage: Storage,
    settings: Settings,
    *,
    text: str,
    storage_code: Optional[str] = None,
    model: Optional[str] = None,
    depth: Optional[str] = None,
    include_suggestions: Optional[bool] = None,
    profile: Optional[str] = None,
) -> dict[str, Any]:
    room_settings, rules = load_context(storage, storage_code)
    options = resolve_options(
        room_settings, rules,
        depth=depth, include_suggestions=include_suggestions, profile=profile,
    )
    system, user = build_analysis_prompt(text, options)
    model = pick_model(model, room_settings, settings.TEXT_MODEL)
    logger.info("analyze_note chars=%d depth=%s rules=%d model=%s", len(text), options.depth, len(rules), model)
    return await _run(gateway, settings, model, system, user, "analyze_note")


async def proofread(
    gateway: ModelGateway,
    storage: Storage,
    settings: Settings,
    *,
    text: str,
    storage_code: Optional[str] = None,
    model: Optional[str] = None,
    grammar: bool = True,
    spelling: bool = True,
    punctuation: bool = True,
    profile: Optional[str] = None,
) -> dict[str, Any]:
    """
    Raises:
        ValueError: if all correction categories are disabled
    """
    room_settings, rules = load_context(storage, storage_code)
    options = resolve_options(room_settings, rules, profile=profile)
    system, user = build_proofread_prompt(
        text, options, grammar=grammar, spelling=spelling, punctuation=punctuation,
    )
    model = pick_model(model, room_settings, settings.TEXT_MODEL)
    logger.info("proofread chars=%d model=%s", len(text), model)
    return await _run(gateway, settings, model, system, user, "proofread")


async def fill_template(
    gateway: ModelGateway,
    storage: Storage,
    settings: Settings,
    *,
    text: str,
    storage_code: str,
    template_id: str,
    model: Optional[str] = None,
    depth: Optional[str] = None,
    profile: Optional[str] = None,
) -> dict[str, Any]:
    """
    Raises:
        TemplateNotFound: if ``template_id`` is not stored for ``storage_code``
    """
    template = storage.get_template(storage_code, template_id)
    if template is None:
        raise TemplateNotFound(template_id)

    room_settings, rules = load_context(storage, storage_code)
    options: PromptOptions = resolve_options(room_settings, rules, depth=depth, profile=profile)
    system, user = build_template_prompt(text, template, options)
    model = pick_model(model, room_settings, settings.TEXT_MODEL)
    logger.info("fill_template chars=%d template=%s model=%s", len(text), template_id, model)
    response = await _run(gateway, settings, model, system, user, "fill_template")
    response["template_id"] = template_id
    return response
