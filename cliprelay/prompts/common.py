"""
Shared prompt fragments and per-request option resolution.
"""
from dataclasses import dataclass, field
from typing import Any, Optional

DEPTHS = ("brief", "standard", "detailed")

DEPTH_INSTRUCTIONS = {
    "brief": (
        "Be brief. Keep every list to at most 3 items and every item to one short sentence. "
        "Omit anything that does not change management."
    ),
    "standard": (
        "Use a balanced level of detail: cover every clinically relevant point "
        "in one or two sentences each."
    ),
    "detailed": (
        "Be thorough. Cover every relevant finding, give short reasoning for each conclusion "
        "and mention relevant differentials."
    ),
}

JSON_ONLY = (
    "Respond with a single valid JSON object and nothing else: "
    "no markdown, no code fences, no commentary before or after the JSON."
)


@dataclass
class PromptOptions:
    """Toggles and user context interpolated into every prompt."""
    depth: str = "standard"
    include_suggestions: bool = True
    profile: Optional[str] = None
    ignore_rules: list[str] = field(default_factory=list)


def setting_str(room_settings: dict[str, Any], key: str) -> Optional[str]:
    """Stored string setting, or None when missing, blank or not a string."""
    value = room_settings.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


_TRUE = ("true", "yes", "on", "1")
_FALSE = ("false", "no", "off", "0")


def setting_bool(room_settings: dict[str, Any], key: str, default: bool) -> bool:
    """Stored boolean setting; accepts JSON booleans, 0/1 and true/false strings."""
    value = room_settings.get(key)
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
    return default


def resolve_options(
    room_settings: dict[str, Any],
    ignore_rules: list[str],
    *,
    depth: Optional[str] = None,
    include_suggestions: Optional[bool] = None,
    profile: Optional[str] = None,
) -> PromptOptions:
    """
    Merge request values over stored room settings over defaults.

    Stored values of the wrong type are ignored; unknown depth values fall
    back to ``standard``.
    """
    depth = depth or setting_str(room_settings, "depth") or "standard"
    if depth not in DEPTHS:
        depth = "standard"
    if include_suggestions is None:
        include_suggestions = setting_bool(room_settings, "include_suggestions", True)
    profile = profile if profile is not None else setting_str(room_settings, "profile")
    return PromptOptions(
        depth=depth,
        include_suggestions=include_suggestions,
        profile=(profile or "").strip() or None,
        ignore_rules=[r.strip() for r in ignore_rules if r and r.strip()],
    )


def profile_block(options: PromptOptions) -> str:
    if not options.profile:
        return ""
    return (
        "ABOUT THE USER:\n"
        f"{options.profile}\n"
        "Tailor terminology and emphasis to this user.\n"
    )


def ignore_rules_block(options: PromptOptions) -> str:
    if not options.ignore_rules:
        return ""
    lines = "\n".join(f"- {rule}" for rule in options.ignore_rules)
    return (
        "THE USER HAS ASKED YOU TO IGNORE THE FOLLOWING. Do not mention, flag or "
        "comment on anything covered by these rules:\n"
        f"{lines}\n"
    )


def join_sections(*sections: str) -> str:
    """Join non-empty prompt sections with one blank line between them."""
    return "\n\n".join(s.strip() for s in sections if s and s.strip())
