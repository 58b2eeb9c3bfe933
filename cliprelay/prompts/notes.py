"""
Prompts for text requests: note analysis, proofreading and template fill.

Every builder returns ``(system, user)``.
"""
from typing import Any
import json

from cliprelay.prompts.common import (
    DEPTH_INSTRUCTIONS,
    JSON_ONLY,
    PromptOptions,
    ignore_rules_block,
    join_sections,
    profile_block,
)


# === Note analysis ===

ANALYSIS_ROLE = """You are an experienced clinician reviewing a colleague's clinical note.
Read the note carefully and produce a structured review. Only use information present in the
note; never invent vitals, results or history. If something important is missing, say so
under "gaps"."""


def build_analysis_prompt(note_text: str, options: PromptOptions) -> tuple[str, str]:
    shape: dict[str, Any] = {
        "summary": "2-4 sentence summary of the case",
        "key_points": ["most important facts from the note"],
        "concerns": [{"issue": "string", "severity": "low|moderate|high", "reason": "string"}],
        "gaps": ["information that is missing or ambiguous"],
    }
    if options.include_suggestions:
        shape["suggestions"] = ["concrete next steps to consider"]

    suggestion_rule = (
        "Include practical suggestions for workup or management under \"suggestions\"."
        if options.include_suggestions
        else "Do NOT give suggestions or recommendations; describe and assess only."
    )

    system = join_sections(
        ANALYSIS_ROLE,
        DEPTH_INSTRUCTIONS[options.depth],
        suggestion_rule,
        profile_block(options),
        ignore_rules_block(options),
        "Return JSON with exactly this shape:\n" + json.dumps(shape, indent=2),
        JSON_ONLY,
    )
    user = f"CLINICAL NOTE:\n\"\"\"\n{note_text.strip()}\n\"\"\""
    return system, user


# === Proofreading ===

PROOFREAD_CATEGORIES = {
    "grammar": "grammar (agreement, tense, sentence structure)",
    "spelling": "spelling, including drug names and medical terms",
    "punctuation": "punctuation and capitalization",
}


def build_proofread_prompt(
    text: str,
    options: PromptOptions,
    *,
    grammar: bool = True,
    spelling: bool = True,
    punctuation: bool = True,
) -> tuple[str, str]:
    """
    Raises:
        ValueError: if every correction category is disabled
    """
    enabled = {"grammar": grammar, "spelling": spelling, "punctuation": punctuation}
    allowed = [PROOFREAD_CATEGORIES[k] for k, on in enabled.items() if on]
    forbidden = [PROOFREAD_CATEGORIES[k] for k, on in enabled.items() if not on]
    if not allowed:
        raise ValueError("At least one of grammar, spelling or punctuation must be enabled")

    rules = "You may ONLY correct:\n" + "\n".join(f"- {a}" for a in allowed)
    if forbidden:
        rules += "\nLeave these exactly as written:\n" + "\n".join(f"- {f}" for f in forbidden)

    shape = {
        "corrected_text": "the full text with corrections applied",
        "changes": [{"original": "string", "corrected": "string", "type": "|".join(k for k, on in enabled.items() if on)}],
    }

    system = join_sections(
        "You are a meticulous medical proofreader. Preserve the author's wording, "
        "abbreviations, line breaks and clinical meaning. Never add or remove clinical content.",
        rules,
        profile_block(options),
        ignore_rules_block(options),
        "If nothing needs changing, return the text unchanged with an empty \"changes\" list.",
        "Return JSON with exactly this shape:\n" + json.dumps(shape, indent=2),
        JSON_ONLY,
    )
    user = f"TEXT TO PROOFREAD:\n\"\"\"\n{text}\n\"\"\""
    return system, user


# === Template fill ===

def build_template_prompt(
    note_text: str,
    template: dict[str, Any],
    options: PromptOptions,
) -> tuple[str, str]:
    name = template.get("name") or template.get("title") or template.get("id")
    shape = {
        "filled_text": "the note rewritten into the template",
        "missing_fields": ["template sections the note has no information for"],
    }
    system = join_sections(
        "You rewrite clinical notes into the user's own template. Keep the template's "
        "headings, order and formatting. Fill each section only from the note; write "
        "\"not documented\" for sections the note does not cover. Do not invent findings.",
        DEPTH_INSTRUCTIONS[options.depth],
        profile_block(options),
        ignore_rules_block(options),
        "Return JSON with exactly this shape:\n" + json.dumps(shape, indent=2),
        JSON_ONLY,
    )
    user = join_sections(
        f"TEMPLATE ({name}):\n\"\"\"\n{template.get('text', '')}\n\"\"\"",
        f"NOTE:\n\"\"\"\n{note_text.strip()}\n\"\"\"",
    )
    return system, user
