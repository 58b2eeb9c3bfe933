"""
Reader and interpreter prompts for the two-stage image pipeline.

The reader only transcribes; all clinical judgement happens in the
interpreter, which never sees the images, only the reader's JSON.
"""
from typing import Any
import json

from cliprelay.doctypes import AUTO, DOCUMENT_PROFILES, get_profile
from cliprelay.prompts.common import (
    DEPTH_INSTRUCTIONS,
    JSON_ONLY,
    PromptOptions,
    ignore_rules_block,
    join_sections,
    profile_block,
)

INTERPRETER_MODES = ("standard", "rounding", "significant_only")


# === Reader ===

READER_ROLE = """You are a precise medical document reader. Your only job is to transcribe and
structure what is visible in the images. Do not interpret, diagnose or summarize clinically.
Copy values exactly as printed, including units and flags. If a value is unreadable, use null
and list the region under "unreadable". If several images are provided they belong to the
same document or encounter; merge them in order."""


def build_reader_prompt(document_type: str, image_count: int) -> tuple[str, str]:
    if document_type == AUTO:
        catalog = "\n".join(
            f"- {p.key}: {p.label}. {p.focus}" for p in DOCUMENT_PROFILES.values()
        )
        type_block = (
            "First classify the document as one of these types, then extract it using that "
            "type's focus. Put the chosen key in \"document_type\".\n" + catalog
        )
        extracted_shape: Any = "object shaped for the detected document type"
    else:
        profile = get_profile(document_type)
        type_block = f"DOCUMENT TYPE: {profile.label}\n{profile.focus}"
        extracted_shape = profile.extraction_shape

    shape = {
        "document_type": document_type if document_type != AUTO else "one of the keys above",
        "confidence": "0.0-1.0, how legible and complete the extraction is",
        "extracted": extracted_shape,
        "unreadable": ["description of any region you could not read"],
        "patient_identifiers_present": "boolean",
        "notes": "string|null",
    }

    system = join_sections(
        READER_ROLE,
        type_block,
        "Return JSON with exactly this shape:\n" + json.dumps(shape, indent=2),
        JSON_ONLY,
    )
    plural = "image" if image_count == 1 else f"{image_count} images"
    user = f"Extract the document shown in the attached {plural}."
    return system, user


# === Interpreter ===

INTERPRETER_ROLE = """You are a senior clinician interpreting structured data that another
assistant transcribed from a medical document. Base every statement on the data provided.
Flag transcription values that look implausible instead of interpreting them, and note when
the reader reported unreadable regions."""

MODE_INSTRUCTIONS = {
    "standard": "Give a complete interpretation of the document.",
    "rounding": (
        "Write for ward rounds: one-line summary, then findings grouped by organ system, "
        "then a short checklist of actions for today. Use terse clinical shorthand."
    ),
    "significant_only": (
        "Report ONLY abnormal or clinically significant findings. Leave out normal results "
        "entirely. If nothing is significant, return an empty list and say so in the summary."
    ),
}


def interpretation_shape(mode: str, include_suggestions: bool) -> dict[str, Any]:
    if mode == "rounding":
        shape: dict[str, Any] = {
            "one_liner": "string",
            "by_system": [{"system": "string", "findings": ["string"]}],
            "action_items": ["string"],
        }
    elif mode == "significant_only":
        shape = {
            "summary": "string",
            "significant_findings": [
                {"finding": "string", "severity": "abnormal|critical", "comment": "string"}
            ],
        }
    else:
        shape = {
            "summary": "string",
            "key_findings": [
                {"finding": "string", "significance": "normal|abnormal|critical", "comment": "string"}
            ],
            "assessment": "string",
            "follow_up": ["string"],
            "caveats": ["string"],
        }
    if include_suggestions:
        shape["suggestions"] = ["concrete next steps to consider"]
    return shape


def build_interpreter_prompt(
    extracted: dict[str, Any],
    document_type: str,
    mode: str,
    options: PromptOptions,
) -> tuple[str, str]:
    if mode not in INTERPRETER_MODES:
        mode = "standard"

    detected = extracted.get("document_type") if document_type == AUTO else document_type
    label = get_profile(detected).label if isinstance(detected, str) else "Unknown document"

    suggestion_rule = (
        "Include practical suggestions under \"suggestions\"."
        if options.include_suggestions
        else "Do NOT give suggestions or recommendations."
    )

    system = join_sections(
        INTERPRETER_ROLE,
        MODE_INSTRUCTIONS[mode],
        DEPTH_INSTRUCTIONS[options.depth],
        suggestion_rule,
        profile_block(options),
        ignore_rules_block(options),
        "Return JSON with exactly this shape:\n"
        + json.dumps(interpretation_shape(mode, options.include_suggestions), indent=2),
        JSON_ONLY,
    )
    user = join_sections(
        f"DOCUMENT TYPE: {label}",
        "READER OUTPUT:\n" + json.dumps(extracted, indent=2, ensure_ascii=False),
    )
    return system, user
