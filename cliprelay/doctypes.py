"""
Document-type taxonomy for the image reader.

Each profile tells the reader what to look for on the page and the JSON
shape to extract into. ``auto`` asks the reader to classify first.
"""
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class DocumentProfile:
    key: str
    label: str
    focus: str
    extraction_shape: dict[str, Any] = field(default_factory=dict)


DOCUMENT_PROFILES: dict[str, DocumentProfile] = {
    "lab_results": DocumentProfile(
        key="lab_results",
        label="Laboratory results",
        focus=(
            "Transcribe every test row exactly: analyte name, value, unit, reference range "
            "and any abnormal flag (H, L, HH, LL, *, colored cells). Keep the collection "
            "date/time and panel grouping. Do not convert units."
        ),
        extraction_shape={
            "collected_at": "string|null",
            "panels": [
                {
                    "name": "string",
                    "results": [
                        {
                            "test": "string",
                            "value": "string",
                            "unit": "string|null",
                            "reference_range": "string|null",
                            "flag": "H|L|critical|null",
                        }
                    ],
                }
            ],
        },
    ),
    "imaging_report": DocumentProfile(
        key="imaging_report",
        label="Imaging report",
        focus=(
            "Capture the modality, body region, technique, comparison, findings and the "
            "impression verbatim where legible. Keep measurements with their units."
        ),
        extraction_shape={
            "modality": "string",
            "body_region": "string",
            "technique": "string|null",
            "comparison": "string|null",
            "findings": ["string"],
            "impression": ["string"],
        },
    ),
    "ecg": DocumentProfile(
        key="ecg",
        label="ECG / rhythm strip",
        focus=(
            "Read printed machine measurements first (rate, PR, QRS, QT, QTc, axis) and any "
            "printed machine interpretation. Then describe the rhythm and visible ST/T "
            "changes by lead. Mark anything you infer from the tracing as inferred."
        ),
        extraction_shape={
            "rate_bpm": "number|null",
            "rhythm": "string|null",
            "intervals_ms": {"PR": "number|null", "QRS": "number|null", "QT": "number|null", "QTc": "number|null"},
            "axis": "string|null",
            "machine_interpretation": "string|null",
            "observations": [{"lead": "string|null", "finding": "string", "inferred": "boolean"}],
        },
    ),
    "vitals_monitor": DocumentProfile(
        key="vitals_monitor",
        label="Vital signs / monitor screen",
        focus=(
            "Read each displayed parameter with its value, unit and alarm state. Include "
            "trends or flowsheet columns with their timestamps when visible."
        ),
        extraction_shape={
            "captured_at": "string|null",
            "parameters": [
                {"name": "string", "value": "string", "unit": "string|null", "alarm": "boolean", "time": "string|null"}
            ],
        },
    ),
    "medication_list": DocumentProfile(
        key="medication_list",
        label="Medication list / MAR",
        focus=(
            "List every medication with dose, route, frequency, start/stop dates and "
            "status (active, held, discontinued). Keep PRN indications."
        ),
        extraction_shape={
            "medications": [
                {
                    "name": "string",
                    "dose": "string|null",
                    "route": "string|null",
                    "frequency": "string|null",
                    "status": "string|null",
                    "indication": "string|null",
                }
            ],
            "allergies": ["string"],
        },
    ),
    "clinical_note": DocumentProfile(
        key="clinical_note",
        label="Clinical note",
        focus=(
            "Transcribe the note section by section (HPI, exam, assessment, plan or as "
            "labelled). Keep problem numbering."
        ),
        extraction_shape={
            "note_type": "string|null",
            "sections": [{"heading": "string", "text": "string"}],
            "problems": ["string"],
        },
    ),
    "discharge_summary": DocumentProfile(
        key="discharge_summary",
        label="Discharge summary",
        focus=(
            "Capture admission and discharge dates, diagnoses, hospital course, procedures, "
            "discharge medications and follow-up instructions."
        ),
        extraction_shape={
            "admitted": "string|null",
            "discharged": "string|null",
            "diagnoses": ["string"],
            "course": "string|null",
            "procedures": ["string"],
            "discharge_medications": ["string"],
            "follow_up": ["string"],
        },
    ),
    "handwritten_note": DocumentProfile(
        key="handwritten_note",
        label="Handwritten note",
        focus=(
            "Transcribe the handwriting line by line. Put unreadable words in "
            "[brackets?] with your best guess and list them separately."
        ),
        extraction_shape={
            "transcription": ["string"],
            "uncertain_words": [{"guess": "string", "context": "string"}],
        },
    ),
    "other": DocumentProfile(
        key="other",
        label="Other medical document",
        focus="Extract all clinically relevant text, numbers and labels in reading order.",
        extraction_shape={
            "title": "string|null",
            "items": [{"label": "string", "value": "string"}],
        },
    ),
}

AUTO = "auto"
DOCUMENT_TYPES = (AUTO,) + tuple(DOCUMENT_PROFILES)


def get_profile(document_type: str) -> DocumentProfile:
    """Profile for a document type; unknown types use ``other``."""
    return DOCUMENT_PROFILES.get(document_type, DOCUMENT_PROFILES["other"])
