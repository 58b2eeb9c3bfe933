"""
Pydantic schemas for API request/response models.

Design principles:
- Separate input/output schemas for clear boundaries
- Relay payloads stay loose (validated by hand to keep the 400 contract)
- Proper validation with descriptive error messages elsewhere
"""
from typing import Optional, Any, Literal
from datetime import datetime
from pydantic import BaseModel, Field, field_validator, ConfigDict

Depth = Literal["brief", "standard", "detailed"]
InterpreterMode = Literal["standard", "rounding", "significant_only"]
ReasoningEffort = Literal["minimal", "low", "medium", "high"]


# === Relay Schemas ===

class SendRequest(BaseModel):
    """Text pushed into a room. Both fields are checked in the route."""
    room: Optional[str] = None
    text: Optional[str] = None

    @field_validator("room", "text", mode="before")
    @classmethod
    def coerce_number(cls, v: Any) -> Any:
        """Phone clients may send numeric room codes."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class SendResponse(BaseModel):
    success: bool = True
    room: str


class SuccessOut(BaseModel):
    success: bool = True


# === Template Schemas ===

class TemplateIn(BaseModel):
    """Note template; extra client fields (name, category, ...) are kept."""
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = Field(default=None, max_length=100)
    text: str

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Optional[str]:
        """Clients sometimes send numeric ids."""
        return None if v is None else str(v)


class TemplatesSaveRequest(BaseModel):
    templates: list[TemplateIn] = Field(default_factory=list)
    merge: bool = False


class TemplatesOut(BaseModel):
    storage_code: str
    templates: list[dict[str, Any]]


# === Favorite Schemas ===

class FavoritesSaveRequest(BaseModel):
    favorites: list[str] = Field(default_factory=list)
    merge: bool = False


class FavoritesOut(BaseModel):
    storage_code: str
    favorites: list[str]


# === Ignore Rule Schemas ===

class IgnoreRuleIn(BaseModel):
    rule_text: str = Field(min_length=1, max_length=2000)

    @field_validator("rule_text")
    @classmethod
    def validate_rule_text(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Rule text cannot be empty or whitespace only")
        return v.strip()


class IgnoreRuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    rule_text: str
    created_at: datetime


class IgnoreRulesOut(BaseModel):
    storage_code: str
    rules: list[IgnoreRuleOut]


# === Settings Schemas ===

class RoomSettingsIn(BaseModel):
    settings: dict[str, Any] = Field(default_factory=dict)


class RoomSettingsOut(BaseModel):
    storage_code: str
    settings: dict[str, Any]


# === Text AI Schemas ===

class NoteTextIn(BaseModel):
    text: str = Field(min_length=1, max_length=100_000)
    storage_code: Optional[str] = Field(default=None, max_length=200)
    model: Optional[str] = Field(default=None, max_length=100)
    profile: Optional[str] = Field(default=None, max_length=4000)

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        """Ensure text is not just whitespace."""
        if not v.strip():
            raise ValueError("Text cannot be empty or whitespace only")
        return v


class AnalyzeNoteRequest(NoteTextIn):
    depth: Optional[Depth] = None
    include_suggestions: Optional[bool] = None


class ProofreadRequest(NoteTextIn):
    grammar: bool = True
    spelling: bool = True
    punctuation: bool = True


class FillTemplateRequest(NoteTextIn):
    storage_code: str = Field(min_length=1, max_length=200)
    template_id: str = Field(min_length=1, max_length=100)
    depth: Optional[Depth] = None


class UsageOut(BaseModel):
    provider: str
    model: str
    input_tokens: int
    output_tokens: int
    reasoning_tokens: int
    cost_usd: float
    elapsed_ms: int


class AIResultOut(BaseModel):
    result: dict[str, Any]
    usage: UsageOut
    template_id: Optional[str] = None


# === Image Pipeline Schemas ===

class ImageIn(BaseModel):
    """Base64 image or data URL."""
    data: str = Field(min_length=1)
    media_type: Optional[str] = Field(default=None, max_length=50)


class AnalyzeImagesRequest(BaseModel):
    images: list[ImageIn] = Field(min_length=1)
    storage_code: Optional[str] = Field(default=None, max_length=200)
    document_type: str = Field(default="auto", max_length=50)
    mode: InterpreterMode = "standard"
    reader_model: Optional[str] = Field(default=None, max_length=100)
    interpreter_model: Optional[str] = Field(default=None, max_length=100)
    depth: Optional[Depth] = None
    include_suggestions: Optional[bool] = None
    profile: Optional[str] = Field(default=None, max_length=4000)
    thinking_budget: Optional[int] = Field(default=None, ge=0, le=32000)
    reasoning_effort: Optional[ReasoningEffort] = None
    reader_only: bool = False


class ReinterpretRequest(BaseModel):
    mode: InterpreterMode = "standard"
    interpreter_model: Optional[str] = Field(default=None, max_length=100)
    depth: Optional[Depth] = None
    include_suggestions: Optional[bool] = None
    profile: Optional[str] = Field(default=None, max_length=4000)
    thinking_budget: Optional[int] = Field(default=None, ge=0, le=32000)
    reasoning_effort: Optional[ReasoningEffort] = None


class ImageSessionOut(BaseModel):
    """Stored reader/interpreter run."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    storage_code: Optional[str]
    document_type: str
    mode: str
    reader_model: str
    interpreter_model: Optional[str]
    images: list[dict[str, Any]]
    extracted_data: Optional[dict[str, Any]]
    interpretation: Optional[dict[str, Any]]
    cost: dict[str, Any]
    timing: dict[str, Any]
    status: str
    error: Optional[str]
    created_at: datetime
    updated_at: datetime


class ImageSessionListOut(BaseModel):
    items: list[ImageSessionOut]
    total: int


# === Health Check Schemas ===

class HealthStatus(BaseModel):
    """Relay health; ``status`` and ``rooms`` are what the existing clients read."""
    status: str  # ok, degraded
    rooms: int
    phone_rooms: int
    storage: dict[str, Any]
    models: dict[str, Any]


# === Error Schemas ===

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
