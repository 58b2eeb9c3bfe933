"""
SQLModel tables for per-storage-code persistence.

Single-row-per-code tables use the storage code as primary key so every
save is a plain upsert. List payloads live in JSON columns.
"""
from typing import Any, Optional
from datetime import datetime, timezone
from uuid import uuid4
from sqlmodel import SQLModel, Field, Column, Text, JSON, Index


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


def new_session_id() -> str:
    return uuid4().hex


class TemplateSet(SQLModel, table=True):
    """Ordered note templates ``[{id, text, ...}]`` for one storage code."""
    __tablename__ = "templates"

    storage_code: str = Field(primary_key=True, max_length=200)
    templates: list[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    updated_at: datetime = Field(default_factory=utc_now, nullable=False)


class FavoriteSet(SQLModel, table=True):
    """Favorite snippets (plain strings) for one storage code."""
    __tablename__ = "favorites"

    storage_code: str = Field(primary_key=True, max_length=200)
    favorites: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    updated_at: datetime = Field(default_factory=utc_now, nullable=False)


class IgnoreRule(SQLModel, table=True):
    """
    Instruction telling the models what to leave out.

    A storage code may own any number of rules.
    """
    __tablename__ = "ignore_rules"

    id: Optional[int] = Field(default=None, primary_key=True)
    storage_code: str = Field(index=True, max_length=200)
    rule_text: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(default_factory=utc_now, nullable=False)


class RoomSettings(SQLModel, table=True):
    """Arbitrary client settings blob for one storage code."""
    __tablename__ = "room_settings"

    storage_code: str = Field(primary_key=True, max_length=200)
    settings: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    updated_at: datetime = Field(default_factory=utc_now, nullable=False)


class ImageSession(SQLModel, table=True):
    """
    Record of one reader/interpreter run.

    Only image metadata is kept (media type, size, digest), never the bytes.
    """
    __tablename__ = "image_sessions"

    id: str = Field(default_factory=new_session_id, primary_key=True, max_length=32)
    storage_code: Optional[str] = Field(default=None, index=True, max_length=200)

    document_type: str = Field(default="auto", max_length=50)
    mode: str = Field(default="standard", max_length=30)
    reader_model: str = Field(max_length=100)
    interpreter_model: Optional[str] = Field(default=None, max_length=100)

    images: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    extracted_data: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    interpretation: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    cost: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    timing: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))

    status: str = Field(default="reading", max_length=20)  # reading, interpreting, completed, failed
    error: Optional[str] = Field(default=None, sa_column=Column(Text))

    created_at: datetime = Field(default_factory=utc_now, nullable=False)
    updated_at: datetime = Field(default_factory=utc_now, nullable=False)

    __table_args__ = (
        Index("idx_image_sessions_created_at", "created_at"),
        Index("idx_image_sessions_status", "status"),
    )
