"""
Storage-code scoped persistence with a relational and an in-memory backend.

Both backends share the same merge semantics:
- templates dedupe by ``id`` (incoming replaces stored in place, new ids appended)
- favorites dedupe by exact text (first occurrence wins, order preserved)
- everything else is last write wins
"""
from abc import ABC, abstractmethod
from copy import deepcopy
from threading import Lock
from typing import Any, Optional
from uuid import uuid4
import logging

from sqlalchemy.engine import Engine
from sqlmodel import Session, select, desc

from cliprelay.db.models import (
    TemplateSet,
    FavoriteSet,
    IgnoreRule,
    RoomSettings,
    ImageSession,
    utc_now,
)

logger = logging.getLogger("cliprelay.storage")


# === Merge helpers ===

def normalize_templates(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Copy templates, giving any item without an id a generated one."""
    normalized = []
    for item in items:
        item = dict(item)
        if not item.get("id"):
            item["id"] = uuid4().hex[:12]
        item["id"] = str(item["id"])
        normalized.append(item)
    return normalized


def dedupe_templates(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Collapse duplicate ids, keeping the first position and the last value."""
    result: list[dict[str, Any]] = []
    positions: dict[str, int] = {}
    for item in items:
        if item["id"] in positions:
            result[positions[item["id"]]] = item
        else:
            positions[item["id"]] = len(result)
            result.append(item)
    return result


def merge_templates(
    existing: list[dict[str, Any]],
    incoming: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    return dedupe_templates(list(existing) + normalize_templates(incoming))


def merge_favorites(existing: list[str], incoming: list[str]) -> list[str]:
    seen: set[str] = set()
    merged = []
    for text in list(existing) + list(incoming):
        if text not in seen:
            seen.add(text)
            merged.append(text)
    return merged


# === Interface ===

class Storage(ABC):
    """Persistence operations addressed by storage code."""

    backend: str = "abstract"

    # Templates
    @abstractmethod
    def get_templates(self, code: str) -> list[dict[str, Any]]: ...

    @abstractmethod
    def save_templates(
        self, code: str, items: list[dict[str, Any]], merge: bool = False
    ) -> list[dict[str, Any]]: ...

    @abstractmethod
    def delete_template(self, code: str, template_id: str) -> bool: ...

    def get_template(self, code: str, template_id: str) -> Optional[dict[str, Any]]:
        for item in self.get_templates(code):
            if item.get("id") == template_id:
                return item
        return None

    # Favorites
    @abstractmethod
    def get_favorites(self, code: str) -> list[str]: ...

    @abstractmethod
    def save_favorites(self, code: str, items: list[str], merge: bool = False) -> list[str]: ...

    @abstractmethod
    def delete_favorite(self, code: str, index: int) -> bool: ...

    # Ignore rules
    @abstractmethod
    def list_ignore_rules(self, code: str) -> list[IgnoreRule]: ...

    @abstractmethod
    def add_ignore_rule(self, code: str, rule_text: str) -> IgnoreRule: ...

    @abstractmethod
    def delete_ignore_rule(self, code: str, rule_id: int) -> bool: ...

    # Room settings
    @abstractmethod
    def get_room_settings(self, code: str) -> dict[str, Any]: ...

    @abstractmethod
    def save_room_settings(self, code: str, settings: dict[str, Any]) -> dict[str, Any]: ...

    # Image sessions
    @abstractmethod
    def create_image_session(self, record: ImageSession) -> ImageSession: ...

    @abstractmethod
    def update_image_session(self, session_id: str, **fields: Any) -> Optional[ImageSession]: ...

    @abstractmethod
    def get_image_session(self, session_id: str) -> Optional[ImageSession]: ...

    @abstractmethod
    def list_image_sessions(self, code: str, limit: int = 20) -> list[ImageSession]: ...


# === In-memory backend ===

class MemoryStorage(Storage):
    """Process-local fallback used when no DATABASE_URL is configured."""

    backend = "memory"

    def __init__(self):
        self._lock = Lock()
        self._templates: dict[str, list[dict[str, Any]]] = {}
        self._favorites: dict[str, list[str]] = {}
        self._rules: dict[str, list[IgnoreRule]] = {}
        self._settings: dict[str, dict[str, Any]] = {}
        self._sessions: dict[str, ImageSession] = {}
        self._next_rule_id = 1

    def get_templates(self, code):
        with self._lock:
            return deepcopy(self._templates.get(code, []))

    def save_templates(self, code, items, merge=False):
        with self._lock:
            if merge:
                result = merge_templates(self._templates.get(code, []), items)
            else:
                result = dedupe_templates(normalize_templates(items))
            self._templates[code] = result
            return deepcopy(result)

    def delete_template(self, code, template_id):
        with self._lock:
            current = self._templates.get(code, [])
            kept = [t for t in current if t.get("id") != template_id]
            self._templates[code] = kept
            return len(kept) != len(current)

    def get_favorites(self, code):
        with self._lock:
            return list(self._favorites.get(code, []))

    def save_favorites(self, code, items, merge=False):
        with self._lock:
            existing = self._favorites.get(code, []) if merge else []
            result = merge_favorites(existing, items)
            self._favorites[code] = result
            return list(result)

    def delete_favorite(self, code, index):
        with self._lock:
            current = self._favorites.get(code, [])
            if index < 0 or index >= len(current):
                return False
            self._favorites[code] = current[:index] + current[index + 1:]
            return True

    def list_ignore_rules(self, code):
        with self._lock:
            return list(self._rules.get(code, []))

    def add_ignore_rule(self, code, rule_text):
        with self._lock:
            rule = IgnoreRule(id=self._next_rule_id, storage_code=code, rule_text=rule_text)
            self._next_rule_id += 1
            self._rules.setdefault(code, []).append(rule)
            return rule

    def delete_ignore_rule(self, code, rule_id):
        with self._lock:
            current = self._rules.get(code, [])
            kept = [r for r in current if r.id != rule_id]
            self._rules[code] = kept
            return len(kept) != len(current)

    def get_room_settings(self, code):
        with self._lock:
            return deepcopy(self._settings.get(code, {}))

    def save_room_settings(self, code, settings):
        with self._lock:
            self._settings[code] = deepcopy(settings)
            return deepcopy(settings)

    def create_image_session(self, record):
        with self._lock:
            self._sessions[record.id] = record
            return record

    def update_image_session(self, session_id, **fields):
        with self._lock:
            record = self._sessions.get(session_id)
            if record is None:
                return None
            for key, value in fields.items():
                setattr(record, key, value)
            record.updated_at = utc_now()
            return record

    def get_image_session(self, session_id):
        with self._lock:
            return self._sessions.get(session_id)

    def list_image_sessions(self, code, limit=20):
        with self._lock:
            records = [s for s in self._sessions.values() if s.storage_code == code]
        records.sort(key=lambda s: s.created_at, reverse=True)
        return records[:limit]


# === Relational backend ===

class SqlStorage(Storage):
    """SQLModel-backed storage; every save is a get-then-upsert in one session."""

    backend = "sql"

    def __init__(self, engine: Engine):
        self.engine = engine

    def _session(self) -> Session:
        return Session(self.engine, expire_on_commit=False)

    def get_templates(self, code):
        with self._session() as session:
            row = session.get(TemplateSet, code)
            return list(row.templates) if row else []

    def save_templates(self, code, items, merge=False):
        with self._session() as session:
            row = session.get(TemplateSet, code)
            if merge and row is not None:
                result = merge_templates(row.templates, items)
            else:
                result = dedupe_templates(normalize_templates(items))
            if row is None:
                row = TemplateSet(storage_code=code, templates=result)
            else:
                # Reassign so SQLAlchemy sees the JSON change
                row.templates = result
                row.updated_at = utc_now()
            session.add(row)
            session.commit()
            return result

    def delete_template(self, code, template_id):
        with self._session() as session:
            row = session.get(TemplateSet, code)
            if row is None:
                return False
            kept = [t for t in row.templates if t.get("id") != template_id]
            if len(kept) == len(row.templates):
                return False
            row.templates = kept
            row.updated_at = utc_now()
            session.add(row)
            session.commit()
            return True

    def get_favorites(self, code):
        with self._session() as session:
            row = session.get(FavoriteSet, code)
            return list(row.favorites) if row else []

    def save_favorites(self, code, items, merge=False):
        with self._session() as session:
            row = session.get(FavoriteSet, code)
            existing = row.favorites if (merge and row is not None) else []
            result = merge_favorites(existing, items)
            if row is None:
                row = FavoriteSet(storage_code=code, favorites=result)
            else:
                row.favorites = result
                row.updated_at = utc_now()
            session.add(row)
            session.commit()
            return result

    def delete_favorite(self, code, index):
        with self._session() as session:
            row = session.get(FavoriteSet, code)
            if row is None or index < 0 or index >= len(row.favorites):
                return False
            row.favorites = row.favorites[:index] + row.favorites[index + 1:]
            row.updated_at = utc_now()
            session.add(row)
            session.commit()
            return True

    def list_ignore_rules(self, code):
        with self._session() as session:
            statement = (
                select(IgnoreRule)
                .where(IgnoreRule.storage_code == code)
                .order_by(IgnoreRule.created_at, IgnoreRule.id)
            )
            return list(session.exec(statement).all())

    def add_ignore_rule(self, code, rule_text):
        with self._session() as session:
            rule = IgnoreRule(storage_code=code, rule_text=rule_text)
            session.add(rule)
            session.commit()
            session.refresh(rule)
            return rule

    def delete_ignore_rule(self, code, rule_id):
        with self._session() as session:
            rule = session.get(IgnoreRule, rule_id)
            if rule is None or rule.storage_code != code:
                return False
            session.delete(rule)
            session.commit()
            return True

    def get_room_settings(self, code):
        with self._session() as session:
            row = session.get(RoomSettings, code)
            return dict(row.settings) if row else {}

    def save_room_settings(self, code, settings):
        with self._session() as session:
            row = session.get(RoomSettings, code)
            if row is None:
                row = RoomSettings(storage_code=code, settings=dict(settings))
            else:
                row.settings = dict(settings)
                row.updated_at = utc_now()
            session.add(row)
            session.commit()
            return dict(row.settings)

    def create_image_session(self, record):
        with self._session() as session:
            session.add(record)
            session.commit()
            session.refresh(record)
            return record

    def update_image_session(self, session_id, **fields):
        with self._session() as session:
            record = session.get(ImageSession, session_id)
            if record is None:
                return None
            for key, value in fields.items():
                setattr(record, key, value)
            record.updated_at = utc_now()
            session.add(record)
            session.commit()
            session.refresh(record)
            return record

    def get_image_session(self, session_id):
        with self._session() as session:
            return session.get(ImageSession, session_id)

    def list_image_sessions(self, code, limit=20):
        with self._session() as session:
            statement = (
                select(ImageSession)
                .where(ImageSession.storage_code == code)
                .order_by(desc(ImageSession.created_at))
                .limit(limit)
            )
            return list(session.exec(statement).all())
