"""
Database engine, schema initialization and health checks.
"""
from pathlib import Path
from typing import Any, Optional
import logging

from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session, select, func

from cliprelay.config import get_settings
from cliprelay.db.models import TemplateSet, FavoriteSet, IgnoreRule, RoomSettings, ImageSession

logger = logging.getLogger("cliprelay.db")

_engine: Optional[Engine] = None


def make_engine(url: str) -> Engine:
    """
    Create an engine with per-dialect tweaks.

    SQLite file databases get their parent directory created; in-memory
    SQLite shares one connection so every session sees the same data.
    """
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": 30.0}
        if url in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(url, connect_args=connect_args, poolclass=StaticPool, echo=False)
        db_path = Path(url.replace("sqlite:///", ""))
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return create_engine(url, connect_args=connect_args, echo=False)

    return create_engine(url, echo=False, pool_pre_ping=True)


def get_engine() -> Optional[Engine]:
    """Get or create the engine; None when no DATABASE_URL is configured."""
    global _engine
    settings = get_settings()
    if not settings.database_enabled:
        return None
    if _engine is None:
        _engine = make_engine(settings.DATABASE_URL)
    return _engine


def reset_engine() -> None:
    """Dispose the cached engine (tests, settings reload)."""
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None


def init_db(engine: Optional[Engine] = None, drop_all: bool = False) -> bool:
    """
    Initialize database schema.

    Args:
        engine: Engine to use (configured engine if None)
        drop_all: If True, drop all tables before creating (DESTRUCTIVE!)

    Returns:
        False when no database is configured, True otherwise
    """
    engine = engine or get_engine()
    if engine is None:
        logger.info("No DATABASE_URL configured; using in-memory storage")
        return False

    if drop_all:
        logger.warning("Dropping all tables")
        SQLModel.metadata.drop_all(engine)

    SQLModel.metadata.create_all(engine)
    logger.info("Database schema ready")
    return True


def check_db_health(engine: Optional[Engine] = None) -> dict[str, Any]:
    """
    Check database connectivity and get basic stats.

    Returns:
        Dict with status and table counts
    """
    engine = engine or get_engine()
    if engine is None:
        return {"status": "disabled", "backend": "memory"}

    try:
        with Session(engine) as session:
            counts = {
                "templates": session.exec(select(func.count()).select_from(TemplateSet)).one(),
                "favorites": session.exec(select(func.count()).select_from(FavoriteSet)).one(),
                "ignore_rules": session.exec(select(func.count()).select_from(IgnoreRule)).one(),
                "room_settings": session.exec(select(func.count()).select_from(RoomSettings)).one(),
                "image_sessions": session.exec(select(func.count()).select_from(ImageSession)).one(),
            }
        return {"status": "healthy", "backend": "sql", "counts": counts}
    except Exception as e:
        logger.error("Database health check failed: %s", e)
        return {"status": "unhealthy", "backend": "sql", "error": str(e)}
