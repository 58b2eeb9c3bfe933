"""
Dependency injection for FastAPI routes.
Provides settings, storage, room stores, vendor clients and the model gateway.
"""
from typing import Annotated, Optional, Any

from anthropic import AsyncAnthropic
from fastapi import Depends
from openai import AsyncOpenAI

from cliprelay.config import Settings, get_settings
from cliprelay.db.engine import get_engine
from cliprelay.llm import ModelGateway
from cliprelay.rooms import RoomStore, get_desktop_inbox, get_phone_inbox
from cliprelay.storage import MemoryStorage, SqlStorage, Storage


# === Storage ===

_storage: Optional[Storage] = None


def get_storage() -> Storage:
    """
    Get the process-wide storage backend.

    SQL when DATABASE_URL is configured, in-memory otherwise.
    """
    global _storage
    if _storage is None:
        engine = get_engine()
        _storage = SqlStorage(engine) if engine is not None else MemoryStorage()
    return _storage


def reset_storage() -> None:
    """Forget the cached backend (tests, settings reload)."""
    global _storage
    _storage = None


# === Vendor clients (optional) ===

_anthropic_client: Optional[Any] = None
_openai_client: Optional[Any] = None


def get_anthropic_client() -> Optional[Any]:
    """
    Get Anthropic client if API key is configured.

    Returns None if ANTHROPIC_API_KEY is not set (graceful degradation).
    Retries are handled by the gateway, so the SDK's own are disabled.
    """
    global _anthropic_client

    settings = get_settings()
    if not settings.anthropic_available:
        return None

    if _anthropic_client is None:
        _anthropic_client = AsyncAnthropic(
            api_key=settings.ANTHROPIC_API_KEY,
            timeout=settings.REQUEST_TIMEOUT_SECONDS,
            max_retries=0,
        )
    return _anthropic_client


def get_openai_client() -> Optional[Any]:
    """
    Get OpenAI client if API key is configured.

    Returns None if OPENAI_API_KEY is not set (graceful degradation).
    """
    global _openai_client

    settings = get_settings()
    if not settings.openai_available:
        return None

    if _openai_client is None:
        _openai_client = AsyncOpenAI(
            api_key=settings.OPENAI_API_KEY,
            timeout=settings.REQUEST_TIMEOUT_SECONDS,
            max_retries=0,
        )
    return _openai_client


def get_gateway() -> ModelGateway:
    """Model gateway over whichever vendors are configured."""
    return ModelGateway(
        get_settings(),
        anthropic_client=get_anthropic_client(),
        openai_client=get_openai_client(),
    )


# === Type Aliases ===

SettingsDep = Annotated[Settings, Depends(get_settings)]
StorageDep = Annotated[Storage, Depends(get_storage)]
GatewayDep = Annotated[ModelGateway, Depends(get_gateway)]
DesktopInbox = Annotated[RoomStore, Depends(get_desktop_inbox)]
PhoneInbox = Annotated[RoomStore, Depends(get_phone_inbox)]
