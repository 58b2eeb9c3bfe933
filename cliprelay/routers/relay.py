"""
Room relay routes: phone -> desktop and desktop -> phone text handoff.

Paths and payloads match what the existing phone app and browser page poll.
"""
from typing import Optional
import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from cliprelay.deps import DesktopInbox, GatewayDep, PhoneInbox, SettingsDep, StorageDep
from cliprelay.db.engine import check_db_health
from cliprelay.rooms import RoomStore
from cliprelay.schemas import HealthStatus, SendRequest, SendResponse, SuccessOut

logger = logging.getLogger("cliprelay.relay")

router = APIRouter(tags=["relay"])


def _store(inbox: RoomStore, payload: Optional[SendRequest], direction: str):
    if payload is None or not payload.room or not payload.text:
        return JSONResponse(status_code=400, content={"error": "Missing room or text"})
    inbox.put(payload.room, payload.text)
    logger.info("Room %s: %s %d chars", payload.room, direction, len(payload.text))
    return SendResponse(room=payload.room)


def _read(inbox: RoomStore, room: str) -> dict:
    entry = inbox.get(room)
    if entry is None:
        return {"text": None}
    return {"text": entry.text, "timestamp": entry.timestamp}


# === Phone -> desktop ===

@router.post("/send", response_model=SendResponse)
def send_to_desktop(inbox: DesktopInbox, payload: Optional[SendRequest] = None):
    """Called by the phone app."""
    return _store(inbox, payload, "received")


@router.get("/room/{room}")
def poll_desktop(room: str, inbox: DesktopInbox):
    """Polled by the desktop browser."""
    return _read(inbox, room)


@router.delete("/room/{room}", response_model=SuccessOut)
def clear_desktop(room: str, inbox: DesktopInbox):
    inbox.clear(room)
    return SuccessOut()


# === Desktop -> phone ===

@router.post("/send-to-iphone", response_model=SendResponse)
def send_to_phone(inbox: PhoneInbox, payload: Optional[SendRequest] = None):
    """Called by the desktop browser."""
    return _store(inbox, payload, "sending to phone")


@router.get("/iphone/{room}")
def poll_phone(room: str, inbox: PhoneInbox):
    """Polled by the phone app."""
    return _read(inbox, room)


@router.delete("/iphone/{room}", response_model=SuccessOut)
def clear_phone(room: str, inbox: PhoneInbox):
    """Phone clears its message once received."""
    inbox.clear(room)
    return SuccessOut()


# === Health Check ===

@router.get("/health", response_model=HealthStatus)
def health_check(
    desktop: DesktopInbox,
    phone: PhoneInbox,
    storage: StorageDep,
    gateway: GatewayDep,
    settings: SettingsDep,
):
    """
    Relay health.

    ``degraded`` when the configured database is unreachable; missing model
    keys only disable the AI routes.
    """
    db_health = check_db_health() if storage.backend == "sql" else {"status": "disabled"}
    status = "degraded" if db_health.get("status") == "unhealthy" else "ok"

    return HealthStatus(
        status=status,
        rooms=len(desktop),
        phone_rooms=len(phone),
        storage={"backend": storage.backend, **db_health},
        models={
            "providers": gateway.available_providers(),
            "text_model": settings.TEXT_MODEL,
            "reader_model": settings.READER_MODEL,
            "interpreter_model": settings.INTERPRETER_MODEL,
        },
    )
