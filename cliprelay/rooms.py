"""
Ephemeral room mailboxes for phone <-> desktop text relay.

Each room holds only the most recent text. Entries idle longer than the
TTL are removed by a periodic sweep (see ``cliprelay.tasks.schedule``).
"""
from dataclasses import dataclass
from threading import Lock
from typing import Optional
import logging
import time

from cliprelay.config import get_settings

logger = logging.getLogger("cliprelay.rooms")


def now_ms() -> int:
    """Current epoch time in milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class RoomEntry:
    text: str
    timestamp: int


class RoomStore:
    """Thread-safe ``room -> RoomEntry`` map with last-write-wins semantics."""

    def __init__(self, name: str, ttl_seconds: int = 3600):
        self.name = name
        self.ttl_ms = ttl_seconds * 1000
        self._rooms: dict[str, RoomEntry] = {}
        self._lock = Lock()

    def put(self, room: str, text: str, *, timestamp: Optional[int] = None) -> RoomEntry:
        entry = RoomEntry(text=text, timestamp=timestamp if timestamp is not None else now_ms())
        with self._lock:
            self._rooms[room] = entry
        return entry

    def get(self, room: str) -> Optional[RoomEntry]:
        with self._lock:
            return self._rooms.get(room)

    def clear(self, room: str) -> bool:
        """Delete a room. Returns whether it existed."""
        with self._lock:
            return self._rooms.pop(room, None) is not None

    def sweep(self, now: Optional[int] = None) -> int:
        """
        Remove rooms whose last write is older than the TTL.

        Returns:
            Number of rooms removed
        """
        now = now if now is not None else now_ms()
        with self._lock:
            expired = [
                room for room, entry in self._rooms.items()
                if now - entry.timestamp > self.ttl_ms
            ]
            for room in expired:
                del self._rooms[room]
        if expired:
            logger.info("Swept %d idle room(s) from %s", len(expired), self.name)
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)


_desktop_inbox: Optional[RoomStore] = None
_phone_inbox: Optional[RoomStore] = None


def get_desktop_inbox() -> RoomStore:
    """Rooms written by the phone and polled by the desktop browser."""
    global _desktop_inbox
    if _desktop_inbox is None:
        _desktop_inbox = RoomStore("desktop_inbox", get_settings().ROOM_TTL_SECONDS)
    return _desktop_inbox


def get_phone_inbox() -> RoomStore:
    """Rooms written by the desktop browser and polled by the phone."""
    global _phone_inbox
    if _phone_inbox is None:
        _phone_inbox = RoomStore("phone_inbox", get_settings().ROOM_TTL_SECONDS)
    return _phone_inbox


def sweep_all() -> int:
    """Sweep both inboxes; used by the scheduled job."""
    return get_desktop_inbox().sweep() + get_phone_inbox().sweep()
