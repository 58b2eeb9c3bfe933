"""
Room store and relay route tests.
"""
import pytest

from cliprelay.rooms import RoomStore, now_ms


# === Store ===

def test_put_overwrites_last_write_wins():
    store = RoomStore("test")
    store.put("r1", "first")
    store.put("r1", "second")

    assert store.get("r1").text == "second"
    assert len(store) == 1


def test_get_missing_room():
    assert RoomStore("test").get("nope") is None


def test_clear_is_idempotent():
    store = RoomStore("test")
    store.put("r1", "x")

    assert store.clear("r1") is True
    assert store.clear("r1") is False
    assert store.get("r1") is None


def test_sweep_removes_only_expired_rooms():
    store = RoomStore("test", ttl_seconds=3600)
    now = now_ms()
    store.put("old", "x", timestamp=now - 3_600_001)
    store.put("edge", "y", timestamp=now - 3_600_000)
    store.put("fresh", "z", timestamp=now)

    removed = store.sweep(now=now)

    assert removed == 1
    assert store.get("old") is None
    assert store.get("edge") is not None
    assert store.get("fresh") is not None


def test_write_refreshes_timestamp():
    store = RoomStore("test", ttl_seconds=1)
    now = now_ms()
    store.put("r", "x", timestamp=now - 5000)
    store.put("r", "y", timestamp=now)

    assert store.sweep(now=now) == 0


# === Routes ===

@pytest.mark.parametrize("send_path,poll_path", [
    ("/api/send", "/api/room"),
    ("/api/send-to-iphone", "/api/iphone"),
])
def test_send_then_poll(client, send_path, poll_path):
    response = client.post(send_path, json={"room": "1234", "text": "BP 120/80"})
    assert response.status_code == 200
    assert response.json() == {"success": True, "room": "1234"}

    data = client.get(f"{poll_path}/1234").json()
    assert data["text"] == "BP 120/80"
    assert isinstance(data["timestamp"], int)


@pytest.mark.parametrize("poll_path", ["/api/room", "/api/iphone"])
def test_poll_empty_room(client, poll_path):
    response = client.get(f"{poll_path}/empty")
    assert response.status_code == 200
    assert response.json() == {"text": None}


@pytest.mark.parametrize("send_path", ["/api/send", "/api/send-to-iphone"])
@pytest.mark.parametrize("payload", [
    {"room": "1234"},
    {"text": "hello"},
    {"room": "", "text": "hello"},
    {"room": "1234", "text": ""},
    {},
])
def test_send_validation(client, send_path, payload):
    response = client.post(send_path, json=payload)
    assert response.status_code == 400
    assert response.json() == {"error": "Missing room or text"}


def test_send_without_body(client):
    response = client.post("/api/send")
    assert response.status_code == 400


@pytest.mark.parametrize("send_path,room_path", [
    ("/api/send", "/api/room"),
    ("/api/send-to-iphone", "/api/iphone"),
])
def test_clear_room(client, send_path, room_path):
    client.post(send_path, json={"room": "r", "text": "x"})

    response = client.delete(f"{room_path}/r")
    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert client.get(f"{room_path}/r").json() == {"text": None}


def test_directions_are_independent(client):
    client.post("/api/send", json={"room": "r", "text": "to desktop"})
    client.post("/api/send-to-iphone", json={"room": "r", "text": "to phone"})

    assert client.get("/api/room/r").json()["text"] == "to desktop"
    assert client.get("/api/iphone/r").json()["text"] == "to phone"

    client.delete("/api/iphone/r")
    assert client.get("/api/room/r").json()["text"] == "to desktop"


def test_send_numeric_room_code(client):
    response = client.post("/api/send", json={"room": 1234, "text": "hi"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "room": "1234"}
    assert client.get("/api/room/1234").json()["text"] == "hi"
