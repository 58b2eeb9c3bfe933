"""
Two-stage image pipeline tests with a scripted gateway.
"""
import base64
import json

import pytest

from cliprelay.config import Settings
from cliprelay.llm import ModelCallError
from cliprelay.services.pipeline import (
    ImageValidationError,
    RawImage,
    SessionNotFound,
    analyze_images,
    prepare_images,
    reinterpret_session,
)

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
PNG_B64 = base64.b64encode(PNG_BYTES).decode()

READER_REPLY = json.dumps({
    "document_type": "lab_results",
    "confidence": 0.9,
    "extracted": {"panels": [{"name": "BMP", "results": [{"test": "K", "value": "6.1", "flag": "H"}]}]},
    "unreadable": [],
})
INTERPRETER_REPLY = json.dumps({"summary": "Hyperkalemia", "key_findings": []})


@pytest.fixture
def settings():
    return Settings(MAX_IMAGES=3, MAX_IMAGE_BYTES=1024, THINKING_BUDGET=2048)


# === Image validation ===

def test_prepare_images_metadata(settings):
    inputs, metadata = prepare_images(
        [RawImage(data=PNG_B64, media_type="image/png")], settings,
    )
    assert inputs[0].data == PNG_B64
    assert metadata == [{
        "index": 0,
        "media_type": "image/png",
        "bytes": len(PNG_BYTES),
        "sha256": metadata[0]["sha256"],
    }]
    assert len(metadata[0]["sha256"]) == 64


def test_prepare_images_accepts_data_url_and_jpg_alias(settings):
    inputs, metadata = prepare_images([
        RawImage(data=f"data:image/webp;base64,{PNG_B64}"),
        RawImage(data=PNG_B64[:10] + "\n" + PNG_B64[10:], media_type="image/jpg"),
    ], settings)
    assert inputs[0].media_type == "image/webp"
    assert inputs[0].data == PNG_B64
    assert metadata[1]["media_type"] == "image/jpeg"
    assert inputs[1].data == PNG_B64


@pytest.mark.parametrize("images,message", [
    ([], "At least one image"),
    ([RawImage(data=PNG_B64)] * 4, "Too many images"),
    ([RawImage(data="!!notbase64!!")], "invalid base64"),
    ([RawImage(data=PNG_B64, media_type="application/pdf")], "unsupported media type"),
    ([RawImage(data=base64.b64encode(b"x" * 2048).decode())], "exceeds limit"),
])
def test_prepare_images_rejects(settings, images, message):
    with pytest.raises(ImageValidationError, match=message):
        prepare_images(images, settings)


# === Orchestration ===

async def test_analyze_images_runs_both_stages(memory_storage, settings, fake_gateway):
    memory_storage.add_ignore_rule("abc", "Ignore hemolysis comments")
    memory_storage.save_room_settings("abc", {"profile": "Dialysis nurse", "depth": "brief"})
    gateway = fake_gateway
    gateway.replies = [READER_REPLY, INTERPRETER_REPLY]

    record = await analyze_images(
        gateway, memory_storage, settings,
        images=[RawImage(data=PNG_B64, media_type="image/png")],
        storage_code="abc",
        document_type="lab_results",
        reader_model="claude-sonnet-4-5",
        interpreter_model="gpt-5",
    )

    assert record.status == "completed"
    assert record.extracted_data["document_type"] == "lab_results"
    assert record.interpretation == {"summary": "Hyperkalemia", "key_findings": []}
    assert record.cost["reader"]["model"] == "claude-sonnet-4-5"
    assert record.cost["interpreter"]["model"] == "gpt-5"
    assert record.cost["total_usd"] == pytest.approx(0.002)
    assert record.cost["total_tokens"] == 300
    assert set(record.timing) == {"reader_ms", "interpreter_ms", "total_ms"}

    (reader_model, reader_req), (interp_model, interp_req) = gateway.calls
    assert reader_model == "claude-sonnet-4-5"
    assert len(reader_req.images) == 1
    assert reader_req.thinking_budget == 0
    assert interp_model == "gpt-5"
    assert interp_req.images == []
    assert interp_req.thinking_budget == 2048
    assert "Ignore hemolysis comments" in interp_req.system
    assert "Dialysis nurse" in interp_req.system
    assert '"K"' in interp_req.user_text

    assert memory_storage.get_image_session(record.id).status == "completed"


async def test_analyze_images_reader_only(memory_storage, settings, fake_gateway):
    gateway = fake_gateway
    gateway.replies = [READER_REPLY]

    record = await analyze_images(
        gateway, memory_storage, settings,
        images=[RawImage(data=PNG_B64)],
        reader_only=True,
    )

    assert record.status == "completed"
    assert record.interpreter_model is None
    assert record.interpretation is None
    assert "interpreter" not in record.cost
    assert len(gateway.calls) == 1


async def test_analyze_images_uses_configured_defaults(memory_storage, settings, fake_gateway):
    gateway = fake_gateway
    gateway.replies = [READER_REPLY, INTERPRETER_REPLY]

    record = await analyze_images(gateway, memory_storage, settings, images=[RawImage(data=PNG_B64)])

    assert record.reader_model == settings.READER_MODEL
    assert record.interpreter_model == settings.INTERPRETER_MODEL


async def test_analyze_images_marks_failed_session(memory_storage, settings, fake_gateway):
    gateway = fake_gateway
    gateway.replies = [READER_REPLY, ModelCallError("openai", "gpt-5", "boom")]

    with pytest.raises(ModelCallError):
        await analyze_images(
            gateway, memory_storage, settings,
            images=[RawImage(data=PNG_B64)],
            storage_code="abc",
            interpreter_model="gpt-5",
        )

    (record,) = memory_storage.list_image_sessions("abc")
    assert record.status == "failed"
    assert "boom" in record.error
    assert record.extracted_data["confidence"] == 0.9


async def test_analyze_images_invalid_input_persists_nothing(memory_storage, settings, fake_gateway):
    with pytest.raises(ImageValidationError):
        await analyze_images(
            fake_gateway, memory_storage, settings,
            images=[RawImage(data=PNG_B64)],
            storage_code="abc",
            document_type="tax_return",
        )
    assert memory_storage.list_image_sessions("abc") == []


async def test_reinterpret_adds_cost(memory_storage, settings, fake_gateway):
    gateway = fake_gateway
    gateway.replies = [READER_REPLY, INTERPRETER_REPLY, '{"one_liner": "K 6.1"}']
    record = await analyze_images(
        gateway, memory_storage, settings,
        images=[RawImage(data=PNG_B64)], storage_code="abc",
    )

    updated = await reinterpret_session(
        gateway, memory_storage, settings, record.id,
        mode="rounding", interpreter_model="claude-haiku-4-5",
    )

    assert updated.mode == "rounding"
    assert updated.interpreter_model == "claude-haiku-4-5"
    assert updated.interpretation == {"one_liner": "K 6.1"}
    assert updated.cost["total_usd"] == pytest.approx(0.003)
    assert len(updated.cost["reinterpretations"]) == 1
    assert "rounds" in gateway.calls[-1][1].system


async def test_analyze_images_ignores_mistyped_model_settings(memory_storage, settings, fake_gateway):
    memory_storage.save_room_settings("abc", {"reader_model": 4, "interpreter_model": ["gpt-5"]})
    fake_gateway.replies = [READER_REPLY, INTERPRETER_REPLY]

    record = await analyze_images(
        fake_gateway, memory_storage, settings,
        images=[RawImage(data=PNG_B64)], storage_code="abc",
    )

    assert record.reader_model == settings.READER_MODEL
    assert record.interpreter_model == settings.INTERPRETER_MODEL


async def test_analyze_images_total_covers_stage_times(memory_storage, settings, fake_gateway):
    fake_gateway.replies = [READER_REPLY, INTERPRETER_REPLY]

    record = await analyze_images(fake_gateway, memory_storage, settings, images=[RawImage(data=PNG_B64)])

    timing = record.timing
    assert timing["total_ms"] >= timing["reader_ms"] + timing["interpreter_ms"]


async def test_analyze_images_records_unparseable_reader_output(memory_storage, settings, fake_gateway):
    fake_gateway.replies = ["The image is too blurry to read.", INTERPRETER_REPLY]

    record = await analyze_images(fake_gateway, memory_storage, settings, images=[RawImage(data=PNG_B64)])

    assert record.status == "completed"
    assert record.extracted_data["parse_error"] is True
    assert record.error == "Reader output was not valid JSON"


async def test_reinterpret_reader_only_session_timing(memory_storage, settings, fake_gateway):
    fake_gateway.replies = [READER_REPLY, INTERPRETER_REPLY]
    record = await analyze_images(
        fake_gateway, memory_storage, settings,
        images=[RawImage(data=PNG_B64)], reader_only=True,
    )

    updated = await reinterpret_session(fake_gateway, memory_storage, settings, record.id)

    assert updated.timing == {"reader_ms": 12, "interpreter_ms": 12, "total_ms": 24}
    assert updated.cost["total_usd"] == pytest.approx(0.002)


async def test_reinterpret_unknown_session(memory_storage, settings, fake_gateway):
    with pytest.raises(SessionNotFound):
        await reinterpret_session(fake_gateway, memory_storage, settings, "missing")


# === Routes ===

def test_analyze_images_route(client, fake_gateway):
    fake_gateway.replies = [READER_REPLY, INTERPRETER_REPLY]

    response = client.post("/api/analyze-images", json={
        "images": [{"data": PNG_B64, "media_type": "image/png"}],
        "storage_code": "abc",
        "document_type": "lab_results",
        "mode": "significant_only",
    })

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "completed"
    assert data["mode"] == "significant_only"
    assert data["images"][0]["bytes"] == len(PNG_BYTES)
    assert "data" not in data["images"][0]

    listed = client.get("/api/image-sessions", params={"storage_code": "abc"}).json()
    assert listed["total"] == 1
    assert listed["items"][0]["id"] == data["id"]

    assert client.get(f"/api/image-sessions/{data['id']}").json()["id"] == data["id"]


def test_analyze_images_route_validation(client):
    response = client.post("/api/analyze-images", json={
        "images": [{"data": "@@@"}],
    })
    assert response.status_code == 422
    assert response.json()["error"] == "Invalid image request"

    response = client.post("/api/analyze-images", json={"images": []})
    assert response.status_code == 422


def test_analyze_images_route_vendor_failure(client, fake_gateway):
    fake_gateway.replies = [ModelCallError("anthropic", "claude-sonnet-4-5", "overloaded")]

    response = client.post("/api/analyze-images", json={"images": [{"data": PNG_B64}]})

    assert response.status_code == 502
    assert response.json()["error"] == "Model call failed"


def test_reinterpret_route(client, fake_gateway):
    fake_gateway.replies = [READER_REPLY, INTERPRETER_REPLY, '{"summary": "again"}']
    session_id = client.post("/api/analyze-images", json={"images": [{"data": PNG_B64}]}).json()["id"]

    response = client.post(f"/api/image-sessions/{session_id}/reinterpret", json={"mode": "standard"})
    assert response.status_code == 200
    assert response.json()["interpretation"] == {"summary": "again"}

    assert client.post("/api/image-sessions/nope/reinterpret").status_code == 404


def test_get_missing_image_session(client):
    assert client.get("/api/image-sessions/nope").status_code == 404
