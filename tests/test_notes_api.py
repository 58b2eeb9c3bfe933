"""
Note analysis, proofreading and template fill routes.
"""
from cliprelay.llm import ModelCallError, ModelUnavailable


def test_analyze_note(client, fake_gateway):
    fake_gateway.replies = ['```json\n{"summary": "Chest pain", "key_points": []}\n```']

    response = client.post("/api/analyze-note", json={"text": "Pt with CP x2h"})

    assert response.status_code == 200
    data = response.json()
    assert data["result"] == {"summary": "Chest pain", "key_points": []}
    assert data["usage"]["input_tokens"] == 100
    assert data["usage"]["cost_usd"] == 0.001
    assert data["template_id"] is None

    model, request = fake_gateway.calls[0]
    assert model == "claude-sonnet-4-5"
    assert "Pt with CP x2h" in request.user_text


def test_analyze_note_uses_stored_context(client, fake_gateway, memory_storage):
    memory_storage.save_room_settings("abc", {
        "profile": "Pediatric resident",
        "include_suggestions": False,
        "model": "gpt-4o",
    })
    memory_storage.add_ignore_rule("abc", "Never mention weight")

    client.post("/api/analyze-note", json={"text": "note", "storage_code": "abc"})

    model, request = fake_gateway.calls[0]
    assert model == "gpt-4o"
    assert "Pediatric resident" in request.system
    assert "Never mention weight" in request.system
    assert '"suggestions"' not in request.system


def test_analyze_note_request_overrides_settings(client, fake_gateway, memory_storage):
    memory_storage.save_room_settings("abc", {"include_suggestions": False, "model": "gpt-4o"})

    client.post("/api/analyze-note", json={
        "text": "note",
        "storage_code": "abc",
        "include_suggestions": True,
        "model": "claude-haiku-4-5",
    })

    model, request = fake_gateway.calls[0]
    assert model == "claude-haiku-4-5"
    assert '"suggestions"' in request.system


def test_analyze_note_non_json_reply(client, fake_gateway):
    fake_gateway.replies = ["I cannot help with that."]

    data = client.post("/api/analyze-note", json={"text": "note"}).json()

    assert data["result"] == {"raw_text": "I cannot help with that.", "parse_error": True}


def test_analyze_note_rejects_blank_text(client, fake_gateway):
    assert client.post("/api/analyze-note", json={"text": "   "}).status_code == 422
    assert client.post("/api/analyze-note", json={"text": "x", "depth": "huge"}).status_code == 422
    assert fake_gateway.calls == []


def test_proofread(client, fake_gateway):
    fake_gateway.replies = ['{"corrected_text": "Pt has a headache.", "changes": []}']

    response = client.post("/api/proofread", json={
        "text": "Pt has a headach.",
        "grammar": False,
    })

    assert response.status_code == 200
    assert response.json()["result"]["corrected_text"] == "Pt has a headache."
    system = fake_gateway.calls[0][1].system
    assert "grammar" in system.partition("Leave these exactly as written")[2]


def test_proofread_requires_a_category(client, fake_gateway):
    response = client.post("/api/proofread", json={
        "text": "x", "grammar": False, "spelling": False, "punctuation": False,
    })
    assert response.status_code == 422
    assert fake_gateway.calls == []


def test_fill_template(client, fake_gateway, memory_storage):
    memory_storage.save_templates("abc", [{"id": "t1", "name": "H&P", "text": "HPI:\nPlan:"}])
    fake_gateway.replies = ['{"filled_text": "HPI: cough\\nPlan: not documented"}']

    response = client.post("/api/fill-template", json={
        "text": "cough for 3 days",
        "storage_code": "abc",
        "template_id": "t1",
    })

    assert response.status_code == 200
    data = response.json()
    assert data["template_id"] == "t1"
    assert "not documented" in data["result"]["filled_text"]
    assert "HPI:\nPlan:" in fake_gateway.calls[0][1].user_text


def test_fill_template_unknown_id(client, fake_gateway):
    response = client.post("/api/fill-template", json={
        "text": "x", "storage_code": "abc", "template_id": "missing",
    })
    assert response.status_code == 404
    assert fake_gateway.calls == []


def test_model_unavailable_maps_to_503(client, fake_gateway):
    fake_gateway.replies = [ModelUnavailable("ANTHROPIC_API_KEY is not configured")]

    response = client.post("/api/analyze-note", json={"text": "note"})

    assert response.status_code == 503
    assert response.json()["error"] == "Model unavailable"


def test_model_call_error_maps_to_502(client, fake_gateway):
    fake_gateway.replies = [ModelCallError("openai", "gpt-5", "rate limited")]

    response = client.post("/api/proofread", json={"text": "note"})

    assert response.status_code == 502
    assert "rate limited" in response.json()["detail"]


def test_analyze_note_with_mistyped_settings(client, fake_gateway, memory_storage):
    memory_storage.save_room_settings("abc", {"profile": {"role": "nurse"}, "model": 4})

    response = client.post("/api/analyze-note", json={"text": "note", "storage_code": "abc"})

    assert response.status_code == 200
    model, request = fake_gateway.calls[0]
    assert model == "claude-sonnet-4-5"
    assert "ABOUT THE USER" not in request.system


def test_analyze_note_string_false_disables_suggestions(client, fake_gateway, memory_storage):
    memory_storage.save_room_settings("abc", {"include_suggestions": "false"})

    client.post("/api/analyze-note", json={"text": "note", "storage_code": "abc"})

    assert "Do NOT give suggestions" in fake_gateway.calls[0][1].system
