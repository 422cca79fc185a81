from __future__ import annotations

from triage_core import CHAT_FALLBACK_TEXT


def test_chat_returns_model_reply(client, gateway):
    gateway.reply = "Staying hydrated helps with most mild headaches."

    response = client.post("/chat", json={"message": "What helps a headache?"})

    assert response.status_code == 200
    assert response.json() == {
        "response": "Staying hydrated helps with most mild headaches.",
        "confidence": 85,
    }
    assert "What helps a headache?" in gateway.prompts[0]


def test_chat_failure_returns_fixed_fallback(client, gateway):
    gateway.reply = None

    response = client.post("/chat", json={"message": "Is this rash serious?"})

    assert response.status_code == 200
    assert response.json() == {"response": CHAT_FALLBACK_TEXT, "confidence": 50}


def test_chat_requires_message(client, gateway):
    for body in ({}, {"message": ""}, {"message": "   "}):
        response = client.post("/chat", json=body)
        assert response.status_code == 400
        assert response.json()["detail"] == "Message is required"
    assert gateway.calls == 0


def test_chat_turn_is_persisted_for_known_user(client, gateway, backend_module):
    gateway.reply = "Try resting your voice."

    response = client.post("/chat", json={"message": " My throat hurts ", "userId": "user-a"})

    assert response.status_code == 200
    rows = backend_module.container.store.select("chat_messages", {"user_id": "user-a"})
    assert [(row["type"], row["content"], row["confidence"]) for row in rows] == [
        ("user", "My throat hurts", None),
        ("ai", "Try resting your voice.", 85),
    ]


def test_anonymous_chat_is_not_persisted(client, gateway, backend_module):
    gateway.reply = "Hello."
    client.post("/chat", json={"message": "hi"})
    assert backend_module.container.store.select("chat_messages", {}) == []
