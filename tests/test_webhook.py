from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from leadbot.dependencies import get_services
from leadbot.main import app
from leadbot.routers.webhook import extract_inbound_event
from leadbot.schemas.webhook import WebhookPayload
from leadbot.services.result import Result


def _text_payload(text="horario", message_id="wamid.IN1", phone_number_id="1000001", sender="34600"):
    return {
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "WABA",
                "changes": [
                    {
                        "field": "messages",
                        "value": {
                            "messaging_product": "whatsapp",
                            "metadata": {"phone_number_id": phone_number_id, "display_phone_number": "34911"},
                            "messages": [{"id": message_id, "from": sender, "type": "text", "text": {"body": text}}],
                        },
                    }
                ],
            }
        ],
    }


@pytest.fixture
def client(services):
    app.dependency_overrides[get_services] = lambda: services
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealth:
    def test_root_returns_ok(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.text == "OK"

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}


class TestVerify:
    def test_matching_token_echoes_challenge(self, client):
        response = client.get(
            "/webhook",
            params={"hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "12345"},
        )
        assert response.status_code == 200
        assert response.text == "12345"

    def test_wrong_token_is_forbidden(self, client):
        response = client.get(
            "/webhook",
            params={"hub.mode": "subscribe", "hub.verify_token": "nope", "hub.challenge": "12345"},
        )
        assert response.status_code == 403

    def test_wrong_mode_is_forbidden(self, client):
        response = client.get(
            "/webhook",
            params={"hub.mode": "unsubscribe", "hub.verify_token": "verify-me", "hub.challenge": "1"},
        )
        assert response.status_code == 403

    def test_unset_token_rejects_everything(self, client, services):
        services.verify_token = None
        response = client.get("/webhook", params={"hub.mode": "subscribe", "hub.challenge": "1"})
        assert response.status_code == 403


class TestReceive:
    def test_text_message_is_answered_once(self, client, dispatcher):
        response = client.post("/webhook", json=_text_payload())

        assert response.status_code == 200
        assert response.json()["status"] == "accepted"
        dispatcher.send.assert_called_once_with("1000001", "34600", "De 9 a 18 h.")

    def test_duplicate_message_id_is_processed_once(self, client, dispatcher):
        first = client.post("/webhook", json=_text_payload())
        second = client.post("/webhook", json=_text_payload())

        assert first.json()["status"] == "accepted"
        assert second.status_code == 200
        assert second.json()["status"] == "duplicate"
        assert dispatcher.send.call_count == 1

    def test_dedupe_guard_is_awaited(self, client, dispatcher, services):
        services.dedupe = Mock()
        services.dedupe.is_duplicate = AsyncMock(return_value=True)

        response = client.post("/webhook", json=_text_payload())

        assert response.json()["status"] == "duplicate"
        services.dedupe.is_duplicate.assert_awaited_once_with("wamid.IN1")
        dispatcher.send.assert_not_called()

    def test_missing_message_id_is_never_duplicate(self, client, dispatcher):
        payload = _text_payload()
        del payload["entry"][0]["changes"][0]["value"]["messages"][0]["id"]

        client.post("/webhook", json=payload)
        client.post("/webhook", json=payload)

        assert dispatcher.send.call_count == 2

    def test_non_text_message_is_ignored(self, client, dispatcher):
        payload = _text_payload()
        message = payload["entry"][0]["changes"][0]["value"]["messages"][0]
        message["type"] = "image"
        del message["text"]

        response = client.post("/webhook", json=payload)

        assert response.status_code == 200
        assert response.json()["status"] == "ignored"
        dispatcher.send.assert_not_called()

    def test_status_update_is_ignored(self, client, dispatcher):
        payload = _text_payload()
        value = payload["entry"][0]["changes"][0]["value"]
        del value["messages"]
        value["statuses"] = [{"id": "wamid.OUT", "status": "delivered"}]

        response = client.post("/webhook", json=payload)

        assert response.json()["status"] == "ignored"
        dispatcher.send.assert_not_called()

    def test_missing_routing_key_is_ignored(self, client, dispatcher):
        payload = _text_payload()
        del payload["entry"][0]["changes"][0]["value"]["metadata"]

        response = client.post("/webhook", json=payload)

        assert response.json()["status"] == "ignored"
        dispatcher.send.assert_not_called()

    def test_invalid_json_is_acknowledged(self, client, dispatcher):
        response = client.post("/webhook", content=b"{not json", headers={"Content-Type": "application/json"})

        assert response.status_code == 200
        assert response.json()["status"] == "ignored"
        dispatcher.send.assert_not_called()

    def test_empty_object_is_acknowledged(self, client):
        response = client.post("/webhook", json={})
        assert response.status_code == 200
        assert response.json()["status"] == "ignored"

    def test_dispatch_failure_still_acknowledged(self, client, dispatcher):
        dispatcher.send.return_value = Result.failure("WhatsApp API error: 500", "api_error")

        response = client.post("/webhook", json=_text_payload())

        assert response.status_code == 200
        dispatcher.send.assert_called_once()

    def test_ai_failure_still_acknowledged(self, client, dispatcher, llm_provider):
        llm_provider.generate.side_effect = RuntimeError("timeout")

        response = client.post("/webhook", json=_text_payload(text="cuéntame algo", phone_number_id="999"))

        assert response.status_code == 200
        dispatcher.send.assert_not_called()

    def test_lead_capture_over_webhook(self, client, dispatcher, store):
        client.post("/webhook", json=_text_payload(text="Carlos", message_id="wamid.1"))
        client.post("/webhook", json=_text_payload(text="carlos@x.com", message_id="wamid.2"))

        replies = [call.args[2] for call in dispatcher.send.call_args_list]
        assert replies == ["¿Cuál es tu email?", "¡Gracias, te contactamos!"]
        assert len(store.list_leads("acme")) == 1


class TestExtractInboundEvent:
    def test_text_is_trimmed(self):
        payload = WebhookPayload.model_validate(_text_payload(text="  hola  "))
        event = extract_inbound_event(payload)
        assert event.text == "hola"
        assert event.routing_key == "1000001"
        assert event.conversant_id == "34600"
        assert event.message_id == "wamid.IN1"
        assert event.is_text

    def test_only_first_message_is_read(self):
        raw = _text_payload(text="primero")
        raw["entry"][0]["changes"][0]["value"]["messages"].append(
            {"id": "wamid.X", "from": "34600", "type": "text", "text": {"body": "segundo"}}
        )
        event = extract_inbound_event(WebhookPayload.model_validate(raw))
        assert event.text == "primero"
