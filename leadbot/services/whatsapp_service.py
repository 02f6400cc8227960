from abc import ABC, abstractmethod
from typing import Optional

import httpx

from leadbot.logging_config import get_logger
from leadbot.services.result import Result

logger = get_logger("whatsapp_service")


class MessageDispatcher(ABC):
    @abstractmethod
    def send(self, routing_key: str, conversant_id: str, text: str) -> Result[Optional[str]]:
        """Deliver ``text`` to the conversant. Never raises; failures come back as Result."""


class WhatsAppCloudDispatcher(MessageDispatcher):
    """Sends text messages through the WhatsApp Cloud (Graph) API."""

    def __init__(
        self,
        token: Optional[str],
        api_version: str = "v24.0",
        base_url: str = "https://graph.facebook.com",
        timeout_seconds: float = 30.0,
    ):
        self.token = token
        self.api_version = api_version
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    def messages_url(self, phone_number_id: str) -> str:
        return f"{self.base_url}/{self.api_version}/{phone_number_id}/messages"

    def send(self, routing_key: str, conversant_id: str, text: str) -> Result[Optional[str]]:
        if not self.token:
            logger.error("WhatsApp token is missing (META_TOKEN env var not set)")
            return Result.failure("META_TOKEN not configured", "missing_token")

        if not routing_key or not conversant_id or not text:
            logger.warning(
                "send: missing routing key, recipient or text",
                extra={"context": {"routing_key": routing_key, "to": conversant_id}},
            )
            return Result.failure("Missing routing key, recipient or text", "invalid_request")

        payload = {
            "messaging_product": "whatsapp",
            "to": conversant_id,
            "type": "text",
            "text": {"body": text},
        }
        try:
            with httpx.Client(timeout=self.timeout_seconds) as client:
                response = client.post(
                    self.messages_url(routing_key),
                    headers={
                        "Authorization": f"Bearer {self.token}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
        except httpx.InvalidURL as e:
            logger.error(
                "WhatsApp send rejected: invalid URL",
                extra={"context": {"routing_key": routing_key, "to": conversant_id, "error": str(e)}},
            )
            return Result.from_exception(e, "invalid_request")
        except httpx.HTTPError as e:
            logger.error(
                "WhatsApp send failed",
                extra={"context": {"routing_key": routing_key, "to": conversant_id, "error": str(e)}},
            )
            return Result.from_exception(e, "transport_error")

        if response.status_code >= 300:
            logger.error(
                "WhatsApp API rejected message",
                extra={
                    "context": {
                        "routing_key": routing_key,
                        "to": conversant_id,
                        "status": response.status_code,
                        "body": response.text[:500],
                    }
                },
            )
            return Result.failure(f"WhatsApp API error: {response.status_code}", "api_error")

        try:
            data = response.json()
        except ValueError:
            logger.debug(f"WhatsApp response is not JSON: {response.text[:200]}")
            data = None
        return Result.success(_sent_message_id(data))


def _sent_message_id(data) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    messages = data.get("messages")
    if not isinstance(messages, list) or not messages or not isinstance(messages[0], dict):
        return None
    return messages[0].get("id")
