from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError
from starlette.requests import ClientDisconnect

from leadbot.dependencies import Services, get_services
from leadbot.logging_config import get_logger
from leadbot.schemas.webhook import InboundEvent, WebhookPayload, WebhookResponse
from leadbot.services.message_service import process_inbound_message

logger = get_logger("webhook")

router = APIRouter()


@router.get("/webhook", response_class=PlainTextResponse)
def verify_webhook(
    hub_mode: str | None = Query(default=None, alias="hub.mode"),
    hub_verify_token: str | None = Query(default=None, alias="hub.verify_token"),
    hub_challenge: str | None = Query(default=None, alias="hub.challenge"),
    services: Services = Depends(get_services),
):
    """Meta subscription handshake: echo the challenge when the token matches."""
    expected = services.verify_token
    if hub_mode == "subscribe" and expected and hub_verify_token == expected:
        return PlainTextResponse(hub_challenge or "")
    logger.warning("Webhook verification rejected", extra={"context": {"mode": hub_mode}})
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Verification failed")


async def _parse_webhook_payload(request: Request) -> WebhookPayload | None:
    try:
        payload = await request.json()
    except ClientDisconnect:
        logger.info("Webhook client disconnected during read")
        return None
    except ValueError as exc:
        logger.warning("Webhook payload is not valid JSON", extra={"context": {"error": str(exc)}})
        return None

    if not isinstance(payload, dict):
        logger.info("Webhook payload is not an object")
        return None

    try:
        return WebhookPayload.model_validate(payload)
    except ValidationError as exc:
        logger.warning("Webhook payload validation failed", extra={"context": {"error": str(exc)}})
        return None


def extract_inbound_event(payload: WebhookPayload) -> InboundEvent | None:
    """First message of the notification, or None for status updates and malformed payloads."""
    message = payload.first_message()
    routing_key = payload.routing_key()
    if message is None or not routing_key or not message.from_:
        return None
    return InboundEvent(
        routing_key=routing_key,
        conversant_id=message.from_,
        message_id=message.id,
        message_type=message.type or "",
        text=(message.text.body if message.text else "").strip(),
    )


@router.post("/webhook", response_model=WebhookResponse)
async def receive_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    services: Services = Depends(get_services),
):
    """Acknowledge at once; the pipeline runs after the response is sent."""
    payload = await _parse_webhook_payload(request)
    event = extract_inbound_event(payload) if payload else None
    if event is None:
        return WebhookResponse(status="ignored", message="No message")

    if not event.is_text:
        logger.info(
            "Ignored non-text message",
            extra={"context": {"type": event.message_type, "routing_key": event.routing_key}},
        )
        return WebhookResponse(status="ignored", message=f"Unsupported type: {event.message_type}")

    if await services.dedupe.is_duplicate(event.message_id):
        logger.info("Duplicate message_id skipped", extra={"context": {"message_id": event.message_id}})
        return WebhookResponse(status="duplicate", message="Already processed")

    background_tasks.add_task(
        process_inbound_message,
        event,
        registry=services.registry,
        pipeline=services.pipeline,
        dispatcher=services.dispatcher,
    )
    return WebhookResponse(status="accepted")
