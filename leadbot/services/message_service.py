from typing import Optional

from leadbot.logging_config import message_logger
from leadbot.schemas.webhook import InboundEvent
from leadbot.services.capabilities import Action, Reply
from leadbot.services.pipeline import CapabilityPipeline
from leadbot.services.tenant_registry import TenantRegistry
from leadbot.services.whatsapp_service import MessageDispatcher


def process_inbound_message(
    event: InboundEvent,
    *,
    registry: TenantRegistry,
    pipeline: CapabilityPipeline,
    dispatcher: MessageDispatcher,
) -> Optional[Action]:
    """Run one text message through the pipeline and send the reply.

    Runs after the webhook has been acknowledged, so nothing here may raise:
    AI or persistence failures abort the turn and the conversant gets no reply.
    """
    tenant = registry.get_client_config(event.routing_key)
    log = message_logger(
        "message_service",
        tenant_id=tenant.id,
        routing_key=event.routing_key,
        conversant_id=event.conversant_id,
        message_id=event.message_id,
    )
    log.info(f"[{tenant.id}] phone={event.routing_key} from={event.conversant_id} text={event.text!r}")

    try:
        action = pipeline.handle(tenant, event.conversant_id, event.text)
    except Exception as e:
        log.exception("Pipeline aborted, no reply sent", context={"error": str(e)})
        return None

    if not isinstance(action, Reply):
        log.info("No reply for message", context={"reason": action.reason})
        return action

    try:
        result = dispatcher.send(event.routing_key, event.conversant_id, action.text)
    except Exception as e:
        log.exception("Dispatch aborted, reply not delivered", context={"error": str(e)})
        return action

    if not result.ok:
        log.error("Reply not delivered", context={"error": result.error, "error_code": result.error_code})
    return action
