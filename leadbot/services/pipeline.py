from typing import Sequence

from leadbot.logging_config import get_logger
from leadbot.schemas.tenant import TenantConfig
from leadbot.services.ai_service import AIResponder
from leadbot.services.capabilities import (
    Action,
    CapabilityHandler,
    FallbackAIHandler,
    FaqHandler,
    HandoffHandler,
    IncomingText,
    LeadCaptureHandler,
    NoAction,
    ResetCommandHandler,
)
from leadbot.services.conversation_store import ConversationStore
from leadbot.services.lead_capture import LeadCaptureStateMachine

logger = get_logger("pipeline")


class CapabilityPipeline:
    """Asks each handler in order; the first one that answers decides the action."""

    def __init__(self, handlers: Sequence[CapabilityHandler]):
        self.handlers = list(handlers)

    @property
    def order(self) -> list[str]:
        return [handler.name for handler in self.handlers]

    def handle(self, tenant: TenantConfig, conversant_id: str, text: str) -> Action:
        """Empty or whitespace-only text yields NoAction and never reaches a handler."""
        text = (text or "").strip()
        if not text:
            return NoAction("empty_text")

        message = IncomingText(conversant_id=conversant_id, text=text)
        for handler in self.handlers:
            action = handler.attempt(tenant, message)
            if action is not None:
                logger.debug(
                    "Capability answered",
                    extra={"context": {"tenant_id": tenant.id, "capability": handler.name}},
                )
                return action
        return NoAction("no_capability")


def build_pipeline(
    store: ConversationStore,
    responder: AIResponder,
    reset_command: str = "reset",
) -> CapabilityPipeline:
    """Reset -> Handoff -> FAQ -> Lead Capture -> Fallback AI."""
    return CapabilityPipeline(
        [
            ResetCommandHandler(store, command=reset_command),
            HandoffHandler(),
            FaqHandler(),
            LeadCaptureHandler(LeadCaptureStateMachine(store)),
            FallbackAIHandler(responder),
        ]
    )
