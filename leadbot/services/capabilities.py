from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Union

from leadbot.schemas.tenant import TenantConfig
from leadbot.services.ai_service import AIResponder
from leadbot.services.conversation_store import ConversationStore
from leadbot.services.lead_capture import LeadCaptureStateMachine

RESET_REPLY = "Sesión reiniciada ✅"


@dataclass(frozen=True)
class Reply:
    text: str


@dataclass(frozen=True)
class NoAction:
    reason: str = ""


Action = Union[Reply, NoAction]


@dataclass(frozen=True)
class IncomingText:
    conversant_id: str
    text: str

    @property
    def normalized(self) -> str:
        return self.text.lower()


class CapabilityHandler(ABC):
    name: str = "capability"

    @abstractmethod
    def attempt(self, tenant: TenantConfig, message: IncomingText) -> Optional[Action]:
        """Return an Action to stop the pipeline, or None to fall through."""


class ResetCommandHandler(CapabilityHandler):
    name = "reset"

    def __init__(self, store: ConversationStore, command: str = "reset", reply: str = RESET_REPLY):
        self.store = store
        self.command = command.strip().lower()
        self.reply = reply

    def attempt(self, tenant: TenantConfig, message: IncomingText) -> Optional[Action]:
        if message.normalized != self.command:
            return None
        self.store.delete(tenant.id, message.conversant_id)
        return Reply(self.reply)


class HandoffHandler(CapabilityHandler):
    name = "handoff"

    def attempt(self, tenant: TenantConfig, message: IncomingText) -> Optional[Action]:
        handoff = tenant.handoff
        if handoff is None:
            return None
        for keyword in handoff.keywords:
            if keyword.lower() in message.normalized:
                return Reply(handoff.message)
        return None


class FaqHandler(CapabilityHandler):
    name = "faq"

    def attempt(self, tenant: TenantConfig, message: IncomingText) -> Optional[Action]:
        faq = tenant.faq
        if faq is None:
            return None
        for item in faq.items:
            if item.q.lower() in message.normalized:
                return Reply(item.a)
        return None


class LeadCaptureHandler(CapabilityHandler):
    name = "lead_capture"

    def __init__(self, state_machine: LeadCaptureStateMachine):
        self.state_machine = state_machine

    def attempt(self, tenant: TenantConfig, message: IncomingText) -> Optional[Action]:
        capability = tenant.lead_capture
        if capability is None:
            return None
        outcome = self.state_machine.advance(tenant, capability, message.conversant_id, message.text)
        if outcome.is_complete:
            return None
        return Reply(outcome.reply)


class FallbackAIHandler(CapabilityHandler):
    name = "fallback_ai"

    def __init__(self, responder: AIResponder):
        self.responder = responder

    def attempt(self, tenant: TenantConfig, message: IncomingText) -> Optional[Action]:
        return Reply(self.responder.complete(message.text, tenant))
