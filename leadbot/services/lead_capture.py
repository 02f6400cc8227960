import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from leadbot.logging_config import get_logger
from leadbot.schemas.tenant import LeadCaptureCapability, TenantConfig
from leadbot.services.conversation_store import ConversationStore, is_confirmed

logger = get_logger("lead_capture")

# Fixed collection order; the tenant's list only selects which fields take part.
FIELD_ORDER = ("name", "email", "need")
MAX_NAME_LENGTH = 40
MIN_NEED_LENGTH = 2

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_email(text: Optional[str]) -> bool:
    return bool(_EMAIL_RE.match((text or "").strip()))


def validate_name(text: str) -> bool:
    return len(text) <= MAX_NAME_LENGTH and not is_email(text)


def validate_email(text: str) -> bool:
    return is_email(text)


def validate_need(text: str) -> bool:
    return len(text) >= MIN_NEED_LENGTH and not is_email(text)


VALIDATORS = {
    "name": validate_name,
    "email": validate_email,
    "need": validate_need,
}


class LeadCaptureStatus(str, Enum):
    PROMPT = "prompt"
    CONFIRMED = "confirmed"
    COMPLETE = "complete"


@dataclass(frozen=True)
class LeadCaptureOutcome:
    status: LeadCaptureStatus
    reply: Optional[str] = None
    field: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return self.status == LeadCaptureStatus.COMPLETE


COMPLETE = LeadCaptureOutcome(LeadCaptureStatus.COMPLETE)


def participating_fields(capability: LeadCaptureCapability) -> list[str]:
    declared = set(capability.fields)
    return [name for name in FIELD_ORDER if name in declared]


def missing_fields(state: dict, fields: list[str]) -> list[str]:
    return [name for name in fields if not state.get(name)]


class LeadCaptureStateMachine:
    """Collects name/email/need over several turns with the store as its only memory.

    Collecting(missing) -> Complete. Each accepted field is written as soon as it
    is accepted, so a turn can resume from any missing field after a restart.
    """

    def __init__(self, store: ConversationStore):
        self.store = store

    def advance(
        self,
        tenant: TenantConfig,
        capability: LeadCaptureCapability,
        conversant_id: str,
        text: str,
    ) -> LeadCaptureOutcome:
        fields = participating_fields(capability)
        if not fields:
            return COMPLETE

        state = self.store.read(tenant.id, conversant_id)
        if is_confirmed(state):
            return COMPLETE

        for name in missing_fields(state, fields):
            if not VALIDATORS[name](text):
                logger.info(
                    "Lead field prompt",
                    extra={"context": {"tenant_id": tenant.id, "conversant_id": conversant_id, "field": name}},
                )
                return LeadCaptureOutcome(LeadCaptureStatus.PROMPT, capability.prompt_for(name), name)
            state[name] = text
            if not self.store.save_progress(tenant.id, conversant_id, state):
                return COMPLETE

        if not self.store.complete_lead(tenant.id, conversant_id, state):
            return COMPLETE

        logger.info(
            "Lead captured",
            extra={"context": {"tenant_id": tenant.id, "conversant_id": conversant_id, "fields": fields}},
        )
        return LeadCaptureOutcome(LeadCaptureStatus.CONFIRMED, capability.confirm_message)
