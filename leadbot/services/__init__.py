from leadbot.services.capabilities import Action, NoAction, Reply
from leadbot.services.conversation_store import (
    ConversationStore,
    InMemoryConversationStore,
    LeadRecord,
    SqlConversationStore,
)
from leadbot.services.dedupe import DedupeGuard, RedisDedupeGuard
from leadbot.services.lead_capture import LeadCaptureOutcome, LeadCaptureStateMachine, LeadCaptureStatus
from leadbot.services.pipeline import CapabilityPipeline, build_pipeline
from leadbot.services.tenant_registry import DEFAULT_TENANT, TenantConfigError, TenantRegistry
