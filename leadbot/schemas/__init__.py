from leadbot.schemas.tenant import TenantConfig
from leadbot.schemas.webhook import InboundEvent, WebhookPayload, WebhookResponse

__all__ = ["TenantConfig", "InboundEvent", "WebhookPayload", "WebhookResponse"]
