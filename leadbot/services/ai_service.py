from leadbot.logging_config import get_logger
from leadbot.schemas.tenant import TenantConfig
from leadbot.services.llm import LLMProvider

logger = get_logger("ai_service")

FALLBACK_REPLY = "No he podido responder."


class AIResponder:
    """Free-text reply generated with the tenant's prompt, model and temperature."""

    def __init__(self, provider: LLMProvider, max_tokens: int = 1000):
        self.provider = provider
        self.max_tokens = max_tokens

    def build_messages(self, text: str, tenant: TenantConfig) -> list[dict]:
        return [
            {"role": "system", "content": tenant.system_prompt or ""},
            {"role": "user", "content": text or ""},
        ]

    def complete(self, text: str, tenant: TenantConfig) -> str:
        response = self.provider.generate(
            self.build_messages(text, tenant),
            model=tenant.model,
            temperature=tenant.temperature,
            max_tokens=self.max_tokens,
        )
        reply = (response.content or "").strip()
        if not reply:
            logger.warning("Empty AI reply, using fallback", extra={"context": {"tenant_id": tenant.id}})
            return FALLBACK_REPLY
        return reply
