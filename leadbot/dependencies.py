from dataclasses import dataclass
from functools import lru_cache

import redis.asyncio as redis_async

from leadbot.config import Settings, settings
from leadbot.database import SessionLocal
from leadbot.logging_config import get_logger
from leadbot.services.ai_service import AIResponder
from leadbot.services.conversation_store import (
    ConversationStore,
    InMemoryConversationStore,
    SqlConversationStore,
)
from leadbot.services.dedupe import DedupeGuard, RedisDedupeGuard
from leadbot.services.llm import OpenAIProvider
from leadbot.services.pipeline import CapabilityPipeline, build_pipeline
from leadbot.services.tenant_registry import TenantRegistry
from leadbot.services.whatsapp_service import MessageDispatcher, WhatsAppCloudDispatcher

logger = get_logger("dependencies")


@dataclass
class Services:
    registry: TenantRegistry
    store: ConversationStore
    dedupe: DedupeGuard | RedisDedupeGuard
    pipeline: CapabilityPipeline
    dispatcher: MessageDispatcher
    verify_token: str | None = None


def build_store(config: Settings) -> ConversationStore:
    backend = config.store_backend.strip().lower()
    if backend == "memory":
        return InMemoryConversationStore()
    if backend == "postgres":
        return SqlConversationStore(SessionLocal)
    raise ValueError(f"Unknown STORE_BACKEND: {config.store_backend!r}")


def build_dedupe(config: Settings) -> DedupeGuard | RedisDedupeGuard:
    memory_guard = DedupeGuard(ttl_seconds=config.dedupe_ttl_seconds, max_entries=config.dedupe_max_entries)
    backend = config.dedupe_backend.strip().lower()
    if backend == "memory":
        return memory_guard
    if backend == "redis":
        client = redis_async.Redis.from_url(config.redis_url, socket_connect_timeout=0.3, socket_timeout=0.3)
        return RedisDedupeGuard(client, ttl_seconds=config.dedupe_ttl_seconds, fallback=memory_guard)
    raise ValueError(f"Unknown DEDUPE_BACKEND: {config.dedupe_backend!r}")


def build_services(config: Settings) -> Services:
    store = build_store(config)
    provider = OpenAIProvider(
        api_key=config.openai_api_key or "",
        default_model=config.default_model,
        base_url=config.openai_base_url,
        timeout_seconds=config.llm_timeout_seconds,
    )
    if not config.openai_api_key:
        logger.warning("OPENAI_API_KEY is not set, AI fallback replies will fail")

    return Services(
        registry=TenantRegistry.from_file(config.tenants_path),
        store=store,
        dedupe=build_dedupe(config),
        pipeline=build_pipeline(
            store,
            AIResponder(provider, max_tokens=config.llm_max_tokens),
            reset_command=config.reset_command,
        ),
        dispatcher=WhatsAppCloudDispatcher(
            token=config.meta_token,
            api_version=config.whatsapp_api_version,
            base_url=config.whatsapp_api_base_url,
            timeout_seconds=config.whatsapp_timeout_seconds,
        ),
        verify_token=config.verify_token,
    )


@lru_cache(maxsize=1)
def get_services() -> Services:
    return build_services(settings)
