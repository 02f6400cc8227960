from leadbot.config import Settings
from leadbot.dependencies import build_dedupe, build_store
from leadbot.services.conversation_store import InMemoryConversationStore
from leadbot.services.dedupe import DedupeGuard, RedisDedupeGuard


class TestBuildDedupe:
    def test_memory_backend_uses_settings(self):
        guard = build_dedupe(Settings(dedupe_backend="memory", dedupe_ttl_seconds=30, dedupe_max_entries=7))

        assert isinstance(guard, DedupeGuard)
        assert guard.ttl_seconds == 30
        assert guard.max_entries == 7

    def test_redis_fallback_keeps_configured_capacity(self):
        guard = build_dedupe(Settings(dedupe_backend="redis", dedupe_max_entries=5))

        assert isinstance(guard, RedisDedupeGuard)
        assert guard.fallback.max_entries == 5


class TestBuildStore:
    def test_memory_backend(self):
        assert isinstance(build_store(Settings(store_backend="memory")), InMemoryConversationStore)
