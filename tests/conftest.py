import copy
from unittest.mock import Mock

import pytest

from leadbot.dependencies import Services
from leadbot.schemas.tenant import TenantConfig
from leadbot.services.ai_service import AIResponder
from leadbot.services.conversation_store import InMemoryConversationStore
from leadbot.services.dedupe import DedupeGuard
from leadbot.services.llm import LLMResponse
from leadbot.services.pipeline import build_pipeline
from leadbot.services.result import Result
from leadbot.services.tenant_registry import TenantRegistry

PHONE_NUMBER_ID = "1000001"

TENANT_CONFIG = {
    "id": "acme",
    "systemPrompt": "Eres el asistente de Acme.",
    "model": "gpt-4o-mini",
    "temperature": 0.2,
    "capabilities": {
        "handoff": {"enabled": True, "keywords": ["humano", "Asesor"], "message": "Te paso con un humano."},
        "faq": {
            "enabled": True,
            "items": [
                {"q": "horario", "a": "De 9 a 18 h."},
                {"q": "precio", "a": "Desde 49 €."},
            ],
        },
        "leadCapture": {
            "enabled": True,
            "fields": ["name", "email"],
            "confirmMessage": "¡Gracias, te contactamos!",
        },
    },
}


@pytest.fixture
def db_session():
    """Mock database session."""
    return Mock()


@pytest.fixture
def tenant_config():
    return copy.deepcopy(TENANT_CONFIG)


@pytest.fixture
def tenant(tenant_config):
    return TenantConfig.model_validate(tenant_config)


@pytest.fixture
def store():
    return InMemoryConversationStore()


@pytest.fixture
def llm_provider():
    provider = Mock()
    provider.generate.return_value = LLMResponse(content="Respuesta IA", model="gpt-4o-mini")
    return provider


@pytest.fixture
def responder(llm_provider):
    return AIResponder(llm_provider)


@pytest.fixture
def pipeline(store, responder):
    return build_pipeline(store, responder)


@pytest.fixture
def dispatcher():
    mock = Mock()
    mock.send.return_value = Result.success("wamid.out")
    return mock


@pytest.fixture
def registry():
    return TenantRegistry.from_mapping({PHONE_NUMBER_ID: TENANT_CONFIG})


@pytest.fixture
def services(registry, store, pipeline, dispatcher):
    return Services(
        registry=registry,
        store=store,
        dedupe=DedupeGuard(ttl_seconds=60, max_entries=100),
        pipeline=pipeline,
        dispatcher=dispatcher,
        verify_token="verify-me",
    )
