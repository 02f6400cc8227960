from leadbot.services.llm.base import LLMError, LLMProvider, LLMResponse
from leadbot.services.llm.openai_provider import OpenAIProvider

__all__ = ["LLMError", "LLMProvider", "LLMResponse", "OpenAIProvider"]
