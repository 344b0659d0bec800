from slidegen.config import settings
from slidegen.providers.anthropic_provider import AnthropicProvider
from slidegen.providers.base import BaseLLMProvider
from slidegen.providers.mock_provider import MockProvider
from slidegen.providers.openai_provider import OpenAIProvider


def get_provider(name: str | None = None) -> BaseLLMProvider:
    candidate = (name or settings.default_llm_provider).lower()

    if candidate == "openai" and settings.openai_api_key:
        return OpenAIProvider(settings.openai_api_key)
    if candidate == "anthropic" and settings.anthropic_api_key:
        return AnthropicProvider(settings.anthropic_api_key)

    return MockProvider()
