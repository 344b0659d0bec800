from anthropic import Anthropic

from slidegen.config import settings
from slidegen.providers.base import BaseLLMProvider


class AnthropicProvider(BaseLLMProvider):
    name = "anthropic"

    def __init__(self, api_key: str):
        self.client = Anthropic(api_key=api_key)

    def generate_markdown(self, *, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        def _call() -> str:
            response = self.client.messages.create(
                model=settings.anthropic_model,
                max_tokens=max_tokens,
                temperature=0.3,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )
            text = "".join(block.text for block in response.content if hasattr(block, "text")).strip()
            if not text:
                raise ValueError("Anthropic returned empty output")
            return text

        return self._request_with_retry(
            model=settings.anthropic_model,
            request_label="generate_markdown",
            call=_call,
            input_chars=len(system_prompt) + len(user_prompt),
        )
