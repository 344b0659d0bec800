from openai import OpenAI

from slidegen.config import settings
from slidegen.providers.base import BaseLLMProvider


class OpenAIProvider(BaseLLMProvider):
    name = "openai"

    def __init__(self, api_key: str):
        self.client = OpenAI(api_key=api_key)

    def generate_markdown(self, *, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        def _call() -> str:
            response = self.client.responses.create(
                model=settings.openai_model,
                input=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                max_output_tokens=max_tokens,
            )
            text = (response.output_text or "").strip()
            if not text:
                raise ValueError("OpenAI returned empty output")
            return text

        return self._request_with_retry(
            model=settings.openai_model,
            request_label="generate_markdown",
            call=_call,
            input_chars=len(system_prompt) + len(user_prompt),
        )
