import logging
import time
from time import perf_counter
from typing import Callable

from slidegen.config import settings


logger = logging.getLogger("slidegen.providers")


def preview_text(text: str, limit: int | None = None) -> str:
    raw = str(text or "").replace("\r", " ").replace("\n", " ").strip()
    cap = int(limit or settings.log_preview_chars)
    if len(raw) <= cap:
        return raw
    return raw[:cap].rstrip() + " ..."


class BaseLLMProvider:
    name = "base"

    # Rough characters-per-token ratio for English prose and markdown.
    chars_per_token = 4

    def generate_markdown(self, *, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        raise NotImplementedError

    def count_tokens(self, text: str) -> int:
        return (len(text) + self.chars_per_token - 1) // self.chars_per_token

    def _request_with_retry(
        self,
        *,
        model: str,
        request_label: str,
        call: Callable[[], str],
        input_chars: int,
        retries: int = 2,
    ) -> str:
        last_error: Exception | None = None
        for attempt in range(retries + 1):
            started = perf_counter()
            logger.info(
                "%s_request_start label=%s model=%s attempt=%d/%d input_chars=%d",
                self.name,
                request_label,
                model,
                attempt + 1,
                retries + 1,
                input_chars,
            )
            try:
                text = call()
                logger.info(
                    "%s_request_done label=%s duration_sec=%.2f output_chars=%d output_preview=%s",
                    self.name,
                    request_label,
                    perf_counter() - started,
                    len(text),
                    preview_text(text, 220),
                )
                return text
            except Exception as exc:
                last_error = exc
                logger.warning(
                    "%s_request_error label=%s attempt=%d/%d duration_sec=%.2f reason=%s",
                    self.name,
                    request_label,
                    attempt + 1,
                    retries + 1,
                    perf_counter() - started,
                    exc,
                )
                if attempt < retries:
                    time.sleep(0.6 * (2**attempt))

        if last_error:
            raise last_error
        raise RuntimeError(f"{self.name} request failed with unknown error")
