"""Model + renderer chain that turns uploaded documents into a slide deck."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Protocol

from slidegen.config import settings as app_settings
from slidegen.errors import GenerationError, InputTooLargeError, UpstreamModelError
from slidegen.providers.base import BaseLLMProvider
from slidegen.schemas import SlideSettings
from slidegen.services.doc_extractor import extract_text
from slidegen.services.file_validation import UploadedFile
from slidegen.services.prompt_templates import build_document_prompt, build_slide_prompt

logger = logging.getLogger("slidegen.jobs")

_LINE_SPLIT_RE = re.compile(r"\r?\n")


class ProgressSink(Protocol):
    def report(self, message: str) -> None:
        """Record a human-readable progress message for the running job."""


class Renderer(Protocol):
    def render(self, markdown: str, theme: str, fmt: str) -> bytes: ...


@dataclass(frozen=True)
class ArtifactBundle:
    pdf: bytes
    html: bytes
    markdown: str


def extract_markdown(text: str) -> str:
    """Return the text between the first and last fence lines, or all of it."""
    lines = _LINE_SPLIT_RE.split(text)
    fence_rows = [idx for idx, line in enumerate(lines) if line.startswith("```")]
    if len(fence_rows) >= 2 and fence_rows[-1] > fence_rows[0]:
        return "\n".join(lines[fence_rows[0] + 1 : fence_rows[-1]])
    return text


class SlideGenerator:
    def __init__(
        self,
        provider: BaseLLMProvider,
        renderer: Renderer,
        *,
        max_input_tokens: int | None = None,
        max_output_tokens: int | None = None,
    ):
        self.provider = provider
        self.renderer = renderer
        self.max_input_tokens = max_input_tokens or app_settings.max_input_tokens
        self.max_output_tokens = max_output_tokens or app_settings.max_output_tokens

    def generate(
        self,
        theme: str,
        files: list[UploadedFile],
        settings: SlideSettings,
        progress: ProgressSink,
    ) -> ArtifactBundle:
        progress.report("Analyzing uploaded files")
        documents: list[tuple[str, str]] = []
        for file in files:
            try:
                documents.append((file.filename, extract_text(file)))
            except Exception as exc:
                raise GenerationError(f"could not read {file.filename}: {exc}") from exc
            logger.info("generator_file_read filename=%s type=%s bytes=%d", file.filename, file.content_type, len(file.data))

        progress.report("Generating content for slides")
        system_prompt = build_slide_prompt(theme, settings)
        user_prompt = build_document_prompt(documents)
        input_tokens = self.provider.count_tokens(system_prompt) + self.provider.count_tokens(user_prompt)
        if input_tokens > self.max_input_tokens:
            logger.info("generator_input_too_large tokens=%d limit=%d", input_tokens, self.max_input_tokens)
            raise InputTooLargeError(
                f"documents are too large to process ({input_tokens} tokens, limit {self.max_input_tokens})"
            )

        progress.report("Creating presentation with AI")
        try:
            response_text = self.provider.generate_markdown(
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                max_tokens=self.max_output_tokens,
            )
        except Exception as exc:
            raise UpstreamModelError(f"model request failed: {exc}") from exc

        markdown = extract_markdown(response_text).strip()
        if not markdown:
            raise UpstreamModelError("failed to generate presentation. Please try again.")

        progress.report("Finalizing presentation")
        pdf = self.renderer.render(markdown, theme, "pdf")
        html = self.renderer.render(markdown, theme, "html")
        return ArtifactBundle(pdf=pdf, html=html, markdown=markdown)
