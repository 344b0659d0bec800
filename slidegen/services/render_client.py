import logging

import requests

from slidegen.config import settings
from slidegen.errors import RenderError

logger = logging.getLogger("slidegen.renderer")

RENDER_FORMATS = ("pdf", "html")


class RenderClient:
    """HTTP client for the Marp renderer service."""

    def __init__(self, base_url: str | None = None, timeout: int | None = None):
        self.base_url = (base_url or settings.renderer_url).rstrip("/")
        self.timeout = timeout or settings.renderer_timeout_seconds

    def render(self, markdown: str, theme: str, fmt: str) -> bytes:
        if fmt not in RENDER_FORMATS:
            raise ValueError(f"Unsupported render format: {fmt}")

        payload = {"markdown": markdown, "theme": theme, "format": fmt}
        try:
            response = requests.post(f"{self.base_url}/render", json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.warning("render_failed format=%s theme=%s reason=%s", fmt, theme, exc)
            raise RenderError(f"failed to generate {fmt.upper()}. Please try again.") from exc

        if not response.content:
            raise RenderError(f"renderer returned an empty {fmt.upper()} document")
        logger.info("render_done format=%s theme=%s bytes=%d", fmt, theme, len(response.content))
        return response.content
