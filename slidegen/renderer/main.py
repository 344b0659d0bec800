"""Marp CLI wrapper that turns slide markdown into PDF or HTML.

Run with ``uvicorn slidegen.renderer.main:app --port 3001``.
"""

from __future__ import annotations

import logging
import re
import shlex
import subprocess
import tempfile
from pathlib import Path

from fastapi import FastAPI, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel

from slidegen.config import settings

logger = logging.getLogger("slidegen.renderer")

MEDIA_TYPES = {"pdf": "application/pdf", "html": "text/html"}
THEME_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")

app = FastAPI(title="Marp Slide Renderer")


class RenderRequest(BaseModel):
    markdown: str
    theme: str = "default"
    format: str = "pdf"


@app.get("/health")
def health():
    return {"status": "ok"}


def theme_argument(theme: str, theme_dir: Path | None = None) -> str:
    """Path of a custom theme stylesheet when one exists, else the built-in theme name."""
    path = Path(theme_dir or settings.renderer_theme_dir) / f"{theme}.css"
    if path.is_file():
        return str(path)
    return theme


def build_marp_command(markdown_path: Path, output_path: Path, theme: str, fmt: str) -> list[str]:
    return [
        *shlex.split(settings.marp_command),
        str(markdown_path),
        "--theme",
        theme_argument(theme),
        "--output",
        str(output_path),
        f"--{fmt}",
    ]


def run_marp(markdown: str, theme: str, fmt: str) -> bytes:
    with tempfile.TemporaryDirectory(prefix="marp-render-") as temp_dir_raw:
        temp_dir = Path(temp_dir_raw)
        markdown_path = temp_dir / "presentation.md"
        markdown_path.write_text(markdown, encoding="utf-8")
        output_path = temp_dir / f"presentation.{fmt}"

        result = subprocess.run(
            build_marp_command(markdown_path, output_path, theme, fmt),
            capture_output=True,
            text=True,
            timeout=max(10, int(settings.renderer_timeout_seconds)),
        )
        if result.returncode != 0 or not output_path.exists():
            err = (result.stderr or result.stdout or "").strip()
            raise RuntimeError(f"marp exited with {result.returncode}: {err}")
        return output_path.read_bytes()


@app.post("/render")
def render(payload: RenderRequest):
    fmt = payload.format.lower()
    if fmt not in MEDIA_TYPES:
        raise HTTPException(status_code=422, detail=f"Unsupported format: {payload.format}")
    if not THEME_NAME_RE.match(payload.theme):
        raise HTTPException(status_code=422, detail=f"Invalid theme name: {payload.theme}")

    try:
        content = run_marp(payload.markdown, payload.theme, fmt)
    except (OSError, RuntimeError, subprocess.TimeoutExpired) as exc:
        logger.warning("marp_failed format=%s theme=%s reason=%s", fmt, payload.theme, exc)
        raise HTTPException(status_code=502, detail=f"failed to generate {fmt.upper()}. Please try again.") from exc

    logger.info("marp_done format=%s theme=%s bytes=%d", fmt, payload.theme, len(content))
    return Response(content=content, media_type=MEDIA_TYPES[fmt])
