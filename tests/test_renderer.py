import subprocess
from pathlib import Path

import pytest
import requests
from fastapi.testclient import TestClient

from slidegen.errors import RenderError
from slidegen.renderer import main as renderer
from slidegen.services.render_client import RenderClient


class FakeCompleted:
    def __init__(self, returncode=0, stderr=""):
        self.returncode = returncode
        self.stdout = ""
        self.stderr = stderr


@pytest.fixture
def marp_calls(monkeypatch):
    calls = []

    def fake_run(command, **kwargs):
        calls.append(command)
        output = Path(command[command.index("--output") + 1])
        output.write_bytes(b"rendered:" + output.suffix.encode())
        return FakeCompleted()

    monkeypatch.setattr(renderer.subprocess, "run", fake_run)
    return calls


def test_theme_argument_prefers_custom_stylesheet(tmp_path):
    (tmp_path / "rose_pine.css").write_text("/* @theme rose_pine */")

    assert renderer.theme_argument("rose_pine", tmp_path) == str(tmp_path / "rose_pine.css")
    assert renderer.theme_argument("gaia", tmp_path) == "gaia"


def test_render_runs_marp_for_requested_format(marp_calls):
    client = TestClient(renderer.app)

    response = client.post("/render", json={"markdown": "# Hi", "theme": "gaia", "format": "pdf"})

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content == b"rendered:.pdf"
    command = marp_calls[0]
    assert command[command.index("--theme") + 1] == "gaia"
    assert command[-1] == "--pdf"


def test_render_rejects_unknown_format_and_unsafe_theme(marp_calls):
    client = TestClient(renderer.app)

    assert client.post("/render", json={"markdown": "# Hi", "format": "pptx"}).status_code == 422
    assert client.post("/render", json={"markdown": "# Hi", "theme": "../etc/passwd"}).status_code == 422
    assert marp_calls == []


def test_render_reports_marp_failure(monkeypatch):
    monkeypatch.setattr(renderer.subprocess, "run", lambda command, **kwargs: FakeCompleted(1, "chromium not found"))
    client = TestClient(renderer.app)

    response = client.post("/render", json={"markdown": "# Hi", "format": "html"})

    assert response.status_code == 502
    assert response.json()["detail"] == "failed to generate HTML. Please try again."


def test_render_reports_marp_timeout(monkeypatch):
    def slow(command, **kwargs):
        raise subprocess.TimeoutExpired(command, kwargs.get("timeout"))

    monkeypatch.setattr(renderer.subprocess, "run", slow)
    client = TestClient(renderer.app)

    assert client.post("/render", json={"markdown": "# Hi"}).status_code == 502


class FakeResponse:
    def __init__(self, content=b"", status_code=200):
        self.content = content
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")


def test_render_client_posts_payload(monkeypatch):
    seen = {}

    def fake_post(url, json, timeout):
        seen.update(url=url, json=json, timeout=timeout)
        return FakeResponse(b"%PDF-1.7")

    monkeypatch.setattr("slidegen.services.render_client.requests.post", fake_post)

    content = RenderClient("http://renderer:3001/", timeout=7).render("# Deck", "beam", "pdf")

    assert content == b"%PDF-1.7"
    assert seen == {
        "url": "http://renderer:3001/render",
        "json": {"markdown": "# Deck", "theme": "beam", "format": "pdf"},
        "timeout": 7,
    }


def test_render_client_wraps_http_failures(monkeypatch):
    monkeypatch.setattr(
        "slidegen.services.render_client.requests.post",
        lambda url, json, timeout: FakeResponse(status_code=502),
    )

    with pytest.raises(RenderError, match="failed to generate PDF"):
        RenderClient("http://renderer:3001").render("# Deck", "beam", "pdf")


def test_render_client_rejects_empty_documents(monkeypatch):
    monkeypatch.setattr("slidegen.services.render_client.requests.post", lambda url, json, timeout: FakeResponse(b""))

    with pytest.raises(RenderError, match="empty HTML"):
        RenderClient("http://renderer:3001").render("# Deck", "beam", "html")
