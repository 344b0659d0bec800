import pytest

from slidegen.errors import GenerationError, InputTooLargeError, RenderError, UpstreamModelError
from slidegen.providers.base import BaseLLMProvider
from slidegen.providers.mock_provider import MockProvider
from slidegen.schemas import SlideSettings
from slidegen.services.file_validation import validate_upload
from slidegen.services.generator import SlideGenerator, extract_markdown
from tests.conftest import MARKDOWN_BYTES, FakeRenderer


class RecordingProgress:
    def __init__(self):
        self.messages = []

    def report(self, message: str) -> None:
        self.messages.append(message)


class StaticProvider(BaseLLMProvider):
    name = "static"

    def __init__(self, reply: str = "", error: Exception | None = None):
        self.reply = reply
        self.error = error

    def generate_markdown(self, *, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        if self.error:
            raise self.error
        return self.reply


def test_extract_markdown_uses_outermost_fences():
    text = "Here you go:\n```md\n# Title\n\n```python\nprint(1)\n```\n```\nThanks"
    assert extract_markdown(text) == "# Title\n\n```python\nprint(1)\n```"
    assert extract_markdown("# No fences") == "# No fences"


def test_generate_reports_phases_and_renders_both_formats():
    renderer = FakeRenderer()
    progress = RecordingProgress()
    generator = SlideGenerator(MockProvider(), renderer)

    bundle = generator.generate("gaia", [validate_upload("report.md", MARKDOWN_BYTES)], SlideSettings(), progress)

    assert progress.messages == [
        "Analyzing uploaded files",
        "Generating content for slides",
        "Creating presentation with AI",
        "Finalizing presentation",
    ]
    assert renderer.calls == [("gaia", "pdf"), ("gaia", "html")]
    assert bundle.pdf.startswith(b"pdf:gaia:")
    assert bundle.html.startswith(b"html:gaia:")
    assert "theme: gaia" in bundle.markdown
    assert "## report.md" in bundle.markdown
    assert "- Revenue grew 12%" in bundle.markdown
    assert "```" not in bundle.markdown.splitlines()[0]


def test_generate_rejects_input_over_token_ceiling():
    generator = SlideGenerator(MockProvider(), FakeRenderer(), max_input_tokens=50)
    upload = validate_upload("long.txt", b"word " * 400)

    with pytest.raises(InputTooLargeError, match="documents are too large to process"):
        generator.generate("default", [upload], SlideSettings(), RecordingProgress())


def test_generate_wraps_provider_failures():
    generator = SlideGenerator(StaticProvider(error=TimeoutError("read timed out")), FakeRenderer())
    upload = validate_upload("a.md", MARKDOWN_BYTES)

    with pytest.raises(UpstreamModelError, match="read timed out"):
        generator.generate("default", [upload], SlideSettings(), RecordingProgress())


def test_generate_rejects_empty_model_output():
    generator = SlideGenerator(StaticProvider(reply="```md\n\n```"), FakeRenderer())
    upload = validate_upload("a.md", MARKDOWN_BYTES)

    with pytest.raises(UpstreamModelError, match="failed to generate presentation"):
        generator.generate("default", [upload], SlideSettings(), RecordingProgress())


def test_generate_propagates_render_errors():
    generator = SlideGenerator(MockProvider(), FakeRenderer(fail_on="html"))
    upload = validate_upload("a.md", MARKDOWN_BYTES)

    with pytest.raises(RenderError):
        generator.generate("default", [upload], SlideSettings(), RecordingProgress())


def test_generate_reports_unreadable_pdf():
    generator = SlideGenerator(MockProvider(), FakeRenderer())
    broken = validate_upload("broken.pdf", b"%PDF-1.4 truncated garbage")

    with pytest.raises(GenerationError, match="could not read broken.pdf"):
        generator.generate("default", [broken], SlideSettings(), RecordingProgress())
