import re

from slidegen.providers.base import BaseLLMProvider


_FILE_BLOCK_RE = re.compile(r"^FILE: (?P<name>.+?)\n---\n(?P<body>.*?)\n---$", re.MULTILINE | re.DOTALL)
_THEME_RE = re.compile(r"^Theme: (?P<theme>\S+)$", re.MULTILINE)


class MockProvider(BaseLLMProvider):
    """Offline provider that turns each document into one slide of bullets."""

    name = "mock"
    max_bullets = 4

    def generate_markdown(self, *, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        theme_match = _THEME_RE.search(system_prompt)
        theme = theme_match.group("theme") if theme_match else "default"

        slides = [f"---\nmarp: true\ntheme: {theme}\npaginate: true\n---\n\n# Generated Presentation\n\nSummary of the uploaded documents"]
        for match in _FILE_BLOCK_RE.finditer(user_prompt):
            lines = [line.strip(" #-*\t") for line in match.group("body").splitlines()]
            bullets = [line for line in lines if line][: self.max_bullets] or ["(empty document)"]
            slides.append(f"## {match.group('name').strip()}\n\n" + "\n".join(f"- {line}" for line in bullets))

        return "```md\n" + "\n\n---\n\n".join(slides) + "\n```"
