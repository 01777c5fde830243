"""Markdown rendering for posted question bodies.

Question bodies are user input, so raw HTML is disabled and only Markdown
constructs reach the page. Math written as ``$...$`` passes through
untouched; the page loads MathJax to typeset it in the browser.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from markdown_it import MarkdownIt

MATHJAX_SCRIPT = "https://cdn.jsdelivr.net/npm/mathjax@3/es5/tex-mml-chtml.js"


@dataclass(slots=True)
class MarkdownRenderer:
    """Converts question Markdown into HTML fragments."""

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("table")
            .enable("strikethrough")
        )

    def render_fragment(self, markdown_text: str) -> str:
        sanitized = markdown_text.strip()
        if not sanitized:
            return "<p><em>No details provided.</em></p>"
        return self._markdown.render(sanitized)


# Shared by the server worker threads.
renderer = MarkdownRenderer()
