"""Markdown + LaTeX rendering for question text shown to participants.

Question text is authored as markdown with ``$...$`` (inline) and ``$$...$$``
(display) math. Math spans are lifted out before markdown runs so that ``*``,
``_`` and backslashes inside a formula reach MathJax on the client untouched.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field

from markdown_it import MarkdownIt

_MATH_SPAN = re.compile(r"\$\$.+?\$\$|\$[^$\n]+?\$", re.DOTALL)
_PLACEHOLDER = re.compile(r"qlmathspan(\d+)x")
EMPTY_QUESTION_HTML = "<p><em>No question text.</em></p>"


@dataclass(slots=True)
class MarkdownMathRenderer:
    """Converts markdown-with-math into HTML fragments."""

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("table")
            .enable("strikethrough")
        )

    def render_fragment(self, markdown_text: str | None) -> str:
        """Render a markdown string into an HTML fragment, keeping math verbatim."""

        source = (markdown_text or "").strip()
        if not source:
            return EMPTY_QUESTION_HTML
        spans: list[str] = []

        def stash(match: re.Match[str]) -> str:
            spans.append(match.group(0))
            return f"qlmathspan{len(spans) - 1}x"

        rendered = self._markdown.render(_MATH_SPAN.sub(stash, source))
        if not spans:
            return rendered
        return _PLACEHOLDER.sub(lambda m: html.escape(spans[int(m.group(1))], quote=False), rendered)


# MarkdownIt is safe to share for read-only renders.
renderer = MarkdownMathRenderer()
