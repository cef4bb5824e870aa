from __future__ import annotations

from quiz_live.core.markdown_math_renderer import EMPTY_QUESTION_HTML, MarkdownMathRenderer


def test_plain_markdown_is_rendered() -> None:
    html = MarkdownMathRenderer().render_fragment("Which is **largest**?")

    assert html.strip() == "<p>Which is <strong>largest</strong>?</p>"


def test_inline_math_is_left_for_mathjax() -> None:
    html = MarkdownMathRenderer().render_fragment("Compute $*a* + b_1$ and *this*")

    assert "$*a* + b_1$" in html
    assert "<em>this</em>" in html
    assert "<em>a</em>" not in html


def test_math_is_html_escaped() -> None:
    html = MarkdownMathRenderer().render_fragment("Is $a<b$ true?")

    assert "$a&lt;b$" in html


def test_display_math_keeps_line_breaks() -> None:
    html = MarkdownMathRenderer().render_fragment("Solve\n\n$$\nx^2 = 4\n$$")

    assert "$$\nx^2 = 4\n$$" in html


def test_empty_text_renders_placeholder() -> None:
    renderer = MarkdownMathRenderer()

    assert renderer.render_fragment("   ") == EMPTY_QUESTION_HTML
    assert renderer.render_fragment(None) == EMPTY_QUESTION_HTML
