"""
Minimal markdown to HTML conversion for notes.

Handles what the model actually writes in notes: headings, bullet and
numbered lists, horizontal rules, paragraphs, and bold/italic/code spans.
"""

import re

_HEADER = re.compile(r"^(#{1,6})\s+(.*)$")
_BULLET = re.compile(r"^\s*[-*]\s+(.*)$")
_NUMBERED = re.compile(r"^\s*\d+[.)]\s+(.*)$")

_INLINE = (
    (re.compile(r"\*\*\*(.*?)\*\*\*"), r"<strong><em>\1</em></strong>"),
    (re.compile(r"\*\*(.*?)\*\*"), r"<strong>\1</strong>"),
    (re.compile(r"\*(.*?)\*"), r"<em>\1</em>"),
    (re.compile(r"`(.*?)`"), r"<code>\1</code>"),
)


def _inline(text: str) -> str:
    for pattern, replacement in _INLINE:
        text = pattern.sub(replacement, text)
    return text


def markdown_to_html(markdown: str) -> str:
    """Convert markdown to the HTML subset notes are stored in."""
    if not markdown:
        return ""

    parts: list[str] = []
    open_list: str | None = None

    def close_list() -> None:
        nonlocal open_list
        if open_list:
            parts.append(f"</{open_list}>")
            open_list = None

    def list_item(kind: str, text: str) -> None:
        nonlocal open_list
        if open_list != kind:
            close_list()
            parts.append(f"<{kind}>")
            open_list = kind
        parts.append(f"<li>{_inline(text)}</li>")

    for line in markdown.split("\n"):
        stripped = line.strip()

        if not stripped:
            # Blank lines inside a list keep the list open
            if not open_list:
                parts.append("<br/>")
            continue

        if stripped in ("---", "***"):
            close_list()
            parts.append("<hr/>")
            continue

        header = _HEADER.match(line)
        if header:
            close_list()
            level = len(header.group(1))
            parts.append(f"<h{level}>{_inline(header.group(2))}</h{level}>")
            continue

        bullet = _BULLET.match(line)
        if bullet:
            list_item("ul", bullet.group(1))
            continue

        numbered = _NUMBERED.match(line)
        if numbered:
            list_item("ol", numbered.group(1))
            continue

        close_list()
        parts.append(f"<p>{_inline(line)}</p>")

    close_list()
    return "".join(parts)


def looks_like_html(text: str) -> bool:
    return text.strip().startswith("<")
