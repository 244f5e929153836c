"""Wiki-link recognition: ``[[label]]`` spans with backslash escaping.

Inside a link a backslash and the character after it form one opaque unit,
so ``\\]`` never closes the span. The span closes at the first unescaped
``]]``. Labels may not cross a line break; an unclosed ``[[`` is plain text,
as is an opener behind an odd run of backslashes (markdown escapes it).

Two matchers share these rules: ``scan_link`` walks from a cursor (used by
the markdown-it inline rule) and ``LINK_PATTERN`` scans whole documents.
"""

import re
from collections.abc import Iterator

from ..models import LinkToken, SourceSpan

OPEN = "[["
CLOSE = "]]"

# Escaped pairs are consumed whole, so a closing ]] only matches after an
# even run of backslashes.
LINK_PATTERN = re.compile(r"\[\[((?:\\[^\n]|[^\\\n])*?)\]\]")

_ESCAPE_PATTERN = re.compile(r"\\(.)", re.DOTALL)


def unescape_label(raw: str) -> str:
    """Collapse every ``\\X`` pair to ``X``."""
    return _ESCAPE_PATTERN.sub(r"\1", raw)


def scan_link(src: str, pos: int = 0, maximum: int | None = None) -> tuple[str, int] | None:
    """Try to recognize a link starting exactly at ``pos``.

    Args:
        src: Text to scan.
        pos: Cursor position; must point at ``[[``.
        maximum: Exclusive end of the scannable region (defaults to len(src)).

    Returns:
        ``(raw, end)`` where ``raw`` is the still-escaped text between the
        delimiters and ``end`` is the position just past ``]]``, or None if
        there is no link here.
    """
    if maximum is None:
        maximum = len(src)
    if pos + 2 > maximum or src[pos : pos + 2] != OPEN:
        return None

    start = pos + 2
    cur = start
    while cur < maximum:
        char = src[cur]
        if char == "\n":
            return None
        if char == "]" and cur + 1 < maximum and src[cur + 1] == "]":
            return src[start:cur], cur + 2
        if char == "\\" and cur + 1 < maximum:
            if src[cur + 1] == "\n":
                return None
            cur += 2
        else:
            cur += 1
    return None


def _is_escaped(src: str, pos: int) -> bool:
    """True if an odd run of backslashes ends right before ``pos``."""
    run = 0
    while pos - run > 0 and src[pos - run - 1] == "\\":
        run += 1
    return run % 2 == 1


def iter_link_tokens(content: str) -> Iterator[LinkToken]:
    """Yield every link in ``content`` in document order, with its source span.

    An escaped opener (``\\[[``) is plain text, so the scan resumes one
    character later, where the second ``[`` may still open a link.
    """
    for line_no, line in enumerate(content.splitlines()):
        pos = 0
        while True:
            match = LINK_PATTERN.search(line, pos)
            if match is None:
                break
            if _is_escaped(line, match.start()):
                pos = match.start() + 1
                continue
            yield LinkToken(
                label=unescape_label(match.group(1)),
                span=SourceSpan(line=line_no, start=match.start(), end=match.end()),
            )
            pos = match.end()


def iter_links(content: str) -> Iterator[str]:
    """Yield raw labels in document order. Each call scans afresh."""
    for token in iter_link_tokens(content):
        yield token.label


def extract_links(content: str) -> list[str]:
    """Extract all link labels from ``content``, duplicates included.

    Args:
        content: Document text.

    Returns:
        Unescaped labels in document order.
    """
    return list(iter_links(content))


def completion_prefix(line_prefix: str) -> str | None:
    """Return what the author has typed inside an unclosed ``[[``, if anything.

    Args:
        line_prefix: Text of the current line up to the cursor.

    Returns:
        The text after the last ``[[`` when no ``]]`` follows it, else None.
    """
    if len(line_prefix) < 2:
        return None
    opened = line_prefix.rfind(OPEN)
    closed = line_prefix.rfind(CLOSE)
    if opened == -1 or closed > opened:
        return None
    return line_prefix[opened + 2 :]
