"""Wiki-link recognition and markdown rendering."""

from .links import (
    LINK_PATTERN,
    completion_prefix,
    extract_links,
    iter_link_tokens,
    iter_links,
    scan_link,
    unescape_label,
)
from .md_renderer import MarkdownResult, render_markdown, wikilink_plugin

__all__ = [
    "LINK_PATTERN",
    "scan_link",
    "unescape_label",
    "iter_link_tokens",
    "iter_links",
    "extract_links",
    "completion_prefix",
    "MarkdownResult",
    "render_markdown",
    "wikilink_plugin",
]
