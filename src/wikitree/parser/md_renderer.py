"""Markdown rendering with resolved wiki links.

The ``wikilink`` inline rule sits right after ``emphasis`` so the core
``link`` rule never sees ``[[``. Tokens of that kind are rendered by the
function registered for them in ``RENDER_RULES``.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from markdown_it import MarkdownIt
from markdown_it.common.utils import escapeHtml
from markdown_it.rules_inline import StateInline
from markdown_it.token import Token

from ..config import DOC_EXTENSION
from ..models import Tree
from ..resolver import resolve
from .links import scan_link, unescape_label

WIKILINK = "wikilink"

# Keys the host puts in the markdown-it env for the render rules.
ENV_SOURCE_PATH = "wikitree_source_path"
ENV_LINKS = "wikitree_links"


@dataclass
class MarkdownResult:
    """Rendered HTML plus the labels found while tokenizing."""

    html: str
    links: list[str] = field(default_factory=list)


def _wikilink_rule(state: StateInline, silent: bool) -> bool:
    found = scan_link(state.src, state.pos, state.posMax)
    if found is None:
        return False

    raw, end = found
    if not silent:
        label = unescape_label(raw)
        token = state.push(WIKILINK, "a", 0)
        token.content = label
        token.markup = "[["
        token.meta = {"label": label}
        links = state.env.get(ENV_LINKS)
        if isinstance(links, list):
            links.append(label)

    state.pos = end
    return True


def _make_wikilink_renderer(get_tree: Callable[[], Tree], extension: str):
    def render_wikilink(
        self: Any,
        tokens: Sequence[Token],
        idx: int,
        options: Any,
        env: dict,
    ) -> str:
        label = tokens[idx].content
        target = resolve(get_tree(), label, env.get(ENV_SOURCE_PATH, ""))
        href = escapeHtml(f"{target}{extension}")
        return f'<a href="{href}" data-href="{href}">{escapeHtml(label)}</a>'

    return render_wikilink


# Token kind -> factory for its render function.
RENDER_RULES: dict[str, Callable[[Callable[[], Tree], str], Callable[..., str]]] = {
    WIKILINK: _make_wikilink_renderer,
}


def wikilink_plugin(
    md: MarkdownIt,
    get_tree: Callable[[], Tree] = list,
    extension: str = DOC_EXTENSION,
) -> None:
    """Register the wiki-link inline rule and its render rules on ``md``.

    Args:
        md: MarkdownIt instance to extend.
        get_tree: Returns the tree to resolve against at render time.
        extension: Document extension appended to rendered targets.
    """
    md.inline.ruler.after("emphasis", WIKILINK, _wikilink_rule)
    for kind, factory in RENDER_RULES.items():
        md.add_render_rule(kind, factory(get_tree, extension))


def create_markdown(get_tree: Callable[[], Tree] = list, extension: str = DOC_EXTENSION) -> MarkdownIt:
    md = MarkdownIt("commonmark")
    md.enable("table")
    md.use(wikilink_plugin, get_tree=get_tree, extension=extension)
    return md


def render_markdown(
    content: str,
    tree: Tree | None = None,
    source_path: str = "",
    extension: str = DOC_EXTENSION,
) -> MarkdownResult:
    """Render markdown to HTML, resolving wiki links against ``tree``.

    Args:
        content: Markdown body (no front matter).
        tree: Document tree; an empty tree resolves every label to ``/<label>``.
        source_path: Canonical path of the document being rendered.
        extension: Document extension for rendered hrefs.

    Returns:
        MarkdownResult with html and the labels in document order.
    """
    snapshot = tree if tree is not None else []
    md = create_markdown(lambda: snapshot, extension)
    links: list[str] = []
    html = md.render(content, {ENV_SOURCE_PATH: source_path, ENV_LINKS: links})
    return MarkdownResult(html=html, links=links)
