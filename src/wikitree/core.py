"""Core operations for wikitree.

This module holds the process-wide workspace and the async operations a host
(the CLI, an editor integration) calls.

Design principles:
- All operations are async; storage access never blocks the event loop
- The tree is built once on first use and replaced wholesale on rebuild
- A missing document root disables everything rather than degrading
"""

import logging
from pathlib import Path

import frontmatter
import yaml

from . import config as _config
from .config import DOC_EXTENSION, ConfigurationError
from .errors import WikitreeError
from .indexer.link_index import (
    completion_candidates,
    document_links,
    incoming_links,
    link_listing,
    outgoing_links,
)
from .indexer.watcher import FileWatcher
from .models import Document, LinkListing, LinkSpan, ResolvedLink, Tree
from .parser.links import completion_prefix
from .parser.md_renderer import MarkdownResult, render_markdown
from .resolver import resolve_link
from .snapshot import TreeSnapshot, TreeStore
from .tree import LocalStorage, Storage, canonical_path, count_documents, document_location

log = logging.getLogger(__name__)


class Workspace:
    """A document root with its tree snapshot and storage collaborator."""

    def __init__(
        self,
        root: Path,
        storage: Storage | None = None,
        extension: str = DOC_EXTENSION,
    ) -> None:
        self.root = Path(root)
        self.storage = storage or LocalStorage()
        self.extension = extension
        self.store = TreeStore()
        self.watcher: FileWatcher | None = None

    async def rebuild(self) -> TreeSnapshot:
        return await self.store.rebuild(self.root, storage=self.storage, extension=self.extension)

    async def tree(self) -> Tree:
        """Current tree, building it on first use."""
        snapshot = self.store.current()
        if snapshot is None:
            snapshot = await self.rebuild()
        return snapshot.tree

    def location(self, path: str) -> Path:
        return document_location(self.root, canonical_path(path, self.extension), self.extension)

    async def read(self, path: str) -> str:
        """Read a document's text.

        Raises:
            WikitreeError: If the storage has no such document.
            OSError: Other storage failures propagate unchanged.
        """
        try:
            return await self.storage.read_text(self.location(path))
        except FileNotFoundError as e:
            raise WikitreeError.document_not_found(path) from e

    async def resolve(self, label: str, source_path: str) -> ResolvedLink:
        return resolve_link(await self.tree(), label, canonical_path(source_path, self.extension))

    async def render(self, path: str) -> MarkdownResult:
        """Render a document to HTML with resolved wiki links."""
        text = await self.read(path)
        try:
            body = frontmatter.loads(text).content
        except yaml.YAMLError as e:
            log.debug("Rendering %s without front matter stripping: %s", path, e)
            body = text
        return render_markdown(
            body,
            tree=await self.tree(),
            source_path=canonical_path(path, self.extension),
            extension=self.extension,
        )

    async def outgoing(self, path: str) -> list[str]:
        return list(outgoing_links(await self.read(path)))

    async def backlinks(self, path: str) -> list[str]:
        return await incoming_links(
            await self.tree(), self.root, path, storage=self.storage, extension=self.extension
        )

    async def completions(self, prefix: str | None = None) -> list[str]:
        return completion_candidates(await self.tree(), prefix)

    async def completions_at(self, line_prefix: str) -> list[str] | None:
        """Candidates for the cursor position, or None outside an open ``[[``."""
        typed = completion_prefix(line_prefix)
        if typed is None:
            return None
        return await self.completions(typed)

    async def links(self, path: str) -> list[LinkSpan]:
        content = await self.read(path)
        return document_links(await self.tree(), self.root, content, path, self.extension)

    async def listing(self, path: str) -> LinkListing:
        await self.read(path)
        return await link_listing(
            await self.tree(), self.root, path, storage=self.storage, extension=self.extension
        )

    def start_watching(self) -> FileWatcher:
        """Rebuild the tree on every structural change under the root."""
        if self.watcher is None:
            self.watcher = FileWatcher(self.store, self.root, self.storage, self.extension)
        self.watcher.start()
        return self.watcher

    def stop_watching(self) -> None:
        if self.watcher is not None:
            self.watcher.stop()


# ─────────────────────────────────────────────────────────────────────────────
# Module-level state (lazy initialization)
# ─────────────────────────────────────────────────────────────────────────────

_workspace: Workspace | None = None


def get_workspace() -> Workspace:
    """Get the process-wide workspace, creating it from configuration.

    Raises:
        WikitreeError: If no document root is configured.
    """
    global _workspace
    if _workspace is None:
        try:
            root = _config.get_root()
        except ConfigurationError as e:
            raise WikitreeError.root_not_configured(str(e)) from e
        _workspace = Workspace(root, extension=_config.get_doc_extension())
    return _workspace


def set_root(root: Path, extension: str = DOC_EXTENSION) -> Workspace:
    """Use ``root`` for the process-wide workspace, bypassing discovery."""
    global _workspace
    _workspace = Workspace(root, extension=extension)
    return _workspace


async def activate(
    root: Path | None = None,
    storage: Storage | None = None,
    watch: bool = False,
    extension: str | None = None,
) -> Workspace | None:
    """Set up the workspace and build the initial tree.

    Returns:
        The active workspace, or None when no document root is configured
        (nothing is registered in that case).

    Raises:
        OSError: If the initial tree build fails.
    """
    global _workspace
    if root is None:
        try:
            root = _config.get_root()
        except ConfigurationError as e:
            log.warning("Link features disabled: %s", e)
            return None
        extension = extension or _config.get_doc_extension()

    extension = extension or DOC_EXTENSION

    workspace = Workspace(root, storage=storage, extension=extension)
    await workspace.rebuild()
    if watch:
        workspace.start_watching()
    _workspace = workspace
    return workspace


def deactivate() -> None:
    global _workspace
    if _workspace is not None:
        _workspace.stop_watching()
    _workspace = None


# ─────────────────────────────────────────────────────────────────────────────
# Operations
# ─────────────────────────────────────────────────────────────────────────────


def _tree_to_dict(tree: Tree) -> list[dict]:
    nodes: list[dict] = []
    for node in tree:
        if isinstance(node, Document):
            nodes.append(
                {
                    "type": "document",
                    "name": node.name,
                    "last_modified": node.last_modified.isoformat(),
                }
            )
        else:
            nodes.append(
                {"type": "folder", "name": node.name, "children": _tree_to_dict(node.children)}
            )
    return nodes


async def tree() -> dict:
    """Current document tree as plain data, with a document count."""
    current = await get_workspace().tree()
    return {"tree": _tree_to_dict(current), "documents": count_documents(current)}


async def resolve(label: str, source_path: str) -> ResolvedLink:
    return await get_workspace().resolve(label, source_path)


async def render(path: str) -> MarkdownResult:
    return await get_workspace().render(path)


async def outgoing(path: str) -> list[str]:
    """Raw labels of a document's outgoing links, in document order."""
    return await get_workspace().outgoing(path)


async def backlinks(path: str) -> list[str]:
    """Find documents that link to this path.

    Args:
        path: Document path, e.g. "notes/python" or "/notes/python.md".

    Returns:
        Canonical paths of the linking documents.
    """
    workspace = get_workspace()
    await workspace.read(path)
    return await workspace.backlinks(path)


async def completions(prefix: str | None = None) -> list[str]:
    return await get_workspace().completions(prefix)


async def links(path: str) -> list[LinkSpan]:
    return await get_workspace().links(path)


async def listing(path: str) -> LinkListing:
    return await get_workspace().listing(path)
