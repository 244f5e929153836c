"""Document tree construction and lookup.

The tree mirrors the document root on disk: folders become ``Folder`` nodes,
files named ``<stem><extension>`` become ``Document`` leaves named ``<stem>``.
Hidden entries (leading ``.``) are skipped. Sibling order follows the storage
listing order; nothing is sorted here.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from collections.abc import Iterator, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Literal, NamedTuple, Protocol

from .config import DOC_EXTENSION
from .models import Document, Folder, Tree

log = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Storage collaborator
# ─────────────────────────────────────────────────────────────────────────────


class StorageEntry(NamedTuple):
    """A directory listing entry."""

    name: str
    kind: Literal["file", "directory"]


class Storage(Protocol):
    async def list_entries(self, location: Path) -> list[StorageEntry]: ...

    async def stat(self, location: Path) -> datetime: ...

    async def read_text(self, location: Path) -> str: ...


class LocalStorage:
    """Storage backed by the local filesystem, run off the event loop."""

    async def list_entries(self, location: Path) -> list[StorageEntry]:
        return await asyncio.to_thread(self._list_entries, Path(location))

    async def stat(self, location: Path) -> datetime:
        st = await asyncio.to_thread(os.stat, location)
        return datetime.fromtimestamp(st.st_mtime, tz=UTC)

    async def read_text(self, location: Path) -> str:
        return await asyncio.to_thread(Path(location).read_text, encoding="utf-8")

    @staticmethod
    def _list_entries(location: Path) -> list[StorageEntry]:
        entries: list[StorageEntry] = []
        with os.scandir(location) as it:
            for entry in it:
                if entry.is_dir():
                    entries.append(StorageEntry(entry.name, "directory"))
                elif entry.is_file():
                    entries.append(StorageEntry(entry.name, "file"))
        return entries


# ─────────────────────────────────────────────────────────────────────────────
# Tree builder
# ─────────────────────────────────────────────────────────────────────────────


def _doc_pattern(extension: str) -> re.Pattern[str]:
    return re.compile(rf"^(.+){re.escape(extension)}$")


async def build_tree(
    root: Path,
    storage: Storage | None = None,
    extension: str = DOC_EXTENSION,
) -> Tree:
    """Walk the document root and build the tree.

    Args:
        root: Document root directory.
        storage: Storage collaborator (defaults to the local filesystem).
        extension: Document file extension, including the dot.

    Returns:
        The top-level sibling list.

    Raises:
        OSError: Listing or stat failures propagate unchanged.
    """
    storage = storage or LocalStorage()
    return await _build_level(Path(root), storage, _doc_pattern(extension))


async def _build_level(location: Path, storage: Storage, pattern: re.Pattern[str]) -> Tree:
    tree: Tree = []
    for entry in await storage.list_entries(location):
        if entry.name.startswith("."):
            continue

        child = location / entry.name
        if entry.kind == "directory":
            children = await _build_level(child, storage, pattern)
            tree.append(Folder(name=entry.name, children=children))
            continue

        match = pattern.match(entry.name)
        if match:
            modified = await storage.stat(child)
            tree.append(Document(name=match.group(1), last_modified=modified))
    return tree


# ─────────────────────────────────────────────────────────────────────────────
# Lookup helpers
# ─────────────────────────────────────────────────────────────────────────────


def find_folder(tree: Tree, name: str) -> Folder | None:
    """Return the first folder named ``name`` among siblings."""
    for node in tree:
        if isinstance(node, Folder) and node.name == name:
            return node
    return None


def find_document(tree: Tree, name: str) -> Document | None:
    """Return the first document named ``name`` among siblings."""
    for node in tree:
        if isinstance(node, Document) and node.name == name:
            return node
    return None


def lookup_document(tree: Tree, segments: Sequence[str]) -> Document | None:
    """Follow ``segments`` from this level; the last one must land on a document."""
    if not segments:
        return None

    level = tree
    for segment in segments[:-1]:
        folder = find_folder(level, segment)
        if folder is None:
            return None
        level = folder.children
    return find_document(level, segments[-1])


def contains_document(tree: Tree, segments: Sequence[str]) -> bool:
    """True if ``segments`` land on a document from this level or any folder below it."""
    if lookup_document(tree, segments) is not None:
        return True
    return any(
        contains_document(node.children, segments) for node in tree if isinstance(node, Folder)
    )


def iter_documents(tree: Tree, prefix: str = "") -> Iterator[tuple[str, Document]]:
    """Yield ``(canonical_path, document)`` for every leaf, depth-first in tree order."""
    for node in tree:
        if isinstance(node, Document):
            yield f"{prefix}/{node.name}", node
        else:
            yield from iter_documents(node.children, f"{prefix}/{node.name}")


def count_documents(tree: Tree) -> int:
    return sum(1 for _ in iter_documents(tree))


def canonical_path(path: str, extension: str = DOC_EXTENSION) -> str:
    """Normalize a document path to canonical form: ``/dir/stem``.

    Accepts paths with or without a leading slash and with or without the
    document extension. Backslashes are treated as separators.

    Examples:
        "notes/foo.md" -> "/notes/foo"
        "/notes/foo" -> "/notes/foo"
    """
    normalized = path.strip().replace("\\", "/")
    if normalized.endswith(extension):
        normalized = normalized[: -len(extension)]
    return "/" + normalized.strip("/")


def document_location(root: Path, path: str, extension: str = DOC_EXTENSION) -> Path:
    """File location for a canonical path; the extension is always appended."""
    return Path(root) / f"{path.strip('/')}{extension}"
