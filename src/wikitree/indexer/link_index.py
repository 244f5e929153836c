"""Outgoing and incoming link computation over the document tree.

Nothing here is cached or persisted: every call rescans document text.
Incoming links read every document in the tree, so callers should only ask
when the active document changes.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

from ..config import DOC_EXTENSION
from ..models import LinkEntry, LinkListing, LinkSpan, Tree
from ..parser.links import iter_link_tokens, iter_links
from ..resolver import resolve
from ..tree import LocalStorage, Storage, canonical_path, document_location, iter_documents

log = logging.getLogger(__name__)


def outgoing_links(content: str) -> Iterator[str]:
    """Raw labels of a document's links, in document order."""
    return iter_links(content)


def resolved_outgoing(tree: Tree, content: str, source_path: str) -> Iterator[tuple[str, str]]:
    """Yield ``(label, canonical_target)`` for each link in ``content``."""
    for label in iter_links(content):
        yield label, resolve(tree, label, source_path)


async def incoming_links(
    tree: Tree,
    root: Path,
    target_path: str,
    storage: Storage | None = None,
    extension: str = DOC_EXTENSION,
) -> list[str]:
    """Find documents with at least one link resolving to ``target_path``.

    Args:
        tree: Document tree to scan.
        root: Document root on disk.
        target_path: Path of the document under inspection (any accepted form).
        storage: Storage collaborator used to read documents.
        extension: Document extension.

    Returns:
        Canonical paths of linking documents, in tree order.

    Raises:
        OSError: If a document cannot be read.
    """
    storage = storage or LocalStorage()
    target = canonical_path(target_path, extension)

    sources: list[str] = []
    for source, _document in iter_documents(tree):
        content = await storage.read_text(document_location(root, source, extension))
        if any(resolved == target for _, resolved in resolved_outgoing(tree, content, source)):
            sources.append(source)

    log.debug("%d incoming links for %s", len(sources), target)
    return sources


def completion_candidates(tree: Tree, prefix: str | None = None) -> list[str]:
    """List every document as a link label, oldest modification first.

    Ties keep tree order. Labels carry no leading slash and no extension.

    Args:
        tree: Document tree.
        prefix: Optional text typed so far; keeps candidates containing it
            (case-insensitive).
    """
    documents = sorted(iter_documents(tree), key=lambda item: item[1].last_modified)
    labels = [path.lstrip("/") for path, _ in documents]
    if prefix:
        needle = prefix.lower()
        labels = [label for label in labels if needle in label.lower()]
    return labels


def document_links(
    tree: Tree,
    root: Path,
    content: str,
    source_path: str,
    extension: str = DOC_EXTENSION,
) -> list[LinkSpan]:
    """Navigable spans for every link in a document."""
    source = canonical_path(source_path, extension)
    spans: list[LinkSpan] = []
    for token in iter_link_tokens(content):
        target = resolve(tree, token.label, source)
        spans.append(
            LinkSpan(
                label=token.label,
                span=token.span,
                path=target,
                location=str(document_location(root, target, extension)),
            )
        )
    return spans


async def link_listing(
    tree: Tree,
    root: Path,
    path: str,
    storage: Storage | None = None,
    extension: str = DOC_EXTENSION,
) -> LinkListing:
    """Outgoing and incoming links of the active document, ready to display.

    Raises:
        OSError: If the active document or any scanned document cannot be read.
    """
    storage = storage or LocalStorage()
    source = canonical_path(path, extension)
    content = await storage.read_text(document_location(root, source, extension))

    outgoing = [
        LinkEntry(
            label=label,
            path=target,
            location=str(document_location(root, target, extension)),
        )
        for label, target in resolved_outgoing(tree, content, source)
    ]
    incoming = [
        LinkEntry(
            label=linker.lstrip("/"),
            path=linker,
            location=str(document_location(root, linker, extension)),
        )
        for linker in await incoming_links(tree, root, source, storage, extension)
    ]
    return LinkListing(path=source, outgoing=outgoing, incoming=incoming)
