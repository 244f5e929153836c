"""Shared, replace-on-write holder for the current document tree.

Readers pull the latest committed snapshot whenever they need one; a rebuild
in progress never blocks them. Rebuilds are not coalesced: each one commits
when it finishes, so the last rebuild to complete wins.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from .config import DOC_EXTENSION
from .models import Tree
from .tree import Storage, build_tree, count_documents

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class TreeSnapshot:
    """An immutable view of one committed tree."""

    tree: Tree
    version: int
    built_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class TreeStore:
    """Holds the current ``TreeSnapshot``.

    Uninitialized until the first ``replace``; ``wait`` lets early readers
    block until then.
    """

    def __init__(self) -> None:
        self._snapshot: TreeSnapshot | None = None
        self._version = 0
        self._ready = asyncio.Event()

    def current(self) -> TreeSnapshot | None:
        """Latest committed snapshot, or None before the first build."""
        return self._snapshot

    @property
    def is_ready(self) -> bool:
        return self._snapshot is not None

    async def wait(self) -> TreeSnapshot:
        """Wait for the first snapshot, then return whichever is current."""
        await self._ready.wait()
        assert self._snapshot is not None
        return self._snapshot

    def replace(self, tree: Tree) -> TreeSnapshot:
        """Commit ``tree`` as the current snapshot."""
        self._version += 1
        snapshot = TreeSnapshot(tree=tree, version=self._version)
        self._snapshot = snapshot
        self._ready.set()
        return snapshot

    async def rebuild(
        self,
        root: Path,
        storage: Storage | None = None,
        extension: str = DOC_EXTENSION,
    ) -> TreeSnapshot:
        """Build a fresh tree from ``root`` and commit it.

        Raises:
            OSError: If listing fails. The previous snapshot stays current.
        """
        tree = await build_tree(root, storage=storage, extension=extension)
        snapshot = self.replace(tree)
        log.info(
            "Tree rebuilt: %d documents (version %d)", count_documents(tree), snapshot.version
        )
        return snapshot
