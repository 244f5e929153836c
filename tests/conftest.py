"""Shared test fixtures for the wikitree test suite.

Design:
- doc_root: isolated document root on disk, WIKITREE_ROOT pointing at it
- write_doc: create a document with an explicit modification time
- memory_storage: in-memory Storage fake with listing order under test control
- make_tree: build a Tree from nested dicts without touching disk
- Module-level workspace state is reset around every test
"""

import asyncio
import logging
import os
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from click.testing import CliRunner

from wikitree import core
from wikitree.cli import cli
from wikitree.models import Document, Folder, Tree
from wikitree.tree import StorageEntry

EPOCH = datetime(2024, 1, 1, tzinfo=UTC)


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────


class MemoryStorage:
    """In-memory Storage: dicts are directories, strings are file contents.

    Listing order is dict insertion order. ``mtimes`` maps root-relative
    POSIX paths to modification times.
    """

    def __init__(
        self,
        layout: dict,
        root: Path = Path("/mem"),
        mtimes: dict[str, datetime] | None = None,
        delay: float = 0.0,
    ):
        self.layout = layout
        self.root = root
        self.mtimes = mtimes or {}
        self.delay = delay
        self.reads: list[str] = []

    def _relative(self, location: Path) -> Path:
        return Path(location).relative_to(self.root)

    def _node(self, location: Path):
        node = self.layout
        for part in self._relative(location).parts:
            if not isinstance(node, dict) or part not in node:
                raise FileNotFoundError(str(location))
            node = node[part]
        return node

    async def list_entries(self, location: Path) -> list[StorageEntry]:
        if self.delay:
            await asyncio.sleep(self.delay)
        node = self._node(location)
        if not isinstance(node, dict):
            raise NotADirectoryError(str(location))
        return [
            StorageEntry(name, "directory" if isinstance(value, dict) else "file")
            for name, value in node.items()
        ]

    async def stat(self, location: Path) -> datetime:
        self._node(location)
        return self.mtimes.get(self._relative(location).as_posix(), EPOCH)

    async def read_text(self, location: Path) -> str:
        node = self._node(location)
        if isinstance(node, dict):
            raise IsADirectoryError(str(location))
        self.reads.append(self._relative(location).as_posix())
        return node


def make_tree(layout: dict, start: datetime = EPOCH) -> Tree:
    """Build a Tree from nested dicts; ``None`` values are documents.

    Documents get increasing modification times in layout order.
    """
    counter = iter(range(10_000))

    def _build(level: dict) -> Tree:
        tree: Tree = []
        for name, value in level.items():
            if value is None:
                tree.append(Document(name=name, last_modified=start + timedelta(minutes=next(counter))))
            else:
                tree.append(Folder(name=name, children=_build(value)))
        return tree

    return _build(layout)


def write_doc(root: Path, rel_path: str, content: str = "", mtime: float | None = None) -> Path:
    """Create a document under root, optionally pinning its mtime."""
    path = root / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


# ─────────────────────────────────────────────────────────────────────────────
# Core Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True, scope="session")
def silence_package_logger():
    """Keep configure_logging from binding a handler to CliRunner streams."""
    logger = logging.getLogger("wikitree")
    handler = logging.NullHandler()
    logger.addHandler(handler)
    yield
    logger.removeHandler(handler)


@pytest.fixture(autouse=True)
def reset_workspace(monkeypatch):
    """Keep the process-wide workspace and root discovery from leaking."""
    monkeypatch.setattr(core, "_workspace", None)
    monkeypatch.delenv("WIKITREE_ROOT", raising=False)
    yield
    core.deactivate()


@pytest.fixture
def doc_root(tmp_path: Path, monkeypatch) -> Path:
    """Empty document root with WIKITREE_ROOT pointing at it."""
    root = tmp_path / "docs"
    root.mkdir()
    monkeypatch.setenv("WIKITREE_ROOT", str(root))
    return root


@pytest.fixture
def sample_root(doc_root: Path) -> Path:
    """A small nested corpus.

    Layout (documents by mtime: A/B/Target, A/Other, Index, Notes/Foo):
        Index.md        -> [[Notes/Foo]] [[Target]]
        Notes/Foo.md    -> [[Index]] [[A/B/Target]]
        A/Other.md      -> [[Target]] [[Ghost]]
        A/B/Target.md   -> (no links)
        .hidden/Secret.md
        Ideas.txt
    """
    write_doc(doc_root, "Index.md", "# Index\n\nSee [[Notes/Foo]] and [[Target]].\n", mtime=4000)
    write_doc(doc_root, "Notes/Foo.md", "Back to [[Index]].\nSee [[A/B/Target]].\n", mtime=5000)
    write_doc(doc_root, "A/Other.md", "Links: [[Target]]\nand [[Ghost]]\n", mtime=3000)
    write_doc(doc_root, "A/B/Target.md", "Nothing here.\n", mtime=2000)
    write_doc(doc_root, ".hidden/Secret.md", "[[Index]]\n", mtime=1000)
    write_doc(doc_root, "Ideas.txt", "[[Index]]\n", mtime=1000)
    return doc_root


@pytest.fixture
def memory_storage():
    """Factory for MemoryStorage instances."""
    return MemoryStorage


@pytest.fixture
def tree_factory():
    """Factory for in-memory trees (see make_tree)."""
    return make_tree


@pytest.fixture
def runner() -> CliRunner:
    """CLI runner with isolated environment."""
    return CliRunner()


@pytest.fixture
def cli_invoke(runner: CliRunner, doc_root: Path):
    """Invoke the CLI against doc_root.

    Usage:
        def test_tree(cli_invoke):
            result = cli_invoke(["tree"])
            assert result.exit_code == 0
    """

    def _invoke(args: list[str], catch_exceptions: bool = False):
        return runner.invoke(
            cli,
            args,
            catch_exceptions=catch_exceptions,
            env={"WIKITREE_ROOT": str(doc_root)},
        )

    return _invoke
