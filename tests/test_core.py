"""Tests for the workspace and core operations.

Coverage:
- src/wikitree/core.py - Workspace, activate/deactivate, module-level operations

All tests run against the sample_root corpus on disk (see conftest).
"""

from pathlib import Path

import pytest

from conftest import write_doc
from wikitree import core
from wikitree.errors import ErrorCode, WikitreeError

# ─────────────────────────────────────────────────────────────────────────────
# Activation
# ─────────────────────────────────────────────────────────────────────────────


class TestActivate:
    @pytest.mark.asyncio
    async def test_without_root_disables_everything(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        assert await core.activate() is None
        assert core._workspace is None

    @pytest.mark.asyncio
    async def test_builds_initial_tree(self, sample_root: Path):
        workspace = await core.activate()

        assert workspace is core.get_workspace()
        assert workspace.root == sample_root
        assert workspace.store.current().version == 1

    @pytest.mark.asyncio
    async def test_explicit_root_and_storage(self, memory_storage):
        storage = memory_storage({"a.md": "[[b]]", "b.md": ""})
        workspace = await core.activate(root=storage.root, storage=storage)

        assert [node.name for node in await workspace.tree()] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_watch_starts_and_deactivate_stops(self, sample_root: Path):
        workspace = await core.activate(watch=True)
        assert workspace.watcher.is_running

        core.deactivate()
        assert not workspace.watcher.is_running
        assert core._workspace is None

    @pytest.mark.asyncio
    async def test_build_failure_propagates(self, memory_storage):
        storage = memory_storage({})
        with pytest.raises(FileNotFoundError):
            await core.activate(root=Path("/mem/missing"), storage=storage)
        assert core._workspace is None


class TestGetWorkspace:
    def test_missing_root_raises_structured_error(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        with pytest.raises(WikitreeError) as exc_info:
            core.get_workspace()
        assert exc_info.value.code is ErrorCode.ROOT_NOT_CONFIGURED

    def test_set_root_overrides_discovery(self, tmp_path: Path):
        workspace = core.set_root(tmp_path)
        assert core.get_workspace() is workspace


# ─────────────────────────────────────────────────────────────────────────────
# Operations
# ─────────────────────────────────────────────────────────────────────────────


class TestOperations:
    @pytest.mark.asyncio
    async def test_tree_as_data(self, sample_root: Path):
        result = await core.tree()

        assert result["documents"] == 4
        names = [node["name"] for node in result["tree"]]
        assert sorted(names) == ["A", "Index", "Notes"]
        index = next(node for node in result["tree"] if node["name"] == "Index")
        assert index["type"] == "document"
        assert index["last_modified"].startswith("1970-01-01T01:06:40")

    @pytest.mark.asyncio
    async def test_resolve(self, sample_root: Path):
        link = await core.resolve("Target", "A/Other.md")
        assert link.path == "/A/Target"

    @pytest.mark.asyncio
    async def test_outgoing(self, sample_root: Path):
        assert await core.outgoing("Index") == ["Notes/Foo", "Target"]

    @pytest.mark.asyncio
    async def test_backlinks(self, sample_root: Path):
        assert await core.backlinks("A/B/Target") == ["/Notes/Foo"]
        assert await core.backlinks("/Index.md") == ["/Notes/Foo"]

    @pytest.mark.asyncio
    async def test_backlinks_missing_document(self, sample_root: Path):
        with pytest.raises(WikitreeError) as exc_info:
            await core.backlinks("Ghost")
        assert exc_info.value.code is ErrorCode.DOCUMENT_NOT_FOUND

    @pytest.mark.asyncio
    async def test_completions_oldest_first(self, sample_root: Path):
        assert await core.completions() == ["A/B/Target", "A/Other", "Index", "Notes/Foo"]
        assert await core.completions("target") == ["A/B/Target"]

    @pytest.mark.asyncio
    async def test_completions_at_cursor(self, sample_root: Path):
        workspace = core.get_workspace()

        assert await workspace.completions_at("See [[no") == ["Notes/Foo"]
        assert await workspace.completions_at("See [[x]] done") is None

    @pytest.mark.asyncio
    async def test_links(self, sample_root: Path):
        spans = await core.links("A/Other")

        assert [(s.label, s.path) for s in spans] == [("Target", "/A/Target"), ("Ghost", "/Ghost")]
        assert spans[0].location == str(sample_root / "A" / "Target.md")

    @pytest.mark.asyncio
    async def test_listing(self, sample_root: Path):
        result = await core.listing("Notes/Foo")

        assert [e.path for e in result.outgoing] == ["/Index", "/A/B/Target"]
        assert [e.path for e in result.incoming] == ["/Index"]

    @pytest.mark.asyncio
    async def test_listing_missing_document(self, sample_root: Path):
        with pytest.raises(WikitreeError):
            await core.listing("Ghost")


class TestRender:
    @pytest.mark.asyncio
    async def test_render_resolves_against_document(self, sample_root: Path):
        result = await core.render("A/Other")

        assert '<a href="/A/Target.md" data-href="/A/Target.md">Target</a>' in result.html
        assert result.links == ["Target", "Ghost"]

    @pytest.mark.asyncio
    async def test_front_matter_is_stripped(self, sample_root: Path):
        write_doc(sample_root, "Meta.md", "---\ntitle: Meta\n---\n\nBody [[Index]]\n")

        result = await core.render("Meta")

        assert "title:" not in result.html
        assert 'href="/Index.md"' in result.html

    @pytest.mark.asyncio
    async def test_broken_front_matter_renders_raw(self, sample_root: Path):
        write_doc(sample_root, "Broken.md", "---\ntitle: [oops\n---\n[[Index]]\n")

        result = await core.render("Broken")

        assert result.links == ["Index"]

    @pytest.mark.asyncio
    async def test_render_missing_document(self, sample_root: Path):
        with pytest.raises(WikitreeError):
            await core.render("Nope")


class TestStorageBackedWorkspace:
    """Document operations go through the Storage collaborator only."""

    @pytest.fixture
    def storage(self, memory_storage):
        return memory_storage(
            {"a.md": "[[b]] and [[F/c]]", "b.md": "back to [[a]]", "F": {"c.md": "[[b]]"}}
        )

    @pytest.mark.asyncio
    async def test_outgoing(self, storage):
        await core.activate(root=storage.root, storage=storage)

        assert await core.outgoing("a") == ["b", "F/c"]

    @pytest.mark.asyncio
    async def test_backlinks(self, storage):
        await core.activate(root=storage.root, storage=storage)

        assert await core.backlinks("b") == ["/a", "/F/c"]

    @pytest.mark.asyncio
    async def test_render_links_and_listing(self, storage):
        workspace = await core.activate(root=storage.root, storage=storage)

        assert 'href="/b.md"' in (await workspace.render("a")).html
        assert [s.path for s in await workspace.links("F/c")] == ["/b"]
        listing = await workspace.listing("b")
        assert [e.path for e in listing.incoming] == ["/a", "/F/c"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("operation", ["outgoing", "backlinks", "listing", "render", "links"])
    async def test_missing_document(self, storage, operation):
        await core.activate(root=storage.root, storage=storage)

        with pytest.raises(WikitreeError) as exc_info:
            await getattr(core, operation)("nope")
        assert exc_info.value.code is ErrorCode.DOCUMENT_NOT_FOUND


class TestWorkspaceTree:
    @pytest.mark.asyncio
    async def test_rebuild_sees_new_documents(self, sample_root: Path):
        workspace = core.get_workspace()
        before = await workspace.tree()
        write_doc(sample_root, "Fresh.md", "")

        assert await workspace.tree() is before
        snapshot = await workspace.rebuild()
        assert snapshot.version == 2
        assert any(node.name == "Fresh" for node in snapshot.tree)
