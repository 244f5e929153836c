"""File watcher that rebuilds the document tree on structural changes."""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..config import DOC_EXTENSION
from ..snapshot import TreeStore
from ..tree import Storage

logger = logging.getLogger(__name__)


class TreeChangeHandler(FileSystemEventHandler):
    """Forwards document and folder creates, deletes and moves.

    Content modifications are ignored: they never change the tree.
    """

    def __init__(
        self,
        callback: Callable[[Path], None],
        root: Path,
        extension: str = DOC_EXTENSION,
    ):
        super().__init__()
        self._callback = callback
        self._root = Path(root)
        self._extension = extension

    def _is_relevant(self, path: Path, is_directory: bool) -> bool:
        try:
            parts = path.relative_to(self._root).parts
        except ValueError:
            parts = path.parts
        if not parts or any(part.startswith(".") for part in parts):
            return False
        if is_directory:
            return True
        return len(path.name) > len(self._extension) and path.name.endswith(self._extension)

    def _handle(self, path: Path, is_directory: bool) -> None:
        if self._is_relevant(path, is_directory):
            logger.debug("Structural change: %s", path)
            self._callback(path)

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle file or directory creation."""
        self._handle(Path(event.src_path), event.is_directory)

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Handle file or directory deletion."""
        self._handle(Path(event.src_path), event.is_directory)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle rename; either side being relevant is enough."""
        src_path = Path(event.src_path)
        dest = getattr(event, "dest_path", None)
        dest_path = Path(dest) if dest else None

        if self._is_relevant(src_path, event.is_directory):
            self._handle(src_path, event.is_directory)
        elif dest_path is not None:
            self._handle(dest_path, event.is_directory)


class FileWatcher:
    """Watch the document root and rebuild the tree on every structural change.

    Changes are not coalesced: each event schedules its own rebuild on the
    event loop and the last rebuild to finish wins.
    """

    def __init__(
        self,
        store: TreeStore,
        root: Path,
        storage: Storage | None = None,
        extension: str = DOC_EXTENSION,
    ):
        self._store = store
        self._root = Path(root)
        self._storage = storage
        self._extension = extension
        self._observer: Observer | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._tasks: set[asyncio.Task] = set()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def _on_change(self, path: Path) -> None:
        """Called from the observer thread."""
        if self._loop is None or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(self.schedule_rebuild)

    def schedule_rebuild(self) -> asyncio.Task:
        """Start an independent rebuild on the event loop."""
        loop = self._loop or asyncio.get_running_loop()
        task = loop.create_task(self._rebuild())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _rebuild(self) -> None:
        # Detached task: nothing awaits it, so failures end here.
        try:
            await self._store.rebuild(self._root, storage=self._storage, extension=self._extension)
        except Exception:
            logger.exception("Tree rebuild failed for %s; keeping previous snapshot", self._root)

    def start(self) -> None:
        """Start watching. Must be called from within the running event loop."""
        if self._running:
            return

        if not self._root.exists():
            logger.warning("Document root does not exist: %s", self._root)
            return

        self._loop = asyncio.get_running_loop()
        self._observer = Observer()
        handler = TreeChangeHandler(self._on_change, self._root, self._extension)
        self._observer.schedule(handler, str(self._root), recursive=True)
        self._observer.start()
        self._running = True
        logger.info("Started watching: %s", self._root)

    def stop(self) -> None:
        """Stop watching for file changes."""
        if not self._running or self._observer is None:
            return

        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._observer = None
        self._running = False
        logger.info("Stopped file watcher")
