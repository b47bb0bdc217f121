"""Owned context shared by every watcher, the walker and the compiler."""

import asyncio
import logging
from collections.abc import Coroutine

from autocompile_core.compiler import CompilationDriver
from autocompile_core.models import FileSnapshot, Options
from autocompile_core.notifier import CompileNotifier, NoOpNotifier
from autocompile_core.paths import is_within
from autocompile_core.registry import SourceRegistry
from autocompile_core.source_watchers import DirectoryWatcher, FileWatcher
from autocompile_core.transforms import TransformRegistry
from autocompile_core.walker import Walker
from autocompile_core.watchers import WatchBackend

logger = logging.getLogger(__name__)


class WatchContext:
    """Single owner of the mutable state of one watch session.

    All mutation happens on the event loop thread. Any exception escaping a
    task started with ``spawn()`` is delivered to ``fatal``.
    """

    def __init__(
        self,
        options: Options,
        transforms: TransformRegistry,
        backend: WatchBackend,
        notifier: CompileNotifier | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        """Initialize context.

        Args:
            options: Option snapshot
            transforms: Extension to transformation mapping
            backend: Filesystem observation backend
            notifier: Status line handler (defaults to NoOpNotifier - silent)
            loop: Event loop (defaults to the running loop)
        """
        self.options = options
        self.transforms = transforms
        self.backend = backend
        self.notifier = notifier or NoOpNotifier()
        self.loop = loop or asyncio.get_running_loop()

        self.registry = SourceRegistry()
        self.watchers: dict[str, FileWatcher | DirectoryWatcher] = {}
        self.compiler = CompilationDriver(self)
        self.walker = Walker(self)
        self.fatal: asyncio.Future = self.loop.create_future()
        self._tasks: set[asyncio.Task] = set()
        # (st_dev, st_ino) -> path of every directory walked
        self.walked_dirs: dict[tuple[int, int], str] = {}

    def spawn(self, coro: Coroutine) -> asyncio.Task:
        """Run ``coro`` as a task whose failure is fatal to the session."""
        task = self.loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None and not self.fatal.done():
            logger.debug(f"Fatal error in watch task: {exc!r}")
            self.fatal.set_exception(exc)

    async def drain(self) -> None:
        """Wait until no spawned task is pending."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def watch_file(self, path: str, base: str, snapshot: FileSnapshot | None = None) -> FileWatcher:
        """Attach a FileWatcher to ``path`` unless one is already attached."""
        watcher = self.watchers.get(path)
        if isinstance(watcher, FileWatcher):
            return watcher
        watcher = FileWatcher(self, path, base, snapshot)
        watcher.start()
        self.watchers[path] = watcher
        return watcher

    def watch_directory(self, path: str, base: str) -> DirectoryWatcher:
        """Attach a DirectoryWatcher to ``path`` unless one is already attached."""
        watcher = self.watchers.get(path)
        if isinstance(watcher, DirectoryWatcher):
            return watcher
        watcher = DirectoryWatcher(self, path, base)
        watcher.start()
        self.watchers[path] = watcher
        return watcher

    def forget_watcher(self, watcher: FileWatcher | DirectoryWatcher) -> None:
        if self.watchers.get(watcher.path) is watcher:
            del self.watchers[watcher.path]

    def close_watchers_under(self, directory: str) -> None:
        """Close every watcher at or beneath ``directory`` and forget its walk."""
        for path, watcher in list(self.watchers.items()):
            if is_within(path, directory):
                watcher.close()
        for identity, path in list(self.walked_dirs.items()):
            if is_within(path, directory):
                del self.walked_dirs[identity]

    def close(self) -> None:
        """Close every watcher and cancel pending work."""
        for watcher in list(self.watchers.values()):
            watcher.close()
        self.compiler.cancel_join()
        for task in list(self._tasks):
            task.cancel()
