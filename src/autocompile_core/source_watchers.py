"""Debounced per-file and per-directory watchers.

Each watcher is a small state machine (idle / pending) driven by raw
backend events. A pending debounce timer is replaced on every new event, so
a burst of notifications collapses into a single action once the path has
been quiet for the debounce window.
"""

import asyncio
import logging
import os
from typing import TYPE_CHECKING, Literal

from autocompile_core.models import FileSnapshot
from autocompile_core.watchers import EventKind, WatchHandle

if TYPE_CHECKING:
    from autocompile_core.context import WatchContext

logger = logging.getLogger(__name__)

FILE_DEBOUNCE = 0.125
"""Seconds a file must be quiet before it is re-read."""

DIRECTORY_SETTLE = 0.025
"""Seconds a directory must be quiet before it is re-listed."""

RENAME_SETTLE = 0.025
"""Seconds to wait after a rename before re-watching the file."""

WatchState = Literal["idle", "pending"]


def read_bytes(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


class _DebouncedWatcher:
    """Shared timer and handle bookkeeping."""

    delay: float = 0.0

    def __init__(self, ctx: "WatchContext", path: str, base: str):
        self.ctx = ctx
        self.path = path
        self.base = base
        self.state: WatchState = "idle"
        self._timer: asyncio.TimerHandle | None = None
        self._handle: WatchHandle | None = None
        self.closed = False

    def _arm(self) -> None:
        """(Re)start the debounce timer, replacing any pending one."""
        self._cancel_timer()
        self.state = "pending"
        self._timer = self.ctx.loop.call_later(self.delay, self._fire)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self.state = "idle"

    def _fire(self) -> None:
        self._timer = None
        self.state = "idle"
        if not self.closed:
            self.ctx.spawn(self.settled())

    async def settled(self) -> None:
        raise NotImplementedError

    def _close_handle(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def close(self) -> None:
        """Stop watching and forget this watcher."""
        self.closed = True
        self._cancel_timer()
        self._close_handle()
        self.ctx.forget_watcher(self)


class FileWatcher(_DebouncedWatcher):
    """Watches one source file and recompiles it when it settles."""

    delay = FILE_DEBOUNCE

    def __init__(self, ctx: "WatchContext", path: str, base: str, snapshot: FileSnapshot | None = None):
        super().__init__(ctx, path, base)
        self.snapshot = snapshot
        self._recovering = False

    def start(self) -> None:
        self._handle = self.ctx.backend.watch_file(self.path, self.on_event)
        logger.debug(f"Watching file {self.path}")

    def on_event(self, kind: EventKind) -> None:
        if self.closed:
            return
        if kind == "rename":
            if not self._recovering:
                self._recovering = True
                self._cancel_timer()
                self.ctx.spawn(self.recover())
            return
        if not self._recovering:
            self._arm()

    async def settled(self) -> None:
        """Debounce fired: re-read only if size or mtime moved."""
        if self.path not in self.ctx.registry:
            self.close()
            return
        try:
            st = await asyncio.to_thread(os.stat, self.path)
        except FileNotFoundError:
            await self.remove()
            return

        snapshot = FileSnapshot.from_stat(st)
        if snapshot == self.snapshot:
            logger.debug(f"Ignoring spurious change on {self.path}")
            return
        self.snapshot = snapshot
        await self._recompile()

    async def recover(self) -> None:
        """Handle a rename: drop the watch, let the filesystem settle, re-watch."""
        try:
            self._close_handle()
            await asyncio.sleep(RENAME_SETTLE)
            if self.closed:
                return
            if self.path not in self.ctx.registry:
                self.close()
                return
            try:
                st = await asyncio.to_thread(os.stat, self.path)
                self._handle = self.ctx.backend.watch_file(self.path, self.on_event)
            except FileNotFoundError:
                await self.remove()
                return
            self.snapshot = FileSnapshot.from_stat(st)
        finally:
            self._recovering = False
        await self._recompile()

    async def _recompile(self) -> None:
        try:
            content = await asyncio.to_thread(read_bytes, self.path)
        except FileNotFoundError:
            await self.remove()
            return
        if self.path not in self.ctx.registry:
            return
        await self.ctx.compiler.compile(self.path, content, self.base)

    async def remove(self) -> None:
        """Terminal transition: the file is gone for good."""
        self.close()
        if not self.ctx.registry.remove_source(self.path):
            return
        if self.ctx.options.join:
            self.ctx.compiler.schedule_join()
            return
        await self.ctx.compiler.remove_output(self.path, self.base)
        self.ctx.notifier.removed(self.path)


class DirectoryWatcher(_DebouncedWatcher):
    """Watches one directory and picks up entries added to it."""

    delay = DIRECTORY_SETTLE

    def start(self) -> None:
        self._handle = self.ctx.backend.watch_directory(self.path, self.on_event)
        logger.debug(f"Watching directory {self.path}")

    def on_event(self, kind: EventKind) -> None:
        if not self.closed:
            self._arm()

    async def settled(self) -> None:
        """Debounce fired: diff the listing against the registry."""
        registry = self.ctx.registry
        try:
            names = await asyncio.to_thread(os.listdir, self.path)
        except FileNotFoundError:
            self.remove_tree()
            return
        if self.closed:
            return

        for name in sorted(names):
            child = os.path.join(self.path, name)
            if registry.is_non_source(child) or registry.is_known(child):
                continue
            logger.debug(f"Discovered {child}")
            registry.register_path(child)
            self.ctx.spawn(self.ctx.walker.walk(child, top_level=False, base=self.base))

    def remove_tree(self) -> None:
        """The directory vanished: drop it and everything beneath it."""
        self.close()
        self.ctx.close_watchers_under(self.path)
        removed = self.ctx.registry.remove_subtree(self.path)
        if removed:
            logger.debug(f"Removed {len(removed)} source(s) under {self.path}")
            if self.ctx.options.join:
                self.ctx.compiler.schedule_join()
