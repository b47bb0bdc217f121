"""Watch backend implementation using watchdog."""

import asyncio
import logging
import os

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.api import ObservedWatch

from autocompile_core.watchers import EventCallback, EventKind

logger = logging.getLogger(__name__)

_ROUTED_EVENTS = {EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED, EVENT_TYPE_DELETED, EVENT_TYPE_MOVED}


class _EventRouter(FileSystemEventHandler):
    """Forwards raw watchdog events to the hub on the event loop thread."""

    def __init__(self, hub: "ObserverHub"):
        self.hub = hub

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type not in _ROUTED_EVENTS:
            return

        kind: EventKind = "rename" if event.event_type in (EVENT_TYPE_DELETED, EVENT_TYPE_MOVED) else "change"
        paths = [event.src_path]
        if getattr(event, "dest_path", ""):
            paths.append(event.dest_path)

        for path in paths:
            try:
                self.hub.loop.call_soon_threadsafe(self.hub.dispatch, kind, os.fsdecode(path))
            except RuntimeError:
                # Loop already closed during shutdown
                return


class _Subscription:
    """Handle returned by ObserverHub.watch_*."""

    def __init__(self, hub: "ObserverHub", table: dict, path: str, directory: str, callback: EventCallback):
        self.hub = hub
        self.table = table
        self.path = path
        self.directory = directory
        self.callback = callback
        self.closed = False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        callbacks = self.table.get(self.path, [])
        if self.callback in callbacks:
            callbacks.remove(self.callback)
        if not callbacks:
            self.table.pop(self.path, None)
        self.hub._release(self.directory)


class ObserverHub:
    """Shares one watchdog Observer among every watched path.

    Each watched path schedules a non-recursive watch on its directory
    (a file's parent, or the directory itself). Schedules are reference
    counted. Every raw event is routed to the file subscriber of the exact
    path, the directory subscriber of the exact path, and the directory
    subscriber of its parent.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop):
        """Initialize hub.

        Args:
            loop: Event loop that receives every callback
        """
        self.loop = loop
        self.observer = Observer()
        self._router = _EventRouter(self)
        self._schedules: dict[str, tuple[ObservedWatch, int]] = {}
        self._file_subs: dict[str, list[EventCallback]] = {}
        self._dir_subs: dict[str, list[EventCallback]] = {}

    def _acquire(self, directory: str) -> None:
        if directory in self._schedules:
            watch, count = self._schedules[directory]
            self._schedules[directory] = (watch, count + 1)
            return
        if not os.path.isdir(directory):
            raise FileNotFoundError(f"No such directory: {directory}")
        watch = self.observer.schedule(self._router, directory, recursive=False)
        self._schedules[directory] = (watch, 1)
        logger.debug(f"Scheduled OS watch on {directory}")

    def _release(self, directory: str) -> None:
        if directory not in self._schedules:
            return
        watch, count = self._schedules[directory]
        if count > 1:
            self._schedules[directory] = (watch, count - 1)
            return
        del self._schedules[directory]
        try:
            self.observer.unschedule(watch)
        except KeyError:
            pass
        logger.debug(f"Unscheduled OS watch on {directory}")

    def _subscribe(self, table: dict, path: str, directory: str, callback: EventCallback) -> _Subscription:
        self._acquire(directory)
        table.setdefault(path, []).append(callback)
        return _Subscription(self, table, path, directory, callback)

    def watch_file(self, path: str, callback: EventCallback) -> _Subscription:
        path = os.path.abspath(path)
        return self._subscribe(self._file_subs, path, os.path.dirname(path), callback)

    def watch_directory(self, path: str, callback: EventCallback) -> _Subscription:
        path = os.path.abspath(path)
        return self._subscribe(self._dir_subs, path, path, callback)

    def dispatch(self, kind: EventKind, path: str) -> None:
        """Route one raw event to its subscribers (loop thread only)."""
        path = os.path.abspath(path)
        targets = [
            *self._file_subs.get(path, []),
            *self._dir_subs.get(path, []),
            *self._dir_subs.get(os.path.dirname(path), []),
        ]
        for callback in targets:
            callback(kind)

    def start(self) -> None:
        """Start the observer thread."""
        if not self.observer.is_alive():
            self.observer.start()
            logger.info("Started filesystem observer")

    def stop(self) -> None:
        """Stop the observer thread and forget every subscription."""
        if self.observer.is_alive():
            self.observer.stop()
            self.observer.join(timeout=2.0)
            logger.info("Stopped filesystem observer")
        self._schedules.clear()
        self._file_subs.clear()
        self._dir_subs.clear()
