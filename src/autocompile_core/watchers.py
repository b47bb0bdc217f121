"""Abstract watch backend protocol for OS filesystem observation."""

from collections.abc import Callable
from typing import Literal, Protocol

EventKind = Literal["change", "rename"]
"""``change`` for content/metadata updates, ``rename`` for moves and deletes."""

EventCallback = Callable[[EventKind], None]


class WatchHandle(Protocol):
    """An active watch on one path."""

    def close(self) -> None:
        """Stop delivering events for this path."""
        ...


class WatchBackend(Protocol):
    """Protocol for filesystem observation implementations.

    Callbacks are always invoked on the event loop thread.
    """

    def watch_file(self, path: str, callback: EventCallback) -> WatchHandle:
        """Watch a single file. Raises FileNotFoundError if it cannot be watched."""
        ...

    def watch_directory(self, path: str, callback: EventCallback) -> WatchHandle:
        """Watch a directory's immediate entries."""
        ...

    def start(self) -> None:
        """Start watching."""
        ...

    def stop(self) -> None:
        """Stop watching."""
        ...
