"""Pluggable notification protocol for compile status lines.

The console implementation prints ``HH:MM:SS - compiled <path>`` lines.
Can be replaced with custom handlers for testing or embedding.
"""

import logging
import sys
import time
from typing import Protocol, TextIO


def timestamp() -> str:
    """Current local time as ``HH:MM:SS`` (24-hour)."""
    return time.strftime("%H:%M:%S")


class CompileNotifier(Protocol):
    """Protocol for status lines - host can provide custom implementation."""

    def compiled(self, path: str) -> None:
        """A source compiled successfully."""
        ...

    def removed(self, path: str) -> None:
        """A source disappeared and was dropped."""
        ...


class NoOpNotifier:
    """Silent notifier - default for embedded mode."""

    def compiled(self, path: str) -> None:
        """Do nothing."""
        pass

    def removed(self, path: str) -> None:
        """Do nothing."""
        pass


class LoggingNotifier:
    """Implementation using stdlib logging - for debugging/development."""

    def compiled(self, path: str) -> None:
        logging.info(f"compiled {path}")

    def removed(self, path: str) -> None:
        logging.info(f"removed {path}")


class ConsoleNotifier:
    """Timestamped status lines on stdout, as printed by the CLI."""

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream

    def _emit(self, message: str) -> None:
        stream = self.stream or sys.stdout
        print(f"{timestamp()} - {message}", file=stream, flush=True)

    def compiled(self, path: str) -> None:
        self._emit(f"compiled {path}")

    def removed(self, path: str) -> None:
        self._emit(f"removed {path}")
