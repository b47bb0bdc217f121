"""Pytest configuration and fixtures."""

import os
import sys
from pathlib import Path

import pytest

# Add src directory to Python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from autocompile_core.context import WatchContext  # noqa: E402
from autocompile_core.models import Options, TransformResult  # noqa: E402
from autocompile_core.transforms import CommandTransformation, TransformRegistry, report_error  # noqa: E402

UPPER_SCRIPT = (
    "import sys\n"
    "data = sys.stdin.buffer.read()\n"
    "if b'!!' in data:\n"
    "    sys.stderr.write('syntax error')\n"
    "    sys.exit(1)\n"
    "sys.stdout.buffer.write(data.upper())\n"
)


class FakeHandle:
    """Fake watch handle."""

    def __init__(self, table, path, callback):
        self.table = table
        self.path = path
        self.callback = callback
        self.closed = False

    def close(self):
        self.closed = True
        if self.table.get(self.path) is self.callback:
            del self.table[self.path]


class FakeBackend:
    """In-memory watch backend; tests inject events with emit()."""

    def __init__(self):
        self.files = {}
        self.dirs = {}
        self.started = False
        self.stopped = False

    def watch_file(self, path, callback):
        if not os.path.isdir(os.path.dirname(os.path.abspath(path))):
            raise FileNotFoundError(path)
        self.files[path] = callback
        return FakeHandle(self.files, path, callback)

    def watch_directory(self, path, callback):
        if not os.path.isdir(path):
            raise FileNotFoundError(path)
        self.dirs[path] = callback
        return FakeHandle(self.dirs, path, callback)

    def emit(self, path, kind="change"):
        path = str(path)
        callback = self.files.get(path) or self.dirs.get(path)
        assert callback is not None, f"{path} is not watched"
        callback(kind)

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True


class RecordingTransformation:
    """Transformation that upper-cases content and records every call."""

    def __init__(self, suffix=".js"):
        self.suffix = suffix
        self.calls = []

    async def invoke(self, content, input_path, output_base):
        self.calls.append((content, input_path, output_base))
        if b"!!" in content:
            report_error(input_path, "syntax error")
            return TransformResult(ok=False, error="syntax error")
        target = output_base + self.suffix
        with open(target, "wb") as f:
            f.write(content.upper())
        return TransformResult(ok=True, output_path=target)


class RecordingNotifier:
    """Notifier that collects status lines."""

    def __init__(self):
        self.compiled_paths = []
        self.removed_paths = []

    def compiled(self, path):
        self.compiled_paths.append(path)

    def removed(self, path):
        self.removed_paths.append(path)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def coffee():
    return RecordingTransformation(".js")


@pytest.fixture
def transforms(coffee):
    return TransformRegistry({".coffee": coffee, ".less": RecordingTransformation(".css")})


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def make_context(backend, transforms, notifier):
    """Factory for a WatchContext; call from inside a running loop."""

    def factory(**options):
        return WatchContext(Options(**options), transforms, backend, notifier)

    return factory


@pytest.fixture
def upper_command():
    """External command that upper-cases stdin and rejects '!!'."""
    return [sys.executable, "-c", UPPER_SCRIPT]


@pytest.fixture
def upper_transform(upper_command):
    return CommandTransformation(upper_command, ".js")
