"""Transformation registry - external compilers keyed by file extension."""

import asyncio
import logging
import sys
from typing import Protocol

from autocompile_core.models import TransformResult

logger = logging.getLogger(__name__)


class Transformation(Protocol):
    """Protocol for a source-to-output transformation."""

    suffix: str
    """Suffix appended to the extensionless output path."""

    async def invoke(self, content: bytes, input_path: str, output_base: str) -> TransformResult:
        """Compile ``content`` and write ``output_base + suffix``."""
        ...


def report_error(input_path: str, message: str) -> None:
    """Write a transformation error in ``<path>:\\t<message>`` form to stderr."""
    sys.stderr.write(f"{input_path}:\t{message}\n")
    sys.stderr.flush()


class CommandTransformation:
    """Runs an external command with the source on stdin, output on stdout.

    ``{input}`` anywhere in the command is replaced by the source path.
    A missing tool or non-zero exit is reported on stderr and returned as a
    failed result; it never raises.
    """

    def __init__(self, command: list[str], suffix: str):
        self.command = list(command)
        self.suffix = suffix

    def __repr__(self) -> str:
        return f"CommandTransformation({self.command!r}, {self.suffix!r})"

    def argv(self, input_path: str) -> list[str]:
        return [arg.replace("{input}", input_path) for arg in self.command]

    async def invoke(self, content: bytes, input_path: str, output_base: str) -> TransformResult:
        argv = self.argv(input_path)
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            message = f"cannot run {argv[0]}: {e.strerror or e}"
            report_error(input_path, message)
            return TransformResult(ok=False, error=message)

        stdout, stderr = await proc.communicate(content)
        if proc.returncode != 0:
            message = stderr.decode(errors="replace").strip() or f"{argv[0]} exited with status {proc.returncode}"
            report_error(input_path, message)
            return TransformResult(ok=False, error=message)

        target = output_base + self.suffix
        await asyncio.to_thread(_write_bytes, target, stdout)
        logger.debug(f"Wrote {len(stdout)} bytes to {target}")
        return TransformResult(ok=True, output_path=target)


def _write_bytes(path: str, data: bytes) -> None:
    with open(path, "wb") as f:
        f.write(data)


class TransformRegistry:
    """Fixed mapping from extension (``.coffee``) to a transformation."""

    def __init__(self, transforms: dict[str, Transformation] | None = None):
        self._transforms: dict[str, Transformation] = dict(transforms or {})

    def __contains__(self, extension: str) -> bool:
        return extension in self._transforms

    def register(self, extension: str, transformation: Transformation) -> None:
        if not extension.startswith("."):
            extension = "." + extension
        self._transforms[extension] = transformation

    def lookup(self, extension: str) -> Transformation | None:
        """Return the transformation for ``extension`` or None."""
        return self._transforms.get(extension)

    @property
    def extensions(self) -> list[str]:
        return sorted(self._transforms)


def default_transforms(require: list[str] | None = None) -> TransformRegistry:
    """Build the registry of built-in compilers.

    Args:
        require: Modules the CoffeeScript compiler pre-loads

    Returns:
        TransformRegistry with the built-in extensions
    """
    coffee = ["coffee"]
    for module in require or []:
        coffee += ["--require", module]
    coffee += ["--stdio", "--compile"]

    registry = TransformRegistry()
    registry.register(".coffee", CommandTransformation(coffee, ".js"))
    registry.register(".litcoffee", CommandTransformation(coffee + ["--literate"], ".js"))
    registry.register(".less", CommandTransformation(["lessc", "-"], ".css"))
    registry.register(".styl", CommandTransformation(["stylus"], ".css"))
    registry.register(".pug", CommandTransformation(["pug"], ".html"))
    registry.register(".jade", CommandTransformation(["pug"], ".html"))
    registry.register(".scss", CommandTransformation(["sass", "--stdin"], ".css"))
    registry.register(".sass", CommandTransformation(["sass", "--stdin", "--indented"], ".css"))
    registry.register(".ts", CommandTransformation(["esbuild", "--loader=ts"], ".js"))
    return registry
