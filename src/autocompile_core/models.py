"""Shared data models for autocompile_core."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Options:
    """Read-only option snapshot established once at startup."""

    output_dir: str | None = None
    """Directory that mirrors the source tree (None writes beside each source)."""

    join: str | None = None
    """Name of the single joined output (None compiles each file separately)."""

    require: list[str] = field(default_factory=list)
    """Modules pre-loaded by the CoffeeScript compiler."""

    default_extension: str = ".coffee"
    """Extension tried once for a missing top-level path, and the fallback
    transformation for explicitly named files."""


@dataclass(frozen=True)
class FileSnapshot:
    """Last observed (size, mtime) pair of a watched file."""

    size: int
    mtime_ns: int

    @classmethod
    def from_stat(cls, st) -> "FileSnapshot":
        return cls(size=st.st_size, mtime_ns=st.st_mtime_ns)


@dataclass
class TransformResult:
    """Outcome of one transformation run."""

    ok: bool
    """Whether the output artifact was written."""

    output_path: str | None = None
    """Path of the written artifact (None on failure)."""

    error: str | None = None
    """Error text reported by the external compiler."""
