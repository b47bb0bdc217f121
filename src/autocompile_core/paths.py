"""Output path resolution."""

import os


def output_path(source: str, base: str, output_dir: str | None = None) -> str:
    """Compute where the compiled form of ``source`` is written.

    The returned path carries no extension; the transformation appends its
    own suffix. When ``output_dir`` is set, the source's directory relative
    to ``base`` is mirrored beneath it. Pure function, no I/O.

    Args:
        source: Source file path
        base: Root the relative directory structure is computed from
        output_dir: Optional output directory

    Returns:
        Output path without extension
    """
    src_dir = os.path.dirname(source)
    base_dir = src_dir if base == "." else src_dir[len(base):]
    if output_dir:
        directory = os.path.join(output_dir, base_dir.lstrip(os.sep))
    else:
        directory = src_dir
    stem = os.path.splitext(os.path.basename(source))[0]
    return os.path.join(directory, stem)


def is_within(path: str, directory: str) -> bool:
    """Return True if ``path`` is ``directory`` itself or lies beneath it."""
    if path == directory:
        return True
    prefix = directory if directory.endswith(os.sep) else directory + os.sep
    return path.startswith(prefix)
