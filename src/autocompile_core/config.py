"""Configuration parsing for autocompile."""

import logging
from pathlib import Path

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

from autocompile_core.models import Options
from autocompile_core.transforms import CommandTransformation, TransformRegistry, default_transforms

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "autocompile.toml"


def read_config(path: str | Path | None) -> dict:
    """Read the raw TOML table.

    A missing default config is treated as empty; a missing explicit one
    is an error.

    Args:
        path: Explicit config path, or None for ``autocompile.toml`` in the cwd

    Returns:
        Parsed TOML as a dict
    """
    explicit = path is not None
    path = Path(path) if explicit else Path(DEFAULT_CONFIG_NAME)

    if not path.exists():
        if explicit:
            raise FileNotFoundError(f"Config file not found: {path}")
        return {}

    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except Exception as e:
        raise ValueError(f"Failed to parse config file {path}: {e}") from e

    logger.debug(f"Loaded config from {path}")
    return raw


def load_config(
    path: str | Path | None = None,
    output: str | None = None,
    join: str | None = None,
    require: list[str] | None = None,
) -> tuple[Options, TransformRegistry]:
    """Load options and transformations.

    Explicit arguments override ``[settings]`` values from the file.

    Returns:
        Tuple of (options, transforms)
    """
    raw = read_config(path)
    settings = raw.get("settings", {})

    options = Options(
        output_dir=output if output is not None else settings.get("output"),
        join=join if join is not None else settings.get("join"),
        require=list(require) if require else list(settings.get("require", [])),
        default_extension=settings.get("default_extension", ".coffee"),
    )

    transforms = default_transforms(options.require)
    for entry in raw.get("transform", []):
        try:
            transforms.register(
                entry["extension"],
                CommandTransformation(entry["command"], entry["suffix"]),
            )
        except KeyError as e:
            raise ValueError(f"[[transform]] entry is missing {e}") from e

    return options, transforms
