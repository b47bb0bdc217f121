"""autocompile-core: Source watching and recompilation engine."""

__version__ = "0.1.0"

# Models
from autocompile_core.models import FileSnapshot, Options, TransformResult

# Config
from autocompile_core.config import load_config

# Engine
from autocompile_core.compiler import CompilationDriver
from autocompile_core.context import WatchContext
from autocompile_core.notifier import CompileNotifier, ConsoleNotifier, LoggingNotifier, NoOpNotifier
from autocompile_core.paths import output_path
from autocompile_core.registry import SourceRegistry
from autocompile_core.transforms import CommandTransformation, TransformRegistry, default_transforms
from autocompile_core.walker import SourceNotFoundError, Walker

__all__ = [
    "__version__",
    # Models
    "FileSnapshot",
    "Options",
    "TransformResult",
    # Config
    "load_config",
    # Engine
    "CompilationDriver",
    "WatchContext",
    "SourceRegistry",
    "Walker",
    "SourceNotFoundError",
    "output_path",
    # Transformations
    "CommandTransformation",
    "TransformRegistry",
    "default_transforms",
    # Notifiers
    "CompileNotifier",
    "ConsoleNotifier",
    "LoggingNotifier",
    "NoOpNotifier",
]
