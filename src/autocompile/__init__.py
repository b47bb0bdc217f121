"""autocompile: Watch source trees and recompile changed files."""

__version__ = "0.1.0"

# Public API
from autocompile.controller import AutocompileController

__all__ = [
    "__version__",
    "AutocompileController",
]
