"""CLI entry point for autocompile: watch sources and recompile on change."""

import argparse
import asyncio
import logging
import sys

from autocompile import __version__
from autocompile.controller import AutocompileController
from autocompile_core.config import load_config
from autocompile_core.notifier import ConsoleNotifier
from autocompile_core.walker import SourceNotFoundError


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="autocompile",
        description="Watch source files and recompile them whenever they change.",
        epilog="Examples:\n"
        "  autocompile src                 # Compile src/**/*.coffee beside each source\n"
        "  autocompile -o build src        # Mirror src into build/\n"
        "  autocompile -j app.coffee src   # Concatenate everything into build/app.js",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("paths", nargs="+", metavar="PATH", help="Source files or directories to watch")

    parser.add_argument("-o", "--output", metavar="DIR", help="Directory for compiled output")

    parser.add_argument(
        "-j",
        "--join",
        metavar="NAME",
        help="Concatenate all sources and compile them as NAME",
    )

    parser.add_argument(
        "-r",
        "--require",
        action="append",
        metavar="MODULE",
        help="Module to pre-load in the CoffeeScript compiler (repeatable)",
    )

    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help="Path to config file (default: autocompile.toml if present)",
    )

    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for autocompile CLI.

    Handles:
    - Argument parsing
    - Loading options and transformations
    - Running the watch session
    - Error handling and exit codes
    """
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    try:
        options, transforms = load_config(args.config, output=args.output, join=args.join, require=args.require)
        controller = AutocompileController(options, transforms, ConsoleNotifier())
        asyncio.run(controller.run(args.paths))

    except KeyboardInterrupt:
        # Gracefully handle Ctrl+C
        sys.exit(130)
    except SourceNotFoundError as e:
        print(f"File not found: {e.path}", file=sys.stderr)
        sys.exit(1)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
