"""
extctl command line.

Usage:
    extctl --list-extensions
    extctl --install-extension ms-python.python --install-extension ./my.vsix
    extctl --uninstall-extension ms-python.python

/ Linea de comandos de extctl.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from extctl import __version__
from extctl.core.config import ExtctlConfig
from extctl.core.errors import ExtctlError
from extctl.main import main as run_main

logger = logging.getLogger("extctl.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="extctl",
        description="List, install and uninstall extensions.",
    )
    parser.add_argument("--version", action="version", version=f"extctl {__version__}")

    commands = parser.add_mutually_exclusive_group()
    commands.add_argument(
        "--list-extensions",
        action="store_true",
        help="List the installed extensions.",
    )
    commands.add_argument(
        "--install-extension",
        action="append",
        metavar="ID_OR_PATH",
        help="Install an extension by id (publisher.name) or from a .vsix file. Can be repeated.",
    )
    commands.add_argument(
        "--uninstall-extension",
        action="append",
        metavar="ID",
        help="Uninstall an extension by id (publisher.name). Can be repeated.",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Config file (default: ~/.extctl/config.json).",
    )
    parser.add_argument(
        "--extensions-dir",
        type=Path,
        default=None,
        help="Override the directory extensions are installed into.",
    )
    parser.add_argument(
        "--gallery-url",
        default=None,
        help="Override the marketplace service URL.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Verbose logs (stderr).",
    )
    return parser


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    _setup_logging(args.verbose)

    config = ExtctlConfig.load(args.config)
    if args.extensions_dir is not None:
        config.extensions_dir = str(args.extensions_dir)
    if args.gallery_url:
        config.gallery.service_url = args.gallery_url

    try:
        asyncio.run(run_main(args, config))
    except (ExtctlError, OSError) as e:
        logger.debug("Command failed", exc_info=True)
        print(str(e), file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
