"""Command-line interface: ``python -m ragline.cli <command>``."""

from ragline.cli.main import build_parser, main

__all__ = ["build_parser", "main"]
