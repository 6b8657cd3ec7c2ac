#!/usr/bin/env python3
"""
Command line interface for house number detection on map scans.

Usage:
    addrslips detect <image>                  # Detect and read house numbers
    addrslips detect <image> --skip-ocr       # Count white circles only
    addrslips detect <image> --debug-out DIR  # Save every intermediate image
    addrslips detect <image> --json           # Print detections as JSON
    addrslips detect <image> --sequential     # Use the sequential runner
"""

import argparse
import logging
import sys

from logging_utils import configure_logging, add_logging_args
from cli.detect import add_detect_subparser

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="addrslips",
        description="Address slips - find house numbers marked on scanned maps",
    )
    add_logging_args(parser)
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    add_detect_subparser(subparsers)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level, args.verbose, args.quiet)

    if args.command is None:
        parser.print_help()
        return 1

    cmd = getattr(args, "_cmd", None)
    if cmd is None:
        parser.print_help()
        return 1
    return cmd(args)


if __name__ == "__main__":
    sys.exit(main())
