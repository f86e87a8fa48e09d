#!/usr/bin/env python3
from __future__ import annotations

import argparse
import logging
import sys

from .commands.export import register_export_command, run_export_command
from .commands.watch import register_watch_command, run_watch_command


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tidebind", description="Export typed TypeScript bindings for Python commands.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    register_export_command(subparsers)
    register_watch_command(subparsers)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "export":
        try:
            return run_export_command(args)
        except Exception as exc:
            print(f"tidebind: {exc}", file=sys.stderr)
            return 1
    if args.command == "watch":
        try:
            return run_watch_command(args)
        except KeyboardInterrupt:
            return 0
        except Exception as exc:
            print(f"tidebind: {exc}", file=sys.stderr)
            return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
