"""Re-export bindings whenever a watched Python source changes."""
from __future__ import annotations

import argparse
import subprocess
import sys
import time
from pathlib import Path

from watchfiles import DefaultFilter, watch

from .export import add_export_options, export_argv


class PythonSourceFilter(DefaultFilter):
    def __call__(self, change, path: str) -> bool:
        p = path.replace("\\", "/")
        if not super().__call__(change, path):
            return False
        return p.endswith(".py")


def register_watch_command(subparsers: argparse._SubParsersAction) -> None:
    """Register the `watch` subcommand and its CLI arguments."""
    parser = subparsers.add_parser(
        "watch",
        help="Export once, then again on every change to a watched .py file.",
    )
    add_export_options(parser)
    parser.add_argument(
        "--path",
        action="append",
        default=None,
        help="Directory to watch (repeatable, default: current directory).",
    )


def watch_dirs_from_args(args: argparse.Namespace) -> list[Path]:
    return [Path(p).resolve() for p in (args.path or ["."])]


def run_export(args: argparse.Namespace) -> int:
    """Run one export in a fresh interpreter, so edited modules are re-imported."""
    print("\n[tidebind] Exporting bindings...")
    cmd = [sys.executable, "-m", "tidebind", *export_argv(args)]
    r = subprocess.run(cmd, check=False)
    if r.returncode != 0:
        print(f"[tidebind] FAILED (exit {r.returncode})")
    return r.returncode


def run_watch_command(args: argparse.Namespace) -> int:
    """Export, then keep exporting on change until interrupted."""
    watch_dirs = [d for d in watch_dirs_from_args(args) if d.exists()]
    if not watch_dirs:
        print("[tidebind] ERROR: watch dirs missing.")
        return 2

    run_export(args)

    print("[tidebind] Watching:")
    for d in watch_dirs:
        print("  -", d)

    for changes in watch(*map(str, watch_dirs), watch_filter=PythonSourceFilter(), debounce=300):
        changed = sorted({p.replace("\\", "/") for (_c, p) in changes})
        print("\n[tidebind] Change detected:")
        for p in changed:
            print("  -", p)

        run_export(args)
        time.sleep(0.05)

    return 0
