"""Render a builder's bindings and write them to disk."""
from __future__ import annotations

import argparse
import importlib
import importlib.util
import os
import sys
import typing as t
from pathlib import Path

from ...builder import Builder
from ...config import ExportConfig


def add_export_options(parser: argparse.ArgumentParser) -> None:
    """Options shared by `export` and `watch`."""
    parser.add_argument(
        "target",
        help="Builder to export: `pkg.module:attr` or `path/to/file.py:attr` (attr may be a zero-argument factory).",
    )
    parser.add_argument("--out", default=None, help="Output .ts file (default: $TIDEBIND_OUTPUT).")
    parser.add_argument("--namespace", default=None, help="Plugin namespace prefixed to command and event names.")
    parser.add_argument("--runtime-module", default=None, help="Module the bindings import invoke/listen/once from.")
    parser.add_argument("--no-format", action="store_true", help="Skip the configured formatter.")


def register_export_command(subparsers: argparse._SubParsersAction) -> None:
    """Register the `export` subcommand and its CLI arguments."""
    parser = subparsers.add_parser(
        "export",
        help="Write the TypeScript bindings for a builder.",
    )
    add_export_options(parser)


def export_argv(args: argparse.Namespace) -> list[str]:
    """Rebuild the `export` arguments, so `watch` can re-run them in a subprocess."""
    argv = ["export", args.target]
    if args.out:
        argv += ["--out", args.out]
    if args.namespace:
        argv += ["--namespace", args.namespace]
    if args.runtime_module:
        argv += ["--runtime-module", args.runtime_module]
    if args.no_format:
        argv.append("--no-format")
    return argv


def config_from_args(args: argparse.Namespace) -> ExportConfig:
    """Environment and .env values, overridden by whatever flags were given."""
    overrides: dict[str, t.Any] = {}
    if args.out:
        overrides["output"] = Path(args.out)
    if args.runtime_module:
        overrides["runtime_module"] = args.runtime_module
    if args.no_format:
        overrides["formatter"] = None
    return ExportConfig(**overrides)


def _import_target_module(module_ref: str):
    if module_ref.endswith(".py") or os.sep in module_ref or "/" in module_ref:
        path = Path(module_ref).resolve()
        if not path.exists():
            raise FileNotFoundError(f"no such file: {path}")

        module_name = f"tidebind_target_{path.stem}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise RuntimeError(f"Failed to load module from {path}")

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        spec.loader.exec_module(module)
        return module

    cwd = str(Path.cwd())
    if cwd not in sys.path:
        sys.path.insert(0, cwd)
    return importlib.import_module(module_ref)


def load_builder(target: str) -> Builder:
    """Resolve `module:attr` to a Builder, calling attr if it is a factory."""
    module_ref, sep, attr = target.rpartition(":")
    if not sep or not module_ref or not attr:
        raise ValueError(f"target must look like `module:attr`, got {target!r}")

    module = _import_target_module(module_ref)
    try:
        obj = getattr(module, attr)
    except AttributeError:
        raise ValueError(f"{module_ref} has no attribute {attr!r}") from None

    if not isinstance(obj, Builder) and callable(obj):
        obj = obj()
    if not isinstance(obj, Builder):
        raise TypeError(f"{target} is not a Builder (got {type(obj).__name__})")
    return obj


def run_export_command(args: argparse.Namespace) -> int:
    """Load the target builder, apply CLI overrides and export."""
    builder = load_builder(args.target)
    if args.namespace:
        builder.with_plugin_namespace(args.namespace)

    config = config_from_args(args)
    output_path = builder.export(config)
    print(f"[tidebind] OK -> {output_path}")
    return 0
