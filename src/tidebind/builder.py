"""Fluent builder collecting commands, events, types and constants for export."""
from __future__ import annotations

import logging
import os
import shlex
import stat
import subprocess
import tempfile
import typing as t
from pathlib import Path

from cherrypy.process import wspbus

from .commands import CommandDescriptor, CommandTable, Dispatcher, ExportedCommand, Handler
from .config import ExportConfig
from .constants import ConstantTable
from .datatype import NamedDataType, TypeId
from .errors import DestinationError
from .events import EventDescriptor, EventTable, ExportedEvent
from .type_table import TypeTable
from .typescript import RenderInput, render_typescript

logger = logging.getLogger(__name__)


class Builder:
    """
    Collects everything that ends up in the bindings file.

    ``with_commands`` and ``with_events`` replace the previous set on each
    call; ``with_type`` and ``with_constant`` accumulate. Every method
    returns the builder so calls chain.
    """

    def __init__(self) -> None:
        self.type_table = TypeTable()
        self.command_table = CommandTable()
        self.event_table = EventTable()
        self.constant_table = ConstantTable(self.type_table)
        self.extra_types: list[t.Any] = []
        self.namespace: str | None = None

    # ---- setup

    def with_commands(self, *commands: CommandTable | CommandDescriptor | Handler) -> "Builder":
        if len(commands) == 1 and isinstance(commands[0], CommandTable):
            self.command_table = commands[0]
        else:
            self.command_table = CommandTable(commands)
        return self

    def with_events(self, *events: EventTable | EventDescriptor | type) -> "Builder":
        if len(events) == 1 and isinstance(events[0], EventTable):
            self.event_table = events[0]
        else:
            self.event_table = EventTable(events)
        return self

    def with_type(self, hint: t.Any) -> "Builder":
        """Export ``hint`` even if no command or event mentions it."""
        self.type_table.register(hint)
        self.extra_types.append(hint)
        return self

    def with_constant(self, name: str, value: t.Any, hint: t.Any = None) -> "Builder":
        self.constant_table.insert(name, value, hint)
        return self

    def with_plugin_namespace(self, name: str | None) -> "Builder":
        """Prefix every command and event wire name with ``<name>:``."""
        self.namespace = name or None
        return self

    # ---- runtime side

    def invoke_handler(self) -> Dispatcher:
        """Snapshot the commands into a dispatcher keyed by wire name."""
        return self.command_table.dispatcher(self.namespace)

    def mount_events(self, bus: wspbus.Bus) -> list[str]:
        return self.event_table.mount(bus, self.namespace)

    def emit(self, bus: wspbus.Bus, name: str, payload: t.Any) -> None:
        self.event_table.emit(bus, name, payload, namespace=self.namespace)

    # ---- export side

    def render_input(self) -> RenderInput:
        """Translate commands and events, then resolve the closure of every named type in use."""
        type_table = self.type_table.copy()
        exported_commands: list[ExportedCommand] = self.command_table.export_types(type_table)
        exported_events: list[ExportedEvent] = self.event_table.export_types(type_table)
        constants = self.constant_table.entries()

        roots: list[TypeId] = []
        for exported_command in exported_commands:
            for parameter in exported_command.params:
                roots.extend(parameter.shape.references())
            roots.extend(exported_command.returns.references())
            if exported_command.error is not None:
                roots.extend(exported_command.error.references())
        for exported_event in exported_events:
            roots.extend(exported_event.payload.references())
        for hint in self.extra_types:
            roots.append(type_table.register(hint))
        for constant in constants:
            roots.extend(constant.shape.references())

        closure = type_table.resolve_closure(roots)
        logger.debug("resolved %d type(s) from %d root(s)", len(closure), len(roots))

        return RenderInput(
            commands=tuple(exported_commands),
            events=tuple(exported_events),
            types=tuple(t.cast(NamedDataType, type_table.get(type_id)) for type_id in closure),
            constants=tuple(constants),
            namespace=self.namespace,
        )

    def render(self, config: ExportConfig | None = None) -> str:
        return render_typescript(self.render_input(), config or ExportConfig())

    def export(self, config: ExportConfig) -> Path:
        """
        Render and write the bindings to ``config.output``.

        The file is replaced atomically: a failed export leaves any previous
        file untouched. The formatter, if configured, is best effort.
        """
        if config.output is None:
            raise DestinationError(None, "no output path configured")

        output_path = Path(config.output)
        source = self.render(config)
        write_atomically(output_path, source)
        logger.debug("wrote %d byte(s) to %s", len(source.encode("utf-8")), output_path)

        if config.formatter:
            run_formatter(config.formatter, output_path)
        return output_path


def write_atomically(output_path: Path, source: str) -> None:
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise DestinationError(output_path, str(exc)) from exc

    temp_name: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=output_path.parent,
            prefix=f".{output_path.name}.",
            suffix=".tmp",
            delete=False,
        ) as handle:
            temp_name = handle.name
            handle.write(source)
        os.chmod(temp_name, output_mode(output_path))
        os.replace(temp_name, output_path)
    except OSError as exc:
        if temp_name is not None and os.path.exists(temp_name):
            os.unlink(temp_name)
        raise DestinationError(output_path, str(exc)) from exc


def output_mode(output_path: Path) -> int:
    """Mode for the replacement file: the existing file's, else 0o666 minus the umask."""
    try:
        return stat.S_IMODE(output_path.stat().st_mode)
    except FileNotFoundError:
        pass
    # os.umask can only be read by setting it
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def run_formatter(formatter: str, output_path: Path) -> None:
    """Run ``formatter <file>``; failures are logged, never raised."""
    try:
        completed = subprocess.run(
            [*shlex.split(formatter), str(output_path)],
            check=False,
            capture_output=True,
            text=True,
        )
    except OSError as exc:
        logger.warning("formatter %r could not be started: %s", formatter, exc)
        return

    if completed.returncode != 0:
        logger.warning(
            "formatter %r exited with code %d: %s",
            formatter,
            completed.returncode,
            (completed.stderr or completed.stdout).strip(),
        )
