"""Typed TypeScript bindings for Python commands, events and constants."""
from __future__ import annotations

from .builder import Builder
from .commands import CommandDescriptor, CommandTable, Dispatcher, collect_commands, command
from .config import ExportConfig
from .constants import ConstantTable
from .errors import (
    BindingError,
    CommandError,
    CommandFailed,
    DestinationError,
    EventNotMountedError,
    RenderInconsistencyError,
    TypeCollisionError,
    UnknownCommandError,
    UnknownEventError,
    UnsupportedTypeError,
    ValueEncodingError,
)
from .events import EventDescriptor, EventTable, collect_events, event
from .host import CommandRouter, mount_commands
from .type_table import TypeTable
from .typescript import RenderInput, render_typescript

__all__ = [
    "BindingError",
    "Builder",
    "CommandDescriptor",
    "CommandError",
    "CommandFailed",
    "CommandRouter",
    "CommandTable",
    "ConstantTable",
    "DestinationError",
    "Dispatcher",
    "EventDescriptor",
    "EventNotMountedError",
    "EventTable",
    "ExportConfig",
    "RenderInconsistencyError",
    "RenderInput",
    "TypeCollisionError",
    "TypeTable",
    "UnknownCommandError",
    "UnknownEventError",
    "UnsupportedTypeError",
    "ValueEncodingError",
    "collect_commands",
    "collect_events",
    "command",
    "event",
    "mount_commands",
    "render_typescript",
]
