"""Command descriptors, the command table and its read-only dispatcher."""
from __future__ import annotations

import asyncio
import dataclasses
import inspect
import logging
import typing as t
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

import typing_extensions as t_ext

from .codec import ValueCodec
from .datatype import DataType
from .errors import CommandError, CommandFailed, UnknownCommandError, UnsupportedTypeError, ValueEncodingError
from .naming import qualify
from .type_table import TypeTable

logger = logging.getLogger(__name__)

COMMAND_ATTRIBUTE = "__tidebind_command__"

Handler = t.Callable[..., t.Any]


# ============================================================
# Descriptors
# ============================================================

@dataclass(frozen=True)
class Parameter:
    """One declared command parameter."""
    name: str
    hint: t.Any
    kind: t.Any = inspect.Parameter.POSITIONAL_OR_KEYWORD
    has_default: bool = False
    default: t.Any = None
    codec: ValueCodec | None = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class CommandDescriptor:
    """Static metadata of a command plus its opaque handler."""
    name: str
    handler: Handler = field(compare=False, repr=False)
    params: tuple[Parameter, ...] = ()
    returns: t.Any = None
    error: t.Any = None
    docs: str = ""
    result_codec: ValueCodec | None = field(default=None, compare=False, repr=False)
    error_codec: ValueCodec | None = field(default=None, compare=False, repr=False)

    def invoke(self, raw_args: t.Any, *, wire_name: str | None = None) -> t.Any:
        """Decode arguments, run the handler and encode its result."""
        wire_name = wire_name or self.name
        positional_args, keyword_args = self._bind(raw_args, wire_name)
        try:
            result = self.handler(*positional_args, **keyword_args)
            if inspect.isawaitable(result):
                result = asyncio.run(_await(result))
        except CommandError as exc:
            self._raise_failed(exc, wire_name)
        return self._encode_result(result, wire_name)

    async def invoke_async(self, raw_args: t.Any, *, wire_name: str | None = None) -> t.Any:
        """Same as :meth:`invoke`, awaiting coroutine handlers on the running loop."""
        wire_name = wire_name or self.name
        positional_args, keyword_args = self._bind(raw_args, wire_name)
        try:
            result = self.handler(*positional_args, **keyword_args)
            if inspect.isawaitable(result):
                result = await result
        except CommandError as exc:
            self._raise_failed(exc, wire_name)
        return self._encode_result(result, wire_name)

    def _bind(self, raw_args: t.Any, wire_name: str) -> tuple[list[t.Any], dict[str, t.Any]]:
        if raw_args is None:
            raw_args = {}
        if not isinstance(raw_args, Mapping):
            raise ValueEncodingError(wire_name, "arguments must be a JSON object")

        positional_args: list[t.Any] = []
        keyword_args: dict[str, t.Any] = {}
        for parameter in self.params:
            argument_name = f"{wire_name}.{parameter.name}"
            if parameter.name in raw_args:
                assert parameter.codec is not None
                value = parameter.codec.decode(argument_name, raw_args[parameter.name])
            elif parameter.has_default:
                value = parameter.default
            else:
                raise ValueEncodingError(argument_name, "missing argument")

            if parameter.kind is inspect.Parameter.KEYWORD_ONLY:
                keyword_args[parameter.name] = value
            else:
                positional_args.append(value)
        return positional_args, keyword_args

    def _raise_failed(self, exc: CommandError, wire_name: str) -> t.NoReturn:
        if self.error_codec is None:
            raise exc
        raise CommandFailed(wire_name, self.error_codec.encode(f"{wire_name} error", exc.payload)) from exc

    def _encode_result(self, result: t.Any, wire_name: str) -> t.Any:
        assert self.result_codec is not None
        return self.result_codec.encode(f"{wire_name} result", result)


async def _await(awaitable: t.Awaitable[t.Any]) -> t.Any:
    return await awaitable


def describe_command(
    handler: Handler,
    *,
    name: str | None = None,
    error: t.Any = None,
) -> CommandDescriptor:
    """Build a descriptor from a handler's signature and type hints."""
    command_name = name or handler.__name__
    try:
        hints = t_ext.get_type_hints(handler, include_extras=True)
    except NameError as exc:
        raise UnsupportedTypeError(exc, f"command {command_name}") from exc

    params: list[Parameter] = []
    for parameter in inspect.signature(handler).parameters.values():
        if parameter.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            raise UnsupportedTypeError(parameter, f"command {command_name}: *args/**kwargs are not supported")
        if parameter.name not in hints:
            raise UnsupportedTypeError(parameter, f"command {command_name}: parameter {parameter.name} has no annotation")

        hint = hints[parameter.name]
        has_default = parameter.default is not inspect.Parameter.empty
        params.append(
            Parameter(
                name=parameter.name,
                hint=hint,
                kind=parameter.kind,
                has_default=has_default,
                default=parameter.default if has_default else None,
                codec=ValueCodec(hint),
            )
        )

    returns = hints.get("return", t.Any)
    return CommandDescriptor(
        name=command_name,
        handler=handler,
        params=tuple(params),
        returns=returns,
        error=error,
        docs=(inspect.getdoc(handler) or ""),
        result_codec=ValueCodec(returns),
        error_codec=ValueCodec(error) if error is not None else None,
    )


def command(handler=None, *, name=None, error=None):
    """
    Mark a function as a command.

    Usable as ``@command`` or ``@command(name="...", error=MyError)``. The
    function is returned unchanged; the descriptor is attached to it.
    """
    def deco(fn: Handler) -> Handler:
        setattr(fn, COMMAND_ATTRIBUTE, describe_command(fn, name=name, error=error))
        return fn

    if handler is not None:
        return deco(handler)
    return deco


def as_descriptor(item: CommandDescriptor | Handler) -> CommandDescriptor:
    """Accept a descriptor, a ``@command``-decorated function or a plain function."""
    if isinstance(item, CommandDescriptor):
        return item
    attached = getattr(item, COMMAND_ATTRIBUTE, None)
    if isinstance(attached, CommandDescriptor):
        return attached
    if callable(item):
        return describe_command(item)
    raise TypeError(f"not a command: {item!r}")


# ============================================================
# Export view
# ============================================================

@dataclass(frozen=True)
class ExportedParameter:
    name: str
    shape: DataType
    optional: bool = False


@dataclass(frozen=True)
class ExportedCommand:
    """A command as the renderer sees it: shapes instead of Python hints."""
    name: str
    params: tuple[ExportedParameter, ...]
    returns: DataType
    error: DataType | None
    docs: str = ""


# ============================================================
# Command table + dispatcher
# ============================================================

class Dispatcher:
    """
    Read-only name -> command mapping used at runtime.

    The mapping is frozen when the dispatcher is created, so concurrent
    lookups need no locking.
    """

    def __init__(self, commands: Mapping[str, CommandDescriptor]) -> None:
        self._commands: Mapping[str, CommandDescriptor] = MappingProxyType(dict(commands))

    def __contains__(self, name: object) -> bool:
        return name in self._commands

    def names(self) -> list[str]:
        return list(self._commands)

    def lookup(self, name: str) -> CommandDescriptor:
        descriptor = self._commands.get(name)
        if descriptor is None:
            raise UnknownCommandError(name)
        return descriptor

    def dispatch(self, name: str, raw_args: t.Any = None) -> t.Any:
        """Route a call by wire name; unknown names raise :class:`UnknownCommandError`."""
        return self.lookup(name).invoke(raw_args, wire_name=name)

    async def dispatch_async(self, name: str, raw_args: t.Any = None) -> t.Any:
        return await self.lookup(name).invoke_async(raw_args, wire_name=name)

    __call__ = dispatch


class CommandTable:
    """Ordered registry of command descriptors."""

    def __init__(self, commands: t.Iterable[CommandDescriptor | Handler] = ()) -> None:
        self._commands: dict[str, CommandDescriptor] = {}
        for item in commands:
            self.add(item)

    def add(self, item: CommandDescriptor | Handler, handler: Handler | None = None) -> CommandDescriptor:
        """Register a command; ``handler`` replaces the descriptor's handler when given."""
        descriptor = as_descriptor(item)
        if handler is not None:
            descriptor = dataclasses.replace(descriptor, handler=handler)
        if descriptor.name in self._commands:
            raise ValueError(f"duplicate command name: {descriptor.name}")
        self._commands[descriptor.name] = descriptor
        logger.debug("registered command %s", descriptor.name)
        return descriptor

    def __iter__(self) -> t.Iterator[CommandDescriptor]:
        return iter(self._commands.values())

    def __len__(self) -> int:
        return len(self._commands)

    def __contains__(self, name: object) -> bool:
        return name in self._commands

    def names(self) -> list[str]:
        return list(self._commands)

    def dispatcher(self, namespace: str | None = None) -> Dispatcher:
        """Snapshot the table into a dispatcher keyed by qualified wire name."""
        return Dispatcher({qualify(name, namespace): descriptor for name, descriptor in self._commands.items()})

    def dispatch(self, name: str, raw_args: t.Any = None, *, namespace: str | None = None) -> t.Any:
        return self.dispatcher(namespace).dispatch(name, raw_args)

    def export_types(self, type_table: TypeTable) -> list[ExportedCommand]:
        """Register every parameter, return and error type into ``type_table``."""
        exported_commands: list[ExportedCommand] = []
        for descriptor in self._commands.values():
            context = f"command {descriptor.name}"
            # Only a trailing run of defaulted parameters can be optional in a TS signature.
            optional_from = len(descriptor.params)
            while optional_from > 0 and descriptor.params[optional_from - 1].has_default:
                optional_from -= 1

            exported_params = [
                ExportedParameter(
                    name=parameter.name,
                    shape=type_table.translate(parameter.hint, context=context),
                    optional=index >= optional_from,
                )
                for index, parameter in enumerate(descriptor.params)
            ]

            exported_commands.append(
                ExportedCommand(
                    name=descriptor.name,
                    params=tuple(exported_params),
                    returns=type_table.translate(descriptor.returns, context=context),
                    error=type_table.translate(descriptor.error, context=context) if descriptor.error is not None else None,
                    docs=descriptor.docs,
                )
            )
        return exported_commands


def collect_commands(*items: CommandDescriptor | Handler) -> CommandTable:
    """Build a command table from handlers or descriptors, in order."""
    return CommandTable(items)

