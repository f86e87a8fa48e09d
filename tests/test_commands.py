from __future__ import annotations

import asyncio
from dataclasses import dataclass

import pytest

from tidebind.commands import CommandTable, collect_commands, command, describe_command
from tidebind.datatype import NULL, NUMBER, STRING, Reference, TypeId
from tidebind.errors import (
    CommandError,
    CommandFailed,
    UnknownCommandError,
    UnsupportedTypeError,
    ValueEncodingError,
)
from tidebind.type_table import TypeTable


@dataclass
class MathError:
    message: str


@dataclass
class Greeting:
    text: str
    loud: bool


def add(a: int, b: int) -> int:
    """Add two numbers."""
    return a + b


def greet(name: str, *, loud: bool = False) -> Greeting:
    return Greeting(text=f"hello {name}", loud=loud)


@command(error=MathError)
def divide(a: float, b: float) -> float:
    if b == 0:
        raise CommandError(MathError(message="division by zero"))
    return a / b


@command(name="reset_all")
def reset() -> None:
    pass


async def slow_add(a: int, b: int) -> int:
    await asyncio.sleep(0)
    return a + b


def test_dispatch_decodes_arguments_and_encodes_result() -> None:
    dispatcher = collect_commands(add, greet).dispatcher()

    assert dispatcher.dispatch("add", {"a": 2, "b": 3}) == 5
    assert dispatcher("greet", {"name": "ada", "loud": True}) == {"text": "hello ada", "loud": True}
    assert dispatcher.dispatch("greet", {"name": "ada"}) == {"text": "hello ada", "loud": False}


def test_namespaced_dispatcher_only_accepts_qualified_names() -> None:
    dispatcher = collect_commands(greet).dispatcher("myplugin")

    assert "myplugin:greet" in dispatcher
    assert dispatcher.dispatch("myplugin:greet", {"name": "x"})["text"] == "hello x"
    with pytest.raises(UnknownCommandError):
        dispatcher.dispatch("greet", {"name": "x"})


def test_unknown_command_leaves_dispatcher_usable() -> None:
    dispatcher = collect_commands(add).dispatcher()

    with pytest.raises(UnknownCommandError) as excinfo:
        dispatcher.dispatch("subtract", {"a": 1, "b": 1})
    assert excinfo.value.name == "subtract"
    assert dispatcher.dispatch("add", {"a": 1, "b": 1}) == 2


def test_missing_and_malformed_arguments_are_encoding_errors() -> None:
    dispatcher = collect_commands(add).dispatcher()

    with pytest.raises(ValueEncodingError) as excinfo:
        dispatcher.dispatch("add", {"a": 1})
    assert excinfo.value.name == "add.b"

    with pytest.raises(ValueEncodingError):
        dispatcher.dispatch("add", {"a": 1, "b": "not a number"})
    with pytest.raises(ValueEncodingError):
        dispatcher.dispatch("add", [1, 2])


def test_typed_error_becomes_command_failed() -> None:
    dispatcher = collect_commands(divide).dispatcher()

    assert dispatcher.dispatch("divide", {"a": 1, "b": 4}) == 0.25
    with pytest.raises(CommandFailed) as excinfo:
        dispatcher.dispatch("divide", {"a": 1, "b": 0})
    assert excinfo.value.error == {"message": "division by zero"}


def test_command_error_without_declared_type_propagates() -> None:
    def explode() -> None:
        raise CommandError("boom")

    dispatcher = collect_commands(explode).dispatcher()
    with pytest.raises(CommandError):
        dispatcher.dispatch("explode")


def test_decorator_keeps_function_callable_and_renames() -> None:
    assert divide(6, 3) == 2
    table = collect_commands(reset)
    assert table.names() == ["reset_all"]
    assert table.dispatch("reset_all") is None


def test_async_handlers_are_awaited() -> None:
    dispatcher = collect_commands(slow_add).dispatcher()

    assert dispatcher.dispatch("slow_add", {"a": 1, "b": 2}) == 3
    assert asyncio.run(dispatcher.dispatch_async("slow_add", {"a": 2, "b": 2})) == 4


def test_duplicate_command_names_are_rejected() -> None:
    table = CommandTable([add])
    with pytest.raises(ValueError):
        table.add(add)


def test_handler_override_keeps_signature() -> None:
    table = CommandTable()
    table.add(add, handler=lambda a, b: a * b)
    assert table.dispatch("add", {"a": 3, "b": 4}) == 12


def test_describe_command_rejects_unannotated_and_variadic_params() -> None:
    def untyped(a) -> int:
        return a

    def variadic(*args: int) -> int:
        return sum(args)

    with pytest.raises(UnsupportedTypeError):
        describe_command(untyped)
    with pytest.raises(UnsupportedTypeError):
        describe_command(variadic)


def test_export_types_marks_trailing_defaults_optional() -> None:
    type_table = TypeTable()
    exported = {c.name: c for c in collect_commands(add, greet, divide, reset).export_types(type_table)}

    assert [(p.name, p.shape, p.optional) for p in exported["add"].params] == [
        ("a", NUMBER, False),
        ("b", NUMBER, False),
    ]
    assert exported["add"].docs == "Add two numbers."
    assert [(p.name, p.optional) for p in exported["greet"].params] == [("name", False), ("loud", True)]
    assert exported["greet"].params[0].shape == STRING
    assert exported["greet"].returns == Reference(TypeId(__name__, "Greeting"))
    assert exported["divide"].error == Reference(TypeId(__name__, "MathError"))
    assert exported["reset_all"].returns == NULL
    assert TypeId(__name__, "Greeting") in type_table
