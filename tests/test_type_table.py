from __future__ import annotations

import dataclasses
import enum
import typing as t
from dataclasses import dataclass

import pytest
import typing_extensions as t_ext
from pydantic import BaseModel, Field

from tidebind.datatype import (
    NUMBER,
    STRING,
    EnumOf,
    Literal,
    MapOf,
    Optional,
    Record,
    Reference,
    Sequence,
    TupleOf,
    TypeId,
    UnionOf,
)
from tidebind.errors import RenderInconsistencyError, TypeCollisionError, UnsupportedTypeError
from tidebind.type_table import TypeTable


@dataclass
class Point:
    """A point on the plane."""
    x: float
    y: float


@dataclass
class Node:
    label: str
    children: list[Node]


@dataclass
class Left:
    right: Right | None


@dataclass
class Right:
    left: Left | None


class Color(str, enum.Enum):
    RED = "red"
    GREEN = "green"


class Cat(BaseModel):
    kind: t.Literal["cat"] = "cat"
    lives: int


class Dog(BaseModel):
    kind: t.Literal["dog"] = "dog"
    good: bool


class Owner(BaseModel):
    name: str = Field(serialization_alias="displayName")
    pet: Cat | Dog = Field(discriminator="kind")


Settings = t_ext.TypedDict("Settings", {"theme": str, "font_size": t_ext.NotRequired[int]})


UserId = t.NewType("UserId", int)


@dataclass
class Dangling:
    target: Nowhere  # noqa: F821


class LooseSettings(t_ext.TypedDict):
    target: Nowhere  # noqa: F821


def test_primitives_and_containers_are_anonymous() -> None:
    table = TypeTable()

    assert table.translate(str) == STRING
    assert table.translate(list[int]) == Sequence(NUMBER)
    assert table.translate(tuple[int, str]) == TupleOf((NUMBER, STRING))
    assert table.translate(dict[str, int]) == MapOf(STRING, NUMBER)
    assert table.translate(t.Optional[int]) == Optional(NUMBER)
    assert table.translate(t.Literal["a", "b"]) == Literal(("a", "b"))
    assert len(table) == 0


def test_named_types_are_stored_once_and_referenced() -> None:
    table = TypeTable()

    first = table.translate(Point)
    second = table.translate(list[Point])

    assert first == Reference(TypeId(__name__, "Point"))
    assert second == Sequence(first)
    assert len(table) == 1

    definition = table.get(first.type_id)
    assert definition is not None
    assert definition.name == "Point"
    assert definition.docs == "A point on the plane."
    assert [f.name for f in definition.shape.fields] == ["x", "y"]


def test_registration_is_idempotent() -> None:
    table = TypeTable()

    type_id = table.register(Point)
    before = list(table)
    assert table.register(Point) == type_id
    assert list(table) == before


def test_self_referencing_type_terminates() -> None:
    table = TypeTable()
    type_id = table.register(Node)

    shape = table.get(type_id).shape
    assert isinstance(shape, Record)
    assert shape.fields[1].shape == Sequence(Reference(type_id))
    assert table.resolve_closure([type_id]) == [type_id]


def test_mutually_referencing_types_resolve_in_discovery_order() -> None:
    table = TypeTable()
    left = table.register(Left)
    right = TypeId(__name__, "Right")

    assert right in table
    assert table.resolve_closure([left]) == [left, right]
    assert table.resolve_closure([right]) == [right, left]


def test_closure_of_unregistered_type_is_an_inconsistency() -> None:
    table = TypeTable()
    with pytest.raises(RenderInconsistencyError):
        table.resolve_closure([TypeId("nowhere", "Missing")])


def test_enum_translates_to_its_values() -> None:
    table = TypeTable()
    type_id = table.register(Color)
    assert table.get(type_id).shape == EnumOf(("red", "green"))


def test_model_uses_serialization_alias_and_discriminator() -> None:
    table = TypeTable()
    type_id = table.register(Owner)

    fields = table.get(type_id).shape.fields
    assert fields[0].name == "displayName"
    assert fields[1].shape == UnionOf(
        variants=(Reference(TypeId(__name__, "Cat")), Reference(TypeId(__name__, "Dog"))),
        discriminator="kind",
    )
    cat_fields = table.get(TypeId(__name__, "Cat")).shape.fields
    assert cat_fields[0].shape == Literal(("cat",))


def test_typeddict_not_required_keys_are_optional() -> None:
    table = TypeTable()
    type_id = table.register(Settings)

    fields = {f.name: f for f in table.get(type_id).shape.fields}
    assert fields["theme"].required
    assert not fields["font_size"].required
    assert fields["font_size"].shape == NUMBER


def test_newtype_is_a_named_alias() -> None:
    table = TypeTable()
    shape = table.translate(UserId)

    assert shape == Reference(TypeId(__name__, "UserId"))
    assert table.get(shape.type_id).shape == NUMBER


def test_same_type_id_with_same_shape_is_accepted() -> None:
    table = TypeTable()
    first = dataclasses.make_dataclass("Pair", [("a", int), ("b", int)])
    second = dataclasses.make_dataclass("Pair", [("a", int), ("b", int)])

    assert table.register(first) == table.register(second)
    assert len(table) == 1


def test_same_type_id_with_different_shape_collides() -> None:
    table = TypeTable()
    first = dataclasses.make_dataclass("Pair", [("a", int)])
    second = dataclasses.make_dataclass("Pair", [("a", str)])

    table.register(first)
    with pytest.raises(TypeCollisionError) as excinfo:
        table.register(second)
    assert "Pair" in str(excinfo.value)


def test_unsupported_hint_names_its_context() -> None:
    table = TypeTable()
    with pytest.raises(UnsupportedTypeError) as excinfo:
        table.translate(complex, context="command area")
    assert "command area" in str(excinfo.value)


def test_register_rejects_anonymous_shapes() -> None:
    with pytest.raises(UnsupportedTypeError):
        TypeTable().register(list[int])


def test_copy_does_not_leak_new_registrations() -> None:
    table = TypeTable()
    table.register(Point)

    clone = table.copy()
    clone.register(Color)

    assert TypeId(__name__, "Color") in clone
    assert TypeId(__name__, "Color") not in table


@pytest.mark.parametrize("hint", [Dangling, LooseSettings])
def test_unresolvable_forward_reference_is_unsupported(hint: type) -> None:
    table = TypeTable()
    with pytest.raises(UnsupportedTypeError) as excinfo:
        table.register(hint)
    assert hint.__qualname__ in str(excinfo.value)
    assert TypeId(__name__, hint.__qualname__) not in table
