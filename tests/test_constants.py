from __future__ import annotations

import datetime
import enum
import typing as t
from dataclasses import dataclass

import pytest

from tidebind.datatype import NUMBER, STRING, MapOf, Reference, Sequence, TypeId, UNKNOWN
from tidebind.errors import ValueEncodingError
from tidebind.type_table import TypeTable
from tidebind.constants import ConstantTable


class Level(enum.Enum):
    LOW = 1
    HIGH = 2


@dataclass
class Limits:
    max_items: int
    levels: list[Level]


def test_mapping_constant_round_trips() -> None:
    constants = ConstantTable(TypeTable())
    entry = constants.insert("DEFAULTS", {"count": 3})

    assert entry.value == {"count": 3}
    assert entry.shape == MapOf(STRING, UNKNOWN)
    assert constants.get("DEFAULTS") == entry


def test_declared_hint_shapes_the_constant() -> None:
    constants = ConstantTable(TypeTable())
    entry = constants.insert("COUNTS", {"count": 3}, dict[str, int])
    assert entry.shape == MapOf(STRING, NUMBER)


def test_named_constant_types_are_registered() -> None:
    type_table = TypeTable()
    constants = ConstantTable(type_table)

    entry = constants.insert("LIMITS", Limits(max_items=10, levels=[Level.LOW, Level.HIGH]))

    assert entry.value == {"max_items": 10, "levels": [1, 2]}
    assert entry.shape == Reference(TypeId(__name__, "Limits"))
    assert TypeId(__name__, "Level") in type_table


def test_values_are_serialized_in_json_mode() -> None:
    constants = ConstantTable(TypeTable())
    entry = constants.insert("EPOCH", datetime.date(2024, 1, 2))
    assert entry.value == "2024-01-02"


def test_later_insert_overwrites() -> None:
    constants = ConstantTable(TypeTable())
    constants.insert("VERSION", "1.0")
    constants.insert("VERSION", "2.0")

    assert len(constants) == 1
    assert constants.get("VERSION").value == "2.0"


def test_entries_are_sorted_by_name() -> None:
    constants = ConstantTable(TypeTable())
    constants.insert("ZETA", 1)
    constants.insert("ALPHA", [1, 2], list[int])

    entries = constants.entries()
    assert [entry.name for entry in entries] == ["ALPHA", "ZETA"]
    assert entries[0].shape == Sequence(NUMBER)


def test_value_that_does_not_match_its_hint_is_rejected() -> None:
    constants = ConstantTable(TypeTable())
    with pytest.raises(ValueEncodingError) as excinfo:
        constants.insert("RETRIES", "three", int)

    assert excinfo.value.name == "RETRIES"
    assert "RETRIES" not in constants


def test_constant_name_must_be_an_identifier() -> None:
    constants = ConstantTable(TypeTable())
    with pytest.raises(ValueError):
        constants.insert("not-valid", 1)
    with pytest.raises(ValueError):
        constants.insert("class", 1)


def test_optional_hint_allows_none() -> None:
    constants = ConstantTable(TypeTable())
    entry = constants.insert("TIMEOUT", None, t.Optional[int])
    assert entry.value is None
