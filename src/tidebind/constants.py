"""Named constant values exported alongside the bindings."""
from __future__ import annotations

import logging
import typing as t
from dataclasses import dataclass

from .codec import ValueCodec
from .datatype import DataType
from .naming import is_identifier
from .type_table import TypeTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConstantEntry:
    """A constant's shape and its serialized (JSON-compatible) value."""
    name: str
    shape: DataType
    value: t.Any


class ConstantTable:
    """Constants keyed by name; a later insert with the same name overwrites."""

    def __init__(self, type_table: TypeTable) -> None:
        self.type_table = type_table
        self._entries: dict[str, ConstantEntry] = {}

    def insert(self, name: str, value: t.Any, hint: t.Any = None) -> ConstantEntry:
        """
        Validate and serialize ``value`` and store it under ``name``.

        The hint defaults to ``type(value)``. Named types the hint depends on are
        registered into the type table. Nothing is stored if encoding fails.
        """
        if not is_identifier(name):
            raise ValueError(f"constant name must be an identifier: {name!r}")

        declared_hint = type(value) if hint is None else hint
        shape = self.type_table.translate(declared_hint, context=f"constant {name}")
        serialized_value = ValueCodec(declared_hint).encode(name, value)

        entry = ConstantEntry(name=name, shape=shape, value=serialized_value)
        if name in self._entries:
            logger.debug("constant %s overwritten", name)
        self._entries[name] = entry
        return entry

    def get(self, name: str) -> ConstantEntry | None:
        return self._entries.get(name)

    def entries(self) -> list[ConstantEntry]:
        """Entries sorted by name."""
        return [self._entries[name] for name in sorted(self._entries)]

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

