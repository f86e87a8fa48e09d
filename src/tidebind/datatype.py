"""Structural data model shared by the type table and the renderer."""
from __future__ import annotations

import typing as t
from dataclasses import dataclass, field


# ============================================================
# Identity
# ============================================================

@dataclass(frozen=True, order=True)
class TypeId:
    """Stable identity for a named type: the defining module plus qualified name."""
    module: str
    qualname: str

    def __str__(self) -> str:
        return f"{self.module}.{self.qualname}"

    @property
    def short_name(self) -> str:
        """Last segment of the qualified name (drops ``<locals>`` and outer classes)."""
        return self.qualname.rsplit(".", 1)[-1]

    @classmethod
    def of(cls, obj: t.Any) -> "TypeId":
        """Derive the TypeId of a class, NewType or type alias object."""
        module = getattr(obj, "__module__", None) or "builtins"
        qualname = getattr(obj, "__qualname__", None) or getattr(obj, "__name__", None)
        if not qualname:
            raise TypeError(f"{obj!r} has no name to derive a TypeId from")
        return cls(module=module, qualname=qualname)


# ============================================================
# Shapes
# ============================================================

PRIMITIVE_KINDS = frozenset({"string", "number", "boolean", "null", "unknown"})


class DataType:
    """Base class for structural shapes."""

    def references(self) -> t.Iterator[TypeId]:
        """Yield the TypeIds this shape mentions directly."""
        return iter(())


@dataclass(frozen=True)
class Primitive(DataType):
    kind: str

    def __post_init__(self) -> None:
        if self.kind not in PRIMITIVE_KINDS:
            raise ValueError(f"unknown primitive kind: {self.kind}")


@dataclass(frozen=True)
class Literal(DataType):
    values: tuple[t.Any, ...]


@dataclass(frozen=True)
class Sequence(DataType):
    item: DataType

    def references(self) -> t.Iterator[TypeId]:
        yield from self.item.references()


@dataclass(frozen=True)
class TupleOf(DataType):
    items: tuple[DataType, ...]

    def references(self) -> t.Iterator[TypeId]:
        for item in self.items:
            yield from item.references()


@dataclass(frozen=True)
class MapOf(DataType):
    key: DataType
    value: DataType

    def references(self) -> t.Iterator[TypeId]:
        yield from self.key.references()
        yield from self.value.references()


@dataclass(frozen=True)
class Optional(DataType):
    inner: DataType

    def references(self) -> t.Iterator[TypeId]:
        yield from self.inner.references()


@dataclass(frozen=True)
class UnionOf(DataType):
    """A union of shapes; with ``discriminator`` set each variant carries that literal tag field."""
    variants: tuple[DataType, ...]
    discriminator: str | None = None

    def references(self) -> t.Iterator[TypeId]:
        for variant in self.variants:
            yield from variant.references()


@dataclass(frozen=True)
class Field:
    name: str
    shape: DataType
    required: bool = True
    docs: str = ""


@dataclass(frozen=True)
class Record(DataType):
    fields: tuple[Field, ...]

    def references(self) -> t.Iterator[TypeId]:
        for record_field in self.fields:
            yield from record_field.shape.references()


@dataclass(frozen=True)
class EnumOf(DataType):
    values: tuple[t.Any, ...]


@dataclass(frozen=True)
class Reference(DataType):
    type_id: TypeId

    def references(self) -> t.Iterator[TypeId]:
        yield self.type_id


STRING = Primitive("string")
NUMBER = Primitive("number")
BOOLEAN = Primitive("boolean")
NULL = Primitive("null")
UNKNOWN = Primitive("unknown")


# ============================================================
# Named definitions
# ============================================================

@dataclass(frozen=True)
class NamedDataType:
    """A named type definition stored in the type table."""
    type_id: TypeId
    name: str
    shape: DataType
    docs: str = ""
    # Not part of equality: two definitions are the same if their structure matches.
    origin: t.Any = field(default=None, compare=False, repr=False)

    def references(self) -> t.Iterator[TypeId]:
        return self.shape.references()
