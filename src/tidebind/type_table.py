"""Registry of named type definitions plus Python type-hint translation."""
from __future__ import annotations

import collections.abc
import dataclasses
import datetime
import decimal
import enum
import logging
import pathlib
import types
import typing as t
import uuid
from collections import deque

import typing_extensions as t_ext
from pydantic import BaseModel
from pydantic.fields import FieldInfo

from .datatype import (
    BOOLEAN,
    NULL,
    NUMBER,
    STRING,
    UNKNOWN,
    DataType,
    EnumOf,
    Field,
    Literal,
    MapOf,
    NamedDataType,
    Optional,
    Record,
    Reference,
    Sequence,
    TupleOf,
    TypeId,
    UnionOf,
)
from .errors import RenderInconsistencyError, TypeCollisionError, UnsupportedTypeError

logger = logging.getLogger(__name__)


# ============================================================
# Hint classification tables
# ============================================================

PRIMITIVE_SHAPES: dict[t.Any, DataType] = {
    str: STRING,
    int: NUMBER,
    float: NUMBER,
    bool: BOOLEAN,
    bytes: STRING,
    decimal.Decimal: STRING,
    datetime.datetime: STRING,
    datetime.date: STRING,
    datetime.time: STRING,
    datetime.timedelta: STRING,
    uuid.UUID: STRING,
    pathlib.Path: STRING,
    pathlib.PurePath: STRING,
}

SEQUENCE_ORIGINS = frozenset({
    list,
    set,
    frozenset,
    collections.abc.Sequence,
    collections.abc.MutableSequence,
    collections.abc.Set,
    collections.abc.MutableSet,
})

MAPPING_ORIGINS = frozenset({dict, collections.abc.Mapping, collections.abc.MutableMapping})

FIELD_QUALIFIER_ORIGINS = frozenset({t_ext.Required, t_ext.NotRequired, t_ext.ReadOnly})

ALIAS_TYPES: tuple[type, ...] = tuple({t_ext.TypeAliasType, getattr(t, "TypeAliasType", t_ext.TypeAliasType)})

NEWTYPE_TYPES: tuple[type, ...] = tuple({t.NewType, t_ext.NewType})

LITERAL_ORIGINS = frozenset({t.Literal, t_ext.Literal})

LITERAL_VALUE_TYPES = (str, int, float, bool, type(None))


def own_docs(cls: t.Any) -> str:
    """Return the docstring written on the class itself, ignoring generated ones."""
    doc = cls.__dict__.get("__doc__") if isinstance(cls, type) else None
    if getattr(cls, "__module__", None) == "builtins":
        return ""
    if not doc:
        return ""
    doc = doc.strip()
    # dataclass() fills in the signature when no docstring was written
    if dataclasses.is_dataclass(cls) and doc.startswith(f"{cls.__name__}("):
        return ""
    if doc == "An enumeration.":
        return ""
    return doc


def is_union_origin(origin: t.Any) -> bool:
    return origin is t.Union or origin is types.UnionType


# ============================================================
# Type table
# ============================================================

class TypeTable:
    """
    Structural registry of named types keyed by TypeId.

    Named types (dataclasses, pydantic models, TypedDicts, enums, NewTypes and
    ``type`` aliases) are stored once and referenced by TypeId everywhere else.
    A placeholder is reserved before a type's fields are translated, so
    self-referencing and mutually-referencing types terminate.
    """

    def __init__(self) -> None:
        self._definitions: dict[TypeId, NamedDataType] = {}
        self._origins: dict[TypeId, t.Any] = {}
        self._pending: set[TypeId] = set()
        self._comparing: set[int] = set()

    def __contains__(self, type_id: object) -> bool:
        return type_id in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)

    def __iter__(self) -> t.Iterator[NamedDataType]:
        return iter(self._definitions.values())

    def get(self, type_id: TypeId) -> NamedDataType | None:
        return self._definitions.get(type_id)

    def copy(self) -> "TypeTable":
        """Shallow copy; definitions are immutable so sharing them is safe."""
        clone = TypeTable()
        clone._definitions = dict(self._definitions)
        clone._origins = dict(self._origins)
        return clone

    # ---- registration

    def register(self, hint: t.Any) -> TypeId:
        """Register a named type (and everything it depends on) and return its TypeId."""
        shape = self.translate(hint)
        if not isinstance(shape, Reference):
            raise UnsupportedTypeError(hint, "register() expects a named type")
        return shape.type_id

    def translate(self, hint: t.Any, *, context: str | None = None) -> DataType:
        """Translate a Python type hint into a shape, registering named types on the way."""
        if hint is None or hint is type(None):
            return NULL
        if hint is t.Any or hint is object:
            return UNKNOWN
        if isinstance(hint, (str, t.ForwardRef)):
            raise UnsupportedTypeError(hint, context or "unresolved forward reference")

        if isinstance(hint, ALIAS_TYPES):
            return self._register_named(hint, lambda: self.translate(hint.__value__, context=hint.__name__))
        if isinstance(hint, NEWTYPE_TYPES):
            return self._register_named(hint, lambda: self.translate(hint.__supertype__, context=hint.__name__))

        origin = t_ext.get_origin(hint)
        arguments = t_ext.get_args(hint)

        if origin is t_ext.Annotated:
            return self._translate_annotated(arguments[0], arguments[1:], context=context)

        if origin in FIELD_QUALIFIER_ORIGINS:
            return self.translate(arguments[0], context=context)

        if is_union_origin(origin):
            return self._translate_union(arguments, context=context)

        if origin in LITERAL_ORIGINS:
            for literal_value in arguments:
                if not isinstance(literal_value, LITERAL_VALUE_TYPES):
                    raise UnsupportedTypeError(hint, context)
            return Literal(values=tuple(arguments))

        if origin in SEQUENCE_ORIGINS:
            item_shape = self.translate(arguments[0], context=context) if arguments else UNKNOWN
            return Sequence(item=item_shape)

        if origin is tuple:
            if len(arguments) == 2 and arguments[1] is Ellipsis:
                return Sequence(item=self.translate(arguments[0], context=context))
            if arguments == ((),):
                return TupleOf(items=())
            return TupleOf(items=tuple(self.translate(argument, context=context) for argument in arguments))

        if origin in MAPPING_ORIGINS:
            key_shape = self.translate(arguments[0], context=context) if arguments else STRING
            value_shape = self.translate(arguments[1], context=context) if len(arguments) > 1 else UNKNOWN
            return MapOf(key=key_shape, value=value_shape)

        if origin is not None:
            raise UnsupportedTypeError(hint, context)

        if hint in PRIMITIVE_SHAPES:
            return PRIMITIVE_SHAPES[hint]

        if isinstance(hint, type):
            if issubclass(hint, enum.Enum):
                return self._register_named(hint, lambda: self._enum_shape(hint))
            if issubclass(hint, BaseModel):
                return self._register_named(hint, lambda: self._model_shape(hint))
            if dataclasses.is_dataclass(hint):
                return self._register_named(hint, lambda: self._dataclass_shape(hint))
            if t_ext.is_typeddict(hint):
                return self._register_named(hint, lambda: self._typeddict_shape(hint))
            if hint in (list, set, frozenset, tuple):
                return Sequence(item=UNKNOWN)
            if hint is dict:
                return MapOf(key=STRING, value=UNKNOWN)

        raise UnsupportedTypeError(hint, context)

    def _translate_annotated(
        self,
        inner_hint: t.Any,
        metadata: tuple[t.Any, ...],
        *,
        context: str | None,
    ) -> DataType:
        shape = self.translate(inner_hint, context=context)
        discriminator = next(
            (
                item.discriminator
                for item in metadata
                if isinstance(item, FieldInfo) and isinstance(item.discriminator, str)
            ),
            None,
        )
        if discriminator is None:
            return shape
        if isinstance(shape, Optional) and isinstance(shape.inner, UnionOf):
            return Optional(UnionOf(variants=shape.inner.variants, discriminator=discriminator))
        if isinstance(shape, UnionOf):
            return UnionOf(variants=shape.variants, discriminator=discriminator)
        return shape

    def _translate_union(self, arguments: tuple[t.Any, ...], *, context: str | None) -> DataType:
        non_null_arguments = [argument for argument in arguments if argument is not type(None)]
        variants = tuple(self.translate(argument, context=context) for argument in non_null_arguments)
        shape = variants[0] if len(variants) == 1 else UnionOf(variants=variants)
        if len(non_null_arguments) != len(arguments):
            return Optional(shape)
        return shape

    def _register_named(self, obj: t.Any, build_shape: t.Callable[[], DataType]) -> Reference:
        type_id = TypeId.of(obj)
        reference = Reference(type_id)

        existing_origin = self._origins.get(type_id)
        if existing_origin is obj or id(obj) in self._comparing:
            return reference

        if existing_origin is not None:
            # Same TypeId from a different object: only accept it if the structure matches.
            self._comparing.add(id(obj))
            try:
                incoming = NamedDataType(type_id=type_id, name=type_id.short_name, shape=build_shape(), docs=own_docs(obj))
            finally:
                self._comparing.discard(id(obj))
            existing = self._definitions.get(type_id)
            if existing is not None and existing != incoming:
                raise TypeCollisionError(type_id, existing.shape, incoming.shape)
            return reference

        self._origins[type_id] = obj
        self._pending.add(type_id)
        try:
            shape = build_shape()
        except BaseException:
            self._origins.pop(type_id, None)
            raise
        finally:
            self._pending.discard(type_id)

        self._definitions[type_id] = NamedDataType(
            type_id=type_id,
            name=type_id.short_name,
            shape=shape,
            docs=own_docs(obj),
            origin=obj,
        )
        logger.debug("registered type %s", type_id)
        return reference

    # ---- named shapes

    def _enum_shape(self, enum_cls: type[enum.Enum]) -> DataType:
        values = tuple(member.value for member in enum_cls)
        for value in values:
            if not isinstance(value, LITERAL_VALUE_TYPES):
                raise UnsupportedTypeError(enum_cls, f"enum value {value!r}")
        return EnumOf(values=values)

    def _dataclass_shape(self, dataclass_cls: type) -> DataType:
        hints = _resolved_hints(dataclass_cls)
        record_fields = tuple(
            Field(
                name=dataclass_field.name,
                shape=self.translate(hints[dataclass_field.name], context=f"{dataclass_cls.__qualname__}.{dataclass_field.name}"),
            )
            for dataclass_field in dataclasses.fields(dataclass_cls)
        )
        return Record(fields=record_fields)

    def _model_shape(self, model_cls: type[BaseModel]) -> DataType:
        record_fields: list[Field] = []
        for field_name, field_info in model_cls.model_fields.items():
            field_context = f"{model_cls.__qualname__}.{field_name}"
            annotation = field_info.annotation
            if isinstance(field_info.discriminator, str):
                annotation = t_ext.Annotated[annotation, FieldInfo(discriminator=field_info.discriminator)]
            record_fields.append(
                Field(
                    name=field_info.serialization_alias or field_info.alias or field_name,
                    shape=self.translate(annotation, context=field_context),
                    docs=field_info.description or "",
                )
            )
        return Record(fields=tuple(record_fields))

    def _typeddict_shape(self, typeddict_cls: type) -> DataType:
        hints = _resolved_hints(typeddict_cls)
        required_keys = getattr(typeddict_cls, "__required_keys__", frozenset(hints))
        record_fields = tuple(
            Field(
                name=key,
                shape=self.translate(hint, context=f"{typeddict_cls.__qualname__}.{key}"),
                required=key in required_keys,
            )
            for key, hint in hints.items()
        )
        return Record(fields=record_fields)

    # ---- closure

    def resolve_closure(self, roots: t.Iterable[TypeId]) -> list[TypeId]:
        """
        Every TypeId transitively reachable from ``roots``, in first-discovered order.

        Each id is visited at most once, so cyclic graphs terminate.
        """
        ordered: list[TypeId] = []
        visited: set[TypeId] = set()
        queue: deque[TypeId] = deque()

        def discover(type_id: TypeId) -> None:
            if type_id in visited:
                return
            visited.add(type_id)
            ordered.append(type_id)
            queue.append(type_id)

        for root in roots:
            discover(root)

        while queue:
            type_id = queue.popleft()
            definition = self._definitions.get(type_id)
            if definition is None:
                raise RenderInconsistencyError(f"type {type_id} is referenced but was never registered")
            for dependency in definition.references():
                discover(dependency)

        return ordered


def _resolved_hints(cls: type) -> dict[str, t.Any]:
    try:
        return t_ext.get_type_hints(cls, include_extras=True)
    except NameError as exc:
        raise UnsupportedTypeError(exc, f"type {cls.__qualname__}") from exc
