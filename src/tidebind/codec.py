"""Interchange codec: validates Python values against a hint and converts them to and from JSON-compatible data."""
from __future__ import annotations

import threading
import typing as t

from pydantic import PydanticSchemaGenerationError, TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from .errors import UnsupportedTypeError, ValueEncodingError


_ADAPTER_CACHE: dict[t.Any, TypeAdapter[t.Any]] = {}
_ADAPTER_CACHE_LOCK = threading.Lock()


def adapter_for(hint: t.Any) -> TypeAdapter[t.Any]:
    """Return a (cached) pydantic TypeAdapter for a hint."""
    try:
        cached = _ADAPTER_CACHE.get(hint)
    except TypeError:
        # unhashable hint (e.g. Annotated with unhashable metadata): no caching
        return _build_adapter(hint)
    if cached is not None:
        return cached

    adapter = _build_adapter(hint)
    with _ADAPTER_CACHE_LOCK:
        _ADAPTER_CACHE.setdefault(hint, adapter)
    return adapter


def _build_adapter(hint: t.Any) -> TypeAdapter[t.Any]:
    try:
        return TypeAdapter(hint)
    except PydanticSchemaGenerationError as exc:
        raise UnsupportedTypeError(hint) from exc


class ValueCodec:
    """Encode/decode values of one declared type."""

    __slots__ = ("hint", "adapter")

    def __init__(self, hint: t.Any) -> None:
        self.hint = hint
        self.adapter = adapter_for(hint)

    def encode(self, name: str, value: t.Any) -> t.Any:
        """Validate ``value`` against the hint and dump it as JSON-compatible data."""
        try:
            validated = self.adapter.validate_python(value)
            return self.adapter.dump_python(validated, mode="json", by_alias=True)
        except (ValidationError, PydanticSerializationError) as exc:
            raise ValueEncodingError(name, str(exc)) from exc

    def decode(self, name: str, raw: t.Any) -> t.Any:
        """Validate JSON-compatible ``raw`` data into a value of the hint's type."""
        try:
            return self.adapter.validate_python(raw)
        except ValidationError as exc:
            raise ValueEncodingError(name, str(exc)) from exc

    def __repr__(self) -> str:
        return f"ValueCodec({self.hint!r})"