"""Exception types raised while building, exporting and dispatching bindings."""
from __future__ import annotations

import typing as t


class BindingError(Exception):
    """Base class for every error raised by tidebind."""


class ValueEncodingError(BindingError):
    """A value could not be converted to or from the interchange format."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"{name}: {reason}")


class DestinationError(BindingError):
    """The export destination could not be prepared or written."""

    def __init__(self, path: object, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"cannot write bindings to {path}: {reason}")


class UnknownCommandError(BindingError, LookupError):
    """Dispatch received a command name with no registered handler."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"no such command: {name}")


class UnknownEventError(BindingError, LookupError):
    """Emit or listen was called with an undeclared event name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"no such event: {name}")


class RenderInconsistencyError(BindingError, RuntimeError):
    """A type is referenced but missing from the resolved closure."""


class TypeCollisionError(BindingError):
    """Two structurally different types share the same TypeId."""

    def __init__(self, type_id: object, existing: object, incoming: object) -> None:
        self.type_id = type_id
        super().__init__(
            "Type name collision with different shapes.\n"
            f"Type: {type_id}\n"
            f" - registered: {existing}\n"
            f" - incoming:   {incoming}\n"
            "Fix: rename one of the types, or import the shared model from a single module."
        )


class UnsupportedTypeError(BindingError, TypeError):
    """A Python type hint has no interchange representation."""

    def __init__(self, hint: object, context: str | None = None) -> None:
        self.hint = hint
        where = f" (in {context})" if context else ""
        super().__init__(f"unsupported type hint {hint!r}{where}")


class EventNotMountedError(BindingError):
    """An event was emitted on a bus it was never mounted on."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"event {name!r} is not mounted on this bus")


class CommandError(Exception):
    """Raised by a command handler to report a typed error to the caller.

    The payload must match the command's declared error type.
    """

    def __init__(self, payload: t.Any) -> None:
        self.payload = payload
        super().__init__(payload)


class CommandFailed(BindingError):
    """A command handler reported its declared error type."""

    def __init__(self, name: str, error: t.Any) -> None:
        self.name = name
        self.error = error
        super().__init__(f"command {name} failed: {error!r}")
