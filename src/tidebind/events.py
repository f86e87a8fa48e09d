"""Event declarations and their mounting onto a running CherryPy bus."""
from __future__ import annotations

import logging
import typing as t
from dataclasses import dataclass, field

from cherrypy.process import wspbus

from .codec import ValueCodec
from .datatype import DataType
from .errors import EventNotMountedError, UnknownEventError
from .naming import qualify, to_kebab_case
from .type_table import TypeTable, own_docs

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EventDescriptor:
    """A statically declared notification channel and its payload type."""
    name: str
    payload: t.Any
    docs: str = ""
    codec: ValueCodec | None = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class ExportedEvent:
    name: str
    payload: DataType
    docs: str = ""


def event(payload: t.Any, *, name: str | None = None, docs: str | None = None) -> EventDescriptor:
    """
    Declare an event carrying ``payload``.

    The name defaults to the kebab-case of the payload class name
    (``TickPayload`` -> ``"tick-payload"``).
    """
    if name is None:
        type_name = getattr(payload, "__name__", None)
        if not isinstance(payload, type) or not type_name:
            raise TypeError(f"event name is required for payload {payload!r}")
        name = to_kebab_case(type_name)
    return EventDescriptor(
        name=name,
        payload=payload,
        docs=own_docs(payload) if docs is None else docs,
        codec=ValueCodec(payload),
    )


def as_event(item: EventDescriptor | type) -> EventDescriptor:
    if isinstance(item, EventDescriptor):
        return item
    return event(item)


class EventTable:
    """
    Registry of event declarations.

    Declaring an event needs no runtime. :meth:`mount` installs the declared
    channels on a specific bus; whether mounting twice is harmless is the
    bus's business (for ``wspbus.Bus`` it is).
    """

    def __init__(self, events: t.Iterable[EventDescriptor | type] = ()) -> None:
        self._events: dict[str, EventDescriptor] = {}
        for item in events:
            self.add(item)

    def add(self, item: EventDescriptor | type) -> EventDescriptor:
        descriptor = as_event(item)
        if descriptor.name in self._events:
            raise ValueError(f"duplicate event name: {descriptor.name}")
        self._events[descriptor.name] = descriptor
        logger.debug("registered event %s", descriptor.name)
        return descriptor

    def __iter__(self) -> t.Iterator[EventDescriptor]:
        return iter(self._events.values())

    def __len__(self) -> int:
        return len(self._events)

    def __contains__(self, name: object) -> bool:
        return name in self._events

    def names(self) -> list[str]:
        return list(self._events)

    def get(self, name: str) -> EventDescriptor:
        descriptor = self._events.get(name)
        if descriptor is None:
            raise UnknownEventError(name)
        return descriptor

    def export_types(self, type_table: TypeTable) -> list[ExportedEvent]:
        """Register every payload type into ``type_table``."""
        return [
            ExportedEvent(
                name=descriptor.name,
                payload=type_table.translate(descriptor.payload, context=f"event {descriptor.name}"),
                docs=descriptor.docs,
            )
            for descriptor in self._events.values()
        ]

    # ---- runtime side

    def mount(self, bus: wspbus.Bus, namespace: str | None = None) -> list[str]:
        """Install every declared channel on ``bus`` and return the channel names."""
        channels: list[str] = []
        for name in self._events:
            channel = qualify(name, namespace)
            bus.listeners.setdefault(channel, set())
            channels.append(channel)
        logger.debug("mounted %d event channel(s) on %r", len(channels), bus)
        return channels

    def emit(self, bus: wspbus.Bus, name: str, payload: t.Any, *, namespace: str | None = None) -> None:
        """
        Encode ``payload`` and publish it on the event's channel.

        Delivery is fire-and-forget: listener failures are logged by the bus
        and reported here as a warning, never raised to the emitter.
        """
        descriptor = self.get(name)
        channel = qualify(name, namespace)
        if channel not in bus.listeners:
            raise EventNotMountedError(channel)

        assert descriptor.codec is not None
        encoded_payload = descriptor.codec.encode(f"event {channel}", payload)
        try:
            bus.publish(channel, encoded_payload)
        except wspbus.ChannelFailures as exc:
            logger.warning("listener failure while emitting %s: %s", channel, exc)

    def listen(
        self,
        bus: wspbus.Bus,
        name: str,
        callback: t.Callable[[t.Any], t.Any],
        *,
        namespace: str | None = None,
    ) -> t.Callable[[], None]:
        """Subscribe a backend-side listener receiving decoded payloads; returns an unsubscribe callable."""
        descriptor = self.get(name)
        channel = qualify(name, namespace)
        if channel not in bus.listeners:
            raise EventNotMountedError(channel)

        def deliver(encoded_payload: t.Any) -> t.Any:
            assert descriptor.codec is not None
            return callback(descriptor.codec.decode(f"event {channel}", encoded_payload))

        bus.subscribe(channel, deliver)

        def unsubscribe() -> None:
            bus.unsubscribe(channel, deliver)

        return unsubscribe


def collect_events(*items: EventDescriptor | type) -> EventTable:
    """Build an event table from descriptors or payload classes, in order."""
    return EventTable(items)
