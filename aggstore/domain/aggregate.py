"""
Event-sourced aggregate base class.

An aggregate is the in-memory projection of one resource's event stream.
Its state is never stored; it is rebuilt by applying events in number order.

Handlers are registered explicitly with @handles and collected into a
per-class table when the subclass is defined. A subclass that lists its
event_types gets a TypeError at definition time if any of them lacks a
handler.

Invariants:
    - version equals the number of the last applied event (0 when fresh)
    - version only advances after a handler returns without raising
    - commit() applies in memory before writing, and writes conditionally
    - After a failed commit() the instance is stale and must be discarded;
      it may hold speculative state from the rejected event

How to change safely:
    - Keep the validate, then write, order in commit()
    - Never make put() unconditional
"""

from __future__ import annotations

import logging
import uuid
from typing import (
    Any,
    Callable,
    ClassVar,
    Collection,
    Dict,
    Iterable,
    List,
    Optional,
    Sequence,
    TypeVar,
)

from ..errors import ConcurrencyConflict, IllegalEventArgument, IllegalEventNumberArgument
from ..store.base import ConditionalCheckFailed, EventStore, WriteCondition
from .event import Event

logger = logging.getLogger(__name__)

HANDLER_ATTR = "__handles_event_type__"

F = TypeVar("F", bound=Callable[..., Any])


def handler_name(event_type: str) -> str:
    """Conventional handler name for an event type."""
    return f"on{event_type}"


def handles(event_type: str) -> Callable[[F], F]:
    """Register a method as the state transition for one event type.

    Example:
        >>> class Counter(Aggregate):
        ...     event_types = ("Incremented",)
        ...
        ...     @handles("Incremented")
        ...     def onIncremented(self, event):
        ...         self.count = (self.count or 0) + 1
    """

    def decorator(func: F) -> F:
        setattr(func, HANDLER_ATTR, event_type)
        return func

    return decorator


class Aggregate:
    """Base class for event-sourced aggregates.

    Attributes:
        id: Resource id, generated when not supplied
        version: Number of events applied so far
        event_types: Event types this aggregate must handle (optional)
    """

    event_types: ClassVar[Collection[str]] = ()
    _handlers: ClassVar[Dict[str, str]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)

        handlers = dict(cls._handlers)
        declared_here: Dict[str, str] = {}
        for name, member in vars(cls).items():
            event_type = getattr(member, HANDLER_ATTR, None)
            if event_type is None:
                continue
            if event_type in declared_here:
                raise TypeError(
                    f"{cls.__name__} registers {event_type} twice: "
                    f"{declared_here[event_type]} and {name}"
                )
            declared_here[event_type] = name
            handlers[event_type] = name
        cls._handlers = handlers

        missing = sorted(set(cls.event_types) - set(handlers))
        if missing:
            raise TypeError(
                f"{cls.__name__} has no handler for: "
                + ", ".join(f"{t} (expected {handler_name(t)})" for t in missing)
            )

    def __init__(self, store: EventStore, id: Optional[str] = None) -> None:
        """Instantiate an aggregate, optionally for an existing resource id.

        Args:
            store: Event log the aggregate reads from and commits to
            id: Resource id; a random UUID4 when omitted
        """
        self._store = store
        self._id = id or str(uuid.uuid4())
        self.version = 0

    @property
    def id(self) -> str:
        return self._id

    @classmethod
    def handled_event_types(cls) -> List[str]:
        return sorted(cls._handlers)

    async def events(self) -> List[Event]:
        """Fetch this resource's full stream, ascending by number."""
        rows = await self._store.query(self.id)
        return [Event.from_item(row) for row in rows]

    async def hydrate(self, events: Optional[Sequence[Event]] = None) -> None:
        """Apply events newer than the current version.

        Fetches the stream from the store when no events are given. Events
        already applied (number <= version) are skipped, so hydrating twice
        with the same stream is a no-op.
        """
        if events is None:
            events = await self.events()
        fresh = sorted((e for e in events if e.number > self.version), key=lambda e: e.number)
        self.apply(fresh)

    def apply(self, events: Iterable[Event]) -> None:
        """Apply events in the given order.

        Raises:
            IllegalEventArgument: If an event type has no handler
            InvalidTransition: If a handler rejects the event
        """
        for event in events:
            name = self._handlers.get(event.type)
            if name is None:
                raise IllegalEventArgument(event.type, handler_name(event.type))
            getattr(self, name)(event)
            self.version += 1
            logger.debug(
                f"Event number {event.number} applied with {name}.",
                extra={"resource": self.id, "event": event.type, "version": self.version},
            )

    async def commit(self, event: Event) -> None:
        """Append one event to the resource's stream.

        The event's number must be the caller's expected next number
        (version + 1 after hydration). The store write is conditional, so
        of two writers claiming the same number at most one succeeds. There
        is no retry; a caller who loses must build a fresh aggregate.

        Raises:
            IllegalEventArgument: If the event type has no handler
            InvalidTransition: If the handler rejects the event
            IllegalEventNumberArgument: If the number is out of sequence
            ConcurrencyConflict: If another writer committed first
            StoreError: On any other store failure
        """
        logger.info(
            "Committing event",
            extra={"resource": self.id, "event": event.type, "number": event.number},
        )

        await self.hydrate()
        self.apply([event])

        if self.version == 1 and event.number == 1:
            # First event of a new resource: guards against id collisions.
            condition = WriteCondition.NEW_RESOURCE
        elif self.version == event.number:
            condition = WriteCondition.NEW_EVENT
        else:
            raise IllegalEventNumberArgument(expected=self.version, actual=event.number)

        try:
            await self._store.put(event.to_item(self.id), condition)
        except ConditionalCheckFailed as e:
            logger.warning(
                "Commit lost to a concurrent writer",
                extra={"resource": self.id, "event": event.type, "number": event.number},
            )
            raise ConcurrencyConflict(self.id, event.number) from e

    def to_dict(self) -> Dict[str, Any]:
        """Public state for API callers.

        Internal fields (leading underscore, e.g. the bound store) and fields
        never set (None) are left out.
        """
        data: Dict[str, Any] = {"id": self.id, "version": self.version}
        for key, value in vars(self).items():
            if key.startswith("_") or value is None:
                continue
            data[key] = value
        return data

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, version={self.version})"
