"""
Error types for aggstore aggregates.

This module defines the exceptions raised by the aggregate core:
- AggregateError: Base exception
- IllegalEventNumberArgument: Caller supplied an out-of-sequence event number
- IllegalEventArgument: Event type has no handler on the aggregate
- InvalidTransition: A handler rejected the event for the current state
- ConcurrencyConflict: Another writer already claimed the event number

ResourceNotFound is not an exception; find_one() returns it as a value so
callers can tell "never existed" apart from a failure.

Invariants:
    - All raised errors inherit from AggregateError
    - A caller error (IllegalEventNumberArgument) and a lost race
      (ConcurrencyConflict) are distinct types
    - An aggregate instance must be discarded after any failed commit
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


class AggregateError(Exception):
    """Base exception for all aggregate errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "AGGREGATE_ERROR"
        self.details = details or {}


class IllegalEventNumberArgument(AggregateError):
    """The event number does not follow the aggregate's version.

    Recoverable: re-hydrate and retry with version + 1.
    """

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            "The event is not being applied to a resource with an appropriate version.",
            code="ILLEGAL_EVENT_NUMBER",
            details={"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


class IllegalEventArgument(AggregateError):
    """No handler is registered for the event type.

    A programming error in the aggregate class, not a data error.
    """

    def __init__(self, event_type: str, handler_name: str) -> None:
        super().__init__(
            f"Unsupported event detected for event type {event_type}. "
            f"Please implement {handler_name}(event).",
            code="ILLEGAL_EVENT",
            details={"event_type": event_type, "handler": handler_name},
        )
        self.event_type = event_type
        self.handler_name = handler_name


class InvalidTransition(AggregateError):
    """A handler refused the event given the aggregate's current state."""

    def __init__(self, message: str = "Failed to apply the event.") -> None:
        super().__init__(message, code="INVALID_TRANSITION")


class ConcurrencyConflict(AggregateError):
    """The store rejected the conditional write.

    Another writer committed the same resource id or event number first.
    The in-memory aggregate is stale.
    """

    def __init__(self, resource_id: str, number: int) -> None:
        super().__init__(
            f"Event number {number} of resource {resource_id} was already committed.",
            code="CONCURRENCY_CONFLICT",
            details={"resource_id": resource_id, "number": number},
        )
        self.resource_id = resource_id
        self.number = number


@dataclass(frozen=True)
class ResourceNotFound:
    """No events exist for the resource id."""

    id: str

    @property
    def message(self) -> str:
        return f"The resource with id {self.id} does not exist."
