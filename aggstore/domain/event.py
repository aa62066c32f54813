"""
Events and resources.

An event has a number, a type, a creation date as an ISO string, and a
type-specific payload. In the store it is a flat row: the resource id, the
three envelope fields, and every payload field at the top level.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Protocol, runtime_checkable

ENVELOPE_FIELDS = ("id", "number", "type", "created")


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@runtime_checkable
class Resource(Protocol):
    """A resource is uniquely identifiable."""

    @property
    def id(self) -> str:
        ...


@dataclass(frozen=True)
class Event:
    """An immutable, numbered fact about one resource.

    Attributes:
        number: Position in the resource's stream, starting at 1
        type: Tag selecting the state-transition handler
        created: Creation time as an ISO 8601 string (UTC)
        payload: Type-specific fields

    Example:
        >>> event = Event(number=1, type="DeployCreated",
        ...               payload={"specification": "app:v1"})
        >>> event["specification"]
        'app:v1'
    """

    number: int
    type: str
    created: str = field(default_factory=utc_now)
    payload: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if isinstance(self.number, bool) or not isinstance(self.number, int):
            raise TypeError(f"Event number must be an int, got {self.number!r}")
        if self.number < 1:
            raise ValueError(f"Event number must be >= 1, got {self.number}")
        if not self.type:
            raise ValueError("Event type must not be empty")
        clash = set(self.payload) & set(ENVELOPE_FIELDS)
        if clash:
            raise ValueError(f"Payload uses reserved field names: {sorted(clash)}")

    def __getitem__(self, key: str) -> Any:
        return self.payload[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.payload.get(key, default)

    def to_item(self, resource_id: str) -> Dict[str, Any]:
        """Flatten into a store row for the given resource."""
        return {
            "id": resource_id,
            "number": self.number,
            "type": self.type,
            "created": self.created,
            **self.payload,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Flatten without the resource id, as returned to API callers."""
        return {
            "number": self.number,
            "type": self.type,
            "created": self.created,
            **self.payload,
        }

    @classmethod
    def from_item(cls, item: Mapping[str, Any]) -> Event:
        """Rebuild an event from a store row.

        Rows written without a creation date get an empty string rather
        than a fabricated timestamp.
        """
        return cls(
            number=int(item["number"]),
            type=item["type"],
            created=item.get("created", ""),
            payload={k: v for k, v in item.items() if k not in ENVELOPE_FIELDS},
        )
