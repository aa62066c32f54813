"""
Base protocol and types for the event log store abstraction.

This module defines the EventStore protocol that all backends must implement,
along with the write conditions and store errors.

Invariants:
    - Rows are keyed by (id, number); number is the sort key
    - query() returns one resource's rows ordered by number ascending
    - put() never overwrites: it is always conditional
    - A rejected precondition raises ConditionalCheckFailed and writes nothing

How to change safely:
    - Protocol changes require updating all implementations
    - Keep the in-memory backend's conditions equivalent to DynamoDB's
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import replace
from enum import Enum
from typing import (
    Any,
    Dict,
    List,
    Optional,
    Protocol,
    runtime_checkable,
    TYPE_CHECKING,
)
import logging

if TYPE_CHECKING:
    from ..config import StoreConfig

logger = logging.getLogger(__name__)

Item = Dict[str, Any]


class StoreError(Exception):
    """Base exception for event log store operations."""
    pass


class StoreConnectionError(StoreError):
    """Connection to the store backend failed."""
    pass


class ConditionalCheckFailed(StoreError):
    """The put precondition did not hold; a row already exists."""

    def __init__(self, resource_id: str, number: int) -> None:
        super().__init__(
            f"Conditional put rejected for resource {resource_id} event {number}"
        )
        self.resource_id = resource_id
        self.number = number


class WriteCondition(Enum):
    """Precondition attached to every put.

    NEW_RESOURCE: no row exists yet for this id. Guards the first event
        against two independently generated resources sharing an id.
    NEW_EVENT: no row exists yet for this id and number. Guards against two
        writers claiming the same sequence number.
    """

    NEW_RESOURCE = "new_resource"
    NEW_EVENT = "new_event"


@runtime_checkable
class EventStore(Protocol):
    """Protocol for event log backends.

    A single table keyed by (id: partition key, number: sort key). Each row
    is a serialized event plus its resource id.

    Ordering contract:
        - query() yields a resource's rows ascending by number
        - scan() makes no ordering promise

    Durability contract:
        - put() returns only after the row is stored
        - put() with a failed precondition leaves the table unchanged

    Example:
        >>> store = InMemoryEventStore()
        >>> await store.connect()
        >>> await store.put({"id": "r1", "number": 1, "type": "Created"},
        ...                 WriteCondition.NEW_RESOURCE)
        >>> await store.query("r1")
    """

    @abstractmethod
    async def connect(self) -> None:
        """Connect to the store backend.

        Must be called before any other operations.

        Raises:
            StoreConnectionError: If connection fails
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the connection and release resources."""
        ...

    @abstractmethod
    async def query(self, resource_id: str) -> List[Item]:
        """Return every row for a resource id, ascending by number.

        Raises:
            StoreConnectionError: If not connected
            StoreError: For other read failures
        """
        ...

    @abstractmethod
    async def scan(self) -> List[Item]:
        """Return every row in the table, unordered.

        Raises:
            StoreConnectionError: If not connected
            StoreError: For other read failures
        """
        ...

    @abstractmethod
    async def put(self, item: Item, condition: WriteCondition) -> None:
        """Insert a row if its precondition holds.

        Args:
            item: Row with at least "id" and "number"
            condition: Precondition to enforce atomically

        Raises:
            ConditionalCheckFailed: If the precondition does not hold
            StoreConnectionError: If not connected
            StoreError: For other write failures
        """
        ...

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether currently connected to the backend."""
        ...


def create_event_store(config: "StoreConfig", table: Optional[str] = None) -> EventStore:
    """Factory function to create an event store from configuration.

    Args:
        config: Store configuration
        table: DynamoDB table to use instead of config.dynamodb.table

    Returns:
        Appropriate EventStore implementation

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import StoreBackend
    from .dynamodb import DynamoEventStore
    from .memory import InMemoryEventStore

    if config.backend == StoreBackend.DYNAMODB:
        dynamodb = config.dynamodb
        if table is not None:
            dynamodb = replace(dynamodb, table=table)
        return DynamoEventStore(dynamodb)
    elif config.backend == StoreBackend.MEMORY:
        return InMemoryEventStore()
    else:
        raise ValueError(f"Unsupported store backend: {config.backend}")
