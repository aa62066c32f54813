"""
Event log store abstraction for aggstore.

This module provides a pluggable backend interface supporting:
- AWS DynamoDB (production)
- In-memory (for testing)

The event log is the source of truth. Aggregates are derived views that are
rebuilt by replaying it.

Invariants:
    - Rows are keyed by (resource id, event number)
    - Writes are conditional inserts; rows are never updated or deleted
    - A failed conditional write leaves no partial row behind

How to change safely:
    - New backends must implement the EventStore protocol
    - Mirror both write conditions exactly
"""

from .base import (
    ConditionalCheckFailed,
    EventStore,
    Item,
    StoreConnectionError,
    StoreError,
    WriteCondition,
    create_event_store,
)
from .dynamodb import DynamoEventStore
from .memory import InMemoryEventStore

__all__ = [
    # Protocol and types
    "EventStore",
    "Item",
    "WriteCondition",
    "StoreError",
    "StoreConnectionError",
    "ConditionalCheckFailed",
    # Factory
    "create_event_store",
    # Implementations
    "DynamoEventStore",
    "InMemoryEventStore",
]
