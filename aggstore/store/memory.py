"""
In-memory event log store implementation for testing.

This module provides a simple in-memory backend for:
- Unit tests
- Integration tests
- Local development without DynamoDB

Invariants:
    - All data is lost on process exit
    - Enforces the same write conditions as the DynamoDB backend
    - Items are copied on the way in and out, so callers cannot mutate rows

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with EventStore protocol
"""

from __future__ import annotations

import asyncio
import copy
from collections import defaultdict
from typing import Dict, List, Optional
import logging

from .base import (
    ConditionalCheckFailed,
    Item,
    StoreConnectionError,
    WriteCondition,
)

logger = logging.getLogger(__name__)


class InMemoryEventStore:
    """In-memory implementation of EventStore for testing.

    Rows live in a dict of resource id to a dict of event number to item.

    Thread safety:
        Uses an asyncio lock so the precondition check and the insert happen
        atomically with respect to other coroutines.

    Example:
        >>> store = InMemoryEventStore()
        >>> await store.connect()
        >>> await store.put({"id": "r1", "number": 1, "type": "Created"},
        ...                 WriteCondition.NEW_RESOURCE)
        >>> await store.query("r1")
        [{'id': 'r1', 'number': 1, 'type': 'Created'}]
    """

    def __init__(self) -> None:
        self._rows: Dict[str, Dict[int, Item]] = defaultdict(dict)
        self._connected = False
        self._lock = asyncio.Lock()
        self._failure: Optional[Exception] = None

    @property
    def is_connected(self) -> bool:
        """Whether connected (always true after connect())."""
        return self._connected

    async def connect(self) -> None:
        """Connect (no-op for in-memory)."""
        self._connected = True
        logger.debug("InMemoryEventStore connected")

    async def close(self) -> None:
        """Close and clear all data."""
        self._connected = False
        self._rows.clear()
        logger.debug("InMemoryEventStore closed")

    async def query(self, resource_id: str) -> List[Item]:
        self._check_ready()
        async with self._lock:
            rows = self._rows.get(resource_id, {})
            return [copy.deepcopy(rows[number]) for number in sorted(rows)]

    async def scan(self) -> List[Item]:
        self._check_ready()
        async with self._lock:
            return [
                copy.deepcopy(item)
                for rows in self._rows.values()
                for item in rows.values()
            ]

    async def put(self, item: Item, condition: WriteCondition) -> None:
        """Insert a row if its precondition holds.

        Args:
            item: Row with "id" and "number"
            condition: NEW_RESOURCE rejects when any row exists for the id,
                NEW_EVENT rejects when the (id, number) row exists

        Raises:
            ConditionalCheckFailed: If the precondition does not hold
        """
        self._check_ready()
        resource_id = item["id"]
        number = int(item["number"])

        async with self._lock:
            rows = self._rows.get(resource_id, {})
            if condition == WriteCondition.NEW_RESOURCE and rows:
                raise ConditionalCheckFailed(resource_id, number)
            if condition == WriteCondition.NEW_EVENT and number in rows:
                raise ConditionalCheckFailed(resource_id, number)
            self._rows[resource_id][number] = copy.deepcopy(item)

        logger.debug(
            "Event stored in memory",
            extra={"resource": resource_id, "number": number, "condition": condition.value},
        )

    def _check_ready(self) -> None:
        if not self._connected:
            raise StoreConnectionError("Not connected")
        if self._failure is not None:
            failure, self._failure = self._failure, None
            raise failure

    # Testing helpers

    def inject_failure(self, exception: Exception) -> None:
        """Make the next store operation raise this exception (testing helper)."""
        self._failure = exception

    def get_all_items(self) -> List[Item]:
        """Get every row ordered by id then number (testing helper)."""
        return [
            copy.deepcopy(self._rows[resource_id][number])
            for resource_id in sorted(self._rows)
            for number in sorted(self._rows[resource_id])
        ]

    def get_item_count(self, resource_id: Optional[str] = None) -> int:
        """Get the row count for one resource or the whole table (testing helper)."""
        if resource_id is not None:
            return len(self._rows.get(resource_id, {}))
        return sum(len(rows) for rows in self._rows.values())

    def clear(self) -> None:
        """Remove every row (testing helper)."""
        self._rows.clear()
