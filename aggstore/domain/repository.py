"""
Aggregate lookup: find_one, find_all and a repository wrapper.

The aggregate kind is passed explicitly as a factory (store, id) -> aggregate.
Aggregate subclasses satisfy that signature themselves.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, Dict, Generic, List, Optional, TypeVar, Union

from ..errors import ResourceNotFound
from ..store.base import EventStore
from .aggregate import Aggregate
from .event import Event

logger = logging.getLogger(__name__)

A = TypeVar("A", bound=Aggregate)

AggregateFactory = Callable[[EventStore, Optional[str]], A]


async def find_one(
    store: EventStore,
    factory: AggregateFactory[A],
    resource_id: str,
) -> Union[A, ResourceNotFound]:
    """Load one aggregate by id.

    Returns:
        The hydrated aggregate, or ResourceNotFound when no events exist
        for the id. Not-found is a value, never an exception.
    """
    aggregate = factory(store, resource_id)
    await aggregate.hydrate()
    if aggregate.version == 0:
        return ResourceNotFound(resource_id)
    return aggregate


async def find_all(store: EventStore, factory: AggregateFactory[A]) -> List[A]:
    """Load every aggregate in the store with one scan.

    Rows are grouped by resource id and each aggregate is hydrated from its
    own group, without a second round-trip. The order of the returned
    aggregates is unspecified.
    """
    rows = await store.scan()

    streams: Dict[str, List[Event]] = defaultdict(list)
    for row in rows:
        streams[row["id"]].append(Event.from_item(row))

    aggregates: List[A] = []
    for resource_id, events in streams.items():
        events.sort(key=lambda e: e.number)
        aggregate = factory(store, resource_id)
        await aggregate.hydrate(events)
        aggregates.append(aggregate)

    logger.debug(
        "Loaded aggregates from scan",
        extra={"rows": len(rows), "aggregates": len(aggregates)},
    )
    return aggregates


class AggregateRepository(Generic[A]):
    """Store and factory bound together for one aggregate kind.

    Example:
        >>> deploys = AggregateRepository(store, Deploy)
        >>> deploy = deploys.create()
        >>> await deploy.commit(Event(number=1, type="DeployCreated", ...))
        >>> found = await deploys.find_one(deploy.id)
    """

    def __init__(self, store: EventStore, factory: AggregateFactory[A]) -> None:
        self.store = store
        self.factory = factory

    def create(self, resource_id: Optional[str] = None) -> A:
        """Build an empty aggregate; an id is generated when omitted."""
        return self.factory(self.store, resource_id)

    async def find_one(self, resource_id: str) -> Union[A, ResourceNotFound]:
        return await find_one(self.store, self.factory, resource_id)

    async def find_all(self) -> List[A]:
        return await find_all(self.store, self.factory)
