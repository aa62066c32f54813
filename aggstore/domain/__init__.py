"""
Aggregate core for aggstore.

Aggregates are rebuilt by replaying a resource's events; new events are
appended with a conditional write so concurrent writers cannot both claim
the same event number.

Invariants:
    - version == number of the last applied event
    - Events are applied in ascending number order
    - find_one() returns ResourceNotFound instead of raising
"""

from .aggregate import Aggregate, handler_name, handles
from .event import Event, Resource
from .repository import AggregateFactory, AggregateRepository, find_all, find_one

__all__ = [
    "Aggregate",
    "AggregateFactory",
    "AggregateRepository",
    "Event",
    "Resource",
    "find_all",
    "find_one",
    "handler_name",
    "handles",
]
