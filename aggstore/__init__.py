"""
aggstore - Event-sourced aggregate store.

Resources are never stored as mutable rows. Each resource is an append-only
stream of numbered events, and its current state is an aggregate rebuilt by
replaying that stream.

Architecture:
    ┌─────────────┐  commit()   ┌─────────────┐  conditional put  ┌──────────────┐
    │   Caller    │────────────▶│  Aggregate  │──────────────────▶│  Event log   │
    │ (HTTP, job) │◀────────────│   (state)   │◀──────────────────│ (DynamoDB /  │
    └─────────────┘  to_dict()  └─────────────┘  query / scan     │  in-memory)  │
                                                                  └──────────────┘

Invariants:
    - The event log is the source of truth; aggregates are derived views
    - Event numbers are gap-free from 1 per resource id
    - A commit writes at most one row and never overwrites an existing one
    - Of two writers claiming the same event number, at most one succeeds

How to change safely:
    - New backends must enforce both write conditions atomically
    - Event types are append-only; handlers for old types must stay
"""

from .domain import Aggregate, AggregateRepository, Event, find_all, find_one, handles
from .errors import (
    AggregateError,
    ConcurrencyConflict,
    IllegalEventArgument,
    IllegalEventNumberArgument,
    InvalidTransition,
    ResourceNotFound,
)

__version__ = "1.0.0"

__all__ = [
    "Aggregate",
    "AggregateError",
    "AggregateRepository",
    "ConcurrencyConflict",
    "Event",
    "IllegalEventArgument",
    "IllegalEventNumberArgument",
    "InvalidTransition",
    "ResourceNotFound",
    "find_all",
    "find_one",
    "handles",
]
