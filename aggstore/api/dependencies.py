"""FastAPI dependencies shared by routers."""

from typing import Callable

from fastapi import HTTPException, Request

from ..store.base import EventStore


def store_dependency(name: str) -> Callable[[Request], EventStore]:
    """Dependency returning the event store registered under ``name``.

    Each aggregate kind owns its own event log, so a router asks for its
    store by name instead of sharing one table with other aggregates.
    """

    def get_store(request: Request) -> EventStore:
        stores = request.app.state.stores
        if name not in stores:
            raise HTTPException(status_code=503, detail=f"No event store for {name}")
        return stores[name]

    get_store.__name__ = f"get_{name}_store"
    return get_store
