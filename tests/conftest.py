"""
Shared fixtures for the aggstore test suite.
"""

import pytest_asyncio

from aggstore.store.memory import InMemoryEventStore


@pytest_asyncio.fixture
async def store():
    """Connected, empty in-memory event store."""
    store = InMemoryEventStore()
    await store.connect()
    yield store
    await store.close()
