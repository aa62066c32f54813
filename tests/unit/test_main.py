"""
Unit tests for the entry point wiring.
"""

import logging

import httpx
import json_log_formatter
import pytest

from aggstore.api import Settings
from aggstore.config import DynamoConfig, ObservabilityConfig, StoreBackend, StoreConfig
from aggstore.main import build_app, setup_logging
from aggstore.store import InMemoryEventStore


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers = handlers
    root.setLevel(level)


class TestSetupLogging:
    def test_json_format(self, restore_root_logger):
        setup_logging(StoreConfig(observability=ObservabilityConfig(log_level="debug")))

        [handler] = restore_root_logger.handlers
        assert isinstance(handler.formatter, json_log_formatter.JSONFormatter)
        assert restore_root_logger.level == logging.DEBUG
        assert logging.getLogger("botocore").level == logging.WARNING

    def test_text_format(self, restore_root_logger):
        setup_logging(StoreConfig(observability=ObservabilityConfig(log_format="text")))

        [handler] = restore_root_logger.handlers
        assert not isinstance(handler.formatter, json_log_formatter.JSONFormatter)
        assert restore_root_logger.level == logging.INFO


class TestBuildApp:
    def test_routes_and_stores(self):
        app = build_app(StoreConfig(backend=StoreBackend.MEMORY), Settings())

        paths = set(app.openapi()["paths"])
        assert {"/deploys", "/deploys/{deploy_id}", "/products/{product_id}/buy", "/health"} <= paths
        stores = app.state.stores
        assert set(stores) == {"deploys", "products"}
        assert all(isinstance(s, InMemoryEventStore) for s in stores.values())
        assert stores["deploys"] is not stores["products"]

    def test_each_aggregate_gets_its_own_table(self):
        config = StoreConfig(dynamodb=DynamoConfig(table="deploys", products_table="products"))

        stores = build_app(config, Settings()).state.stores

        assert stores["deploys"].table == "deploys"
        assert stores["products"].table == "products"

    @pytest.mark.asyncio
    async def test_product_writes_do_not_break_deploys(self):
        app = build_app(StoreConfig(backend=StoreBackend.MEMORY), Settings())

        async with app.router.lifespan_context(app):
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
                response = await client.post("/products/p1/restock", json={"amount": 2})
                assert response.status_code == 200

                response = await client.get("/deploys")
                assert response.status_code == 200
                assert response.json() == []

                response = await client.get("/deploys/p1")
                assert response.status_code == 404

        assert not any(s.is_connected for s in app.state.stores.values())
