"""
Unit tests for the DynamoDB event store.

A fake aiobotocore client stands in for DynamoDB. It enforces the key
uniqueness behind ConditionExpression and pages results, so the store's
marshalling, conditions, pagination and error mapping are all exercised.
"""

import pytest
import pytest_asyncio
from botocore.exceptions import ClientError

from aggstore.config import DynamoConfig
from aggstore.domain import Event, find_one
from aggstore.errors import ConcurrencyConflict
from aggstore.examples.deploys import Deploy
from aggstore.store.base import (
    ConditionalCheckFailed,
    StoreConnectionError,
    StoreError,
    WriteCondition,
)
from aggstore.store.dynamodb import DynamoEventStore, marshal_item, unmarshal_item


def client_error(code, operation):
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakePaginator:
    def __init__(self, client, operation):
        self.client = client
        self.operation = operation

    def paginate(self, **kwargs):
        self.client.calls.append((self.operation, kwargs))
        return self._pages(kwargs)

    async def _pages(self, kwargs):
        if self.client.fail_reads:
            raise client_error("InternalServerError", self.operation)
        items = sorted(self.client.items.items(), key=lambda kv: (kv[0][0], int(kv[0][1])))
        if self.operation == "query":
            wanted = kwargs["ExpressionAttributeValues"][":id"]["S"]
            items = [kv for kv in items if kv[0][0] == wanted]
        raw = [item for _, item in items]
        size = self.client.page_size
        for start in range(0, max(len(raw), 1), size):
            yield {"Items": raw[start:start + size]}


class FakeWaiter:
    def __init__(self, client):
        self.client = client

    async def wait(self, **kwargs):
        self.client.calls.append(("wait", kwargs))


class FakeDynamoClient:
    """Minimal async DynamoDB client keyed by (id, number)."""

    def __init__(self, tables=("events",), page_size=2):
        self.tables = set(tables)
        self.items = {}
        self.page_size = page_size
        self.calls = []
        self.fail_put = None
        self.fail_reads = False

    async def describe_table(self, TableName):
        if TableName not in self.tables:
            raise client_error("ResourceNotFoundException", "DescribeTable")
        return {"Table": {"TableName": TableName, "TableStatus": "ACTIVE"}}

    async def create_table(self, **kwargs):
        self.calls.append(("create_table", kwargs))
        self.tables.add(kwargs["TableName"])

    def get_waiter(self, name):
        return FakeWaiter(self)

    async def put_item(self, **kwargs):
        self.calls.append(("put_item", kwargs))
        if self.fail_put:
            raise client_error(self.fail_put, "PutItem")
        item = kwargs["Item"]
        key = (item["id"]["S"], item["number"]["N"])
        if key in self.items and "ConditionExpression" in kwargs:
            raise client_error("ConditionalCheckFailedException", "PutItem")
        self.items[key] = item
        return {}

    def get_paginator(self, operation):
        return FakePaginator(self, operation)


@pytest.fixture
def client():
    return FakeDynamoClient()


@pytest.fixture
def config():
    return DynamoConfig(table="events", region="us-east-1")


@pytest_asyncio.fixture
async def dynamo(client, config):
    store = DynamoEventStore(config, client=client)
    await store.connect()
    return store


def row(resource_id, number, **payload):
    return {"id": resource_id, "number": number, "type": "T", "created": "c", **payload}


class TestMarshalling:
    """Tests for marshal_item / unmarshal_item."""

    def test_marshal_types(self):
        raw = marshal_item(row("r1", 1, amount=2.5, ok=True, tags=["a"]))

        assert raw["id"] == {"S": "r1"}
        assert raw["number"] == {"N": "1"}
        assert raw["amount"] == {"N": "2.5"}
        assert raw["ok"] == {"BOOL": True}
        assert raw["tags"] == {"L": [{"S": "a"}]}

    def test_unmarshal_restores_python_numbers(self):
        item = row("r1", 3, amount=2.5, nested={"count": 4, "ratio": 0.25})

        restored = unmarshal_item(marshal_item(item))

        assert restored == item
        assert isinstance(restored["number"], int)
        assert isinstance(restored["nested"]["count"], int)


class TestDynamoEventStore:
    """Tests for DynamoEventStore."""

    @pytest.mark.asyncio
    async def test_connect_verifies_table(self, client, config):
        store = DynamoEventStore(config, client=client)
        assert not store.is_connected

        await store.connect()

        assert store.is_connected
        assert store.table == "events"

    @pytest.mark.asyncio
    async def test_connect_missing_table(self, client):
        store = DynamoEventStore(DynamoConfig(table="absent"), client=client)

        with pytest.raises(StoreConnectionError, match="absent"):
            await store.connect()
        assert not store.is_connected

    @pytest.mark.asyncio
    async def test_requires_connection(self, client, config):
        store = DynamoEventStore(config, client=client)

        with pytest.raises(StoreConnectionError):
            await store.query("r1")
        with pytest.raises(StoreConnectionError):
            await store.put(row("r1", 1), WriteCondition.NEW_RESOURCE)

    @pytest.mark.asyncio
    async def test_close_keeps_injected_client(self, dynamo, client):
        await dynamo.close()

        assert not dynamo.is_connected
        with pytest.raises(StoreConnectionError):
            await dynamo.scan()

    @pytest.mark.asyncio
    async def test_put_new_resource_condition(self, dynamo, client):
        await dynamo.put(row("r1", 1), WriteCondition.NEW_RESOURCE)

        [(_, request)] = [c for c in client.calls if c[0] == "put_item"]
        assert request["TableName"] == "events"
        assert request["ConditionExpression"] == "attribute_not_exists(id)"
        assert "ExpressionAttributeNames" not in request
        assert request["Item"]["number"] == {"N": "1"}

    @pytest.mark.asyncio
    async def test_put_new_event_condition(self, dynamo, client):
        """The number attribute is aliased since NUMBER is reserved."""
        await dynamo.put(row("r1", 2), WriteCondition.NEW_EVENT)

        [(_, request)] = [c for c in client.calls if c[0] == "put_item"]
        assert request["ConditionExpression"] == "attribute_not_exists(#eventNumber)"
        assert request["ExpressionAttributeNames"] == {"#eventNumber": "number"}

    @pytest.mark.asyncio
    async def test_conditional_failure(self, dynamo):
        await dynamo.put(row("r1", 1), WriteCondition.NEW_RESOURCE)

        with pytest.raises(ConditionalCheckFailed) as exc_info:
            await dynamo.put(row("r1", 1), WriteCondition.NEW_EVENT)

        assert exc_info.value.resource_id == "r1"
        assert exc_info.value.number == 1

    @pytest.mark.asyncio
    async def test_other_put_errors(self, dynamo, client):
        client.fail_put = "ProvisionedThroughputExceededException"

        with pytest.raises(StoreError) as exc_info:
            await dynamo.put(row("r1", 1), WriteCondition.NEW_RESOURCE)

        assert not isinstance(exc_info.value, ConditionalCheckFailed)

    @pytest.mark.asyncio
    async def test_query_follows_pages(self, dynamo, client):
        for number in (4, 2, 5, 1, 3):
            await dynamo.put(row("r1", number), WriteCondition.NEW_EVENT)
        await dynamo.put(row("r2", 1), WriteCondition.NEW_RESOURCE)

        rows = await dynamo.query("r1")

        assert [r["number"] for r in rows] == [1, 2, 3, 4, 5]
        [(_, request)] = [c for c in client.calls if c[0] == "query"]
        assert request["KeyConditionExpression"] == "id = :id"
        assert request["ScanIndexForward"] is True
        assert request["ConsistentRead"] is True

    @pytest.mark.asyncio
    async def test_scan_follows_pages(self, dynamo):
        for resource_id in ("r1", "r2", "r3"):
            await dynamo.put(row(resource_id, 1), WriteCondition.NEW_RESOURCE)

        rows = await dynamo.scan()

        assert sorted(r["id"] for r in rows) == ["r1", "r2", "r3"]

    @pytest.mark.asyncio
    async def test_empty_scan(self, dynamo):
        assert await dynamo.scan() == []

    @pytest.mark.asyncio
    async def test_read_errors(self, dynamo, client):
        client.fail_reads = True

        with pytest.raises(StoreError):
            await dynamo.query("r1")
        with pytest.raises(StoreError):
            await dynamo.scan()

    @pytest.mark.asyncio
    async def test_create_table(self, client):
        store = DynamoEventStore(DynamoConfig(table="fresh"), client=client)

        await store.create_table()
        await store.connect()

        [(_, request)] = [c for c in client.calls if c[0] == "create_table"]
        assert request["KeySchema"] == [
            {"AttributeName": "id", "KeyType": "HASH"},
            {"AttributeName": "number", "KeyType": "RANGE"},
        ]
        assert ("wait", {"TableName": "fresh"}) in client.calls
        assert store.is_connected


class TestAggregatesOnDynamo:
    """Aggregate commit and lookup through the DynamoDB backend."""

    @pytest.mark.asyncio
    async def test_commit_and_find(self, dynamo):
        deploy = Deploy(dynamo)
        await deploy.commit(
            Event(number=1, type="DeployCreated", payload={"specification": "app:v1"})
        )
        await deploy.commit(Event(number=2, type="DeployDeleted"))

        found = await find_one(dynamo, Deploy, deploy.id)

        assert found.version == 2
        assert found.status == "deleted"

    @pytest.mark.asyncio
    async def test_id_collision_is_a_conflict(self, dynamo, client):
        """A first event for an id that already has row 1 loses."""
        await dynamo.put(row("d1", 1, specification="x"), WriteCondition.NEW_RESOURCE)
        stale = Deploy(dynamo, "d1")
        # Pretend the stale instance never saw the existing row
        stale.hydrate = _no_hydrate

        with pytest.raises(ConcurrencyConflict):
            await stale.commit(
                Event(number=1, type="DeployCreated", payload={"specification": "y"})
            )


async def _no_hydrate(events=None):
    return None
