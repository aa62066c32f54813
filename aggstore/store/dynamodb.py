"""
AWS DynamoDB event log store implementation.

This module provides the production backend for the event log. It uses
aiobotocore for async operations and boto3's type (de)serializers to
marshal items.

Table layout:
    - id: partition key (S)
    - number: sort key (N)
    - every other event field stored as a top-level attribute

Invariants:
    - put() is always conditional, never an unconditional overwrite
    - query() is strongly consistent and ordered by number ascending
    - query() and scan() follow LastEvaluatedKey until exhausted
    - Numbers come back as int (or float when fractional), never Decimal

How to change safely:
    - Test with DynamoDB Local (IS_OFFLINE=true) before deploying to AWS
    - Keep conditions equivalent to the in-memory backend
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List

from aiobotocore.session import get_session
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.exceptions import ClientError, EndpointConnectionError

from .base import (
    ConditionalCheckFailed,
    Item,
    StoreConnectionError,
    StoreError,
    WriteCondition,
)

logger = logging.getLogger(__name__)

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


def _to_dynamo(value: Any) -> Any:
    """Replace floats with Decimals, which is what TypeSerializer accepts."""
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _to_dynamo(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_dynamo(v) for v in value]
    return value


def _from_dynamo(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: _from_dynamo(v) for k, v in value.items()}
    if isinstance(value, (list, set)):
        return [_from_dynamo(v) for v in value]
    return value


def marshal_item(item: Item) -> Dict[str, Any]:
    """Convert a plain row into DynamoDB attribute values."""
    return {k: _serializer.serialize(_to_dynamo(v)) for k, v in item.items()}


def unmarshal_item(attributes: Dict[str, Any]) -> Item:
    """Convert DynamoDB attribute values back into a plain row."""
    return {k: _from_dynamo(_deserializer.deserialize(v)) for k, v in attributes.items()}


class DynamoEventStore:
    """DynamoDB implementation of the EventStore protocol.

    Attributes:
        config: DynamoConfig instance

    Example:
        >>> config = DynamoConfig(table="events", region="us-east-1")
        >>> store = DynamoEventStore(config)
        >>> await store.connect()
        >>> rows = await store.query("a2b4...")
    """

    def __init__(self, config: Any, client: Any = None) -> None:
        """Initialize DynamoDB event store.

        Args:
            config: DynamoConfig instance
            client: Pre-built aiobotocore DynamoDB client (tests, shared clients)
        """
        self.config = config
        self._session = None
        self._client_ctx = None
        self._client = client
        self._connected = False

    @property
    def is_connected(self) -> bool:
        """Whether connected to DynamoDB."""
        return self._connected

    @property
    def table(self) -> str:
        return self.config.table

    async def _open_client(self) -> None:
        if self._client is not None:
            return

        self._session = get_session()

        client_config = {
            "region_name": self.config.region,
        }

        if self.config.endpoint_url:
            client_config["endpoint_url"] = self.config.endpoint_url

        self._client_ctx = self._session.create_client("dynamodb", **client_config)
        self._client = await self._client_ctx.__aenter__()

    async def connect(self) -> None:
        """Connect to DynamoDB and verify the table exists.

        Raises:
            StoreConnectionError: If connection fails or the table is missing
        """
        if self._connected:
            return

        try:
            await self._open_client()
            await self._client.describe_table(TableName=self.table)

            self._connected = True
            logger.info(
                "Connected to DynamoDB",
                extra={
                    "table": self.table,
                    "region": self.config.region,
                    "endpoint": self.config.endpoint_url or "AWS",
                },
            )

        except EndpointConnectionError as e:
            raise StoreConnectionError(f"Failed to connect to DynamoDB endpoint: {e}") from e
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code == "ResourceNotFoundException":
                raise StoreConnectionError(f"DynamoDB table '{self.table}' not found") from e
            raise StoreConnectionError(f"DynamoDB error: {e}") from e

    async def create_table(self) -> None:
        """Create the event table and wait until it is active.

        Intended for DynamoDB Local and test environments.
        """
        await self._open_client()
        try:
            await self._client.create_table(
                TableName=self.table,
                AttributeDefinitions=[
                    {"AttributeName": "id", "AttributeType": "S"},
                    {"AttributeName": "number", "AttributeType": "N"},
                ],
                KeySchema=[
                    {"AttributeName": "id", "KeyType": "HASH"},
                    {"AttributeName": "number", "KeyType": "RANGE"},
                ],
                BillingMode="PAY_PER_REQUEST",
            )
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code != "ResourceInUseException":
                raise StoreError(f"DynamoDB CreateTable failed: {e}") from e
            logger.info("DynamoDB table already exists", extra={"table": self.table})

        waiter = self._client.get_waiter("table_exists")
        await waiter.wait(TableName=self.table)
        logger.info("DynamoDB table ready", extra={"table": self.table})

    async def close(self) -> None:
        """Close DynamoDB connection."""
        if self._client_ctx is not None:
            try:
                await self._client_ctx.__aexit__(None, None, None)
            except Exception as e:
                logger.warning(f"Error closing DynamoDB client: {e}")
            self._client = None

        self._client_ctx = None
        self._session = None
        self._connected = False
        logger.info("DynamoDB connection closed")

    async def query(self, resource_id: str) -> List[Item]:
        """Return every row for a resource id, ascending by number."""
        self._check_connected()

        paginator = self._client.get_paginator("query")
        items: List[Item] = []
        try:
            async for page in paginator.paginate(
                TableName=self.table,
                KeyConditionExpression="id = :id",
                ExpressionAttributeValues={":id": {"S": resource_id}},
                ScanIndexForward=True,
                ConsistentRead=True,
            ):
                items.extend(unmarshal_item(raw) for raw in page.get("Items", []))
        except ClientError as e:
            raise StoreError(f"DynamoDB Query failed: {e}") from e

        return items

    async def scan(self) -> List[Item]:
        """Return every row in the table."""
        self._check_connected()

        paginator = self._client.get_paginator("scan")
        items: List[Item] = []
        try:
            async for page in paginator.paginate(TableName=self.table):
                items.extend(unmarshal_item(raw) for raw in page.get("Items", []))
        except ClientError as e:
            raise StoreError(f"DynamoDB Scan failed: {e}") from e

        logger.debug("Scanned DynamoDB table", extra={"table": self.table, "count": len(items)})
        return items

    async def put(self, item: Item, condition: WriteCondition) -> None:
        """Insert a row if its precondition holds.

        NEW_RESOURCE uses attribute_not_exists(id); NEW_EVENT uses
        attribute_not_exists on the number sort key. Both are evaluated
        against the item sharing the (id, number) key.

        Raises:
            ConditionalCheckFailed: If the row already exists
            StoreError: For other DynamoDB errors
        """
        self._check_connected()

        request: Dict[str, Any] = {
            "TableName": self.table,
            "Item": marshal_item(item),
        }
        if condition == WriteCondition.NEW_RESOURCE:
            request["ConditionExpression"] = "attribute_not_exists(id)"
        else:
            request["ConditionExpression"] = "attribute_not_exists(#eventNumber)"
            request["ExpressionAttributeNames"] = {"#eventNumber": "number"}

        try:
            await self._client.put_item(**request)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code == "ConditionalCheckFailedException":
                raise ConditionalCheckFailed(item["id"], int(item["number"])) from e
            raise StoreError(f"DynamoDB PutItem failed: {e}") from e

        logger.debug(
            "Event stored in DynamoDB",
            extra={
                "table": self.table,
                "resource": item["id"],
                "number": item["number"],
                "condition": condition.value,
            },
        )

    def _check_connected(self) -> None:
        if not self._connected or self._client is None:
            raise StoreConnectionError("Not connected to DynamoDB")
