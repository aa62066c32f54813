"""
Configuration management for aggstore.

All configuration is done via environment variables. This module provides
typed configuration classes with validation. The resulting StoreConfig is
passed explicitly to create_event_store(); nothing here holds a client.

Invariants:
    - All settings have sensible defaults for local development
    - DYNAMODB_TABLE must be set explicitly when the dynamodb backend is used
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep from_env() and validate() in sync
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)

OFFLINE_ENDPOINT = "http://localhost:8000"


class PropertyNotFound(ValueError):
    """A required environment property is missing."""

    def __init__(self, prop: str) -> None:
        super().__init__(f"Missing the required {prop} environment property.")
        self.property = prop


def load_property_optional(prop: str) -> str | None:
    """Return an environment property, or None when unset or empty."""
    return os.getenv(prop) or None


def is_offline() -> bool:
    """Whether running against a local store (IS_OFFLINE=true)."""
    return os.getenv("IS_OFFLINE", "false").lower() == "true"


class StoreBackend(Enum):
    """Supported event log backends."""

    MEMORY = "memory"
    DYNAMODB = "dynamodb"


@dataclass(frozen=True)
class DynamoConfig:
    """DynamoDB event log configuration.

    Attributes:
        table: Deploy event table, keyed by id (HASH) and number (RANGE)
        products_table: Product event table (same key schema)
        region: AWS region
        endpoint_url: Custom endpoint URL (DynamoDB Local, LocalStack)
    """

    table: str = ""
    products_table: str = ""
    region: str = "us-east-1"
    endpoint_url: str | None = None

    @classmethod
    def from_env(cls) -> DynamoConfig:
        """Load configuration from environment variables."""
        endpoint_url = load_property_optional("DYNAMODB_ENDPOINT_URL")
        if endpoint_url is None and is_offline():
            endpoint_url = OFFLINE_ENDPOINT
        table = os.getenv("DYNAMODB_TABLE", "")
        return cls(
            table=table,
            products_table=os.getenv("PRODUCTS_TABLE") or (f"{table}-products" if table else ""),
            region=os.getenv("AWS_REGION", os.getenv("AWS_DEFAULT_REGION", "us-east-1")),
            endpoint_url=endpoint_url,
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class StoreConfig:
    """Complete store configuration.

    Attributes:
        backend: Which event log backend to use
        dynamodb: DynamoDB configuration (if backend is DYNAMODB)
        observability: Logging configuration
    """

    backend: StoreBackend = StoreBackend.DYNAMODB
    dynamodb: DynamoConfig = field(default_factory=DynamoConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> StoreConfig:
        """Load complete configuration from environment variables.

        Raises:
            ValueError: If the backend name is invalid
            PropertyNotFound: If a required property is missing
        """
        backend_str = os.getenv("STORE_BACKEND", "dynamodb").lower()
        try:
            backend = StoreBackend(backend_str)
        except ValueError:
            raise ValueError(
                f"Invalid STORE_BACKEND '{backend_str}'. Must be one of: memory, dynamodb"
            )

        config = cls(
            backend=backend,
            dynamodb=DynamoConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            PropertyNotFound: If the table name is missing for dynamodb
        """
        if self.backend == StoreBackend.DYNAMODB and not self.dynamodb.table:
            raise PropertyNotFound("DYNAMODB_TABLE")
        if self.backend == StoreBackend.DYNAMODB and not self.dynamodb.products_table:
            raise PropertyNotFound("PRODUCTS_TABLE")

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Store configuration loaded",
            extra={
                "backend": self.backend.value,
                "table": self.dynamodb.table
                if self.backend == StoreBackend.DYNAMODB
                else None,
                "products_table": self.dynamodb.products_table
                if self.backend == StoreBackend.DYNAMODB
                else None,
                "region": self.dynamodb.region,
                "endpoint": self.dynamodb.endpoint_url or "AWS",
                "log_level": self.observability.log_level,
            },
        )
