"""
aggstore - Main entry point.

Starts the HTTP app serving the example deploy and product aggregates on
top of the configured event store.

Usage:
    python -m aggstore.main

Configuration is entirely via environment variables.
See config.py (store, logging) and api/config.py (HTTP) for all settings.

Initialization order:
    1. StoreConfig.from_env() and setup_logging()
    2. create_event_store(config) once per aggregate kind (own table each)
    3. create_app(stores, routers); the app connects the stores on startup
"""

from __future__ import annotations

import logging
import sys

import json_log_formatter
import uvicorn
from fastapi import FastAPI

from .api import Settings, create_app
from .config import PropertyNotFound, StoreConfig
from .examples import deploys, shopping
from .store import create_event_store

logger = logging.getLogger(__name__)


def setup_logging(config: StoreConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Store configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("aiobotocore").setLevel(logging.WARNING)


def build_app(config: StoreConfig, settings: Settings | None = None) -> FastAPI:
    """Wire one event store per example aggregate and their routers into an app."""
    stores = {
        deploys.STORE_NAME: create_event_store(config),
        shopping.STORE_NAME: create_event_store(config, table=config.dynamodb.products_table),
    }
    return create_app(stores, routers=[deploys.router, shopping.router], settings=settings)


def main() -> None:
    """Main entry point."""
    try:
        config = StoreConfig.from_env()
    except (PropertyNotFound, ValueError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)
    config.log_config()

    settings = Settings()
    app = build_app(config, settings)

    logger.info("Starting aggstore", extra={"host": settings.host, "port": settings.port})
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
