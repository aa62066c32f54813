"""
Change-stream observer for the DynamoDB event table.

The event log is append-only. INSERT records are new events and are passed
on; MODIFY and REMOVE records mean someone changed the table outside the
aggregate API and are only logged.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable

from ..domain import Event
from ..store.dynamodb import unmarshal_item

logger = logging.getLogger(__name__)

InsertCallback = Callable[[str, Event], None]


def handle_stream_records(records: Iterable[Dict[str, Any]], on_insert: InsertCallback) -> int:
    """Dispatch DynamoDB Streams records.

    Args:
        records: Stream records (the "Records" list of a stream batch)
        on_insert: Called with (resource_id, event) for each inserted event

    Returns:
        Number of inserted events passed to on_insert
    """
    records = list(records)
    logger.info(f"Request received with {len(records)} event records.")

    inserted = 0
    for record in records:
        name = record.get("eventName")
        if name == "REMOVE":
            logger.warning("Event data is being deleted!", extra={"record": record.get("eventID")})
        elif name == "MODIFY":
            logger.warning("Event data is being updated!", extra={"record": record.get("eventID")})
        elif name == "INSERT":
            image = record.get("dynamodb", {}).get("NewImage")
            if not image:
                continue
            item = unmarshal_item(image)
            on_insert(item["id"], Event.from_item(item))
            inserted += 1
    return inserted


def log_deploy_created(resource_id: str, event: Event) -> None:
    specification = event.get("specification")
    if event.type == "DeployCreated" and specification:
        logger.info(
            f"A new deploy was created with specification: [{specification}].",
            extra={"resource": resource_id},
        )
