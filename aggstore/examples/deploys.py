"""
Deploy aggregate and its REST routes.

Status transitions:
    (none) --DeployCreated--> processing
    processing --DeploySucceeded--> success
    processing --DeployFailed--> failed
    processing | success | failed --DeployDeleted--> deleted

Deleted deploys stay readable by id; they are hidden from the listing.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field

from ..api.dependencies import store_dependency
from ..domain import Aggregate, Event, find_all, find_one, handles
from ..errors import InvalidTransition, ResourceNotFound
from ..store.base import EventStore

logger = logging.getLogger(__name__)

LIVE_STATUSES = ("processing", "success", "failed")


class Deploy(Aggregate):
    event_types = ("DeployCreated", "DeploySucceeded", "DeployFailed", "DeployDeleted")

    def __init__(self, store: EventStore, id: Optional[str] = None) -> None:
        super().__init__(store, id)
        self.status: Optional[str] = None
        self.specification: Optional[str] = None
        self.reason: Optional[str] = None

    @handles("DeployCreated")
    def onDeployCreated(self, event: Event) -> None:
        if self.status or self.version != 0 or event.number != 1:
            raise InvalidTransition()
        self.status = "processing"
        self.specification = event["specification"]

    @handles("DeploySucceeded")
    def onDeploySucceeded(self, event: Event) -> None:
        if self.status != "processing":
            raise InvalidTransition()
        self.status = "success"

    @handles("DeployFailed")
    def onDeployFailed(self, event: Event) -> None:
        if self.status != "processing":
            raise InvalidTransition()
        self.status = "failed"
        self.reason = event.get("reason")

    @handles("DeployDeleted")
    def onDeployDeleted(self, event: Event) -> None:
        if self.status not in LIVE_STATUSES:
            raise InvalidTransition()
        self.status = "deleted"


STORE_NAME = "deploys"

router = APIRouter(tags=["Deploys"])
get_deploy_store = store_dependency(STORE_NAME)


class DeployCreateRequest(BaseModel):
    """Request to create a deploy."""

    specification: str = Field(..., min_length=1, description="Deploy specification")


def links(deploy: Deploy) -> Dict[str, str]:
    return {
        "resource": f"/deploys/{deploy.id}",
        "events": f"/deploys/{deploy.id}/events",
    }


async def load_deploy(store: EventStore, deploy_id: str) -> Deploy:
    deploy = await find_one(store, Deploy, deploy_id)
    if isinstance(deploy, ResourceNotFound):
        raise HTTPException(status_code=404, detail=deploy.message)
    return deploy


@router.get("/deploys")
async def list_deploys(store: EventStore = Depends(get_deploy_store)) -> List[Dict[str, Any]]:
    deploys = await find_all(store, Deploy)
    return [
        {**deploy.to_dict(), "links": links(deploy)}
        for deploy in deploys
        if deploy.status != "deleted"
    ]


@router.post("/deploys", status_code=201)
async def create_deploy(
    request: DeployCreateRequest,
    store: EventStore = Depends(get_deploy_store),
) -> Response:
    deploy = Deploy(store)
    await deploy.commit(
        Event(number=1, type="DeployCreated", payload={"specification": request.specification})
    )
    logger.info("Deploy created", extra={"resource": deploy.id})
    return Response(status_code=201, headers={"Location": f"/deploys/{deploy.id}"})


@router.get("/deploys/{deploy_id}")
async def get_deploy(deploy_id: str, store: EventStore = Depends(get_deploy_store)) -> Dict[str, Any]:
    deploy = await load_deploy(store, deploy_id)
    return deploy.to_dict()


@router.get("/deploys/{deploy_id}/events")
async def get_deploy_events(
    deploy_id: str,
    store: EventStore = Depends(get_deploy_store),
) -> List[Dict[str, Any]]:
    deploy = await load_deploy(store, deploy_id)
    return [event.to_dict() for event in await deploy.events()]


@router.delete("/deploys/{deploy_id}", status_code=204)
async def delete_deploy(deploy_id: str, store: EventStore = Depends(get_deploy_store)) -> Response:
    deploy = await load_deploy(store, deploy_id)
    # TODO: take the expected version from an If-Match header so clients
    # deleting against a stale read get a 409 instead of silently winning.
    await deploy.commit(Event(number=deploy.version + 1, type="DeployDeleted"))
    return Response(status_code=204)
