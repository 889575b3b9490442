"""
Control endpoints for explicit operator actions.

Thin HTTP adapter over IngestionPipeline commands. Every mutation maps to
exactly one pipeline call; the pipeline decides whether it is allowed.

    unknown item id    -> 404
    refused command    -> 409
"""

import logging
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict

from ..pipeline.errors import CommandRejected, ItemNotFoundError
from ..pipeline.models import ItemSnapshot, PipelineStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/control", tags=["control"])


# ============================================================================
# REQUEST / RESPONSE MODELS
# ============================================================================

class EnqueueRequest(BaseModel):
    """Request body for adding an archive by hand."""

    model_config = ConfigDict(extra="forbid")

    path: str


class AutoImportRequest(BaseModel):
    """Request body for toggling auto-import."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool


class ItemListResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    items: List[ItemSnapshot]


class OperationResponse(BaseModel):
    """Generic operation response."""

    model_config = ConfigDict(extra="forbid")

    success: bool
    message: str
    item: Optional[ItemSnapshot] = None


class ImportNowResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    scheduled: int
    message: str


def _pipeline(request: Request):
    return request.app.state.pipeline


# ============================================================================
# QUERIES
# ============================================================================

@router.get("/status", response_model=PipelineStatus)
async def get_status(request: Request):
    """Watcher state, auto-import policy and folder overlap warning."""
    return _pipeline(request).status()


@router.get("/items", response_model=ItemListResponse)
async def list_items(request: Request):
    """
    List visible items, oldest first.

    Ignored items are not included.
    """
    return ItemListResponse(items=_pipeline(request).snapshot())


@router.get("/items/{item_id}", response_model=ItemSnapshot)
async def get_item(item_id: str, request: Request):
    try:
        return _pipeline(request).get_item(item_id)
    except ItemNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


# ============================================================================
# COMMANDS
# ============================================================================

@router.post("/items", response_model=OperationResponse)
async def enqueue_item(body: EnqueueRequest, request: Request):
    """Add an archive to the queue manually."""
    try:
        item = _pipeline(request).enqueue(Path(body.path))
    except CommandRejected as e:
        raise HTTPException(status_code=409, detail=str(e))
    logger.info(f"Manual enqueue: {body.path}")
    return OperationResponse(success=True, message=f"Queued {item.source_name}", item=item)


@router.post("/auto-import", response_model=OperationResponse)
async def set_auto_import(body: AutoImportRequest, request: Request):
    """
    Toggle auto-import.

    Applies to items discovered after the change only.
    """
    try:
        _pipeline(request).set_auto_import(body.enabled)
    except CommandRejected as e:
        raise HTTPException(status_code=409, detail=str(e))
    state = "enabled" if body.enabled else "disabled"
    return OperationResponse(success=True, message=f"Auto-import {state}")


@router.post("/import-now", response_model=ImportNowResponse)
async def import_now(request: Request):
    """Import every item waiting at the metadata checkpoint."""
    try:
        count = _pipeline(request).trigger_import_now()
    except CommandRejected as e:
        raise HTTPException(status_code=409, detail=str(e))
    message = f"Importing {count} item(s)" if count else "Nothing waiting to import"
    return ImportNowResponse(scheduled=count, message=message)


@router.post("/items/{item_id}/reimport", response_model=OperationResponse)
async def reimport_item(item_id: str, request: Request):
    try:
        item = _pipeline(request).reimport(item_id)
    except ItemNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CommandRejected as e:
        raise HTTPException(status_code=409, detail=str(e))
    return OperationResponse(success=True, message=f"Reimporting {item.source_name}", item=item)


@router.post("/items/{item_id}/ignore", response_model=OperationResponse)
async def ignore_item(item_id: str, request: Request):
    """Hide an item from the queue. The source file is left alone."""
    try:
        _pipeline(request).ignore(item_id)
    except ItemNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return OperationResponse(success=True, message="Item ignored")


@router.post("/items/{item_id}/delete-source", response_model=OperationResponse)
async def delete_source(item_id: str, request: Request):
    """
    Delete the source archive of a completed or duplicate item.

    A failed deletion is reported with success=False; the item keeps its
    status and gets a warning.
    """
    pipeline = _pipeline(request)
    try:
        deleted = pipeline.request_source_deletion(item_id)
        item = pipeline.get_item(item_id)
    except ItemNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CommandRejected as e:
        raise HTTPException(status_code=409, detail=str(e))

    if deleted:
        return OperationResponse(success=True, message="Source archive deleted", item=item)
    reason = item.warnings[-1] if item.warnings else "Deletion failed"
    return OperationResponse(success=False, message=reason, item=item)
