"""Diligence requests & progress API router."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ddportal.core.database import get_db, get_readonly_db
from ddportal.models.enums import DerivedStatus, RequestCategory, RequestPriority
from ddportal.modules.diligence import service
from ddportal.modules.diligence.schemas import (
    DealProgressResponse,
    DiligenceRequestResponse,
    StageBoardResponse,
    UpdateRequestStatusRequest,
)

router = APIRouter(prefix="/deals", tags=["diligence"])


@router.get("/{deal_id}/requests", response_model=list[DiligenceRequestResponse])
async def list_requests(
    deal_id: uuid.UUID,
    category: RequestCategory | None = Query(None),
    priority: RequestPriority | None = Query(None),
    derived_status: DerivedStatus | None = Query(None),
    stage_id: uuid.UUID | None = Query(None),
    db: AsyncSession = Depends(get_readonly_db),
):
    """List a deal's diligence requests with their derived status."""
    try:
        return await service.list_requests(
            db,
            deal_id,
            category=category,
            priority=priority,
            derived_status=derived_status,
            stage_id=stage_id,
        )
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.get("/{deal_id}/progress", response_model=DealProgressResponse)
async def get_deal_progress(
    deal_id: uuid.UUID,
    db: AsyncSession = Depends(get_readonly_db),
):
    """Overall and per-category completion for a deal."""
    try:
        return await service.get_deal_progress(db, deal_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.get("/{deal_id}/stage-board", response_model=StageBoardResponse)
async def get_stage_board(
    deal_id: uuid.UUID,
    db: AsyncSession = Depends(get_readonly_db),
):
    """Stage-by-stage completion and lock state for a deal."""
    try:
        return await service.get_stage_board(db, deal_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.put(
    "/{deal_id}/requests/{request_id}/status",
    response_model=DiligenceRequestResponse,
)
async def update_request_status(
    deal_id: uuid.UUID,
    request_id: uuid.UUID,
    body: UpdateRequestStatusRequest,
    db: AsyncSession = Depends(get_db),
):
    """Approve, reject or reset a request."""
    result = await service.update_request_status(
        db,
        deal_id=deal_id,
        request_id=request_id,
        status=body.status,
    )
    if not result:
        raise HTTPException(status_code=404, detail="Request not found")
    return result
