"""Diligence stage management API router."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ddportal.core.database import get_db, get_readonly_db
from ddportal.modules.stages import service
from ddportal.modules.stages.schemas import StageCreate, StageResponse, StageUpdate

router = APIRouter(prefix="/stages", tags=["stages"])


@router.get("", response_model=list[StageResponse])
async def list_stages(
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_readonly_db),
):
    """List diligence stages in workflow order with their request counts."""
    stages = await service.list_stages(db, include_inactive=include_inactive)
    counts = await service.count_requests_by_stage(db)
    return [service.to_stage_response(s, counts) for s in stages]


@router.post("", response_model=StageResponse, status_code=status.HTTP_201_CREATED)
async def create_stage(
    body: StageCreate,
    db: AsyncSession = Depends(get_db),
):
    """Create a diligence stage."""
    stage = await service.create_stage(db, body)
    return service.to_stage_response(stage, {})


@router.put("/{stage_id}", response_model=StageResponse)
async def update_stage(
    stage_id: uuid.UUID,
    body: StageUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Update a stage's name, ordering, threshold or active flag."""
    result = await service.update_stage(db, stage_id, body)
    if not result:
        raise HTTPException(status_code=404, detail="Stage not found")
    return service.to_stage_response(result, await service.count_requests_by_stage(db))


@router.delete("/{stage_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_stage(
    stage_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Delete a stage; its requests move to the unassigned group."""
    deleted = await service.delete_stage(db, stage_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Stage not found")
