"""Diligence stage management: async business logic."""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ddportal.core.config import settings
from ddportal.core.errors import MalformedRecordError
from ddportal.models.diligence import DiligenceRequest, DiligenceStage
from ddportal.modules.diligence.engine import StageRecord
from ddportal.modules.stages.schemas import StageCreate, StageResponse, StageUpdate

logger = structlog.get_logger()


async def list_stages(
    db: AsyncSession,
    include_inactive: bool = False,
) -> list[DiligenceStage]:
    """Stages in workflow order; active only unless asked otherwise."""
    stmt = select(DiligenceStage)
    if not include_inactive:
        stmt = stmt.where(DiligenceStage.is_active.is_(True))
    stmt = stmt.order_by(DiligenceStage.sort_order, DiligenceStage.created_at)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def count_requests_by_stage(db: AsyncSession) -> dict[uuid.UUID, int]:
    """Number of requests assigned to each stage, across all deals."""
    stmt = (
        select(DiligenceRequest.stage_id, func.count(DiligenceRequest.id))
        .where(DiligenceRequest.stage_id.is_not(None))
        .group_by(DiligenceRequest.stage_id)
    )
    result = await db.execute(stmt)
    return {stage_id: count for stage_id, count in result.all()}


def to_stage_response(
    stage: DiligenceStage,
    request_counts: dict[uuid.UUID, int],
) -> StageResponse:
    return StageResponse(
        id=stage.id,
        name=stage.name,
        description=stage.description,
        sort_order=stage.sort_order,
        completion_threshold=stage.completion_threshold,
        is_active=stage.is_active,
        request_count=request_counts.get(stage.id, 0),
        created_at=stage.created_at,
        updated_at=stage.updated_at,
    )


def to_stage_record(stage: DiligenceStage) -> StageRecord:
    if not 0 <= stage.completion_threshold <= 100:
        logger.error(
            "diligence_stage.invalid_threshold",
            stage_id=str(stage.id),
            completion_threshold=stage.completion_threshold,
        )
        raise MalformedRecordError(
            f"Stage {stage.id} has completion_threshold {stage.completion_threshold}"
        )
    return StageRecord(
        id=stage.id,
        name=stage.name,
        sort_order=stage.sort_order,
        completion_threshold=stage.completion_threshold,
        is_active=stage.is_active,
        description=stage.description,
    )


async def load_ordered_stages(db: AsyncSession) -> list[StageRecord]:
    """Active stages as engine records, sorted by sort_order for gating."""
    return [to_stage_record(s) for s in await list_stages(db)]


async def create_stage(db: AsyncSession, body: StageCreate) -> DiligenceStage:
    sort_order = body.sort_order
    if sort_order is None:
        count = await db.scalar(select(func.count(DiligenceStage.id)))
        sort_order = (count or 0) + 1

    threshold = body.completion_threshold
    if threshold is None:
        threshold = settings.DEFAULT_COMPLETION_THRESHOLD

    stage = DiligenceStage(
        name=body.name,
        description=body.description,
        sort_order=sort_order,
        completion_threshold=threshold,
        is_active=body.is_active,
    )
    db.add(stage)
    await db.commit()
    await db.refresh(stage)

    logger.info(
        "diligence_stage.created",
        stage_id=str(stage.id),
        sort_order=stage.sort_order,
        completion_threshold=stage.completion_threshold,
    )
    return stage


async def update_stage(
    db: AsyncSession,
    stage_id: uuid.UUID,
    body: StageUpdate,
) -> DiligenceStage | None:
    stage = await db.get(DiligenceStage, stage_id)
    if not stage:
        return None

    changes = body.model_dump(exclude_unset=True)
    for name, value in changes.items():
        setattr(stage, name, value)

    await db.commit()
    await db.refresh(stage)

    logger.info(
        "diligence_stage.updated",
        stage_id=str(stage_id),
        fields=sorted(changes),
    )
    return stage


async def delete_stage(db: AsyncSession, stage_id: uuid.UUID) -> bool:
    """Delete a stage. Its requests stay on their deals and become unassigned."""
    stage = await db.get(DiligenceStage, stage_id)
    if not stage:
        return False

    result = await db.execute(
        update(DiligenceRequest)
        .where(DiligenceRequest.stage_id == stage_id)
        .values(stage_id=None)
    )
    await db.delete(stage)
    await db.commit()

    logger.info(
        "diligence_stage.deleted",
        stage_id=str(stage_id),
        unassigned_requests=result.rowcount,
    )
    return True
