"""Diligence progress service. Loads request snapshots and runs the progress engine."""

from __future__ import annotations

import uuid
from dataclasses import asdict
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ddportal.core.errors import MalformedRecordError
from ddportal.models.diligence import (
    Deal,
    DiligenceRequest,
    DiligenceResponse,
    RequestDocument,
)
from ddportal.models.enums import (
    DerivedStatus,
    GroupBy,
    RequestCategory,
    RequestPriority,
    RequestStatus,
)
from ddportal.modules.diligence import engine
from ddportal.modules.diligence.schemas import (
    DealProgressResponse,
    DiligenceRequestResponse,
    GroupProgressResponse,
    OverallProgressResponse,
    RequestCountsResponse,
    StageBoardEntryResponse,
    StageBoardResponse,
)
from ddportal.modules.stages.service import load_ordered_stages

logger = structlog.get_logger()


# ── Snapshot loading ──────────────────────────────────────────────────────────


async def _require_deal(db: AsyncSession, deal_id: uuid.UUID) -> Deal:
    deal = await db.get(Deal, deal_id)
    if not deal:
        raise LookupError(f"Deal {deal_id} not found")
    return deal


def _to_record(
    row: DiligenceRequest,
    document_count: int,
    response_count: int,
) -> engine.RequestRecord:
    """Validate a request row and its resolved counts into an engine record."""
    try:
        category = RequestCategory(row.category)
        priority = RequestPriority(row.priority)
        approval_status = RequestStatus(row.status)
    except ValueError as exc:
        logger.error(
            "diligence_request.malformed",
            request_id=str(row.id),
            error=str(exc),
        )
        raise MalformedRecordError(f"Request {row.id}: {exc}") from exc

    return engine.RequestRecord(
        id=row.id,
        category=category,
        priority=priority,
        approval_status=approval_status,
        stage_id=row.stage_id,
        document_count=int(document_count),
        has_response=response_count > 0,
        due_date=row.due_date,
    )


async def _load_snapshots(
    db: AsyncSession,
    *filters: Any,
) -> list[tuple[DiligenceRequest, engine.ClassifiedRequest]]:
    """Fetch request rows with document/response counts resolved in one query."""
    doc_counts = (
        select(
            RequestDocument.request_id,
            func.count(RequestDocument.id).label("document_count"),
        )
        .group_by(RequestDocument.request_id)
        .subquery()
    )
    response_counts = (
        select(
            DiligenceResponse.request_id,
            func.count(DiligenceResponse.id).label("response_count"),
        )
        .group_by(DiligenceResponse.request_id)
        .subquery()
    )
    stmt = (
        select(
            DiligenceRequest,
            func.coalesce(doc_counts.c.document_count, 0),
            func.coalesce(response_counts.c.response_count, 0),
        )
        .outerjoin(doc_counts, doc_counts.c.request_id == DiligenceRequest.id)
        .outerjoin(response_counts, response_counts.c.request_id == DiligenceRequest.id)
        .where(*filters)
        .order_by(DiligenceRequest.created_at.desc(), DiligenceRequest.id)
    )
    result = await db.execute(stmt)

    snapshots = []
    for row, document_count, response_count in result.all():
        record = _to_record(row, document_count, response_count)
        snapshots.append(
            (row, engine.ClassifiedRequest(request=record, status=engine.classify(record)))
        )
    return snapshots


def _request_response(
    row: DiligenceRequest,
    item: engine.ClassifiedRequest,
) -> DiligenceRequestResponse:
    return DiligenceRequestResponse(
        id=row.id,
        deal_id=row.deal_id,
        stage_id=row.stage_id,
        title=row.title,
        description=row.description,
        category=item.request.category,
        priority=item.request.priority,
        status=item.request.approval_status,
        due_date=row.due_date,
        document_count=item.request.document_count,
        has_response=item.request.has_response,
        derived_status=item.status,
    )


def _group_response(group: engine.GroupProgress) -> GroupProgressResponse:
    return GroupProgressResponse(
        group_key=str(group.group_key),
        total=group.total,
        completed=group.completed,
        in_review=group.in_review,
        incomplete=group.incomplete,
        percentage=group.percentage,
    )


# ── Requests ──────────────────────────────────────────────────────────────────


async def list_requests(
    db: AsyncSession,
    deal_id: uuid.UUID,
    category: RequestCategory | None = None,
    priority: RequestPriority | None = None,
    derived_status: DerivedStatus | None = None,
    stage_id: uuid.UUID | None = None,
) -> list[DiligenceRequestResponse]:
    """List a deal's requests, newest first, each with its derived status."""
    await _require_deal(db, deal_id)

    filters = [DiligenceRequest.deal_id == deal_id]
    if category:
        filters.append(DiligenceRequest.category == category.value)
    if priority:
        filters.append(DiligenceRequest.priority == priority.value)
    if stage_id:
        filters.append(DiligenceRequest.stage_id == stage_id)

    snapshots = await _load_snapshots(db, *filters)
    # Derived status is never stored, so it can only be filtered after classification
    if derived_status:
        snapshots = [(row, item) for row, item in snapshots if item.status == derived_status]
    return [_request_response(row, item) for row, item in snapshots]


async def update_request_status(
    db: AsyncSession,
    deal_id: uuid.UUID,
    request_id: uuid.UUID,
    status: RequestStatus,
) -> DiligenceRequestResponse | None:
    """Set a request's approval status and return it re-classified."""
    request = await db.get(DiligenceRequest, request_id)
    if not request or request.deal_id != deal_id:
        return None

    # Reject malformed rows before anything is written
    _to_record(request, 0, 0)

    previous = request.status
    request.status = status.value
    await db.commit()

    snapshots = await _load_snapshots(db, DiligenceRequest.id == request_id)
    row, item = snapshots[0]

    logger.info(
        "diligence.request_status_updated",
        deal_id=str(deal_id),
        request_id=str(request_id),
        from_status=previous,
        to_status=status.value,
        derived_status=item.status.value,
    )
    return _request_response(row, item)


# ── Progress ──────────────────────────────────────────────────────────────────


async def get_deal_progress(
    db: AsyncSession,
    deal_id: uuid.UUID,
) -> DealProgressResponse:
    """Overall completion, per-category progress and request counts for a deal."""
    await _require_deal(db, deal_id)
    classified = [item for _, item in await _load_snapshots(db, DiligenceRequest.deal_id == deal_id)]

    overall = engine.overall_progress(classified)
    categories = engine.aggregate(classified, GroupBy.CATEGORY)
    counts = engine.count_requests(classified)

    return DealProgressResponse(
        deal_id=deal_id,
        overall=OverallProgressResponse(**asdict(overall)),
        categories=[_group_response(g) for g in categories],
        counts=RequestCountsResponse(**asdict(counts)),
    )


async def get_stage_board(
    db: AsyncSession,
    deal_id: uuid.UUID,
) -> StageBoardResponse:
    """Per-stage progress and lock state for a deal's requests."""
    await _require_deal(db, deal_id)
    classified = [item for _, item in await _load_snapshots(db, DiligenceRequest.deal_id == deal_id)]
    stages = await load_ordered_stages(db)

    board = engine.build_stage_board(stages, classified)

    logger.debug(
        "diligence.stage_board_built",
        deal_id=str(deal_id),
        stage_count=len(board.stages),
        unlocked=sum(1 for e in board.stages if e.unlocked),
    )

    return StageBoardResponse(
        deal_id=deal_id,
        stages=[
            StageBoardEntryResponse(
                stage_id=entry.stage.id,
                name=entry.stage.name,
                description=entry.stage.description,
                sort_order=entry.stage.sort_order,
                completion_threshold=entry.stage.completion_threshold,
                progress=_group_response(entry.progress),
                unlocked=entry.unlocked,
                state=entry.state,
            )
            for entry in board.stages
        ],
        unassigned=_group_response(board.unassigned) if board.unassigned else None,
    )
