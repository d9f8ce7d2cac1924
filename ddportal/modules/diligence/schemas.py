"""Diligence progress: Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from datetime import date

from pydantic import BaseModel, ConfigDict

from ddportal.models.enums import (
    DerivedStatus,
    RequestCategory,
    RequestPriority,
    RequestStatus,
    StageState,
)


# ── Request schemas ───────────────────────────────────────────────────────────


class DiligenceRequestResponse(BaseModel):
    """A request row merged with its resolved counts and derived status."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    deal_id: uuid.UUID
    stage_id: uuid.UUID | None
    title: str
    description: str | None
    category: RequestCategory
    priority: RequestPriority
    status: RequestStatus
    due_date: date | None
    document_count: int
    has_response: bool
    derived_status: DerivedStatus


class UpdateRequestStatusRequest(BaseModel):
    status: RequestStatus


# ── Progress schemas ──────────────────────────────────────────────────────────


class GroupProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    group_key: str
    total: int
    completed: int
    in_review: int
    incomplete: int
    percentage: int


class OverallProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: int
    completed: int
    percentage: int


class RequestCountsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: int
    high: int
    medium: int
    low: int
    by_category: dict[str, int]
    by_status: dict[str, int]


class DealProgressResponse(BaseModel):
    deal_id: uuid.UUID
    overall: OverallProgressResponse
    categories: list[GroupProgressResponse]
    counts: RequestCountsResponse


# ── Stage board ───────────────────────────────────────────────────────────────


class StageBoardEntryResponse(BaseModel):
    stage_id: uuid.UUID
    name: str
    description: str | None
    sort_order: int
    completion_threshold: int
    progress: GroupProgressResponse
    unlocked: bool
    state: StageState


class StageBoardResponse(BaseModel):
    deal_id: uuid.UUID
    stages: list[StageBoardEntryResponse]
    unassigned: GroupProgressResponse | None = None
