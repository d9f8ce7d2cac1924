"""Request status & stage progress engine. Pure deterministic arithmetic, no I/O.

Turns already-fetched request and stage snapshots into the derived values the
portal displays and gates on: a derived status per request, completion per
category or stage, and whether each workflow stage is unlocked.

Nothing here is persisted or cached. Callers re-run these functions whenever
the request collection changes, so a stage can move from unlocked back to
locked when its predecessor's completion drops.
"""

from __future__ import annotations

import enum
import uuid
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from ddportal.models.enums import (
    DerivedStatus,
    GroupBy,
    RequestPriority,
    RequestStatus,
    StageState,
)

# Group key for requests that are not assigned to any stage
UNASSIGNED_STAGE_KEY = "unassigned"


# ── Data contracts ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class RequestRecord:
    """Read-only snapshot of a diligence request.

    ``document_count`` and ``has_response`` are resolved by whoever fetched the
    row; the engine takes them as given.
    """

    id: uuid.UUID | str
    category: str
    priority: str
    approval_status: str
    stage_id: uuid.UUID | str | None = None
    document_count: int = 0
    has_response: bool = False
    due_date: date | None = None


@dataclass(frozen=True)
class ClassifiedRequest:
    request: RequestRecord
    status: DerivedStatus

    @property
    def category(self) -> str:
        return _plain(self.request.category)

    @property
    def stage_id(self) -> uuid.UUID | str | None:
        return self.request.stage_id


@dataclass(frozen=True)
class StageRecord:
    id: uuid.UUID | str
    name: str
    sort_order: int
    completion_threshold: int
    is_active: bool = True
    description: str | None = None


@dataclass(frozen=True)
class GroupProgress:
    """Completion of one category or stage group.

    ``completed`` counts Accepted requests, ``in_review`` Review Pending and
    ``incomplete`` Incomplete; the three always sum to ``total``.
    """

    group_key: Any
    total: int = 0
    completed: int = 0
    in_review: int = 0
    incomplete: int = 0
    percentage: int = 0


@dataclass(frozen=True)
class OverallProgress:
    total: int
    completed: int
    percentage: int


@dataclass(frozen=True)
class RequestCounts:
    total: int
    high: int
    medium: int
    low: int
    by_category: dict[str, int] = field(default_factory=dict)
    by_status: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class StageBoardEntry:
    stage: StageRecord
    progress: GroupProgress
    unlocked: bool
    state: StageState


@dataclass(frozen=True)
class StageBoard:
    stages: list[StageBoardEntry]
    unassigned: GroupProgress | None = None


def _plain(value: Any) -> Any:
    """Unwrap enum members so str-enums and raw strings share dict keys."""
    return value.value if isinstance(value, enum.Enum) else value


# ── Status classifier ─────────────────────────────────────────────────────────


def classify(request: RequestRecord) -> DerivedStatus:
    """Derive the lifecycle label for one request. First matching rule wins."""
    if _plain(request.approval_status) == RequestStatus.APPROVED.value:
        return DerivedStatus.ACCEPTED
    if request.document_count > 0 or request.has_response:
        return DerivedStatus.REVIEW_PENDING
    return DerivedStatus.INCOMPLETE


def classify_all(requests: Iterable[RequestRecord]) -> list[ClassifiedRequest]:
    return [ClassifiedRequest(request=r, status=classify(r)) for r in requests]


# ── Aggregation ───────────────────────────────────────────────────────────────


def completion_percentage(completed: int, total: int) -> int:
    """Whole-number percentage rounded half up; 0 when there is nothing to count."""
    if total <= 0:
        return 0
    # Integer form of floor(100 * completed / total + 0.5)
    return (200 * completed + total) // (2 * total)


def _group_key(item: ClassifiedRequest, group_by: GroupBy) -> Any:
    if group_by == GroupBy.CATEGORY:
        return item.category
    if item.stage_id is None:
        return UNASSIGNED_STAGE_KEY
    return item.stage_id


def aggregate(
    requests: Sequence[ClassifiedRequest],
    group_by: GroupBy | str,
) -> list[GroupProgress]:
    """Group classified requests by category or stage and compute completion.

    Groups come out in order of first appearance in ``requests``. When grouping
    by stage, requests without a stage land in the ``"unassigned"`` group.
    """
    group_by = GroupBy(group_by)
    tallies: dict[Any, dict[DerivedStatus, int]] = {}
    for item in requests:
        key = _group_key(item, group_by)
        tally = tallies.setdefault(key, {status: 0 for status in DerivedStatus})
        tally[item.status] += 1

    groups = []
    for key, tally in tallies.items():
        total = sum(tally.values())
        completed = tally[DerivedStatus.ACCEPTED]
        groups.append(
            GroupProgress(
                group_key=key,
                total=total,
                completed=completed,
                in_review=tally[DerivedStatus.REVIEW_PENDING],
                incomplete=tally[DerivedStatus.INCOMPLETE],
                percentage=completion_percentage(completed, total),
            )
        )
    return groups


def progress_by_key(groups: Iterable[GroupProgress]) -> dict[Any, GroupProgress]:
    return {g.group_key: g for g in groups}


def overall_progress(requests: Sequence[ClassifiedRequest]) -> OverallProgress:
    total = len(requests)
    completed = sum(1 for r in requests if r.status == DerivedStatus.ACCEPTED)
    return OverallProgress(
        total=total,
        completed=completed,
        percentage=completion_percentage(completed, total),
    )


def count_requests(requests: Sequence[ClassifiedRequest]) -> RequestCounts:
    """Totals by priority, category and derived status."""
    by_priority: dict[str, int] = {p.value: 0 for p in RequestPriority}
    by_category: dict[str, int] = {}
    by_status: dict[str, int] = {}
    for item in requests:
        priority = _plain(item.request.priority)
        if priority in by_priority:
            by_priority[priority] += 1
        by_category[item.category] = by_category.get(item.category, 0) + 1
        by_status[item.status.value] = by_status.get(item.status.value, 0) + 1

    return RequestCounts(
        total=len(requests),
        high=by_priority[RequestPriority.HIGH.value],
        medium=by_priority[RequestPriority.MEDIUM.value],
        low=by_priority[RequestPriority.LOW.value],
        by_category=by_category,
        by_status=by_status,
    )


# ── Stage gating ──────────────────────────────────────────────────────────────


def is_unlocked(
    stage: StageRecord,
    stage_index: int,
    ordered_stages: Sequence[StageRecord],
    progress_by_id: Mapping[Any, GroupProgress],
) -> bool:
    """Whether ``stage`` is open, given the completion of the stage before it.

    ``ordered_stages`` must already be filtered to active stages and sorted by
    ``sort_order``. The first stage is always unlocked. Any later stage opens
    once the previous stage's percentage reaches that previous stage's
    ``completion_threshold``; a previous stage with no requests counts as 0%.
    """
    if not 0 <= stage_index < len(ordered_stages):
        raise IndexError(
            f"stage_index {stage_index} out of range for {len(ordered_stages)} stages"
        )
    if ordered_stages[stage_index].id != stage.id:
        raise ValueError(f"Stage {stage.id} is not at position {stage_index}")

    if stage_index == 0:
        return True

    previous = ordered_stages[stage_index - 1]
    previous_progress = progress_by_id.get(previous.id)
    percentage = previous_progress.percentage if previous_progress is not None else 0
    return percentage >= previous.completion_threshold


def stage_state(progress: GroupProgress | None, unlocked: bool) -> StageState:
    if not unlocked:
        return StageState.LOCKED
    if progress is None or progress.total == 0:
        return StageState.NOT_STARTED
    if progress.completed == progress.total:
        return StageState.COMPLETE
    if progress.completed > 0:
        return StageState.IN_PROGRESS
    return StageState.NOT_STARTED


def build_stage_board(
    ordered_stages: Sequence[StageRecord],
    requests: Sequence[ClassifiedRequest],
) -> StageBoard:
    """Per-stage progress, lock flag and display state for an ordered stage list.

    Stages without requests get a zero-filled progress entry for display; the
    lock computation still treats them as having no progress. Requests whose
    stage is not in ``ordered_stages`` (e.g. an inactive stage) are left out.
    """
    groups = progress_by_key(aggregate(requests, GroupBy.STAGE))

    entries = []
    for index, stage in enumerate(ordered_stages):
        unlocked = is_unlocked(stage, index, ordered_stages, groups)
        progress = groups.get(stage.id)
        entries.append(
            StageBoardEntry(
                stage=stage,
                progress=progress if progress is not None else GroupProgress(group_key=stage.id),
                unlocked=unlocked,
                state=stage_state(progress, unlocked),
            )
        )

    return StageBoard(stages=entries, unassigned=groups.get(UNASSIGNED_STAGE_KEY))
