"""Closed enumerations shared by the ORM models, schemas and progress engine."""

import enum


# ── Diligence requests ───────────────────────────────────────────────────────


class RequestCategory(str, enum.Enum):
    FINANCIAL = "Financial"
    LEGAL = "Legal"
    OPERATIONS = "Operations"
    HR = "HR"
    IT = "IT"
    ENVIRONMENTAL = "Environmental"
    COMMERCIAL = "Commercial"
    OTHER = "Other"


class RequestPriority(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RequestStatus(str, enum.Enum):
    """Approval status stored on a request row."""

    PENDING = "pending"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


# ── Derived (never persisted) ────────────────────────────────────────────────


class DerivedStatus(str, enum.Enum):
    INCOMPLETE = "Incomplete"
    REVIEW_PENDING = "Review Pending"
    ACCEPTED = "Accepted"


class GroupBy(str, enum.Enum):
    CATEGORY = "category"
    STAGE = "stage_id"


class StageState(str, enum.Enum):
    LOCKED = "locked"
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"
