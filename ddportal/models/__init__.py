"""SQLAlchemy models package. Import all models so Base.metadata is populated."""

from ddportal.models.base import BaseModel, ModelMixin, TimestampedModel
from ddportal.models.diligence import (
    Deal,
    DiligenceRequest,
    DiligenceResponse,
    DiligenceStage,
    RequestDocument,
)
from ddportal.models.enums import (
    DerivedStatus,
    GroupBy,
    RequestCategory,
    RequestPriority,
    RequestStatus,
    StageState,
)

__all__ = [
    "BaseModel",
    "Deal",
    "DerivedStatus",
    "DiligenceRequest",
    "DiligenceResponse",
    "DiligenceStage",
    "GroupBy",
    "ModelMixin",
    "RequestCategory",
    "RequestDocument",
    "RequestPriority",
    "RequestStatus",
    "StageState",
    "TimestampedModel",
]
