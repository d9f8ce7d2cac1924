"""Diligence stages: Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator


class StageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: str | None
    sort_order: int
    completion_threshold: int
    is_active: bool
    # Requests assigned to the stage across all deals
    request_count: int = 0
    created_at: datetime
    updated_at: datetime


class StageCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    # Defaults to one past the current number of stages
    sort_order: int | None = None
    # Defaults to settings.DEFAULT_COMPLETION_THRESHOLD
    completion_threshold: int | None = Field(None, ge=0, le=100)
    is_active: bool = True


class StageUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    sort_order: int | None = None
    completion_threshold: int | None = Field(None, ge=0, le=100)
    is_active: bool | None = None

    @model_validator(mode="after")
    def _reject_null_required_fields(self) -> "StageUpdate":
        for name in ("name", "sort_order", "completion_threshold", "is_active"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self
