"""Diligence portal tables: deals, stages, requests and their documents/responses.

The schema is owned by the portal's hosted store; these mappings are the
read/write contract the API relies on.
"""

from __future__ import annotations
import uuid
from datetime import date

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from ddportal.models.base import BaseModel, TimestampedModel


class Deal(BaseModel):
    __tablename__ = "deals"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    project_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    target_close_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)


class DiligenceStage(BaseModel):
    __tablename__ = "diligence_stages"
    __table_args__ = (
        Index("ix_diligence_stages_active_order", "is_active", "sort_order"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completion_threshold: Mapped[int] = mapped_column(Integer, default=80, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class DiligenceRequest(BaseModel):
    __tablename__ = "diligence_requests"
    __table_args__ = (
        Index("ix_diligence_requests_deal_created", "deal_id", "created_at"),
    )

    deal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("deals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    stage_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("diligence_stages.id", ondelete="SET NULL"), nullable=True
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Stored as plain strings; values are checked when rows are loaded
    category: Mapped[str] = mapped_column(String(30), default="Other", nullable=False)
    priority: Mapped[str] = mapped_column(String(20), default="medium", nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    allow_file_upload: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    allow_text_response: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    assigned_to: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)


class RequestDocument(TimestampedModel):
    __tablename__ = "request_documents"

    request_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("diligence_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    filename: Mapped[str] = mapped_column(String(500), nullable=False)
    file_path: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    uploaded_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)


class DiligenceResponse(BaseModel):
    __tablename__ = "diligence_responses"

    request_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("diligence_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    response_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    submitted_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
