"""Onboarding audit trail."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import ForeignKey, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.types import JsonColumn


class OnboardingLog(Base):
    """
    Append-only onboarding audit entry.

    Written once, never updated. Details are IDs and statuses only; no
    document numbers or other identity data go into `event_metadata`.
    """

    __tablename__ = "onboarding_logs"
    __table_args__ = (
        Index("idx_onboarding_logs_org_created", "organization_id", "created_at"),
        Index("idx_onboarding_logs_event_created", "event_type", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    organization_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)  # PortalRole
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)  # OnboardingEventType
    portal: Mapped[str] = mapped_column(String(20), nullable=False)

    # Request metadata (caller-initiated events only)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)

    event_metadata: Mapped[dict | None] = mapped_column(
        "metadata", JsonColumn, nullable=True
    )

    # Client-side default for sub-second ordering
    created_at: Mapped[datetime] = mapped_column(
        default=lambda: datetime.now(timezone.utc), server_default=func.now(), nullable=False
    )
