"""Verification sessions with the external identity provider."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.types import JsonColumn

if TYPE_CHECKING:
    from app.db.models import Organization, User


class VerificationSession(Base):
    """
    One attempt to complete provider-side verification for an organization.

    Keyed externally by the provider's request id. Webhook payloads are
    appended to `webhook_payloads` in arrival order and never rewritten.

    At most one active session exists per (organization, portal); this is
    enforced by a partial unique index so concurrent starts cannot both win.
    """

    __tablename__ = "verification_sessions"
    __table_args__ = (
        Index(
            "uq_verification_sessions_active_org_portal",
            "organization_id",
            "portal",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        Index("idx_verification_sessions_org_created", "organization_id", "created_at"),
        Index("idx_verification_sessions_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    portal: Mapped[str] = mapped_column(String(20), nullable=False)
    organization_type: Mapped[str] = mapped_column(String(20), nullable=False)

    request_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    reference_id: Mapped[str] = mapped_column(String(100), nullable=False)  # = organization id
    onboarding_kind: Mapped[str] = mapped_column(String(20), nullable=False)  # OnboardingKind

    verify_link: Mapped[str | None] = mapped_column(Text, nullable=True)
    verify_link_expires_at: Mapped[datetime | None] = mapped_column(nullable=True)

    status: Mapped[str] = mapped_column(String(40), nullable=False)
    substatus: Mapped[str | None] = mapped_column(String(100), nullable=True)

    provider_response: Mapped[dict | None] = mapped_column(JsonColumn, nullable=True)
    webhook_payloads: Mapped[list] = mapped_column(JsonColumn, default=list, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    superseded_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    organization: Mapped["Organization"] = relationship()
    user: Mapped["User"] = relationship()
