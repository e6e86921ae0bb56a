"""Organizations applying for platform access."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.enums import OnboardingStatus
from app.db.types import JsonColumn

if TYPE_CHECKING:
    from app.db.models import User


class Organization(Base):
    """
    A personal or company entity onboarding through one portal.

    Identity fields below the status block are written by the onboarding
    orchestrator from the provider's verification detail once the provider
    approves; admins review them before final approval.
    """

    __tablename__ = "organizations"
    __table_args__ = (
        Index("idx_organizations_owner", "owner_user_id"),
        Index("idx_organizations_portal_status", "portal", "onboarding_status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    portal: Mapped[str] = mapped_column(String(20), nullable=False)  # Portal
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # OrganizationType
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    registration_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    onboarding_status: Mapped[str] = mapped_column(
        String(40), default=OnboardingStatus.NOT_STARTED.value, nullable=False
    )
    onboarded_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Sophisticated investor determination (derived from compliance declarations)
    is_sophisticated_investor: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    sophisticated_investor_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Extracted from provider verification detail
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    middle_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    nationality: Mapped[str | None] = mapped_column(String(10), nullable=True)
    country: Mapped[str | None] = mapped_column(String(10), nullable=True)
    id_issuing_country: Mapped[str | None] = mapped_column(String(10), nullable=True)
    gender: Mapped[str | None] = mapped_column(String(20), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    document_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    document_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    kyc_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Display areas stored verbatim for admin review
    bank_account_details: Mapped[dict | None] = mapped_column(JsonColumn, nullable=True)
    wealth_declaration: Mapped[dict | None] = mapped_column(JsonColumn, nullable=True)
    compliance_declaration: Mapped[dict | None] = mapped_column(JsonColumn, nullable=True)
    document_info: Mapped[dict | None] = mapped_column(JsonColumn, nullable=True)
    liveness_check_info: Mapped[dict | None] = mapped_column(JsonColumn, nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    owner: Mapped["User"] = relationship()
