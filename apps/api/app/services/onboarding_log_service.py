"""Onboarding audit log sink.

Entries are appended inside a SAVEPOINT so a failed write never rolls back
the state change it describes; failures are logged and swallowed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.enums import OnboardingEventType, PortalRole
from app.db.models import OnboardingLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestMetadata:
    """Caller network metadata captured for audit entries."""

    ip_address: str | None = None
    user_agent: str | None = None


def get_client_ip(request: Request | None) -> str | None:
    """
    Extract client IP from request.

    Only trusts X-Forwarded-For when TRUST_PROXY_HEADERS=True (behind reverse proxy).
    """
    if not request:
        return None

    if settings.TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            # X-Forwarded-For: client, proxy1, proxy2 - take first
            return forwarded.split(",")[0].strip()[:45]

    if request.client:
        return request.client.host

    return None


def get_user_agent(request: Request | None) -> str | None:
    """Extract user agent from request."""
    if not request:
        return None
    ua = request.headers.get("user-agent", "")
    return ua[:500] if ua else None


def request_metadata(request: Request | None) -> RequestMetadata:
    return RequestMetadata(ip_address=get_client_ip(request), user_agent=get_user_agent(request))


def append_event(
    db: Session,
    *,
    event_type: OnboardingEventType,
    portal: str,
    user_id: UUID | None,
    organization_id: UUID | None,
    metadata: dict[str, Any] | None = None,
    request_meta: RequestMetadata | None = None,
) -> OnboardingLog | None:
    """
    Append an onboarding audit entry (best-effort).

    Args:
        db: Database session (the caller owns the outer transaction)
        event_type: What happened
        portal: Portal the organization onboards through (determines role)
        user_id: Acting user, None for provider-driven events
        organization_id: Organization the event concerns
        metadata: IDs and statuses only, never identity data
        request_meta: Caller IP/user-agent for caller-initiated events

    Returns:
        The entry, or None if the write failed.
    """
    meta = request_meta or RequestMetadata()
    entry = OnboardingLog(
        user_id=user_id,
        organization_id=organization_id,
        role=PortalRole.for_portal(portal).value,
        event_type=event_type.value,
        portal=portal,
        ip_address=meta.ip_address,
        user_agent=meta.user_agent,
        event_metadata=metadata,
    )
    try:
        with db.begin_nested():
            db.add(entry)
            db.flush()
    except SQLAlchemyError:
        logger.exception(
            "Failed to write onboarding log %s for organization %s",
            event_type.value,
            organization_id,
        )
        return None
    return entry


def list_events(
    db: Session,
    organization_id: UUID,
    event_type: OnboardingEventType | None = None,
) -> list[OnboardingLog]:
    """Entries for an organization, oldest first."""
    stmt = select(OnboardingLog).where(OnboardingLog.organization_id == organization_id)
    if event_type is not None:
        stmt = stmt.where(OnboardingLog.event_type == event_type.value)
    stmt = stmt.order_by(OnboardingLog.created_at, OnboardingLog.id)
    return list(db.scalars(stmt))
