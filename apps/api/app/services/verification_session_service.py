"""Verification session repository.

Sessions are looked up by the provider's request id (webhooks) or by
(organization, portal) for the active one. Writes flush; callers commit.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.enums import VerificationStatus
from app.db.models import Organization, VerificationSession
from app.schemas.verification import ProviderSessionLink
from app.services.verification_status import SESSION_STATUS_RANK

logger = logging.getLogger(__name__)

# Sessions still waiting on the user or the provider.
OPEN_STATUSES = tuple(
    status
    for status, rank in SESSION_STATUS_RANK.items()
    if rank < SESSION_STATUS_RANK[VerificationStatus.PENDING_AML.value]
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def link_expires_at(expired_in: int | None, now: datetime | None = None) -> datetime:
    ttl = expired_in if expired_in and expired_in > 0 else settings.VERIFICATION_DEFAULT_LINK_TTL_SECONDS
    return (now or _utcnow()) + timedelta(seconds=ttl)


def seconds_until_expiry(session: VerificationSession, now: datetime | None = None) -> int:
    expires_at = as_utc(session.verify_link_expires_at)
    if expires_at is None:
        return 0
    return max(int((expires_at - (now or _utcnow())).total_seconds()), 0)


def has_live_link(session: VerificationSession, now: datetime | None = None) -> bool:
    return bool(session.verify_link) and seconds_until_expiry(session, now) > 0


def get_by_request_id(
    db: Session, request_id: str, *, for_update: bool = False
) -> VerificationSession | None:
    stmt = select(VerificationSession).where(VerificationSession.request_id == request_id)
    if for_update:
        stmt = stmt.with_for_update()
    return db.scalars(stmt).first()


def get_active_session(
    db: Session, organization_id: UUID, portal: str, *, for_update: bool = False
) -> VerificationSession | None:
    stmt = select(VerificationSession).where(
        VerificationSession.organization_id == organization_id,
        VerificationSession.portal == portal,
        VerificationSession.is_active.is_(True),
    )
    if for_update:
        stmt = stmt.with_for_update()
    return db.scalars(stmt).first()


def list_sessions(db: Session, organization_id: UUID, portal: str) -> list[VerificationSession]:
    """All sessions for an organization/portal, newest first."""
    stmt = (
        select(VerificationSession)
        .where(
            VerificationSession.organization_id == organization_id,
            VerificationSession.portal == portal,
        )
        .order_by(VerificationSession.created_at.desc())
    )
    return list(db.scalars(stmt))


def list_open_sessions(db: Session, limit: int = 100) -> list[VerificationSession]:
    """Active sessions not yet past provider approval, oldest first."""
    stmt = (
        select(VerificationSession)
        .where(
            VerificationSession.is_active.is_(True),
            VerificationSession.status.in_(OPEN_STATUSES),
        )
        .order_by(VerificationSession.created_at)
        .limit(limit)
    )
    return list(db.scalars(stmt))


def create_session(
    db: Session,
    *,
    organization: Organization,
    user_id: UUID,
    portal: str,
    onboarding_kind: str,
    link: ProviderSessionLink,
    status: VerificationStatus,
) -> VerificationSession:
    """
    Insert a new active session.

    Raises IntegrityError on flush if another active session exists for the
    same organization and portal.
    """
    session = VerificationSession(
        organization_id=organization.id,
        user_id=user_id,
        portal=portal,
        organization_type=organization.type,
        request_id=link.request_id,
        reference_id=str(organization.id),
        onboarding_kind=onboarding_kind,
        verify_link=link.verify_link,
        verify_link_expires_at=link_expires_at(link.expired_in),
        status=status.value,
        provider_response=link.model_dump(by_alias=True, exclude_none=True),
        webhook_payloads=[],
        is_active=True,
    )
    db.add(session)
    db.flush()
    return session


def supersede_session(db: Session, session_id: UUID) -> bool:
    """
    Deactivate exactly the given session if it is still active.

    Returns False if it was already superseded (another request got there first).
    """
    session = db.get(VerificationSession, session_id)
    if session is None or not session.is_active:
        return False
    session.is_active = False
    session.superseded_at = _utcnow()
    db.flush()
    return True


def append_webhook_payload(db: Session, session: VerificationSession, payload: dict) -> None:
    # Reassign so the JSON column change is detected.
    session.webhook_payloads = [*(session.webhook_payloads or []), payload]
    db.flush()


def update_status(
    db: Session,
    session: VerificationSession,
    *,
    status: str,
    substatus: str | None = None,
) -> None:
    session.status = status
    session.substatus = substatus
    if status == VerificationStatus.REJECTED.value and session.completed_at is None:
        session.completed_at = _utcnow()
    db.flush()


def record_error(db: Session, session: VerificationSession, message: str) -> None:
    session.last_error = message[:2000]
    db.flush()


def reset_for_retry(
    db: Session,
    session: VerificationSession,
    *,
    link: ProviderSessionLink,
    status: VerificationStatus,
) -> None:
    """Point the session at a fresh provider link without changing its request id."""
    session.verify_link = link.verify_link
    session.verify_link_expires_at = link_expires_at(link.expired_in)
    session.status = status.value
    session.substatus = None
    session.completed_at = None
    session.last_error = None
    session.is_active = True
    db.flush()
