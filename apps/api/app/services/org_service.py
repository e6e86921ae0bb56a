"""Organization store - lookups and onboarding-driven updates."""

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.orm import Session

from app.db.enums import OnboardingStatus
from app.db.models import Organization, User
from app.services.verification_extraction import (
    ExtractedVerificationData,
    SophisticationResult,
)
from app.services.verification_status import can_advance_onboarding

logger = logging.getLogger(__name__)


def get_org_by_id(db: Session, org_id: UUID) -> Organization | None:
    """Get organization by ID."""
    return db.query(Organization).filter(Organization.id == org_id).first()


def create_org(
    db: Session,
    *,
    owner: User,
    portal: str,
    org_type: str,
    name: str | None = None,
    registration_number: str | None = None,
) -> Organization:
    """Create an organization in NOT_STARTED onboarding state (caller commits)."""
    org = Organization(
        owner_user_id=owner.id,
        portal=portal,
        type=org_type,
        name=name,
        registration_number=registration_number,
        onboarding_status=OnboardingStatus.NOT_STARTED.value,
    )
    db.add(org)
    db.flush()
    return org


def update_onboarding_status(db: Session, org: Organization, status: OnboardingStatus) -> bool:
    """
    Move an organization's onboarding status forward.

    Returns False (and changes nothing) when the move would go backwards or
    leave a terminal state, which makes re-delivered events no-ops.
    """
    if not can_advance_onboarding(org.onboarding_status, status):
        logger.debug(
            "Ignoring onboarding status %s for organization %s (currently %s)",
            status.value,
            org.id,
            org.onboarding_status,
        )
        return False
    previous = org.onboarding_status
    org.onboarding_status = status.value
    if status == OnboardingStatus.COMPLETED:
        org.onboarded_at = datetime.now(timezone.utc)
    db.flush()
    logger.info(
        "Organization %s onboarding status %s -> %s", org.id, previous, status.value
    )
    return True


def reopen_rejected_onboarding(db: Session, org: Organization, status: OnboardingStatus) -> str | None:
    """
    Move a REJECTED organization back to ``status`` for a new attempt.

    This is the only way out of REJECTED; update_onboarding_status never
    leaves it. Returns the previous status, or None when the organization
    was not rejected and nothing changed.
    """
    if org.onboarding_status != OnboardingStatus.REJECTED.value:
        return None
    previous = org.onboarding_status
    org.onboarding_status = status.value
    db.flush()
    logger.info(
        "Organization %s onboarding reopened %s -> %s", org.id, previous, status.value
    )
    return previous


def update_extracted_fields(
    db: Session,
    org: Organization,
    extracted: ExtractedVerificationData,
    sophistication: SophisticationResult | None = None,
) -> list[str]:
    """
    Write provider-derived identity and declaration fields.

    Only fields with a value are written. Returns the names of changed fields.
    """
    changed: list[str] = []
    for field_name, value in extracted.as_update().items():
        if getattr(org, field_name) != value:
            setattr(org, field_name, value)
            changed.append(field_name)

    if sophistication is not None:
        if org.is_sophisticated_investor != sophistication.is_sophisticated:
            org.is_sophisticated_investor = sophistication.is_sophisticated
            changed.append("is_sophisticated_investor")
        if org.sophisticated_investor_reason != sophistication.reason:
            org.sophisticated_investor_reason = sophistication.reason
            changed.append("sophisticated_investor_reason")

    if changed:
        db.flush()
    return changed
