"""Enum definitions for application constants."""

from app.db.enums.onboarding import (
    ONBOARDING_STATUS_RANK,
    OnboardingEventType,
    OnboardingKind,
    OnboardingStatus,
    OrganizationType,
    Portal,
    PortalRole,
    VerificationStatus,
)

__all__ = [
    "ONBOARDING_STATUS_RANK",
    "OnboardingEventType",
    "OnboardingKind",
    "OnboardingStatus",
    "OrganizationType",
    "Portal",
    "PortalRole",
    "VerificationStatus",
]
