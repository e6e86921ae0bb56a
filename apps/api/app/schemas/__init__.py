"""Pydantic schemas for API request/response models."""

from app.schemas.onboarding import (
    IndividualIdentity,
    OnboardingLinkRead,
    OnboardingStatusRead,
    OnboardingSyncRead,
    OnboardingTarget,
    StartOnboardingRequest,
)
from app.schemas.verification import (
    ProviderSessionLink,
    VerificationWebhookEvent,
)

__all__ = [
    "IndividualIdentity",
    "OnboardingLinkRead",
    "OnboardingStatusRead",
    "OnboardingSyncRead",
    "OnboardingTarget",
    "StartOnboardingRequest",
    "ProviderSessionLink",
    "VerificationWebhookEvent",
]
