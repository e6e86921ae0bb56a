"""Onboarding and verification enums."""

from enum import Enum


class OrganizationType(str, Enum):
    """Entity kind of an applying organization."""

    PERSONAL = "PERSONAL"
    COMPANY = "COMPANY"


class Portal(str, Enum):
    """Platform portal an organization onboards through."""

    INVESTOR = "investor"
    ISSUER = "issuer"


class PortalRole(str, Enum):
    """Actor role recorded on onboarding audit entries."""

    INVESTOR = "INVESTOR"
    ISSUER = "ISSUER"

    @classmethod
    def for_portal(cls, portal: "Portal | str") -> "PortalRole":
        return cls.INVESTOR if Portal(portal) == Portal.INVESTOR else cls.ISSUER


class OnboardingKind(str, Enum):
    """Provider-side onboarding flow."""

    INDIVIDUAL = "INDIVIDUAL"
    CORPORATE = "CORPORATE"


class OnboardingStatus(str, Enum):
    """
    Local organization onboarding lifecycle.

    NOT_STARTED -> PENDING/IN_PROGRESS -> PENDING_APPROVAL -> PENDING_AML
    -> PENDING_SSM_REVIEW (company) | PENDING_FINAL_APPROVAL (personal)
    -> COMPLETED. REJECTED is terminal from any pre-COMPLETED state.

    Transitions past PENDING_AML belong to admin approval.
    """

    NOT_STARTED = "NOT_STARTED"
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    PENDING_AML = "PENDING_AML"
    PENDING_SSM_REVIEW = "PENDING_SSM_REVIEW"
    PENDING_FINAL_APPROVAL = "PENDING_FINAL_APPROVAL"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


# Forward-only ordering used to make organization updates idempotent.
ONBOARDING_STATUS_RANK: dict[str, int] = {
    OnboardingStatus.NOT_STARTED.value: 0,
    OnboardingStatus.PENDING.value: 1,
    OnboardingStatus.IN_PROGRESS.value: 1,
    OnboardingStatus.PENDING_APPROVAL.value: 2,
    OnboardingStatus.PENDING_AML.value: 3,
    OnboardingStatus.PENDING_SSM_REVIEW.value: 4,
    OnboardingStatus.PENDING_FINAL_APPROVAL.value: 4,
    OnboardingStatus.COMPLETED.value: 5,
    OnboardingStatus.REJECTED.value: 5,
}


class VerificationStatus(str, Enum):
    """Internal vocabulary for a verification session (normalized provider status)."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    FORM_FILLING = "FORM_FILLING"
    LIVENESS_PASSED = "LIVENESS_PASSED"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    PENDING_AML = "PENDING_AML"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


class OnboardingEventType(str, Enum):
    """Onboarding audit log event types."""

    ONBOARDING_STARTED = "ONBOARDING_STARTED"
    ONBOARDING_RESUMED = "ONBOARDING_RESUMED"
    ONBOARDING_RETRIED = "ONBOARDING_RETRIED"
    ONBOARDING_STATUS_SYNCED = "ONBOARDING_STATUS_SYNCED"
    FORM_FILLED = "FORM_FILLED"
    VERIFICATION_APPROVED = "VERIFICATION_APPROVED"
    ONBOARDING_REJECTED = "ONBOARDING_REJECTED"
