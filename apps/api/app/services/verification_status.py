"""Provider status vocabulary and how it maps onto session and organization state."""

from __future__ import annotations

from app.db.enums import (
    ONBOARDING_STATUS_RANK,
    OnboardingStatus,
    OrganizationType,
    VerificationStatus,
)

# Provider statuses the user passes through before liveness completes.
PRE_LIVENESS_STATUSES = frozenset({"PROCESSING", "ID_UPLOADED", "LIVENESS_STARTED"})

PROVIDER_STATUS_MAP: dict[str, str] = {
    **{status: VerificationStatus.FORM_FILLING.value for status in PRE_LIVENESS_STATUSES},
    "LIVENESS_PASSED": VerificationStatus.LIVENESS_PASSED.value,
    "WAIT_FOR_APPROVAL": VerificationStatus.PENDING_APPROVAL.value,
    "APPROVED": VerificationStatus.PENDING_AML.value,
    "REJECTED": VerificationStatus.REJECTED.value,
}

# Provider statuses meaning liveness is done and the form is submitted.
LIVENESS_COMPLETE_STATUSES = frozenset({"LIVENESS_PASSED", "WAIT_FOR_APPROVAL"})

# Sessions in these statuses are not handed back on a repeated start.
NON_RESUMABLE_STATUSES = frozenset(
    {
        VerificationStatus.LIVENESS_PASSED.value,
        VerificationStatus.PENDING_APPROVAL.value,
        VerificationStatus.APPROVED.value,
    }
)

SESSION_STATUS_RANK: dict[str, int] = {
    VerificationStatus.PENDING.value: 0,
    VerificationStatus.IN_PROGRESS.value: 0,
    VerificationStatus.FORM_FILLING.value: 1,
    VerificationStatus.LIVENESS_PASSED.value: 2,
    VerificationStatus.PENDING_APPROVAL.value: 3,
    VerificationStatus.PENDING_AML.value: 4,
    VerificationStatus.APPROVED.value: 5,
}


def normalize_provider_status(provider_status: str | None) -> str:
    return (provider_status or "").strip().upper()


def map_provider_status(provider_status: str | None) -> str:
    """
    Translate a provider status into the internal session status.

    Unknown values pass through (uppercased) so nothing the provider says is lost.
    """
    normalized = normalize_provider_status(provider_status)
    return PROVIDER_STATUS_MAP.get(normalized, normalized)


def is_liveness_complete(provider_status: str | None) -> bool:
    return normalize_provider_status(provider_status) in LIVENESS_COMPLETE_STATUSES


def is_provider_approved(provider_status: str | None) -> bool:
    return normalize_provider_status(provider_status) == "APPROVED"


def is_provider_rejected(provider_status: str | None) -> bool:
    return normalize_provider_status(provider_status) == "REJECTED"


def is_resumable(session_status: str | None) -> bool:
    return (session_status or "") not in NON_RESUMABLE_STATUSES


def should_apply_session_status(current: str | None, new: str) -> bool:
    """
    Decide whether a mapped status may replace the session's current one.

    REJECTED is sticky until an explicit retry resets the session. Known
    statuses never move backwards, so late or re-delivered events are no-ops.
    Statuses outside the known ladder are always recorded.
    """
    if current == new:
        return False
    if current == VerificationStatus.REJECTED.value:
        return False
    if new == VerificationStatus.REJECTED.value:
        return True
    current_rank = SESSION_STATUS_RANK.get(current or "")
    new_rank = SESSION_STATUS_RANK.get(new)
    if current_rank is None or new_rank is None:
        return True
    return new_rank >= current_rank


def can_advance_onboarding(current: str | None, new: OnboardingStatus) -> bool:
    """Organization onboarding status only moves forward; terminal states stay put."""
    current_rank = ONBOARDING_STATUS_RANK.get(current or OnboardingStatus.NOT_STARTED.value, 0)
    if current in (OnboardingStatus.COMPLETED.value, OnboardingStatus.REJECTED.value):
        return False
    return ONBOARDING_STATUS_RANK[new.value] > current_rank


def initial_session_status(org_type: str) -> VerificationStatus:
    if org_type == OrganizationType.PERSONAL.value:
        return VerificationStatus.IN_PROGRESS
    return VerificationStatus.PENDING


def initial_onboarding_status(org_type: str) -> OnboardingStatus:
    if org_type == OrganizationType.PERSONAL.value:
        return OnboardingStatus.IN_PROGRESS
    return OnboardingStatus.PENDING
