"""Tests for provider status mapping and status ordering rules."""

import pytest

from app.db.enums import OnboardingStatus, OrganizationType, VerificationStatus
from app.services.verification_status import (
    can_advance_onboarding,
    initial_onboarding_status,
    initial_session_status,
    is_liveness_complete,
    is_resumable,
    map_provider_status,
    should_apply_session_status,
)


@pytest.mark.parametrize(
    "provider_status,expected",
    [
        ("PROCESSING", "FORM_FILLING"),
        ("ID_UPLOADED", "FORM_FILLING"),
        ("LIVENESS_STARTED", "FORM_FILLING"),
        ("LIVENESS_PASSED", "LIVENESS_PASSED"),
        ("WAIT_FOR_APPROVAL", "PENDING_APPROVAL"),
        ("APPROVED", "PENDING_AML"),
        ("REJECTED", "REJECTED"),
    ],
)
def test_map_provider_status(provider_status, expected):
    assert map_provider_status(provider_status) == expected


def test_provider_approval_never_maps_to_approved():
    assert map_provider_status("approved") == VerificationStatus.PENDING_AML.value


def test_unknown_status_passes_through_uppercased():
    assert map_provider_status("score_generated") == "SCORE_GENERATED"


def test_liveness_complete_statuses():
    assert is_liveness_complete("LIVENESS_PASSED")
    assert is_liveness_complete("wait_for_approval")
    assert not is_liveness_complete("PROCESSING")


def test_resumable_excludes_near_terminal_statuses():
    assert is_resumable("IN_PROGRESS")
    assert is_resumable("FORM_FILLING")
    assert not is_resumable("LIVENESS_PASSED")
    assert not is_resumable("PENDING_APPROVAL")
    assert not is_resumable("APPROVED")


def test_session_status_never_regresses():
    assert should_apply_session_status("FORM_FILLING", "PENDING_APPROVAL")
    assert not should_apply_session_status("PENDING_AML", "FORM_FILLING")
    assert not should_apply_session_status("PENDING_AML", "PENDING_AML")


def test_rejected_is_sticky():
    assert should_apply_session_status("PENDING_APPROVAL", "REJECTED")
    assert not should_apply_session_status("REJECTED", "PENDING_AML")
    assert not should_apply_session_status("REJECTED", "FORM_FILLING")


def test_unranked_status_is_recorded():
    assert should_apply_session_status("FORM_FILLING", "SCORE_GENERATED")
    assert should_apply_session_status("EXPIRED", "FORM_FILLING")


def test_onboarding_status_only_moves_forward():
    assert can_advance_onboarding("IN_PROGRESS", OnboardingStatus.PENDING_APPROVAL)
    assert not can_advance_onboarding("PENDING_AML", OnboardingStatus.PENDING_APPROVAL)
    assert not can_advance_onboarding("PENDING_APPROVAL", OnboardingStatus.PENDING_APPROVAL)
    assert not can_advance_onboarding("COMPLETED", OnboardingStatus.REJECTED)
    assert can_advance_onboarding("PENDING_AML", OnboardingStatus.REJECTED)


def test_initial_statuses_by_entity_kind():
    assert initial_session_status(OrganizationType.PERSONAL.value) == VerificationStatus.IN_PROGRESS
    assert initial_session_status(OrganizationType.COMPANY.value) == VerificationStatus.PENDING
    assert initial_onboarding_status(OrganizationType.PERSONAL.value) == OnboardingStatus.IN_PROGRESS
    assert initial_onboarding_status(OrganizationType.COMPANY.value) == OnboardingStatus.PENDING
