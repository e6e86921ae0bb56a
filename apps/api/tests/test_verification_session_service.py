"""Tests for the verification session repository."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from app.db.enums import OnboardingKind, VerificationStatus
from app.schemas.verification import ProviderSessionLink
from app.services import verification_session_service as session_repo


def _link(request_id: str, expired_in: int | None = 3600) -> ProviderSessionLink:
    return ProviderSessionLink(
        request_id=request_id,
        verify_link=f"https://verify.example.com/{request_id}",
        expired_in=expired_in,
    )


def _create(db, org, owner, request_id: str, **kwargs):
    return session_repo.create_session(
        db,
        organization=org,
        user_id=owner.id,
        portal=org.portal,
        onboarding_kind=OnboardingKind.INDIVIDUAL.value,
        link=_link(request_id, **kwargs),
        status=VerificationStatus.IN_PROGRESS,
    )


def test_create_and_lookup(db, owner, personal_org):
    created = _create(db, personal_org, owner, "LD10001")

    assert session_repo.get_by_request_id(db, "LD10001").id == created.id
    active = session_repo.get_active_session(db, personal_org.id, personal_org.portal)
    assert active.id == created.id
    assert active.reference_id == str(personal_org.id)
    assert active.webhook_payloads == []


def test_only_one_active_session_per_org_and_portal(db, owner, personal_org):
    _create(db, personal_org, owner, "LD10002")
    db.commit()

    with pytest.raises(IntegrityError):
        _create(db, personal_org, owner, "LD10003")
    db.rollback()


def test_superseded_session_allows_a_new_active_one(db, owner, personal_org):
    first = _create(db, personal_org, owner, "LD10004")

    assert session_repo.supersede_session(db, first.id) is True
    assert session_repo.supersede_session(db, first.id) is False
    second = _create(db, personal_org, owner, "LD10005")

    assert first.is_active is False
    assert first.superseded_at is not None
    assert session_repo.get_active_session(db, personal_org.id, personal_org.portal).id == second.id
    all_ids = {s.request_id for s in session_repo.list_sessions(db, personal_org.id, personal_org.portal)}
    assert all_ids == {"LD10004", "LD10005"}


def test_webhook_payloads_are_appended_in_order(db, owner, personal_org):
    session = _create(db, personal_org, owner, "LD10006")

    session_repo.append_webhook_payload(db, session, {"status": "PROCESSING"})
    session_repo.append_webhook_payload(db, session, {"status": "LIVENESS_PASSED"})
    db.commit()
    db.expire_all()

    reloaded = session_repo.get_by_request_id(db, "LD10006")
    assert [p["status"] for p in reloaded.webhook_payloads] == ["PROCESSING", "LIVENESS_PASSED"]


def test_rejected_sets_completion_timestamp_once(db, owner, personal_org):
    session = _create(db, personal_org, owner, "LD10007")

    session_repo.update_status(db, session, status="PENDING_AML")
    assert session.completed_at is None

    session_repo.update_status(db, session, status="REJECTED", substatus="AML_HIT")
    first_completed = session.completed_at
    assert first_completed is not None
    session_repo.update_status(db, session, status="REJECTED")
    assert session.completed_at == first_completed


def test_link_expiry_defaults_when_provider_omits_ttl():
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    assert session_repo.link_expires_at(None, now) == now + timedelta(seconds=86400)
    assert session_repo.link_expires_at(600, now) == now + timedelta(seconds=600)


def test_expired_link_is_not_live(db, owner, personal_org):
    session = _create(db, personal_org, owner, "LD10008")
    assert session_repo.has_live_link(session)

    session.verify_link_expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
    assert not session_repo.has_live_link(session)
    assert session_repo.seconds_until_expiry(session) == 0


def test_reset_for_retry_keeps_request_id(db, owner, personal_org):
    session = _create(db, personal_org, owner, "LD10009")
    session_repo.update_status(db, session, status="REJECTED")

    session_repo.reset_for_retry(
        db,
        session,
        link=ProviderSessionLink(
            request_id="LD10009", verify_link="https://verify.example.com/again", expired_in=60
        ),
        status=VerificationStatus.IN_PROGRESS,
    )

    assert session.request_id == "LD10009"
    assert session.verify_link == "https://verify.example.com/again"
    assert session.status == "IN_PROGRESS"
    assert session.completed_at is None


def test_list_open_sessions(db, owner, personal_org):
    session = _create(db, personal_org, owner, "LD10010")
    db.commit()

    assert session.request_id in [s.request_id for s in session_repo.list_open_sessions(db)]

    session_repo.update_status(db, session, status="PENDING_AML")
    db.commit()
    assert session.request_id not in [s.request_id for s in session_repo.list_open_sessions(db)]
