"""Tests for the onboarding HTTP endpoints."""

import pytest

from app.db.enums import OnboardingStatus
from app.services.verification_provider import VerificationProviderError


def _start_body(org, **overrides) -> dict:
    body = {"organization_id": str(org.id), "portal": "investor", "kind": "INDIVIDUAL"}
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_requires_authentication(client, personal_org):
    response = await client.get(
        "/onboarding/status",
        params={"organization_id": str(personal_org.id), "portal": "investor"},
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_start_requires_csrf_header(authed_client, personal_org, fake_provider):
    response = await authed_client.post(
        "/onboarding/start",
        json=_start_body(personal_org),
        headers={"X-Requested-With": ""},
    )

    assert response.status_code == 403
    assert fake_provider.calls == []


@pytest.mark.asyncio
async def test_start_returns_link(authed_client, personal_org, fake_provider):
    response = await authed_client.post("/onboarding/start", json=_start_body(personal_org))

    assert response.status_code == 200
    data = response.json()
    assert data["request_id"] == "LD00001"
    assert data["verify_link"].startswith("https://verify.example.com/")
    assert data["organization_type"] == "PERSONAL"
    assert data["resumed"] is False

    again = await authed_client.post("/onboarding/start", json=_start_body(personal_org))
    assert again.json()["resumed"] is True
    assert again.json()["request_id"] == "LD00001"


@pytest.mark.asyncio
async def test_start_rejects_mismatched_entity_fields(authed_client, personal_org, fake_provider):
    response = await authed_client.post(
        "/onboarding/start", json=_start_body(personal_org, company_name="Acme")
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_start_on_completed_org_is_conflict(authed_client, owner, make_org, fake_provider):
    org = make_org(owner, status=OnboardingStatus.COMPLETED)

    response = await authed_client.post("/onboarding/start", json=_start_body(org))

    assert response.status_code == 409
    assert response.json()["code"] == "ALREADY_COMPLETED"


@pytest.mark.asyncio
async def test_start_with_wrong_kind_is_bad_request(authed_client, company_org, fake_provider):
    response = await authed_client.post(
        "/onboarding/start",
        json=_start_body(company_org, portal="issuer"),
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_PORTAL_TYPE"


@pytest.mark.asyncio
async def test_provider_failure_is_bad_gateway(authed_client, personal_org, fake_provider):
    fake_provider.create_error = VerificationProviderError("down", status_code=503, code="HTTP_ERROR")

    response = await authed_client.post("/onboarding/start", json=_start_body(personal_org))

    assert response.status_code == 502


@pytest.mark.asyncio
async def test_other_owner_is_forbidden(authed_client, make_user, make_org, fake_provider):
    stranger = make_user()
    org = make_org(stranger)

    response = await authed_client.post("/onboarding/start", json=_start_body(org))

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_wrong_portal_is_not_found(authed_client, personal_org, fake_provider):
    response = await authed_client.get(
        "/onboarding/status",
        params={"organization_id": str(personal_org.id), "portal": "issuer"},
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_status_before_start(authed_client, personal_org):
    response = await authed_client.get(
        "/onboarding/status",
        params={"organization_id": str(personal_org.id), "portal": "investor"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["onboarding_status"] == "NOT_STARTED"
    assert data["session_status"] == "NOT_STARTED"
    assert data["request_id"] is None


@pytest.mark.asyncio
async def test_sync_and_retry_without_session(authed_client, personal_org, fake_provider):
    target = {"organization_id": str(personal_org.id), "portal": "investor"}

    assert (await authed_client.post("/onboarding/sync", json=target)).status_code == 404
    assert (await authed_client.post("/onboarding/retry", json=target)).status_code == 404


@pytest.mark.asyncio
async def test_sync_after_start(authed_client, personal_org, fake_provider):
    await authed_client.post("/onboarding/start", json=_start_body(personal_org))
    fake_provider.detail_status = "LIVENESS_PASSED"

    response = await authed_client.post(
        "/onboarding/sync",
        json={"organization_id": str(personal_org.id), "portal": "investor"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["session_status"] == "LIVENESS_PASSED"
    assert data["onboarding_status"] == "PENDING_APPROVAL"


@pytest.mark.asyncio
async def test_revoked_token_is_rejected(authed_client, db, owner, personal_org):
    owner.token_version += 1
    db.flush()

    response = await authed_client.get(
        "/onboarding/status",
        params={"organization_id": str(personal_org.id), "portal": "investor"},
    )

    assert response.status_code == 401
    assert response.json()["detail"] == "Session revoked"


@pytest.mark.asyncio
async def test_disabled_user_is_rejected(authed_client, db, owner, personal_org):
    owner.is_active = False
    db.flush()

    response = await authed_client.get(
        "/onboarding/status",
        params={"organization_id": str(personal_org.id), "portal": "investor"},
    )

    assert response.status_code == 401
    assert response.json()["detail"] == "Account disabled"


@pytest.mark.asyncio
async def test_garbage_cookie_is_rejected(client, personal_org):
    client.cookies.set("onboarding_session", "not-a-jwt")

    response = await client.get(
        "/onboarding/status",
        params={"organization_id": str(personal_org.id), "portal": "investor"},
    )

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid session"
