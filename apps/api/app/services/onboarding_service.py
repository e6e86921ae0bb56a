"""Onboarding orchestrator.

Coordinates the organization's local onboarding status with the provider's
verification session status:

- start: resume a live session or create a new one
- webhook ingestion and manual sync (one shared status path)
- retry: restart the provider session in place

Every function takes the organization id and portal explicitly and commits
its own work. No database transaction is held open across a provider call.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable
from uuid import UUID

from opentelemetry import metrics
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.structured_logging import build_log_context
from app.core.url_validation import validate_public_callback_url
from app.db.enums import (
    ONBOARDING_STATUS_RANK,
    OnboardingEventType,
    OnboardingKind,
    OnboardingStatus,
    OrganizationType,
    Portal,
)
from app.db.models import Organization, User, VerificationSession
from app.schemas.onboarding import (
    IndividualIdentity,
    OnboardingLinkRead,
    OnboardingStatusRead,
    OnboardingSyncRead,
)
from app.schemas.verification import (
    CorporateSessionRequest,
    CorporateVerificationDetail,
    FormSettings,
    IndividualSessionRequest,
    IndividualVerificationDetail,
    ProviderSessionLink,
    VerificationWebhookEvent,
)
from app.services import (
    onboarding_log_service,
    org_service,
    verification_session_service as session_repo,
)
from app.services.onboarding_log_service import RequestMetadata
from app.services.verification_extraction import (
    determine_sophistication,
    extract_verification_data,
)
from app.services.verification_provider import (
    ProviderCallOutcome,
    VerificationProviderClient,
    VerificationProviderError,
    get_provider_client,
)
from app.services.verification_status import (
    initial_onboarding_status,
    initial_session_status,
    is_liveness_complete,
    is_provider_approved,
    is_provider_rejected,
    is_resumable,
    map_provider_status,
    normalize_provider_status,
    should_apply_session_status,
)

logger = logging.getLogger(__name__)

_meter = metrics.get_meter(__name__)
_provider_config_calls = _meter.create_counter(
    "verification.provider_config_calls",
    description="Best-effort provider configuration calls by action and outcome",
)

VerificationDetail = IndividualVerificationDetail | CorporateVerificationDetail


# =============================================================================
# Errors
# =============================================================================


class OnboardingError(Exception):
    """Base error for onboarding operations."""


class OrganizationNotFoundError(OnboardingError):
    pass


class SessionNotFoundError(OnboardingError):
    pass


class OnboardingForbiddenError(OnboardingError):
    pass


class OnboardingPreconditionError(OnboardingError):
    """Onboarding cannot proceed; nothing was sent to the provider."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


# =============================================================================
# Helpers
# =============================================================================


def _provider(provider: VerificationProviderClient | None) -> VerificationProviderClient:
    return provider or get_provider_client()


def _load_owned_org(db: Session, *, user_id: UUID, organization_id: UUID, portal: Portal) -> Organization:
    org = org_service.get_org_by_id(db, organization_id)
    if org is None or org.portal != portal.value:
        raise OrganizationNotFoundError("Organization not found")
    if org.owner_user_id != user_id:
        raise OnboardingForbiddenError("Only the organization owner can manage onboarding")
    return org


def _check_not_completed(org: Organization) -> None:
    if org.onboarding_status == OnboardingStatus.COMPLETED.value:
        raise OnboardingPreconditionError(
            "ALREADY_COMPLETED", "Organization has already completed onboarding"
        )


def _check_kind(org: Organization, portal: Portal, kind: OnboardingKind) -> None:
    if kind == OnboardingKind.INDIVIDUAL:
        if portal != Portal.INVESTOR:
            raise OnboardingPreconditionError(
                "INVALID_PORTAL_TYPE", "Individual onboarding is only available on the investor portal"
            )
        if org.type != OrganizationType.PERSONAL.value:
            raise OnboardingPreconditionError(
                "INVALID_ORGANIZATION_TYPE", "Individual onboarding requires a personal organization"
            )
    elif org.type != OrganizationType.COMPANY.value:
        raise OnboardingPreconditionError(
            "INVALID_ORGANIZATION_TYPE", "Corporate onboarding requires a company organization"
        )


def _form_id(portal: Portal, kind: OnboardingKind) -> int:
    if kind == OnboardingKind.INDIVIDUAL:
        return settings.VERIFICATION_INVESTOR_PERSONAL_FORM_ID
    if portal == Portal.INVESTOR:
        return settings.VERIFICATION_INVESTOR_CORPORATE_FORM_ID
    return settings.VERIFICATION_ISSUER_CORPORATE_FORM_ID


def _form_name(portal: Portal) -> str:
    if portal == Portal.INVESTOR:
        return settings.VERIFICATION_INVESTOR_CORPORATE_FORM_NAME
    return settings.VERIFICATION_ISSUER_CORPORATE_FORM_NAME


def _callback_urls(portal: Portal) -> tuple[str, str]:
    """Webhook and redirect URLs; both must be reachable by the provider."""
    try:
        webhook_url = validate_public_callback_url(settings.verification_webhook_url)
        redirect_url = validate_public_callback_url(settings.portal_redirect_url(portal.value))
    except ValueError as exc:
        raise OnboardingPreconditionError("CALLBACK_URL_NOT_PUBLIC", str(exc)) from exc
    return webhook_url, redirect_url


async def _best_effort(action: str, call: Awaitable[None]) -> ProviderCallOutcome:
    try:
        await call
    except VerificationProviderError as exc:
        outcome = ProviderCallOutcome(action=action, ok=False, error=exc.message)
        logger.warning(
            "Provider %s failed (continuing): %s",
            action,
            exc.message,
            extra={"provider_status_code": exc.status_code, "provider_error_code": exc.code},
        )
    else:
        outcome = ProviderCallOutcome(action=action, ok=True)
    _provider_config_calls.add(1, {"action": action, "ok": outcome.ok})
    return outcome


async def configure_provider(
    provider: VerificationProviderClient,
    *,
    portal: Portal,
    kind: OnboardingKind,
) -> list[ProviderCallOutcome]:
    """
    Register our webhook URL and the form settings with the provider.

    Best-effort: failures are returned as outcomes and logged, never raised.
    Callback URLs are validated first; a non-public URL raises
    OnboardingPreconditionError before anything is sent.
    """
    webhook_url, redirect_url = _callback_urls(portal)
    outcomes = [
        await _best_effort(
            "set_webhook_preferences",
            provider.set_webhook_preferences(webhook_url, True),
        ),
        await _best_effort(
            "set_form_settings",
            provider.set_form_settings(
                kind.value,
                FormSettings(
                    form_id=_form_id(portal, kind),
                    liveness_confidence=settings.VERIFICATION_LIVENESS_CONFIDENCE,
                    approve_mode=True,
                    redirect_url=redirect_url,
                    kyc_approval_target=settings.VERIFICATION_APPROVAL_TARGET,
                    enabled_registration_email=False,
                ),
            ),
        ),
    ]
    return outcomes


def _link_read(session: VerificationSession, *, resumed: bool) -> OnboardingLinkRead:
    return OnboardingLinkRead(
        verify_link=session.verify_link or "",
        request_id=session.request_id,
        expires_in=session_repo.seconds_until_expiry(session),
        organization_type=session.organization_type,
        status=session.status,
        resumed=resumed,
    )


def _individual_request(
    db: Session,
    org: Organization,
    user_id: UUID,
    identity: IndividualIdentity | None,
    portal: Portal,
) -> IndividualSessionRequest:
    identity = identity or IndividualIdentity()
    user = db.get(User, user_id)
    email = identity.email or (user.email if user else None)
    forename = identity.first_name or (user.first_name if user else None)
    surname = identity.last_name or (user.last_name if user else None)
    if not email or not forename or not surname:
        raise OnboardingPreconditionError(
            "IDENTITY_INCOMPLETE", "First name, last name and email are required"
        )
    return IndividualSessionRequest(
        email=email,
        forename=forename,
        surname=surname,
        reference_id=str(org.id),
        country_of_residence=identity.country_of_residence,
        nationality=identity.nationality,
        place_of_birth=identity.place_of_birth,
        id_issuing_country=identity.id_issuing_country,
        date_of_birth=identity.date_of_birth.isoformat() if identity.date_of_birth else None,
        gender=identity.gender,
        government_id_number=identity.government_id_number,
        id_type=identity.id_type,
        form_id=_form_id(portal, OnboardingKind.INDIVIDUAL),
    )


def _corporate_request(
    db: Session,
    org: Organization,
    user_id: UUID,
    company_name: str | None,
    portal: Portal,
) -> CorporateSessionRequest:
    user = db.get(User, user_id)
    name = company_name or org.name
    if not name or user is None:
        raise OnboardingPreconditionError(
            "IDENTITY_INCOMPLETE", "Company name and owner email are required"
        )
    return CorporateSessionRequest(
        email=user.email,
        company_name=name,
        reference_id=str(org.id),
        form_name=_form_name(portal),
        form_id=_form_id(portal, OnboardingKind.CORPORATE),
    )


# =============================================================================
# Start
# =============================================================================


async def start_onboarding(
    db: Session,
    *,
    user_id: UUID,
    organization_id: UUID,
    portal: Portal,
    kind: OnboardingKind,
    identity: IndividualIdentity | None = None,
    company_name: str | None = None,
    request_meta: RequestMetadata | None = None,
    provider: VerificationProviderClient | None = None,
) -> OnboardingLinkRead:
    """
    Start (or resume) provider verification for an organization.

    An active session whose status is not past liveness and whose link is
    still live is handed back as-is, unless the organization is already
    PENDING_APPROVAL. Otherwise a new provider session is created and
    replaces the one observed here. A REJECTED organization is reopened
    for the new session.

    Raises:
        OrganizationNotFoundError, OnboardingForbiddenError,
        OnboardingPreconditionError: nothing was sent to the provider
        VerificationProviderError: session creation failed
    """
    org = _load_owned_org(db, user_id=user_id, organization_id=organization_id, portal=portal)
    _check_not_completed(org)
    _check_kind(org, portal, kind)
    log_context = build_log_context(user_id=str(user_id), org_id=str(org.id), portal=portal.value)

    existing = session_repo.get_active_session(db, org.id, portal.value)
    if (
        existing
        and org.onboarding_status != OnboardingStatus.PENDING_APPROVAL.value
        and is_resumable(existing.status)
        and session_repo.has_live_link(existing)
    ):
        onboarding_log_service.append_event(
            db,
            event_type=OnboardingEventType.ONBOARDING_RESUMED,
            portal=portal.value,
            user_id=user_id,
            organization_id=org.id,
            metadata={"request_id": existing.request_id, "status": existing.status},
            request_meta=request_meta,
        )
        db.commit()
        logger.info("Resuming verification session %s", existing.request_id, extra=log_context)
        return _link_read(existing, resumed=True)

    if kind == OnboardingKind.INDIVIDUAL:
        create_request = _individual_request(db, org, user_id, identity, portal)
    else:
        create_request = _corporate_request(db, org, user_id, company_name, portal)

    observed_session_id = existing.id if existing else None
    org_type = org.type
    # Release any read locks before talking to the provider.
    db.commit()

    provider_client = _provider(provider)
    await configure_provider(provider_client, portal=portal, kind=kind)
    if kind == OnboardingKind.INDIVIDUAL:
        link = await provider_client.create_individual_session(create_request)
    else:
        link = await provider_client.create_corporate_session(create_request)

    try:
        if observed_session_id is not None:
            session_repo.supersede_session(db, observed_session_id)
        org = _load_owned_org(db, user_id=user_id, organization_id=organization_id, portal=portal)
        session = session_repo.create_session(
            db,
            organization=org,
            user_id=user_id,
            portal=portal.value,
            onboarding_kind=kind.value,
            link=link,
            status=initial_session_status(org_type),
        )
    except IntegrityError:
        db.rollback()
        winner = session_repo.get_active_session(db, organization_id, portal.value)
        if winner is None:
            raise
        logger.warning(
            "Concurrent start for organization %s; discarding provider session %s in favour of %s",
            organization_id,
            link.request_id,
            winner.request_id,
            extra=log_context,
        )
        return _link_read(winner, resumed=True)

    reopened_from = org_service.reopen_rejected_onboarding(
        db, org, initial_onboarding_status(org_type)
    )
    org_service.update_onboarding_status(db, org, initial_onboarding_status(org_type))
    onboarding_log_service.append_event(
        db,
        event_type=OnboardingEventType.ONBOARDING_STARTED,
        portal=portal.value,
        user_id=user_id,
        organization_id=org.id,
        metadata={
            "request_id": session.request_id,
            "onboarding_kind": kind.value,
            "superseded_session_id": str(observed_session_id) if observed_session_id else None,
            "reopened_from": reopened_from,
        },
        request_meta=request_meta,
    )
    db.commit()
    logger.info(
        "Started verification session %s (%s)",
        session.request_id,
        kind.value,
        extra={**log_context, "verification_request_id": session.request_id},
    )
    return _link_read(session, resumed=False)


# =============================================================================
# Shared status path (webhook + sync)
# =============================================================================


def _mark_form_filled(db: Session, org: Organization, session: VerificationSession, trigger: str) -> None:
    previous = org.onboarding_status
    if org_service.update_onboarding_status(db, org, OnboardingStatus.PENDING_APPROVAL):
        onboarding_log_service.append_event(
            db,
            event_type=OnboardingEventType.FORM_FILLED,
            portal=session.portal,
            user_id=session.user_id,
            organization_id=org.id,
            metadata={
                "request_id": session.request_id,
                "previous_status": previous,
                "new_status": OnboardingStatus.PENDING_APPROVAL.value,
                "trigger": trigger,
            },
        )


def _mark_rejected(db: Session, org: Organization, session: VerificationSession) -> None:
    previous = org.onboarding_status
    if org_service.update_onboarding_status(db, org, OnboardingStatus.REJECTED):
        onboarding_log_service.append_event(
            db,
            event_type=OnboardingEventType.ONBOARDING_REJECTED,
            portal=session.portal,
            user_id=session.user_id,
            organization_id=org.id,
            metadata={
                "request_id": session.request_id,
                "previous_status": previous,
                "substatus": session.substatus,
            },
        )


async def _fetch_detail(
    db: Session,
    session: VerificationSession,
    provider: VerificationProviderClient,
) -> VerificationDetail | None:
    # Trailing webhooks often carry richer data; give them a moment to land.
    delay = settings.VERIFICATION_DETAIL_FETCH_DELAY_SECONDS
    if delay > 0:
        await asyncio.sleep(delay)
    try:
        return await provider.get_session_detail(session.request_id, session.onboarding_kind)
    except VerificationProviderError as exc:
        logger.exception(
            "Failed to fetch verification detail for %s; reconcile with a manual sync",
            session.request_id,
        )
        session_repo.record_error(db, session, f"detail fetch failed: {exc.message}")
        return None


async def _reconcile_approved(
    db: Session,
    org: Organization,
    session: VerificationSession,
    provider: VerificationProviderClient,
    detail: VerificationDetail | None,
) -> None:
    """Pull the verified data onto the organization and move it to PENDING_AML."""
    if ONBOARDING_STATUS_RANK.get(org.onboarding_status, 0) > ONBOARDING_STATUS_RANK[
        OnboardingStatus.PENDING_AML.value
    ]:
        logger.info(
            "Organization %s already past AML (%s); not re-reconciling %s",
            org.id,
            org.onboarding_status,
            session.request_id,
        )
        return

    if detail is None:
        # Commit what we have so no lock is held across the provider call.
        db.commit()
        detail = await _fetch_detail(db, session, provider)

    if detail is not None:
        try:
            extracted = extract_verification_data(detail, session.webhook_payloads)
            sophistication = determine_sophistication(org.type, extracted.compliance_declaration)
        except (ValueError, TypeError, KeyError, AttributeError):
            logger.exception("Failed to extract verification data for %s", session.request_id)
            session_repo.record_error(db, session, "extraction failed")
        else:
            changed = org_service.update_extracted_fields(db, org, extracted, sophistication)
            logger.info(
                "Applied %d verified fields to organization %s",
                len(changed),
                org.id,
                extra=build_log_context(
                    org_id=str(org.id), verification_request_id=session.request_id
                ),
            )

    previous = org.onboarding_status
    if org_service.update_onboarding_status(db, org, OnboardingStatus.PENDING_AML):
        onboarding_log_service.append_event(
            db,
            event_type=OnboardingEventType.VERIFICATION_APPROVED,
            portal=session.portal,
            user_id=session.user_id,
            organization_id=org.id,
            metadata={
                "request_id": session.request_id,
                "previous_status": previous,
                "new_status": OnboardingStatus.PENDING_AML.value,
                "is_sophisticated_investor": org.is_sophisticated_investor,
                "detail_fetched": detail is not None,
            },
        )


async def apply_provider_status(
    db: Session,
    session: VerificationSession,
    provider_status: str,
    substatus: str | None,
    *,
    provider: VerificationProviderClient,
    trigger: str,
    detail: VerificationDetail | None = None,
) -> None:
    """
    Apply a provider status to the session and its organization.

    Shared by webhook ingestion and manual sync. The session status change
    is committed before any organization side effect or provider call.
    """
    mapped = map_provider_status(provider_status)
    previous = session.status
    if should_apply_session_status(previous, mapped):
        session_repo.update_status(db, session, status=mapped, substatus=substatus)
        logger.info(
            "Verification session %s %s -> %s (%s)",
            session.request_id,
            previous,
            mapped,
            trigger,
        )
    else:
        logger.info(
            "Ignoring %s status %s for session %s (currently %s)",
            trigger,
            mapped,
            session.request_id,
            previous,
        )
    db.commit()

    if not session.is_active:
        logger.info(
            "Session %s was superseded; %s status %s does not touch its organization",
            session.request_id,
            trigger,
            mapped,
        )
        return

    org = org_service.get_org_by_id(db, session.organization_id)
    if org is None:
        logger.warning(
            "Organization %s for session %s no longer exists",
            session.organization_id,
            session.request_id,
        )
        return

    normalized = normalize_provider_status(provider_status)
    if is_liveness_complete(normalized):
        _mark_form_filled(db, org, session, trigger=f"{trigger}:{normalized}")
    elif is_provider_approved(normalized):
        await _reconcile_approved(db, org, session, provider, detail)
    elif is_provider_rejected(normalized):
        _mark_rejected(db, org, session)
    db.commit()


# =============================================================================
# Webhook ingestion
# =============================================================================


async def handle_webhook_update(
    db: Session,
    event: VerificationWebhookEvent,
    *,
    provider: VerificationProviderClient | None = None,
) -> VerificationSession:
    """
    Ingest a provider status notification.

    Safe to re-deliver: the payload is always appended to history, status
    only moves forward, and organization updates re-check current status.

    Raises:
        SessionNotFoundError: unknown request id (nothing is written)
    """
    session = session_repo.get_by_request_id(db, event.request_id, for_update=True)
    if session is None:
        raise SessionNotFoundError(f"No verification session for request {event.request_id}")

    session_repo.append_webhook_payload(db, session, event.payload)
    await apply_provider_status(
        db,
        session,
        event.status,
        event.substatus,
        provider=_provider(provider),
        trigger="webhook",
    )
    return session


# =============================================================================
# Sync, retry, status
# =============================================================================


async def sync_onboarding_status(
    db: Session,
    *,
    user_id: UUID,
    organization_id: UUID,
    portal: Portal,
    request_meta: RequestMetadata | None = None,
    provider: VerificationProviderClient | None = None,
) -> OnboardingSyncRead:
    """Pull the provider's current status and apply it like a webhook would."""
    org = _load_owned_org(db, user_id=user_id, organization_id=organization_id, portal=portal)
    session = session_repo.get_active_session(db, org.id, portal.value)
    if session is None:
        raise SessionNotFoundError("No verification session to sync; start onboarding first")
    db.commit()

    provider_client = _provider(provider)
    detail = await provider_client.get_session_detail(session.request_id, session.onboarding_kind)
    await apply_provider_status(
        db,
        session,
        detail.status,
        detail.substatus,
        provider=provider_client,
        trigger="sync",
        detail=detail,
    )

    onboarding_log_service.append_event(
        db,
        event_type=OnboardingEventType.ONBOARDING_STATUS_SYNCED,
        portal=portal.value,
        user_id=user_id,
        organization_id=org.id,
        metadata={
            "request_id": session.request_id,
            "provider_status": normalize_provider_status(detail.status),
            "session_status": session.status,
        },
        request_meta=request_meta,
    )
    db.commit()
    db.refresh(org)
    return OnboardingSyncRead(
        request_id=session.request_id,
        provider_status=normalize_provider_status(detail.status),
        session_status=session.status,
        substatus=session.substatus,
        onboarding_status=org.onboarding_status,
    )


async def retry_onboarding(
    db: Session,
    *,
    user_id: UUID,
    organization_id: UUID,
    portal: Portal,
    request_meta: RequestMetadata | None = None,
    provider: VerificationProviderClient | None = None,
) -> OnboardingLinkRead:
    """
    Restart the provider session in place (same request id, same row).

    Raises:
        SessionNotFoundError: nothing to retry
        VerificationProviderError: the restart call failed
    """
    org = _load_owned_org(db, user_id=user_id, organization_id=organization_id, portal=portal)
    _check_not_completed(org)
    session = session_repo.get_active_session(db, org.id, portal.value)
    if session is None:
        raise SessionNotFoundError("No verification session to retry; start onboarding first")
    kind = OnboardingKind(session.onboarding_kind)
    db.commit()

    provider_client = _provider(provider)
    await configure_provider(provider_client, portal=portal, kind=kind)
    link: ProviderSessionLink = await provider_client.restart_session(session.request_id, kind.value)
    if link.request_id != session.request_id:
        logger.warning(
            "Provider restart for %s returned request id %s; keeping the original",
            session.request_id,
            link.request_id,
        )

    session_repo.reset_for_retry(
        db, session, link=link, status=initial_session_status(session.organization_type)
    )
    # A retried session starts over, so a rejected organization does too.
    reopened_from = org_service.reopen_rejected_onboarding(
        db, org, initial_onboarding_status(org.type)
    )
    onboarding_log_service.append_event(
        db,
        event_type=OnboardingEventType.ONBOARDING_RETRIED,
        portal=portal.value,
        user_id=user_id,
        organization_id=org.id,
        metadata={"request_id": session.request_id, "reopened_from": reopened_from},
        request_meta=request_meta,
    )
    db.commit()
    logger.info(
        "Restarted verification session %s",
        session.request_id,
        extra=build_log_context(
            user_id=str(user_id), org_id=str(org.id), verification_request_id=session.request_id
        ),
    )
    return _link_read(session, resumed=False)


def get_onboarding_status(
    db: Session,
    *,
    user_id: UUID,
    organization_id: UUID,
    portal: Portal,
) -> OnboardingStatusRead:
    org = _load_owned_org(db, user_id=user_id, organization_id=organization_id, portal=portal)
    session = session_repo.get_active_session(db, org.id, portal.value)
    if session is None:
        return OnboardingStatusRead(
            organization_id=org.id,
            portal=portal,
            onboarding_status=org.onboarding_status,
            session_status=OnboardingStatus.NOT_STARTED.value,
        )
    return OnboardingStatusRead(
        organization_id=org.id,
        portal=portal,
        onboarding_status=org.onboarding_status,
        session_status=session.status,
        substatus=session.substatus,
        request_id=session.request_id,
        verify_link=session.verify_link,
        verify_link_expires_at=session_repo.as_utc(session.verify_link_expires_at),
        completed_at=session_repo.as_utc(session.completed_at),
        updated_at=session_repo.as_utc(session.updated_at),
    )
