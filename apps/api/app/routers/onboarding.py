"""Onboarding router - start, status, sync and retry provider verification."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.deps import get_current_user, get_db, require_csrf_header
from app.core.rate_limit import limiter
from app.db.enums import Portal
from app.db.models import User
from app.schemas.onboarding import (
    OnboardingLinkRead,
    OnboardingStatusRead,
    OnboardingSyncRead,
    OnboardingTarget,
    StartOnboardingRequest,
)
from app.services import onboarding_service
from app.services.onboarding_log_service import request_metadata
from app.services.onboarding_service import (
    OnboardingError,
    OnboardingForbiddenError,
    OnboardingPreconditionError,
    OrganizationNotFoundError,
    SessionNotFoundError,
)
from app.services.verification_provider import VerificationProviderError

router = APIRouter(prefix="/onboarding", tags=["Onboarding"])
logger = logging.getLogger(__name__)

PROVIDER_UNAVAILABLE_DETAIL = "The verification provider is unreachable. Please try again shortly."


def _precondition_response(exc: OnboardingPreconditionError) -> JSONResponse:
    status_code = 409 if exc.code == "ALREADY_COMPLETED" else 400
    return JSONResponse(status_code=status_code, content={"code": exc.code, "detail": exc.message})


def _http_error(exc: OnboardingError) -> HTTPException:
    if isinstance(exc, OrganizationNotFoundError):
        return HTTPException(status_code=404, detail="Organization not found")
    if isinstance(exc, SessionNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, OnboardingForbiddenError):
        return HTTPException(status_code=403, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def _provider_error(exc: VerificationProviderError) -> HTTPException:
    logger.error(
        "Verification provider call failed: %s (%s, status=%s)",
        exc.message,
        exc.code,
        exc.status_code,
    )
    return HTTPException(status_code=502, detail=PROVIDER_UNAVAILABLE_DETAIL)


@router.post(
    "/start",
    response_model=OnboardingLinkRead,
    dependencies=[Depends(require_csrf_header)],
)
@limiter.limit("10/minute")
async def start_onboarding(
    request: Request,
    data: StartOnboardingRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Start verification, or hand back the live link of an in-progress session."""
    try:
        return await onboarding_service.start_onboarding(
            db,
            user_id=user.id,
            organization_id=data.organization_id,
            portal=data.portal,
            kind=data.kind,
            identity=data.identity,
            company_name=data.company_name,
            request_meta=request_metadata(request),
        )
    except OnboardingPreconditionError as e:
        return _precondition_response(e)
    except OnboardingError as e:
        raise _http_error(e)
    except VerificationProviderError as e:
        raise _provider_error(e)


@router.get("/status", response_model=OnboardingStatusRead)
def get_onboarding_status(
    organization_id: UUID = Query(...),
    portal: Portal = Query(...),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Current onboarding and verification session status for an organization."""
    try:
        return onboarding_service.get_onboarding_status(
            db, user_id=user.id, organization_id=organization_id, portal=portal
        )
    except OnboardingError as e:
        raise _http_error(e)


@router.post(
    "/sync",
    response_model=OnboardingSyncRead,
    dependencies=[Depends(require_csrf_header)],
)
@limiter.limit("10/minute")
async def sync_onboarding(
    request: Request,
    data: OnboardingTarget,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Pull the provider's current status (use when a webhook seems lost)."""
    try:
        return await onboarding_service.sync_onboarding_status(
            db,
            user_id=user.id,
            organization_id=data.organization_id,
            portal=data.portal,
            request_meta=request_metadata(request),
        )
    except OnboardingPreconditionError as e:
        return _precondition_response(e)
    except OnboardingError as e:
        raise _http_error(e)
    except VerificationProviderError as e:
        raise _provider_error(e)


@router.post(
    "/retry",
    response_model=OnboardingLinkRead,
    dependencies=[Depends(require_csrf_header)],
)
@limiter.limit("5/minute")
async def retry_onboarding(
    request: Request,
    data: OnboardingTarget,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Restart an expired or failed verification session."""
    try:
        return await onboarding_service.retry_onboarding(
            db,
            user_id=user.id,
            organization_id=data.organization_id,
            portal=data.portal,
            request_meta=request_metadata(request),
        )
    except OnboardingPreconditionError as e:
        return _precondition_response(e)
    except OnboardingError as e:
        raise _http_error(e)
    except VerificationProviderError as e:
        raise _provider_error(e)
