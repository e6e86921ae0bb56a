"""Webhooks router - verification provider notifications."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import get_db
from app.core.rate_limit import limiter
from app.services.webhooks.verification import VerificationWebhookHandler

router = APIRouter()

_verification_handler = VerificationWebhookHandler()


@router.post("/verification")
@limiter.limit(f"{settings.RATE_LIMIT_WEBHOOK}/minute")
async def receive_verification_webhook(
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Receive verification provider status updates.

    HMAC-signed, size-capped. Acknowledges with 200 once the event is
    recorded; 404 only when the request id is unknown.
    """
    return await _verification_handler.handle(request, db)
