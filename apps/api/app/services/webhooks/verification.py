"""Verification provider webhook handler."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging

from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.structured_logging import build_log_context
from app.schemas.verification import VerificationWebhookEvent
from app.services import onboarding_service

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-verification-signature"
SIGNATURE_PREFIX = "sha256="


def verify_signature(body: bytes, signature: str, secret: str) -> bool:
    """Check a hex HMAC-SHA256 of the raw body (optionally prefixed "sha256=")."""
    provided = signature.strip()
    if provided.lower().startswith(SIGNATURE_PREFIX):
        provided = provided[len(SIGNATURE_PREFIX):]
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, provided.lower())


async def _read_body_safe(request: Request) -> bytes:
    max_bytes = settings.VERIFICATION_WEBHOOK_MAX_PAYLOAD_BYTES
    content_length = request.headers.get("content-length")
    if content_length:
        try:
            if int(content_length) > max_bytes:
                raise HTTPException(413, "Payload too large")
        except ValueError:
            pass

    chunks: list[bytes] = []
    total = 0
    async for chunk in request.stream():
        if not chunk:
            continue
        total += len(chunk)
        if total > max_bytes:
            raise HTTPException(413, "Payload too large")
        chunks.append(chunk)
    return b"".join(chunks)


class VerificationWebhookHandler:
    async def handle(self, request: Request, db: Session, **kwargs):
        """
        Receive verification status notifications.

        Security:
        - Validates HMAC signature when VERIFICATION_WEBHOOK_SECRET is set
        - Caps payload size

        Responses:
        - 200 once the event is durably recorded (including re-deliveries)
        - 404 for an unknown request id, so the sender can alert
        """
        body = await _read_body_safe(request)

        secret = settings.VERIFICATION_WEBHOOK_SECRET
        if secret:
            signature = request.headers.get(SIGNATURE_HEADER, "")
            if not signature:
                logger.warning("Verification webhook missing signature")
                raise HTTPException(401, "Missing signature")
            if not verify_signature(body, signature, secret):
                logger.warning("Verification webhook invalid signature")
                raise HTTPException(401, "Invalid signature")
        else:
            logger.warning("VERIFICATION_WEBHOOK_SECRET not set; accepting unsigned webhook")

        try:
            data = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise HTTPException(400, "Invalid JSON")
        if not isinstance(data, dict):
            raise HTTPException(400, "Invalid payload")

        try:
            event = VerificationWebhookEvent.from_payload(data)
        except ValueError as exc:
            raise HTTPException(400, str(exc))

        log_context = build_log_context(verification_request_id=event.request_id, event=event.status)
        logger.info("Verification webhook received", extra=log_context)

        try:
            await onboarding_service.handle_webhook_update(db, event)
        except onboarding_service.SessionNotFoundError:
            logger.error("Verification webhook for unknown request id", extra=log_context)
            raise HTTPException(404, "Verification session not found")

        return {"status": "ok"}
