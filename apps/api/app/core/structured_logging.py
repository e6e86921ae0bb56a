"""Structured logging helpers (PII-safe)."""

from typing import Any


def build_log_context(
    *,
    user_id: str | None = None,
    org_id: str | None = None,
    portal: str | None = None,
    verification_request_id: str | None = None,
    event: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict (identifiers only, never identity data)."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = user_id
    if org_id:
        context["org_id"] = org_id
    if portal:
        context["portal"] = portal
    if verification_request_id:
        context["verification_request_id"] = verification_request_id
    if event:
        context["event"] = event
    return context
