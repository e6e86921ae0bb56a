"""Tests for structured logging helpers."""

from app.core.structured_logging import build_log_context


def test_build_log_context_includes_only_provided_fields():
    context = build_log_context(
        user_id="user-1",
        org_id="org-1",
        portal="investor",
        verification_request_id="LD00001",
        event="APPROVED",
    )

    assert context == {
        "user_id": "user-1",
        "org_id": "org-1",
        "portal": "investor",
        "verification_request_id": "LD00001",
        "event": "APPROVED",
    }


def test_build_log_context_ignores_empty_fields():
    context = build_log_context(user_id="", org_id=None, verification_request_id="LD00001")

    assert context == {"verification_request_id": "LD00001"}
