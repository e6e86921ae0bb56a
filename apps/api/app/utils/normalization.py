"""Normalization helpers for provider-supplied values."""

from datetime import date, datetime, timezone
from typing import Any, Optional

# Values the provider uses to mean "no answer".
BLANK_MARKERS = {"", "null", "none", "undefined"}


def normalize_blank(value: Any) -> Any:
    """
    Collapse provider "no value" markers to None.

    Strings are stripped; "", "null" (any case) and similar markers become None.
    Non-string values pass through unchanged.
    """
    if value is None:
        return None
    if isinstance(value, str):
        cleaned = value.strip()
        if cleaned.lower() in BLANK_MARKERS:
            return None
        return cleaned
    return value


def normalize_text(value: Any) -> Optional[str]:
    """Normalize a scalar to a trimmed string or None."""
    value = normalize_blank(value)
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value
    raise ValueError(f"Expected a scalar value, got {type(value).__name__}")


def normalize_email(email: Optional[str]) -> Optional[str]:
    """
    Normalize email to lowercase.

    Args:
        email: Raw email input

    Returns:
        Lowercased email or None if empty
    """
    if not email:
        return None
    return email.strip().lower()


def normalize_name(name: Optional[str]) -> Optional[str]:
    """
    Normalize name by stripping whitespace and collapsing multiple spaces.

    Args:
        name: Raw name input

    Returns:
        Cleaned name or None if empty
    """
    if not name:
        return None
    return " ".join(name.split())


def normalize_label(value: Optional[str]) -> str:
    """Case and separator insensitive key for matching provider labels."""
    if not value:
        return ""
    return " ".join(value.replace("_", " ").replace("-", " ").lower().split())


def parse_date_value(value: Any) -> Optional[date]:
    """
    Parse a provider date (ISO date, ISO datetime or epoch millis).

    Returns None when the value is blank or not a recognizable date.
    """
    value = normalize_blank(value)
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc).date()
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        for candidate in (value, value[:10]):
            try:
                return date.fromisoformat(candidate)
            except ValueError:
                continue
        for fmt in ("%d/%m/%Y", "%d-%m-%Y"):
            try:
                return datetime.strptime(value, fmt).date()
            except ValueError:
                continue
    return None
