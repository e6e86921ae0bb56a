"""Utility modules."""

from app.utils.normalization import (
    normalize_blank,
    normalize_email,
    normalize_label,
    normalize_name,
    normalize_text,
    parse_date_value,
)

__all__ = [
    "normalize_blank",
    "normalize_email",
    "normalize_label",
    "normalize_name",
    "normalize_text",
    "parse_date_value",
]
