"""Utility modules."""

from app.utils.normalization import (
    escape_like_string,
    extract_phone_last4,
    normalize_email,
    normalize_phone,
)

__all__ = [
    "escape_like_string",
    "extract_phone_last4",
    "normalize_email",
    "normalize_phone",
]
