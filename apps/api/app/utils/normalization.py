"""Data normalization utilities for consistent lookups."""

import re
from typing import Optional


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
    email = email.strip().lower()
    return email or None


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """
    Reduce a phone number to digits with an optional leading '+'.

    "+1 (555) 123-4567" → "+15551234567"
    """
    if not phone:
        return None
    cleaned = phone.strip()
    digits = re.sub(r"\D", "", cleaned)
    if not digits:
        return None
    return f"+{digits}" if cleaned.startswith("+") else digits


def extract_phone_last4(phone: Optional[str]) -> Optional[str]:
    """
    Extract last 4 digits from a phone number.
    """
    if not phone:
        return None
    digits = re.sub(r"\D", "", phone)
    if not digits:
        return None
    return digits[-4:] if len(digits) >= 4 else digits


def escape_like_string(value: str) -> str:
    """Escape LIKE wildcards so user search text matches literally (escape char '\\')."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
