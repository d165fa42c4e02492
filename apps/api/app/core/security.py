"""Security utilities for invitation tokens and join codes."""

import hashlib
import secrets


INVITATION_TOKEN_BYTES = 32
INVITATION_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"


def generate_invitation_token() -> str:
    """Generate a raw invitation token (hex). Shown to the inviter exactly once."""
    return secrets.token_bytes(INVITATION_TOKEN_BYTES).hex()


def hash_token(token: str) -> str:
    """Create SHA256 hash of a raw token for storage and lookup."""
    return hashlib.sha256(token.encode()).hexdigest()


def generate_invitation_code(length: int = 8) -> str:
    """Generate a random uppercase alphanumeric join code."""
    return "".join(secrets.choice(INVITATION_CODE_ALPHABET) for _ in range(length))


def normalize_invitation_code(code: str) -> str:
    """Codes are case-insensitive; store and look them up uppercased."""
    return code.strip().upper()
