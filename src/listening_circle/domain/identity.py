"""
Email identity helpers shared by every component.

Email is the sole identity key before profile completion, so issue,
verify and provisioning all normalize through normalize_email().
"""

import re
from datetime import UTC, datetime

from .exceptions import ValidationError

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_MAX_EMAIL_LENGTH = 254


def utc_now() -> datetime:
    """Default clock for services."""
    return datetime.now(UTC)


def normalize_email(email: str) -> str:
    """
    Normalize email address for consistent storage and lookup.

    Applies: strip whitespace + lowercase
    """
    return email.strip().lower()


def require_valid_email(email: str | None) -> str:
    """
    Normalize and validate an email address.

    Raises:
        ValidationError: If the email is missing or malformed
    """
    if not email or not isinstance(email, str):
        raise ValidationError("Email is required")
    normalized = normalize_email(email)
    if len(normalized) > _MAX_EMAIL_LENGTH or not _EMAIL_PATTERN.match(normalized):
        raise ValidationError("Invalid email format")
    return normalized


def redact_email(email: str) -> str:
    """Mask the local part for log lines: jane@example.com -> j***@example.com."""
    local, sep, domain = email.partition("@")
    if not sep:
        return "***"
    return f"{local[:1]}***@{domain}"
