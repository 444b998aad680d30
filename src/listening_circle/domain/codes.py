"""
Verification code service - Code Issuer and Code Verifier.

Issue order is fixed: validate -> check delivery capability ->
throttled persist -> deliver. A misconfigured email provider never leaves
undeliverable codes behind. The throttle check and the insert are one
repository call, serialized per email.

Codes are never deleted. Several outstanding codes per email are allowed,
so verification matches the exact code value and consumption is a single
atomic conditional update in the repository.
"""

import logging
import re
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from .exceptions import InvalidOrExpiredCode, RateLimited, ValidationError
from .identity import redact_email, require_valid_email, utc_now
from .notifications import NotificationDispatcher
from .ports import VerificationCode, VerificationCodeRepository

logger = logging.getLogger(__name__)

_CODE_PATTERN = re.compile(r"^[0-9]{6}$")


@dataclass
class VerificationCodeService:
    """Issues and consumes one-time 6-digit codes."""

    repository: VerificationCodeRepository
    dispatcher: NotificationDispatcher
    ttl_seconds: int = 600
    rate_limit: int = 3
    rate_window_seconds: int = 600
    clock: Callable[[], datetime] = field(default=utc_now)

    def issue_code(self, email: str) -> VerificationCode:
        """
        Issue a code for an email and deliver it.

        Args:
            email: Raw email address (will be normalized)

        Returns:
            The persisted code row

        Raises:
            ValidationError: If the email is malformed
            ServiceUnavailable: If delivery is unconfigured or fails
            RateLimited: If too many codes were issued recently
        """
        normalized_email = require_valid_email(email)

        self.dispatcher.ensure_email_configured()

        now = self.clock()
        code = self._generate_code()
        expires_at = now + timedelta(seconds=self.ttl_seconds)
        issued = self.repository.create_code(
            normalized_email,
            code,
            expires_at,
            now,
            since=now - timedelta(seconds=self.rate_window_seconds),
            limit=max(self.rate_limit, 0),
        )
        if issued is None:
            logger.warning("Code rate limit hit for %s", redact_email(normalized_email))
            raise RateLimited()

        self.dispatcher.deliver_code(normalized_email, code)
        return issued

    def verify_code(self, email: str, code: str) -> VerificationCode:
        """
        Validate and consume a code exactly once.

        Raises:
            ValidationError: If email or code is malformed (nothing consumed)
            InvalidOrExpiredCode: If no unused, unexpired matching code exists
        """
        normalized_email = require_valid_email(email)
        normalized_code = self._require_valid_code(code)

        consumed = self.repository.consume_code(normalized_email, normalized_code, self.clock())
        if consumed is None:
            logger.info("Rejected code for %s", redact_email(normalized_email))
            raise InvalidOrExpiredCode()
        return consumed

    def _require_valid_code(self, code: str | None) -> str:
        if not code or not isinstance(code, str):
            raise ValidationError("Code is required")
        stripped = code.strip()
        if not _CODE_PATTERN.match(stripped):
            raise ValidationError("Code must be 6 digits")
        return stripped

    def _generate_code(self) -> str:
        """
        Generate a uniformly random code in 100000..999999.

        Uses secrets module for cryptographic randomness.
        """
        return str(100000 + secrets.randbelow(900000))
