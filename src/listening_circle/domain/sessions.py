"""
Session issuer - Cookie sessions with a verifiable token.

Cookie contract:
- session_token (httpOnly):  "{user_id}:{nonce}.{issued_at}.{signature}"
- session_profile (readable): URL-encoded JSON {id, email, displayName}

The signature is HMAC-SHA256 over "{user_id}:{nonce}:{issued_at}" keyed by
the session secret, so a forged user id or token is rejected on every
later request. Both cookies share lifetime and clearing attributes.
"""

import hashlib
import hmac
import json
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from urllib.parse import quote

from .exceptions import NotAuthenticated
from .identity import utc_now
from .ports import CookieWriter, User

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session_token"
PROFILE_COOKIE = "session_profile"


@dataclass(frozen=True)
class Session:
    """An issued session as written to the cookies."""

    user_id: str
    token: str
    cookie_value: str
    issued_at: datetime


@dataclass
class SessionIssuer:
    """Mints, verifies and clears cookie sessions."""

    secret: str
    max_age_seconds: int = 30 * 24 * 60 * 60
    secure: bool = False
    clock: Callable[[], datetime] = field(default=utc_now)

    def issue_session(self, user: User, cookies: CookieWriter) -> Session:
        """Mint a session for a user and write both cookies."""
        now = self.clock()
        issued_at = int(now.timestamp())
        nonce = secrets.token_urlsafe(32)
        signature = self._sign(user.id, nonce, issued_at)
        token = f"{nonce}.{issued_at}.{signature}"
        cookie_value = f"{user.id}:{token}"

        cookies.set_cookie(
            SESSION_COOKIE,
            cookie_value,
            max_age=self.max_age_seconds,
            path="/",
            secure=self.secure,
            httponly=True,
            samesite="lax",
        )
        self.refresh_profile(user, cookies)
        return Session(user_id=user.id, token=token, cookie_value=cookie_value, issued_at=now)

    def refresh_profile(self, user: User, cookies: CookieWriter) -> None:
        """Rewrite the readable profile cookie (e.g. after a display name change)."""
        cookies.set_cookie(
            PROFILE_COOKIE,
            self.profile_cookie_value(user),
            max_age=self.max_age_seconds,
            path="/",
            secure=self.secure,
            httponly=False,
            samesite="lax",
        )

    def end_session(self, cookies: CookieWriter) -> None:
        """Clear both cookies."""
        cookies.delete_cookie(SESSION_COOKIE, path="/", secure=self.secure, httponly=True, samesite="lax")
        cookies.delete_cookie(PROFILE_COOKIE, path="/", secure=self.secure, httponly=False, samesite="lax")

    def authenticate(self, cookie_value: str | None) -> str:
        """
        Verify a session cookie and return its user id.

        Raises:
            NotAuthenticated: If the value is missing, malformed, forged or expired
        """
        if not cookie_value:
            raise NotAuthenticated()

        user_id, sep, token = cookie_value.partition(":")
        parts = token.split(".")
        if not user_id or not sep or len(parts) != 3:
            raise NotAuthenticated("Invalid session")

        nonce, issued_raw, signature = parts
        try:
            issued_at = int(issued_raw)
        except ValueError:
            raise NotAuthenticated("Invalid session") from None

        expected = self._sign(user_id, nonce, issued_at)
        if not hmac.compare_digest(expected.encode(), signature.encode()):
            logger.warning("Rejected session with bad signature for user %s", user_id)
            raise NotAuthenticated("Invalid session")

        age = self.clock().timestamp() - issued_at
        if age < 0 or age > self.max_age_seconds:
            raise NotAuthenticated("Session expired")

        return user_id

    @staticmethod
    def profile_cookie_value(user: User) -> str:
        payload = {"id": user.id, "email": user.email, "displayName": user.display_name}
        return quote(json.dumps(payload, separators=(",", ":")), safe="")

    def _sign(self, user_id: str, nonce: str, issued_at: int) -> str:
        message = f"{user_id}:{nonce}:{issued_at}".encode()
        return hmac.new(self.secret.encode(), message, hashlib.sha256).hexdigest()
