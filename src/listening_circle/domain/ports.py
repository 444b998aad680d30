"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the records the domain exchanges with infrastructure
and the interfaces (ports) that adapters implement by structural subtyping.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

# User columns the profile gate may write one at a time.
PROFILE_FIELDS = ("full_name", "address", "country")


@dataclass(frozen=True)
class VerificationCode:
    """A persisted one-time code. Never deleted; consumed at most once."""

    id: int
    email: str
    code: str
    expires_at: datetime
    used: bool
    created_at: datetime
    used_at: datetime | None = None


@dataclass(frozen=True)
class User:
    """A user identity keyed by normalized email."""

    id: str
    email: str
    created_at: datetime
    display_name: str | None = None
    full_name: str | None = None
    address: str | None = None
    country: str | None = None
    password_hash: str | None = None
    last_login_at: datetime | None = None


@dataclass(frozen=True)
class Equipment:
    """A free-text equipment entry owned by a user."""

    id: int
    user_id: str
    name: str
    created_at: datetime


@dataclass(frozen=True)
class EmailMessage:
    """Transactional email handed to an EmailSender."""

    sender: str
    to: str
    subject: str
    html: str
    text: str
    reply_to: str | None = None


class VerificationCodeRepository(Protocol):
    """Port interface for verification code persistence."""

    def create_code(
        self,
        email: str,
        code: str,
        expires_at: datetime,
        now: datetime,
        since: datetime | None = None,
        limit: int = 0,
    ) -> VerificationCode | None:
        """
        Persist a new unused code for a normalized email.

        When limit > 0 the insert only happens if fewer than `limit` codes
        were created for the email at or after `since`. The count and the
        insert must be serialized per email so concurrent callers cannot
        exceed the limit.

        Returns:
            The new code, or None when the limit was reached
        """
        ...

    def consume_code(self, email: str, code: str, now: datetime) -> VerificationCode | None:
        """
        Atomically mark a matching code as used.

        A row matches when email and code are equal, used is false and
        expires_at is after now. The guard and the update must happen in a
        single conditional statement (or under a row lock) so that two
        concurrent callers presenting the same code cannot both succeed.

        Returns:
            The consumed code, or None when nothing matched
        """
        ...


class UserRepository(Protocol):
    """Port interface for user persistence."""

    def get_by_id(self, user_id: str) -> User | None: ...

    def get_by_email(self, email: str) -> User | None: ...

    def create_user(self, email: str, now: datetime) -> User:
        """
        Insert a user with all optional fields null.

        Raises:
            DuplicateEmail: If the unique email constraint is violated
        """
        ...

    def touch_last_login(self, user_id: str, now: datetime) -> User | None:
        """Returns None when the user no longer exists."""
        ...

    def set_display_name(self, user_id: str, display_name: str) -> User | None:
        """
        Set the display name; uniqueness is case-insensitive.

        Returns None when the user no longer exists.

        Raises:
            DisplayNameTaken: If another user already owns the name
        """
        ...

    def update_profile_field(self, user_id: str, field: str, value: str | None) -> None:
        """Write a single column from PROFILE_FIELDS."""
        ...

    def add_equipment(self, user_id: str, name: str, now: datetime) -> Equipment: ...

    def list_equipment(self, user_id: str) -> list[Equipment]:
        """Entries for a user, newest first."""
        ...

    def delete_equipment(self, user_id: str, equipment_id: int) -> bool:
        """Delete an entry owned by the user. Returns False if none matched."""
        ...

    def set_password_hash(self, user_id: str, password_hash: str) -> None: ...


class EmailSender(Protocol):
    """Port interface for transactional email delivery."""

    def send(self, message: EmailMessage) -> str:
        """
        Deliver a message.

        Returns:
            Provider message id

        Raises:
            EmailDeliveryError: If the provider rejected or failed the send
        """
        ...


class MailingListSubscriber(Protocol):
    """Port interface for mailing-list sync."""

    def subscribe(self, email: str, fields: dict[str, str]) -> None:
        """
        Subscribe an email with custom key/value fields.

        Raises:
            NonFatalIntegrationError: On any provider failure or timeout
        """
        ...


class CookieWriter(Protocol):
    """Client-visible cookie storage. Starlette's Response satisfies this."""

    def set_cookie(
        self,
        key: str,
        value: str = "",
        max_age: int | None = None,
        expires: object = None,
        path: str | None = "/",
        domain: str | None = None,
        secure: bool = False,
        httponly: bool = False,
        samesite: str | None = "lax",
    ) -> None: ...

    def delete_cookie(
        self,
        key: str,
        path: str = "/",
        domain: str | None = None,
        secure: bool = False,
        httponly: bool = False,
        samesite: str | None = "lax",
    ) -> None: ...
