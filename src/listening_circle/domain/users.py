"""
User provisioner - Idempotent find-or-create keyed by normalized email.

The unique email constraint in the datastore is the source of truth. A
creation race surfaces as DuplicateEmail from the repository and is
resolved by re-reading the winning row, so no caller ever sees it.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

import bcrypt

from .exceptions import DuplicateEmail, NotAuthenticated, ValidationError
from .identity import normalize_email, redact_email, utc_now
from .ports import User, UserRepository

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


@dataclass(frozen=True)
class Provisioned:
    """Result of find_or_create."""

    user: User
    is_new_user: bool


@dataclass
class UserProvisioner:
    """Owns User rows: creation, login timestamps and optional passwords."""

    repository: UserRepository
    bcrypt_cost: int = 12
    clock: Callable[[], datetime] = field(default=utc_now)

    def find(self, email: str) -> User | None:
        return self.repository.get_by_email(normalize_email(email))

    def find_or_create(self, email: str) -> Provisioned:
        """
        Return the user for an email, creating it on first sight.

        Existing users get last_login_at refreshed.
        """
        normalized_email = normalize_email(email)
        now = self.clock()

        existing = self.repository.get_by_email(normalized_email)
        if existing is not None:
            user = self._touch(existing.id, now)
            logger.info("User logged in: %s", redact_email(normalized_email))
            return Provisioned(user=user, is_new_user=False)

        try:
            user = self.repository.create_user(normalized_email, now)
        except DuplicateEmail:
            # Lost a creation race; the concurrent winner owns the row
            winner = self.repository.get_by_email(normalized_email)
            if winner is None:
                raise
            user = self._touch(winner.id, now)
            logger.info("Resolved concurrent signup for %s", redact_email(normalized_email))
            return Provisioned(user=user, is_new_user=False)

        logger.info("New user created: %s", redact_email(normalized_email))
        return Provisioned(user=user, is_new_user=True)

    def get(self, user_id: str) -> User:
        """
        Raises:
            NotAuthenticated: If the user no longer exists
        """
        user = self.repository.get_by_id(user_id)
        if user is None:
            raise NotAuthenticated("User not found")
        return user

    def set_password(self, user_id: str, password: str) -> None:
        """
        Attach an optional password to a magic-link-only account.

        Raises:
            ValidationError: If the password is shorter than 8 characters
        """
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        password_hash = bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=self.bcrypt_cost)).decode()
        self.repository.set_password_hash(user_id, password_hash)
        logger.info("Password set for user %s", user_id)

    def _touch(self, user_id: str, now: datetime) -> User:
        user = self.repository.touch_last_login(user_id, now)
        if user is None:
            raise NotAuthenticated("User not found")
        return user

    @staticmethod
    def has_password(user: User) -> bool:
        return user.password_hash is not None
