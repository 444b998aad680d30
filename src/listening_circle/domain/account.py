"""
Account editor - Read-back and edits of a signed-in user's profile.

Unlike the profile completion gate, which saves optional fields best-effort,
edits made here are explicit requests: a storage failure propagates to the
caller instead of being logged and skipped.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from .exceptions import NotAuthenticated, NotFound, ValidationError
from .identity import utc_now
from .ports import PROFILE_FIELDS, Equipment, User, UserRepository

logger = logging.getLogger(__name__)

EQUIPMENT_NAME_MAX = 200


@dataclass(frozen=True)
class AccountProfile:
    """A user's profile fields together with their equipment list."""

    user: User
    equipment: tuple[Equipment, ...] = ()


@dataclass
class AccountEditor:
    repository: UserRepository
    clock: Callable[[], datetime] = field(default=utc_now)

    def profile(self, user: User) -> AccountProfile:
        return AccountProfile(user=user, equipment=tuple(self.repository.list_equipment(user.id)))

    def update_profile(self, user: User, changes: dict[str, str | None]) -> AccountProfile:
        """
        Apply profile field changes.

        A value of None leaves the field untouched; a blank string clears it.

        Raises:
            ValidationError: If a key is not an editable profile field
        """
        unknown = set(changes) - set(PROFILE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown profile field: {sorted(unknown)[0]}")

        for name in PROFILE_FIELDS:
            value = changes.get(name)
            if value is None:
                continue
            self.repository.update_profile_field(user.id, name, value.strip() or None)

        refreshed = self.repository.get_by_id(user.id)
        if refreshed is None:
            raise NotAuthenticated("User not found")
        logger.info("User %s updated profile fields", user.id)
        return self.profile(refreshed)

    def list_equipment(self, user: User) -> list[Equipment]:
        return self.repository.list_equipment(user.id)

    def add_equipment(self, user: User, name: str | None) -> Equipment:
        """
        Raises:
            ValidationError: If the name is blank or too long
        """
        trimmed = (name or "").strip()
        if not trimmed:
            raise ValidationError("Equipment name is required")
        if len(trimmed) > EQUIPMENT_NAME_MAX:
            raise ValidationError(f"Equipment name must be {EQUIPMENT_NAME_MAX} characters or less")
        return self.repository.add_equipment(user.id, trimmed, self.clock())

    def remove_equipment(self, user: User, equipment_id: int) -> None:
        """
        Raises:
            NotFound: If the entry does not exist or belongs to someone else
        """
        if not self.repository.delete_equipment(user.id, equipment_id):
            raise NotFound("Equipment not found")
        logger.info("User %s removed equipment %s", user.id, equipment_id)
