"""
Profile completion gate - Forces first-time users to pick a display name.

State Machine
=============

    AWAITING_EMAIL -> AWAITING_CODE        (code issued)
    AWAITING_CODE  -> AWAITING_PROFILE     (code verified, display_name is None)
    AWAITING_CODE  -> COMPLETE             (code verified, display_name set)
    AWAITING_PROFILE -> COMPLETE           (unique display name accepted)

A ConflictError on the display name leaves the verified session in place,
so the user stays in AWAITING_PROFILE and may retry. Optional fields are
saved one by one; a failure on any of them is logged and never blocks
COMPLETE.
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .exceptions import ConflictError, DisplayNameTaken, NotAuthenticated, ValidationError
from .identity import utc_now
from .ports import PROFILE_FIELDS, User, UserRepository

logger = logging.getLogger(__name__)

_DISPLAY_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")
DISPLAY_NAME_MIN = 3
DISPLAY_NAME_MAX = 20


class GateState(str, Enum):
    """Sign-in flow states."""

    AWAITING_EMAIL = "awaiting_email"
    AWAITING_CODE = "awaiting_code"
    AWAITING_PROFILE = "awaiting_profile"
    COMPLETE = "complete"


@dataclass(frozen=True)
class ProfileSubmission:
    """Display name plus optional profile fields."""

    display_name: str
    full_name: str | None = None
    address: str | None = None
    country: str | None = None
    equipment: str | None = None  # comma-separated free text


@dataclass(frozen=True)
class ProfileOutcome:
    user: User
    state: GateState
    failed_fields: tuple[str, ...] = ()


def validate_display_name(display_name: str | None) -> str:
    """
    Trim and validate a display name.

    Raises:
        ValidationError: If not 3-20 characters of letters, digits, underscore
    """
    if not display_name or not isinstance(display_name, str):
        raise ValidationError("Display name is required")
    trimmed = display_name.strip()
    if len(trimmed) < DISPLAY_NAME_MIN:
        raise ValidationError(f"Display name must be at least {DISPLAY_NAME_MIN} characters")
    if len(trimmed) > DISPLAY_NAME_MAX:
        raise ValidationError(f"Display name must be {DISPLAY_NAME_MAX} characters or less")
    if not _DISPLAY_NAME_PATTERN.match(trimmed):
        raise ValidationError("Display name can only contain letters, numbers, and underscores")
    return trimmed


@dataclass
class ProfileCompletionGate:
    """Moves verified users from AWAITING_PROFILE to COMPLETE."""

    repository: UserRepository
    clock: Callable[[], datetime] = field(default=utc_now)

    @staticmethod
    def state_for(user: User) -> GateState:
        """State right after a successful code verification."""
        if user.display_name is None:
            return GateState.AWAITING_PROFILE
        return GateState.COMPLETE

    def complete(self, user: User, submission: ProfileSubmission) -> ProfileOutcome:
        """
        Claim a display name and save optional fields.

        Raises:
            ValidationError: If the display name is malformed (nothing saved)
            ConflictError: If another user owns the display name
        """
        display_name = validate_display_name(submission.display_name)

        if user.display_name != display_name:
            try:
                user = self.repository.set_display_name(user.id, display_name)
            except DisplayNameTaken:
                logger.info("Display name %r already taken", display_name)
                raise ConflictError() from None
            if user is None:
                raise NotAuthenticated("User not found")
            logger.info("User %s set display name to %r", user.id, display_name)

        failed = self._save_optional_fields(user.id, submission)
        refreshed = self.repository.get_by_id(user.id) or user
        return ProfileOutcome(user=refreshed, state=GateState.COMPLETE, failed_fields=tuple(failed))

    def _save_optional_fields(self, user_id: str, submission: ProfileSubmission) -> list[str]:
        failed: list[str] = []

        for name in PROFILE_FIELDS:
            value = getattr(submission, name)
            if value is None:
                continue
            value = value.strip() or None
            try:
                self.repository.update_profile_field(user_id, name, value)
            except Exception:
                logger.warning("Failed to save %s for user %s", name, user_id, exc_info=True)
                failed.append(name)

        if submission.equipment:
            items = [item.strip() for item in submission.equipment.split(",") if item.strip()]
            for item in items:
                try:
                    self.repository.add_equipment(user_id, item, self.clock())
                except Exception:
                    logger.warning("Failed to save equipment for user %s", user_id, exc_info=True)
                    if "equipment" not in failed:
                        failed.append("equipment")

        return failed
