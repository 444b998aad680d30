"""
In-memory repository adapters - Process-local persistence for development.

Selected with REPOSITORY_BACKEND=memory. A single lock per repository
stands in for the datastore's row locks and unique constraints, giving
the same guarantees as the PostgreSQL adapters within one process:
throttled code creation, conditional code consumption, unique email,
unique lower(display_name).
"""

import itertools
import threading
import uuid
from dataclasses import replace
from datetime import datetime

from listening_circle.domain.exceptions import DisplayNameTaken, DuplicateEmail
from listening_circle.domain.ports import PROFILE_FIELDS, Equipment, User, VerificationCode


class InMemoryVerificationCodeRepository:
    """Implements VerificationCodeRepository protocol with a locked list."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._codes: list[VerificationCode] = []

    def create_code(
        self,
        email: str,
        code: str,
        expires_at: datetime,
        now: datetime,
        since: datetime | None = None,
        limit: int = 0,
    ) -> VerificationCode | None:
        with self._lock:
            if limit > 0:
                recent = sum(
                    1
                    for row in self._codes
                    if row.email == email and (since is None or row.created_at >= since)
                )
                if recent >= limit:
                    return None
            row = VerificationCode(
                id=next(self._ids),
                email=email,
                code=code,
                expires_at=expires_at,
                used=False,
                created_at=now,
            )
            self._codes.append(row)
        return row

    def consume_code(self, email: str, code: str, now: datetime) -> VerificationCode | None:
        with self._lock:
            # Newest first, matching the PostgreSQL ORDER BY created_at DESC
            for index in range(len(self._codes) - 1, -1, -1):
                row = self._codes[index]
                if row.email == email and row.code == code and not row.used and row.expires_at > now:
                    consumed = replace(row, used=True, used_at=now)
                    self._codes[index] = consumed
                    return consumed
        return None

    def all_codes(self, email: str) -> list[VerificationCode]:
        """Audit trail for an email, oldest first."""
        with self._lock:
            return [row for row in self._codes if row.email == email]


class InMemoryUserRepository:
    """Implements UserRepository protocol with locked dicts."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: dict[str, User] = {}
        self._equipment_ids = itertools.count(1)
        self._equipment: list[Equipment] = []

    def get_by_id(self, user_id: str) -> User | None:
        with self._lock:
            return self._users.get(user_id)

    def get_by_email(self, email: str) -> User | None:
        with self._lock:
            return next((u for u in self._users.values() if u.email == email), None)

    def create_user(self, email: str, now: datetime) -> User:
        with self._lock:
            if any(u.email == email for u in self._users.values()):
                raise DuplicateEmail(email)
            user = User(id=str(uuid.uuid4()), email=email, created_at=now)
            self._users[user.id] = user
        return user

    def touch_last_login(self, user_id: str, now: datetime) -> User | None:
        return self._update(user_id, last_login_at=now)

    def set_display_name(self, user_id: str, display_name: str) -> User | None:
        with self._lock:
            if user_id not in self._users:
                return None
            lowered = display_name.lower()
            for other in self._users.values():
                if other.id != user_id and other.display_name and other.display_name.lower() == lowered:
                    raise DisplayNameTaken(display_name)
            user = replace(self._users[user_id], display_name=display_name)
            self._users[user_id] = user
        return user

    def update_profile_field(self, user_id: str, field: str, value: str | None) -> None:
        if field not in PROFILE_FIELDS:
            raise ValueError(f"Not a profile field: {field}")
        self._update(user_id, **{field: value})

    def add_equipment(self, user_id: str, name: str, now: datetime) -> Equipment:
        with self._lock:
            if user_id not in self._users:
                raise KeyError(user_id)
            entry = Equipment(id=next(self._equipment_ids), user_id=user_id, name=name, created_at=now)
            self._equipment.append(entry)
        return entry

    def list_equipment(self, user_id: str) -> list[Equipment]:
        with self._lock:
            owned = [e for e in self._equipment if e.user_id == user_id]
        return sorted(owned, key=lambda e: (e.created_at, e.id), reverse=True)

    def delete_equipment(self, user_id: str, equipment_id: int) -> bool:
        with self._lock:
            for index, entry in enumerate(self._equipment):
                if entry.id == equipment_id and entry.user_id == user_id:
                    del self._equipment[index]
                    return True
        return False

    def set_password_hash(self, user_id: str, password_hash: str) -> None:
        self._update(user_id, password_hash=password_hash)

    def count(self) -> int:
        with self._lock:
            return len(self._users)

    def _update(self, user_id: str, **changes: object) -> User | None:
        with self._lock:
            if user_id not in self._users:
                return None
            user = replace(self._users[user_id], **changes)
            self._users[user_id] = user
        return user
