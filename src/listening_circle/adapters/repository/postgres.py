"""
PostgreSQL repository adapters - Implement the domain persistence ports.

This module provides the PostgreSQL implementations of the domain's
repository ports using psycopg3 with raw SQL.

Concurrency Design
------------------
1. **Code issuance** under a limit takes a transaction-scoped advisory lock
   keyed by the email, then counts recent codes and inserts in the same
   transaction, so concurrent requests for one email cannot exceed it.

2. **Code consumption** is one conditional UPDATE. The candidate row is
   selected FOR UPDATE and the outer statement re-checks used = FALSE, so
   two transactions presenting the same code serialize on the row lock and
   the loser matches nothing. There is no read-then-write window.

3. **User creation** relies on the UNIQUE constraint on email. A losing
   concurrent INSERT raises UniqueViolation, translated to DuplicateEmail
   for the domain to resolve by re-reading.

4. **Display names** are unique on lower(display_name); a violation is
   translated to DisplayNameTaken.
"""

import logging
import uuid
from datetime import datetime
from pathlib import Path

from psycopg import errors, sql
from psycopg_pool import ConnectionPool

from listening_circle.domain.exceptions import DisplayNameTaken, DuplicateEmail
from listening_circle.domain.ports import PROFILE_FIELDS, Equipment, User, VerificationCode

logger = logging.getLogger(__name__)

_CODE_COLUMNS = "id, email, code, expires_at, used, created_at, used_at"
_USER_COLUMNS = (
    "id, email, created_at, display_name, full_name, address, country, password_hash, last_login_at"
)


def _to_code(row: tuple) -> VerificationCode:
    return VerificationCode(
        id=row[0],
        email=row[1],
        code=row[2],
        expires_at=row[3],
        used=row[4],
        created_at=row[5],
        used_at=row[6],
    )


def _to_equipment(row: tuple) -> Equipment:
    return Equipment(id=row[0], user_id=str(row[1]), name=row[2], created_at=row[3])


def _to_user(row: tuple) -> User:
    return User(
        id=str(row[0]),
        email=row[1],
        created_at=row[2],
        display_name=row[3],
        full_name=row[4],
        address=row[5],
        country=row[6],
        password_hash=row[7],
        last_login_at=row[8],
    )


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except (ValueError, AttributeError, TypeError):
        return False
    return True


class PostgresVerificationCodeRepository:
    """
    Implements VerificationCodeRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

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
        Insert a code, optionally only while under a per-email limit.

        The advisory lock is released at commit or rollback, serializing
        count-then-insert for one email without blocking other emails.
        """
        sql_text = f"""
            INSERT INTO verification_codes (email, code, expires_at, used, created_at)
            VALUES (%s, %s, %s, FALSE, %s)
            RETURNING {_CODE_COLUMNS}
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            if limit > 0:
                cursor.execute("SELECT pg_advisory_xact_lock(hashtext(%s))", (email,))
                cursor.execute(
                    """
                    SELECT COUNT(*) FROM verification_codes
                    WHERE email = %(email)s
                      AND (%(since)s::timestamptz IS NULL OR created_at >= %(since)s)
                    """,
                    {"email": email, "since": since},
                )
                (recent,) = cursor.fetchone()
                if recent >= limit:
                    conn.rollback()
                    return None
            cursor.execute(sql_text, (email, code, expires_at, now))
            row = cursor.fetchone()
            conn.commit()
        return _to_code(row)

    def consume_code(self, email: str, code: str, now: datetime) -> VerificationCode | None:
        """
        Atomically mark one matching code as used.

        The subquery locks the newest matching row; the outer guard
        (used = FALSE) is re-evaluated after any concurrent commit, so at
        most one caller gets a RETURNING row.
        """
        sql_text = f"""
            UPDATE verification_codes
            SET used = TRUE, used_at = %(now)s
            WHERE id = (
                SELECT id FROM verification_codes
                WHERE email = %(email)s
                  AND code = %(code)s
                  AND used = FALSE
                  AND expires_at > %(now)s
                ORDER BY created_at DESC
                LIMIT 1
                FOR UPDATE
            )
            AND used = FALSE
            RETURNING {_CODE_COLUMNS}
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql_text, {"email": email, "code": code, "now": now})
            row = cursor.fetchone()
            conn.commit()
        return _to_code(row) if row is not None else None


class PostgresUserRepository:
    """
    Implements UserRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def get_by_id(self, user_id: str) -> User | None:
        if not _is_uuid(user_id):
            return None
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s", (user_id,))
            row = cursor.fetchone()
        return _to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE email = %s", (email,))
            row = cursor.fetchone()
        return _to_user(row) if row is not None else None

    def create_user(self, email: str, now: datetime) -> User:
        sql_text = f"""
            INSERT INTO users (email, created_at)
            VALUES (%s, %s)
            RETURNING {_USER_COLUMNS}
        """
        with self._pool.connection() as conn:
            try:
                with conn.cursor() as cursor:
                    cursor.execute(sql_text, (email, now))
                    row = cursor.fetchone()
                conn.commit()
            except errors.UniqueViolation as e:
                conn.rollback()
                raise DuplicateEmail(email) from e
        return _to_user(row)

    def touch_last_login(self, user_id: str, now: datetime) -> User | None:
        if not _is_uuid(user_id):
            return None
        sql_text = f"""
            UPDATE users SET last_login_at = %s
            WHERE id = %s
            RETURNING {_USER_COLUMNS}
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql_text, (now, user_id))
            row = cursor.fetchone()
            conn.commit()
        return _to_user(row) if row is not None else None

    def set_display_name(self, user_id: str, display_name: str) -> User | None:
        if not _is_uuid(user_id):
            return None
        sql_text = f"""
            UPDATE users SET display_name = %s
            WHERE id = %s
            RETURNING {_USER_COLUMNS}
        """
        with self._pool.connection() as conn:
            try:
                with conn.cursor() as cursor:
                    cursor.execute(sql_text, (display_name, user_id))
                    row = cursor.fetchone()
                conn.commit()
            except errors.UniqueViolation as e:
                conn.rollback()
                raise DisplayNameTaken(display_name) from e
        return _to_user(row) if row is not None else None

    def update_profile_field(self, user_id: str, field: str, value: str | None) -> None:
        if field not in PROFILE_FIELDS:
            raise ValueError(f"Not a profile field: {field}")
        query = sql.SQL("UPDATE users SET {} = %s WHERE id = %s").format(sql.Identifier(field))
        with self._pool.connection() as conn:
            conn.execute(query, (value, user_id))
            conn.commit()

    def add_equipment(self, user_id: str, name: str, now: datetime) -> Equipment:
        sql_text = """
            INSERT INTO equipment (user_id, name, created_at)
            VALUES (%s, %s, %s)
            RETURNING id, user_id, name, created_at
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql_text, (user_id, name, now))
            row = cursor.fetchone()
            conn.commit()
        return _to_equipment(row)

    def list_equipment(self, user_id: str) -> list[Equipment]:
        if not _is_uuid(user_id):
            return []
        sql_text = """
            SELECT id, user_id, name, created_at FROM equipment
            WHERE user_id = %s
            ORDER BY created_at DESC, id DESC
        """
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql_text, (user_id,))
            rows = cursor.fetchall()
        return [_to_equipment(row) for row in rows]

    def delete_equipment(self, user_id: str, equipment_id: int) -> bool:
        if not _is_uuid(user_id):
            return False
        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                "DELETE FROM equipment WHERE id = %s AND user_id = %s",
                (equipment_id, user_id),
            )
            deleted = cursor.rowcount
            conn.commit()
        return deleted > 0

    def set_password_hash(self, user_id: str, password_hash: str) -> None:
        with self._pool.connection() as conn:
            conn.execute("UPDATE users SET password_hash = %s WHERE id = %s", (password_hash, user_id))
            conn.commit()


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: src/listening_circle/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).resolve().parents[4] / "migrations"

    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info(f"Running {len(sql_files)} migration(s)")

    for sql_file in sql_files:
        logger.info(f"Executing migration: {sql_file.name}")
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info(f"Migration complete: {sql_file.name}")
        except Exception as e:
            logger.error(f"Migration failed: {sql_file.name} - {e}")
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
