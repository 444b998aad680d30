"""
Fixtures for PostgreSQL integration tests.

Every test here starts from empty tables; the whole module is skipped
when no database is reachable at DATABASE_URL.
"""

import pytest
from psycopg_pool import ConnectionPool

from listening_circle.adapters.repository import (
    PostgresUserRepository,
    PostgresVerificationCodeRepository,
)

pytestmark = pytest.mark.integration


@pytest.fixture
def pool(clean_postgres: ConnectionPool) -> ConnectionPool:
    return clean_postgres


@pytest.fixture
def code_repository(pool: ConnectionPool) -> PostgresVerificationCodeRepository:
    return PostgresVerificationCodeRepository(pool)


@pytest.fixture
def user_repository(pool: ConnectionPool) -> PostgresUserRepository:
    return PostgresUserRepository(pool)
