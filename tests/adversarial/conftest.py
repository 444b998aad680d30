"""
Shared fixtures for adversarial tests.

Each test runs against both repository backends; the PostgreSQL variant
is skipped when no database is reachable.
"""

import pytest

from listening_circle.adapters.repository import (
    InMemoryUserRepository,
    InMemoryVerificationCodeRepository,
    PostgresUserRepository,
    PostgresVerificationCodeRepository,
)

pytestmark = pytest.mark.adversarial


@pytest.fixture(params=["memory", "postgres"])
def backend(request) -> str:
    return request.param


@pytest.fixture
def code_repository(backend, request):
    if backend == "postgres":
        return PostgresVerificationCodeRepository(request.getfixturevalue("clean_postgres"))
    return InMemoryVerificationCodeRepository()


@pytest.fixture
def user_repository(backend, request):
    if backend == "postgres":
        return PostgresUserRepository(request.getfixturevalue("clean_postgres"))
    return InMemoryUserRepository()
