"""Repository adapters - Database implementations."""

from .memory import InMemoryUserRepository, InMemoryVerificationCodeRepository
from .postgres import PostgresUserRepository, PostgresVerificationCodeRepository, run_migrations

__all__ = [
    "InMemoryUserRepository",
    "InMemoryVerificationCodeRepository",
    "PostgresUserRepository",
    "PostgresVerificationCodeRepository",
    "run_migrations",
]
