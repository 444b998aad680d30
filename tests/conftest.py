"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- A controllable clock
- Recording/failing fakes for the email and mailing-list ports
- In-memory repositories and a fully wired AuthService
- A cookie jar implementing the CookieWriter port
- A migrated PostgreSQL pool (skipped when no database is reachable)
"""

from collections.abc import Callable, Generator
from datetime import UTC, datetime, timedelta

import psycopg
import pytest
from psycopg_pool import ConnectionPool

from listening_circle.adapters.repository import (
    InMemoryUserRepository,
    InMemoryVerificationCodeRepository,
    run_migrations,
)
from listening_circle.api.dependencies import build_auth_service
from listening_circle.config.settings import Settings, get_settings
from listening_circle.domain.auth import AuthService
from listening_circle.domain.exceptions import EmailDeliveryError, NonFatalIntegrationError
from listening_circle.domain.ports import EmailMessage


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 15, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingEmailSender:
    """EmailSender fake that keeps every message."""

    def __init__(self) -> None:
        self.messages: list[EmailMessage] = []

    def send(self, message: EmailMessage) -> str:
        self.messages.append(message)
        return f"msg-{len(self.messages)}"

    def last_code(self) -> str:
        """Extract the 6-digit code from the newest verification email."""
        for message in reversed(self.messages):
            if "verification code" in message.subject:
                return message.text.split(": ", 1)[1][:6]
        raise AssertionError("No verification email sent")


class FailingEmailSender:
    def __init__(self) -> None:
        self.attempts = 0

    def send(self, message: EmailMessage) -> str:
        self.attempts += 1
        raise EmailDeliveryError("provider returned 500")


class RecordingMailingList:
    def __init__(self) -> None:
        self.subscriptions: list[tuple[str, dict[str, str]]] = []

    def subscribe(self, email: str, fields: dict[str, str]) -> None:
        self.subscriptions.append((email, fields))


class FailingMailingList:
    def __init__(self) -> None:
        self.attempts = 0

    def subscribe(self, email: str, fields: dict[str, str]) -> None:
        self.attempts += 1
        raise NonFatalIntegrationError("Beehiiv request timed out")


class CookieJar:
    """CookieWriter fake: records set and deleted cookies with attributes."""

    def __init__(self) -> None:
        self.cookies: dict[str, dict] = {}
        self.deleted: list[str] = []

    def set_cookie(self, key: str, value: str = "", **attrs) -> None:
        self.cookies[key] = {"value": value, **attrs}

    def delete_cookie(self, key: str, **attrs) -> None:
        self.cookies.pop(key, None)
        self.deleted.append(key)

    def value(self, key: str) -> str:
        return self.cookies[key]["value"]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        environment="test",
        repository_backend="memory",
        email_backend="console",
        session_secret="test-session-secret",
        bcrypt_cost=4,
        beehiiv_api_key=None,
        beehiiv_publication_id=None,
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def mailing_list() -> RecordingMailingList:
    return RecordingMailingList()


@pytest.fixture
def code_repository() -> InMemoryVerificationCodeRepository:
    return InMemoryVerificationCodeRepository()


@pytest.fixture
def user_repository() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def cookies() -> CookieJar:
    return CookieJar()


@pytest.fixture
def make_service(
    settings: Settings,
    clock: FrozenClock,
    code_repository: InMemoryVerificationCodeRepository,
    user_repository: InMemoryUserRepository,
) -> Callable[..., AuthService]:
    """Factory for an AuthService over in-memory repositories and a frozen clock."""

    def factory(email_sender=None, mailing_list=None, **overrides) -> AuthService:
        effective = settings.model_copy(update=overrides) if overrides else settings
        service = build_auth_service(
            effective, code_repository, user_repository, email_sender, mailing_list
        )
        service.codes.clock = clock
        service.users.clock = clock
        service.sessions.clock = clock
        service.gate.clock = clock
        service.account.clock = clock
        return service

    return factory


@pytest.fixture
def service(
    make_service: Callable[..., AuthService],
    email_sender: RecordingEmailSender,
    mailing_list: RecordingMailingList,
) -> AuthService:
    return make_service(email_sender=email_sender, mailing_list=mailing_list)


@pytest.fixture
def failing_email_sender() -> FailingEmailSender:
    return FailingEmailSender()


@pytest.fixture
def failing_mailing_list() -> FailingMailingList:
    return FailingMailingList()


@pytest.fixture(scope="session")
def postgres_pool() -> Generator[ConnectionPool, None, None]:
    """Create a migrated connection pool, or skip when PostgreSQL is unreachable."""
    database_url = get_settings().database_url
    try:
        psycopg.connect(database_url, connect_timeout=2).close()
    except psycopg.OperationalError as e:
        pytest.skip(f"PostgreSQL not available: {e}")

    pool = ConnectionPool(conninfo=database_url, min_size=1, max_size=20, open=True)
    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture
def clean_postgres(postgres_pool: ConnectionPool) -> ConnectionPool:
    """Empty every table and hand back the pool."""
    with postgres_pool.connection() as conn:
        conn.execute("TRUNCATE equipment, verification_codes, users")
        conn.commit()
    return postgres_pool


@pytest.fixture
def cookie_jar_factory() -> Callable[[], CookieJar]:
    """Fresh CookieJar per simulated client."""
    return CookieJar
