"""
FastAPI dependencies - Wiring and dependency injection factories.

Provider handles (connection pool, HTTP clients) are built once in the
application lifespan; the fully wired AuthService is stored in app.state
and handed to routes through Depends().
"""

from fastapi import Request

from listening_circle.adapters.email import ConsoleEmailSender, ResendEmailSender
from listening_circle.adapters.mailing_list import BeehiivSubscriber
from listening_circle.config.settings import Settings
from listening_circle.domain.account import AccountEditor
from listening_circle.domain.auth import AuthService
from listening_circle.domain.codes import VerificationCodeService
from listening_circle.domain.notifications import NotificationDispatcher
from listening_circle.domain.ports import (
    EmailSender,
    MailingListSubscriber,
    UserRepository,
    VerificationCodeRepository,
)
from listening_circle.domain.profile import ProfileCompletionGate
from listening_circle.domain.sessions import SessionIssuer
from listening_circle.domain.users import UserProvisioner


def build_email_sender(settings: Settings) -> EmailSender | None:
    """Return the configured sender, or None when delivery is not configured."""
    if settings.email_backend == "console":
        return ConsoleEmailSender()
    if settings.email_backend == "resend" and settings.resend_api_key:
        return ResendEmailSender(api_key=settings.resend_api_key)
    return None


def build_mailing_list(settings: Settings) -> MailingListSubscriber | None:
    """Return the Beehiiv subscriber, or None when it is not configured."""
    if settings.beehiiv_api_key and settings.beehiiv_publication_id:
        return BeehiivSubscriber(
            api_key=settings.beehiiv_api_key,
            publication_id=settings.beehiiv_publication_id,
            timeout=settings.mailing_list_timeout_seconds,
        )
    return None


def build_auth_service(
    settings: Settings,
    code_repository: VerificationCodeRepository,
    user_repository: UserRepository,
    email_sender: EmailSender | None,
    mailing_list: MailingListSubscriber | None,
) -> AuthService:
    """
    Create the auth service with injected dependencies.

    Wires together repositories, providers and settings for every
    domain component.
    """
    dispatcher = NotificationDispatcher(
        email_sender=email_sender,
        mailing_list=mailing_list,
        sender_address=settings.email_from,
        reply_to=settings.email_reply_to,
        code_ttl_minutes=settings.code_ttl_seconds // 60,
        discount_code=settings.discount_code,
        discount_percent=settings.discount_percent,
    )
    codes = VerificationCodeService(
        repository=code_repository,
        dispatcher=dispatcher,
        ttl_seconds=settings.code_ttl_seconds,
        rate_limit=settings.code_rate_limit,
        rate_window_seconds=settings.code_rate_window_seconds,
    )
    return AuthService(
        codes=codes,
        users=UserProvisioner(repository=user_repository, bcrypt_cost=settings.bcrypt_cost),
        sessions=SessionIssuer(
            secret=settings.session_secret,
            max_age_seconds=settings.session_max_age_seconds,
            secure=settings.secure_cookies,
        ),
        gate=ProfileCompletionGate(repository=user_repository),
        dispatcher=dispatcher,
        account=AccountEditor(repository=user_repository),
        welcome_on_signup=settings.welcome_on_signup,
    )


def get_auth_service(request: Request) -> AuthService:
    """
    Get the auth service from app state.

    The service is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.auth_service
