"""
Domain layer - Pure business logic with zero framework imports.

This package contains the passwordless email-code authentication core:
code issue/verify, user provisioning, sessions, the profile completion
gate and the notification dispatcher. It defines its own port interfaces
so adapters stay swappable.
"""

from .account import AccountEditor, AccountProfile
from .auth import AuthService, VerifyOutcome
from .codes import VerificationCodeService
from .exceptions import (
    AuthError,
    ConflictError,
    ErrorKind,
    InvalidOrExpiredCode,
    NonFatalIntegrationError,
    NotAuthenticated,
    NotFound,
    RateLimited,
    ServiceUnavailable,
    ValidationError,
)
from .notifications import NotificationDispatcher, WelcomePackage
from .ports import (
    EmailSender,
    Equipment,
    MailingListSubscriber,
    User,
    UserRepository,
    VerificationCode,
    VerificationCodeRepository,
)
from .profile import GateState, ProfileCompletionGate, ProfileSubmission
from .results import Err, Ok
from .sessions import SessionIssuer
from .users import UserProvisioner

__all__ = [
    "AccountEditor",
    "AccountProfile",
    "AuthError",
    "AuthService",
    "ConflictError",
    "EmailSender",
    "Equipment",
    "Err",
    "ErrorKind",
    "GateState",
    "InvalidOrExpiredCode",
    "MailingListSubscriber",
    "NonFatalIntegrationError",
    "NotAuthenticated",
    "NotFound",
    "NotificationDispatcher",
    "Ok",
    "ProfileCompletionGate",
    "ProfileSubmission",
    "RateLimited",
    "ServiceUnavailable",
    "SessionIssuer",
    "User",
    "UserProvisioner",
    "UserRepository",
    "ValidationError",
    "VerificationCode",
    "VerificationCodeRepository",
    "VerificationCodeService",
    "VerifyOutcome",
    "WelcomePackage",
]
