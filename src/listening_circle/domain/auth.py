"""
Authentication service - Orchestrates the passwordless sign-in flow.

Flow:
    send_code    -> VerificationCodeService.issue_code (+ required email)
    verify_code  -> consume code exactly once
                 -> welcome package when no user exists yet (required
                    email leg, best-effort mailing list)
                 -> UserProvisioner.find_or_create
                 -> SessionIssuer.issue_session
                 -> ProfileCompletionGate.state_for
    complete_profile -> ProfileCompletionGate.complete (session required)
    account_*        -> AccountEditor (session required)

The user row is created only after the welcome email went out, so a failed
welcome leaves no account behind and the next sign-in is still a signup.
Each call is request-scoped; all shared state lives in the repositories.
"""

import logging
from dataclasses import dataclass

from .account import AccountEditor, AccountProfile
from .codes import VerificationCodeService
from .identity import redact_email, require_valid_email
from .notifications import NotificationDispatcher, WelcomePackage
from .ports import CookieWriter, Equipment, User
from .profile import GateState, ProfileCompletionGate, ProfileOutcome, ProfileSubmission
from .sessions import SessionIssuer
from .users import UserProvisioner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerifyOutcome:
    user: User
    is_new_user: bool
    state: GateState
    welcome: WelcomePackage | None = None

    @property
    def needs_username(self) -> bool:
        return self.state == GateState.AWAITING_PROFILE


@dataclass
class AuthService:
    """Composes the auth components behind request-level operations."""

    codes: VerificationCodeService
    users: UserProvisioner
    sessions: SessionIssuer
    gate: ProfileCompletionGate
    dispatcher: NotificationDispatcher
    account: AccountEditor
    welcome_on_signup: bool = True

    def send_code(self, email: str) -> GateState:
        """Issue and email a code. Returns the next flow state."""
        self.codes.issue_code(email)
        return GateState.AWAITING_CODE

    def verify_code(self, email: str, code: str, cookies: CookieWriter) -> VerifyOutcome:
        """
        Consume a code, provision the user and start a session.

        The session is written only after every required step succeeded;
        a failed welcome email leaves the client without a session and
        without a user row.
        """
        consumed = self.codes.verify_code(email, code)

        welcome = None
        if self.welcome_on_signup and self.users.find(consumed.email) is None:
            welcome = self.dispatcher.deliver_welcome_package(consumed.email, source="account_signup")

        provisioned = self.users.find_or_create(consumed.email)
        user = provisioned.user
        if not provisioned.is_new_user:
            # A concurrent sign-in created the row first and owns the signup
            welcome = None

        self.sessions.issue_session(user, cookies)
        state = self.gate.state_for(user)
        logger.info("Session issued for %s (state=%s)", redact_email(user.email), state.value)
        return VerifyOutcome(
            user=user,
            is_new_user=provisioned.is_new_user,
            state=state,
            welcome=welcome,
        )

    def current_user(self, session_cookie: str | None) -> User:
        """
        Raises:
            NotAuthenticated: If the session is invalid or the user is gone
        """
        user_id = self.sessions.authenticate(session_cookie)
        return self.users.get(user_id)

    def complete_profile(
        self,
        session_cookie: str | None,
        submission: ProfileSubmission,
        cookies: CookieWriter,
    ) -> ProfileOutcome:
        """Claim a display name for the session's user and refresh the profile cookie."""
        user = self.current_user(session_cookie)
        outcome = self.gate.complete(user, submission)
        self.sessions.refresh_profile(outcome.user, cookies)
        return outcome

    def set_password(self, session_cookie: str | None, password: str) -> None:
        user = self.current_user(session_cookie)
        self.users.set_password(user.id, password)

    def sign_out(self, cookies: CookieWriter) -> None:
        self.sessions.end_session(cookies)

    def discount_signup(self, email: str, source: str = "popup") -> WelcomePackage:
        """Send the welcome package to a visitor without creating an account."""
        return self.dispatcher.deliver_welcome_package(require_valid_email(email), source=source)

    def account_profile(self, session_cookie: str | None) -> AccountProfile:
        return self.account.profile(self.current_user(session_cookie))

    def update_account_profile(
        self, session_cookie: str | None, changes: dict[str, str | None]
    ) -> AccountProfile:
        return self.account.update_profile(self.current_user(session_cookie), changes)

    def list_equipment(self, session_cookie: str | None) -> list[Equipment]:
        return self.account.list_equipment(self.current_user(session_cookie))

    def add_equipment(self, session_cookie: str | None, name: str | None) -> Equipment:
        return self.account.add_equipment(self.current_user(session_cookie), name)

    def remove_equipment(self, session_cookie: str | None, equipment_id: int) -> None:
        self.account.remove_equipment(self.current_user(session_cookie), equipment_id)
