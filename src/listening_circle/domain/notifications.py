"""
Notification dispatcher - Required email leg plus best-effort mailing list.

Failure handling contract
=========================

Transactional email is REQUIRED: any delivery failure aborts the parent
operation with ServiceUnavailable before a session is finalized.

Mailing-list subscription is BEST-EFFORT: it is attempted only for the
welcome package, only after the email leg succeeded, and its failure is
logged and reported as subscribed=False. It never changes the outcome.
"""

import logging
from dataclasses import dataclass

from .exceptions import EmailDeliveryError, NonFatalIntegrationError, ServiceUnavailable
from .identity import redact_email
from .ports import EmailMessage, EmailSender, MailingListSubscriber

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WelcomePackage:
    """Outcome of a welcome-package send."""

    discount_code: str
    discount_percent: int
    subscribed: bool


@dataclass
class NotificationDispatcher:
    """
    Sends verification codes and welcome packages.

    email_sender is None when delivery is not configured; every send then
    fails with ServiceUnavailable. mailing_list is None when the list
    provider is not configured; subscription is then skipped.
    """

    email_sender: EmailSender | None
    mailing_list: MailingListSubscriber | None
    sender_address: str
    code_ttl_minutes: int
    discount_code: str
    discount_percent: int
    reply_to: str | None = None

    @property
    def email_configured(self) -> bool:
        return self.email_sender is not None

    def deliver_code(self, email: str, code: str) -> str:
        """
        Email a verification code (required leg).

        Returns:
            Provider message id

        Raises:
            ServiceUnavailable: If delivery is unconfigured or fails
        """
        message = EmailMessage(
            sender=self.sender_address,
            to=email,
            subject="Your verification code for Trust Your Ears",
            html=_CODE_HTML.format(code=code, minutes=self.code_ttl_minutes),
            text=_CODE_TEXT.format(code=code, minutes=self.code_ttl_minutes),
            reply_to=self.reply_to,
        )
        message_id = self._send_required(message)
        logger.info("Verification code sent to %s (message %s)", redact_email(email), message_id)
        return message_id

    def deliver_welcome_package(self, email: str, source: str) -> WelcomePackage:
        """
        Email the welcome discount, then try to subscribe to the mailing list.

        Args:
            email: Normalized recipient address
            source: Where the sign-up came from (e.g. "account_signup", "popup")

        Raises:
            ServiceUnavailable: If the email leg fails (list leg not attempted)
        """
        message = EmailMessage(
            sender=self.sender_address,
            to=email,
            subject=f"Your {self.discount_percent}% Discount Code - Lowther Loudspeakers",
            html=_WELCOME_HTML.format(code=self.discount_code, percent=self.discount_percent),
            text=_WELCOME_TEXT.format(code=self.discount_code, percent=self.discount_percent),
            reply_to=self.reply_to,
        )
        self._send_required(message)
        logger.info("Welcome package sent to %s", redact_email(email))

        subscribed = self._subscribe_best_effort(email, source)
        return WelcomePackage(
            discount_code=self.discount_code,
            discount_percent=self.discount_percent,
            subscribed=subscribed,
        )

    def ensure_email_configured(self) -> None:
        """
        Raises:
            ServiceUnavailable: If no email sender is configured
        """
        if self.email_sender is None:
            logger.error("Email delivery is not configured")
            raise ServiceUnavailable("Email service not configured. Please contact support.")

    def _send_required(self, message: EmailMessage) -> str:
        self.ensure_email_configured()
        try:
            return self.email_sender.send(message)
        except EmailDeliveryError as e:
            logger.error("Email delivery to %s failed: %s", redact_email(message.to), e)
            raise ServiceUnavailable("Failed to send email. Please try again.") from e

    def _subscribe_best_effort(self, email: str, source: str) -> bool:
        if self.mailing_list is None:
            logger.info("Mailing list not configured, skipping subscription")
            return False

        fields = {
            "discount_code": self.discount_code,
            "discount_source": source,
            "lead_type": "Listening Circle Member" if source == "account_signup" else "Discount Subscriber",
        }
        try:
            self.mailing_list.subscribe(email, fields)
        except NonFatalIntegrationError as e:
            logger.warning("Mailing list subscription for %s failed: %s", redact_email(email), e)
            return False

        logger.info("Subscribed %s to mailing list", redact_email(email))
        return True


_CODE_HTML = """<!DOCTYPE html>
<html>
  <body style="font-family: Georgia, serif; line-height: 1.6; color: #333; max-width: 500px; margin: 0 auto; padding: 40px 20px;">
    <p>Hello,</p>
    <p>Here's your verification code for Trust Your Ears:</p>
    <div style="font-size: 32px; font-weight: bold; letter-spacing: 8px; background: #f5f5f5; padding: 20px 30px; text-align: center; border-radius: 8px; margin: 30px 0;">{code}</div>
    <p>This code will expire in {minutes} minutes.</p>
    <p>If you didn't request this code, you can safely ignore this email.</p>
    <p style="margin-top: 40px; font-size: 13px; color: #666;">Lowther Loudspeakers<br>Handcrafted in Norfolk, England</p>
  </body>
</html>
"""

_CODE_TEXT = (
    "Your verification code for Trust Your Ears is: {code}\n\n"
    "This code will expire in {minutes} minutes.\n\n"
    "If you didn't request this code, you can safely ignore this email."
)

_WELCOME_HTML = """<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <h1 style="color: #c59862; text-align: center;">Welcome to Lowther Loudspeakers!</h1>
    <p>Thank you for joining us! As a welcome gift, here's your <strong>{percent}% discount code</strong>:</p>
    <div style="border: 3px dashed #c59862; padding: 30px; text-align: center; margin: 30px 0; border-radius: 8px;">
      <div style="font-size: 32px; font-weight: bold; color: #c59862; letter-spacing: 4px;">{code}</div>
      <p style="margin: 0; color: #666; font-size: 14px;">Save {percent}% on your first order</p>
    </div>
    <p>Simply enter this code at checkout. Valid for one-time use on your first purchase.</p>
    <p style="font-size: 12px; color: #666; text-align: center;">Lowther Loudspeakers<br>www.lowtherloudspeakers.com</p>
  </body>
</html>
"""

_WELCOME_TEXT = (
    "Welcome to Lowther Loudspeakers!\n\n"
    "Your {percent}% discount code: {code}\n\n"
    "Enter this code at checkout. Valid for one-time use on your first purchase."
)
