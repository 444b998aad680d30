"""Email adapters - Transactional email delivery implementations."""

from .console import ConsoleEmailSender
from .resend import ResendEmailSender

__all__ = ["ConsoleEmailSender", "ResendEmailSender"]
