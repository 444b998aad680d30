"""
Console email sender adapter - Implements EmailSender protocol.

This module provides a console-based implementation of the domain's
email sender port, logging messages to stdout for local development.
"""

import logging
import uuid

from listening_circle.domain.identity import redact_email
from listening_circle.domain.ports import EmailMessage

logger = logging.getLogger(__name__)


class ConsoleEmailSender:
    """
    Implements EmailSender protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    For demo/development purposes - prints the plain-text body to the log.
    """

    def send(self, message: EmailMessage) -> str:
        """
        Log the message (simulates email delivery).

        The body is logged at INFO level so verification codes are visible
        in development logs.

        Returns:
            Generated message id
        """
        message_id = f"console-{uuid.uuid4()}"
        logger.info(
            "[EMAIL] To: %s Subject: %s\n%s",
            redact_email(message.to),
            message.subject,
            message.text,
        )
        return message_id
