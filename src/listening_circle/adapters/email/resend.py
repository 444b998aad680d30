"""
Resend email sender adapter - Implements EmailSender protocol over HTTP.

Any transport error, timeout or non-2xx response is raised as
EmailDeliveryError so the dispatcher can abort the parent operation.
"""

import logging

import httpx

from listening_circle.domain.exceptions import EmailDeliveryError
from listening_circle.domain.ports import EmailMessage

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class ResendEmailSender:
    """Implements EmailSender protocol via the Resend REST API."""

    def __init__(self, api_key: str, client: httpx.Client | None = None, timeout: float = 30.0) -> None:
        self._api_key = api_key
        self._client = client or httpx.Client(timeout=timeout)

    def send(self, message: EmailMessage) -> str:
        payload = {
            "from": message.sender,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
            "text": message.text,
        }
        if message.reply_to:
            payload["reply_to"] = message.reply_to

        try:
            response = self._client.post(
                RESEND_API_URL,
                headers={"Authorization": f"Bearer {self._api_key}"},
                json=payload,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise EmailDeliveryError(
                f"Resend API error: {e.response.status_code} - {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise EmailDeliveryError(f"Resend request failed: {e}") from e

        message_id = response.json().get("id")
        if not message_id:
            raise EmailDeliveryError("Resend returned no message id")
        logger.debug("Resend accepted message %s", message_id)
        return message_id

    def close(self) -> None:
        self._client.close()
