"""
Beehiiv mailing-list adapter - Implements MailingListSubscriber protocol.

Subscription is best-effort: every failure, including the request
timeout that time-boxes the call, is raised as NonFatalIntegrationError.
"""

import httpx

from listening_circle.domain.exceptions import NonFatalIntegrationError

BEEHIIV_API_BASE = "https://api.beehiiv.com/v2"


class BeehiivSubscriber:
    """Implements MailingListSubscriber protocol via the Beehiiv API."""

    def __init__(
        self,
        api_key: str,
        publication_id: str,
        timeout: float = 5.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._api_key = api_key
        self._publication_id = publication_id
        self._client = client or httpx.Client(timeout=timeout)

    def subscribe(self, email: str, fields: dict[str, str]) -> None:
        url = f"{BEEHIIV_API_BASE}/publications/{self._publication_id}/subscriptions"
        payload = {
            "email": email,
            "reactivate_existing": True,
            "send_welcome_email": False,
            "utm_source": "website",
            "utm_medium": fields.get("discount_source", "website"),
            "custom_fields": [{"name": name, "value": value} for name, value in fields.items()],
        }
        try:
            response = self._client.post(
                url,
                headers={"Authorization": f"Bearer {self._api_key}"},
                json=payload,
            )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise NonFatalIntegrationError("Beehiiv request timed out") from e
        except httpx.HTTPStatusError as e:
            raise NonFatalIntegrationError(
                f"Beehiiv API error: {e.response.status_code} - {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise NonFatalIntegrationError(f"Beehiiv request failed: {e}") from e

    def close(self) -> None:
        self._client.close()
