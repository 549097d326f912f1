"""Thin wrapper around the HTTP mail relay."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

import httpx

from artisan_directory.core.config import Settings, settings
from artisan_directory.core.errors import DependencyUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MailMessage:
    to: str
    subject: str
    text: str
    reply_to: str | None = None

    def as_payload(self, sender: str) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "from": sender,
            "to": [self.to],
            "subject": self.subject,
            "text": self.text,
        }
        if self.reply_to:
            payload["reply_to"] = self.reply_to
        return payload


class MailRelayClient:
    """Send messages through the relay's ``/send`` endpoint.

    Every call is bounded by ``timeout``; a timeout or an HTTP failure is
    reported as ``DependencyUnavailable`` and never retried here.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        sender: str,
        *,
        timeout: float = 10.0,
        mock_mode: bool = False,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.sender = sender
        self.mock_mode = mock_mode
        self._timeout = httpx.Timeout(timeout, connect=min(timeout, 5.0))
        self._transport = transport

    @classmethod
    def from_settings(cls, app_settings: Settings | None = None) -> MailRelayClient:
        app_settings = app_settings or settings
        return cls(
            app_settings.mail_relay_base_url,
            app_settings.mail_relay_api_key,
            app_settings.mail_sender,
            timeout=app_settings.mail_timeout_seconds,
            mock_mode=app_settings.mail_mock_mode,
        )

    def _mock_send(self, payload: dict[str, Any]) -> str:
        message_id = f"mocked-{uuid.uuid4()}"
        logger.debug("Mocking mail relay send with payload: %s", payload)
        return message_id

    def send(self, message: MailMessage) -> str:
        """Hand ``message`` to the relay and return its message id."""

        payload = message.as_payload(self.sender)
        if self.mock_mode:
            return self._mock_send(payload)

        if not self.api_key:
            raise DependencyUnavailable("Mail relay API key is not configured")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(f"{self.base_url}/send", headers=headers, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as exc:
            logger.warning("mail relay timed out", extra={"to": message.to})
            raise DependencyUnavailable("Mail relay timed out") from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "mail relay request failed", extra={"to": message.to, "error": str(exc)}
            )
            raise DependencyUnavailable("Mail relay request failed") from exc
        except ValueError as exc:
            raise DependencyUnavailable("Mail relay returned an invalid response") from exc

        message_id = None
        if isinstance(data, dict):
            message_id = data.get("id") or data.get("message_id")
        if not message_id:
            raise DependencyUnavailable("Mail relay response did not include a message identifier")

        logger.debug("Mail relay responded with %s", data)
        return str(message_id)
