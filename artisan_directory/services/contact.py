"""Visitor → provider contact relay with a confirmation copy."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationError, field_validator
from sqlalchemy.orm import Session

from artisan_directory.core.errors import (
    DependencyUnavailable,
    RateLimited,
    invalid_from_validation,
)
from artisan_directory.services.hierarchy import resolve_chain
from artisan_directory.services.mail_client import MailMessage
from artisan_directory.services.mail_templates import render
from artisan_directory.services.quota import ContactQuota

logger = logging.getLogger(__name__)

MARKUP_RE = re.compile(r"<[a-z][\s\S]*>", re.IGNORECASE)


class ContactState(str, Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    PROVIDER_RESOLVED = "provider_resolved"
    DISPATCHED = "dispatched"
    CONFIRMED = "confirmed"
    CONFIRMATION_FAILED = "confirmation_failed"


class MailRelay(Protocol):
    def send(self, message: MailMessage) -> str:
        """Deliver ``message`` and return the relay's message id."""


class ContactSubmission(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=2, max_length=100)
    email: EmailStr
    subject: str = Field(min_length=5, max_length=200)
    message: str = Field(min_length=10, max_length=2000)

    @field_validator("name", "subject", "message")
    @classmethod
    def reject_markup(cls, value: str) -> str:
        if MARKUP_RE.search(value):
            raise ValueError("HTML markup is not allowed")
        return value


@dataclass
class ContactOutcome:
    provider_id: int
    company_name: str
    specialty: str
    state: ContactState
    message_id: str
    confirmation_id: str | None = None
    sent_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    history: list[ContactState] = field(default_factory=list)

    @property
    def confirmed(self) -> bool:
        return self.state is ContactState.CONFIRMED

    def as_dict(self) -> dict[str, Any]:
        return {
            "provider": {
                "id": self.provider_id,
                "company_name": self.company_name,
                "specialty": self.specialty,
            },
            "state": self.state.value,
            "confirmation_sent": self.confirmed,
            "sent_at": self.sent_at.isoformat(),
        }


class ContactDispatcher:
    """Validate a submission, then relay it to the provider and the sender.

    The quota is consumed once the submission is valid and the provider
    exists, and given back when the relay refuses the provider message. A
    failed confirmation still counts as a successful dispatch.
    """

    def __init__(self, relay: MailRelay, quota: ContactQuota) -> None:
        self.relay = relay
        self.quota = quota

    def submit(
        self,
        db: Session,
        provider_id: int,
        *,
        name: str,
        email: str,
        subject: str,
        message: str,
        source: str,
    ) -> ContactOutcome:
        history = [ContactState.RECEIVED]

        try:
            submission = ContactSubmission(
                name=name, email=email, subject=subject, message=message
            )
        except ValidationError as exc:
            raise invalid_from_validation(exc, "Invalid contact submission") from exc
        history.append(ContactState.VALIDATED)

        chain = resolve_chain(db, provider_id)
        provider = chain.provider
        history.append(ContactState.PROVIDER_RESOLVED)

        if not self.quota.consume(source):
            logger.warning(
                "contact quota exceeded",
                extra={"source": source, "provider_id": provider_id},
            )
            raise RateLimited("Too many contact messages, please retry later")

        values = {
            "company_name": provider.company_name,
            "specialty": chain.specialty.name,
            "city": provider.city or "",
            "sender_name": submission.name,
            "sender_email": submission.email,
            "subject": submission.subject,
            "message": submission.message,
        }

        notification_subject, notification_body = render("provider_notification", **values)
        try:
            message_id = self.relay.send(
                MailMessage(
                    to=provider.email,
                    subject=notification_subject,
                    text=notification_body,
                    reply_to=submission.email,
                )
            )
        except DependencyUnavailable:
            # not accepted, so it does not count against the sender
            self.quota.release(source)
            raise
        history.append(ContactState.DISPATCHED)
        logger.info(
            "contact message dispatched",
            extra={"provider_id": provider_id, "message_id": message_id},
        )

        outcome = ContactOutcome(
            provider_id=provider.id,
            company_name=provider.company_name,
            specialty=chain.specialty.name,
            state=ContactState.DISPATCHED,
            message_id=message_id,
            history=history,
        )

        confirmation_subject, confirmation_body = render("sender_confirmation", **values)
        try:
            outcome.confirmation_id = self.relay.send(
                MailMessage(
                    to=submission.email,
                    subject=confirmation_subject,
                    text=confirmation_body,
                )
            )
        except DependencyUnavailable as exc:
            logger.warning(
                "contact confirmation failed",
                extra={"provider_id": provider_id, "error": exc.message},
            )
            outcome.state = ContactState.CONFIRMATION_FAILED
        else:
            outcome.state = ContactState.CONFIRMED
        history.append(outcome.state)
        return outcome
