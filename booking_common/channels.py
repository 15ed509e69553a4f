"""Outbound delivery channels: transactional e-mail and device push.

Both channels are best-effort. Every call is bounded by
``notification_timeout_seconds`` and failures surface as ``UpstreamError`` so
the dispatcher can log them without affecting the booking operation.
"""
from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Any, Dict, Optional

import httpx
from circuitbreaker import CircuitBreakerError, circuit

from .config import Settings, get_settings
from .errors import UpstreamError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recipient:
    user_id: int
    name: str
    email: Optional[str]
    push_token: Optional[str]


@dataclass(frozen=True)
class OutboundMessage:
    title: str
    body: str
    data: Dict[str, Any]


class DeliveryChannel:
    """Interface shared by the external channels."""

    name = "channel"

    def applies_to(self, recipient: Recipient) -> bool:
        raise NotImplementedError

    def send(self, recipient: Recipient, message: OutboundMessage) -> None:
        raise NotImplementedError


@circuit(failure_threshold=5, recovery_timeout=60, expected_exception=(smtplib.SMTPException, OSError))
def _smtp_send(settings: Settings, message: EmailMessage) -> None:
    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=settings.notification_timeout_seconds) as smtp:
        if settings.smtp_use_tls:
            smtp.starttls()
        if settings.smtp_username:
            smtp.login(settings.smtp_username, settings.smtp_password or "")
        smtp.send_message(message)


@circuit(failure_threshold=5, recovery_timeout=60, expected_exception=httpx.HTTPError)
def _push_send(settings: Settings, payload: Dict[str, Any]) -> Dict[str, Any]:
    response = httpx.post(settings.push_endpoint, json=payload, timeout=settings.notification_timeout_seconds)
    response.raise_for_status()
    return response.json()


class EmailChannel(DeliveryChannel):
    name = "email"

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()

    @property
    def enabled(self) -> bool:
        return bool(self.settings.smtp_host)

    def applies_to(self, recipient: Recipient) -> bool:
        return self.enabled and bool(recipient.email)

    def build_message(self, recipient: Recipient, message: OutboundMessage) -> EmailMessage:
        email = EmailMessage()
        email["From"] = self.settings.mail_from
        email["To"] = recipient.email
        email["Subject"] = message.title
        email.set_content(f"Dear {recipient.name},\n\n{message.body}\n\nThank you for using our booking system.")
        return email

    def send(self, recipient: Recipient, message: OutboundMessage) -> None:
        try:
            _smtp_send(self.settings, self.build_message(recipient, message))
        except (smtplib.SMTPException, OSError, CircuitBreakerError) as exc:
            raise UpstreamError(f"E-mail to user {recipient.user_id} failed: {exc}") from exc
        logger.info("E-mail '%s' sent to user %s", message.title, recipient.user_id)


class PushChannel(DeliveryChannel):
    name = "push"

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()

    def applies_to(self, recipient: Recipient) -> bool:
        return self.settings.push_enabled and bool(recipient.push_token)

    def send(self, recipient: Recipient, message: OutboundMessage) -> None:
        payload = {
            "to": recipient.push_token,
            "title": message.title,
            "body": message.body,
            "data": message.data,
            "sound": "default",
        }
        try:
            result = _push_send(self.settings, payload)
        except (httpx.HTTPError, ValueError, CircuitBreakerError) as exc:
            raise UpstreamError(f"Push to user {recipient.user_id} failed: {exc}") from exc
        ticket = result.get("data") if isinstance(result, dict) else None
        if isinstance(ticket, dict) and ticket.get("status") == "error":
            raise UpstreamError(f"Push to user {recipient.user_id} rejected: {ticket.get('message')}")
        logger.info("Push '%s' sent to user %s", message.title, recipient.user_id)
