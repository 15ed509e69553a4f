"""Unit tests for the e-mail and push delivery channels."""
import smtplib

import httpx
import pytest

from booking_common import channels
from booking_common.channels import EmailChannel, OutboundMessage, PushChannel, Recipient
from booking_common.config import Settings
from booking_common.errors import UpstreamError

RECIPIENT = Recipient(user_id=3, name="Alice", email="alice@example.com", push_token="ExponentPushToken[a]")
MESSAGE = OutboundMessage(title="Booking approved", body="Your room booking was approved.", data={"booking_id": 1})


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class TestEmailChannel:
    def test_disabled_without_smtp_host(self):
        assert EmailChannel(make_settings(smtp_host=None)).applies_to(RECIPIENT) is False

    def test_build_message(self):
        channel = EmailChannel(make_settings(smtp_host="mail.local", mail_from="Bookings <b@example.com>"))

        email = channel.build_message(RECIPIENT, MESSAGE)

        assert email["To"] == "alice@example.com"
        assert email["From"] == "Bookings <b@example.com>"
        assert email["Subject"] == "Booking approved"
        assert "Dear Alice" in email.get_content()

    def test_sends_through_smtp(self, monkeypatch):
        sent = []

        class FakeSMTP:
            def __init__(self, host, port, timeout):
                self.host, self.port, self.timeout = host, port, timeout

            def __enter__(self):
                return self

            def __exit__(self, *exc):
                return False

            def starttls(self):
                pass

            def login(self, username, password):
                pass

            def send_message(self, message):
                sent.append((self.host, self.timeout, message["To"]))

        monkeypatch.setattr(channels.smtplib, "SMTP", FakeSMTP)
        channel = EmailChannel(make_settings(smtp_host="mail.local", notification_timeout_seconds=2.5))

        channel.send(RECIPIENT, MESSAGE)

        assert sent == [("mail.local", 2.5, "alice@example.com")]

    def test_smtp_failure_becomes_upstream_error(self, monkeypatch):
        def refuse(*args, **kwargs):
            raise smtplib.SMTPConnectError(421, "try later")

        monkeypatch.setattr(channels.smtplib, "SMTP", refuse)
        channel = EmailChannel(make_settings(smtp_host="mail.local"))

        with pytest.raises(UpstreamError):
            channel.send(RECIPIENT, MESSAGE)


class TestPushChannel:
    def test_skipped_without_token_or_when_disabled(self):
        enabled = PushChannel(make_settings(push_enabled=True))
        no_token = Recipient(user_id=4, name="Bob", email=None, push_token=None)

        assert enabled.applies_to(no_token) is False
        assert PushChannel(make_settings(push_enabled=False)).applies_to(RECIPIENT) is False
        assert enabled.applies_to(RECIPIENT) is True

    def test_posts_message(self, monkeypatch):
        calls = []

        def fake_post(url, json, timeout):
            calls.append((url, json, timeout))
            return httpx.Response(200, json={"data": {"status": "ok"}}, request=httpx.Request("POST", url))

        monkeypatch.setattr(channels.httpx, "post", fake_post)
        settings = make_settings(push_enabled=True, push_endpoint="https://push.example/send")

        PushChannel(settings).send(RECIPIENT, MESSAGE)

        url, payload, timeout = calls[0]
        assert url == "https://push.example/send"
        assert payload["to"] == "ExponentPushToken[a]"
        assert payload["data"] == {"booking_id": 1}
        assert timeout == settings.notification_timeout_seconds

    def test_rejected_ticket(self, monkeypatch):
        def fake_post(url, json, timeout):
            body = {"data": {"status": "error", "message": "DeviceNotRegistered"}}
            return httpx.Response(200, json=body, request=httpx.Request("POST", url))

        monkeypatch.setattr(channels.httpx, "post", fake_post)

        with pytest.raises(UpstreamError, match="DeviceNotRegistered"):
            PushChannel(make_settings(push_enabled=True)).send(RECIPIENT, MESSAGE)

    def test_timeout_becomes_upstream_error(self, monkeypatch):
        def fake_post(url, json, timeout):
            raise httpx.ConnectTimeout("timed out")

        monkeypatch.setattr(channels.httpx, "post", fake_post)

        with pytest.raises(UpstreamError):
            PushChannel(make_settings(push_enabled=True)).send(RECIPIENT, MESSAGE)
