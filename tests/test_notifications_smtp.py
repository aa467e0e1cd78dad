"""Tests for the SMTP client wrapper and recipient helpers."""

import smtplib
from email.message import EmailMessage
from unittest.mock import MagicMock

import pytest

from birdwatch.config.environment import EnvironmentConfig
from birdwatch.notifications import SMTPClient, SMTPDeliveryError, build_sender_address, normalize_recipients


def make_message():
    message = EmailMessage()
    message["Subject"] = "Course [Data Structures] section [01] has a seat available!"
    message["From"] = "QuACS Birdwatch <birdwatch@rpi.edu>"
    message["To"] = "u@rpi.edu"
    message.set_content("2/30 seats available")
    return message


def env(port=587, user="birdwatch@rpi.edu", password="secret"):
    return EnvironmentConfig(smtp_host="smtp.rpi.edu", smtp_port=port, smtp_user=user, smtp_pass=password)


@pytest.fixture
def smtp():
    return MagicMock()


@pytest.fixture
def client(smtp):
    return SMTPClient(smtp_factory=MagicMock(return_value=smtp), smtp_ssl_factory=MagicMock(return_value=smtp))


class TestSMTPClient:
    def test_starttls_login_and_send(self, client, smtp):
        message = make_message()

        client.send(message, env(), use_tls=True, timeout=15)

        client.smtp_factory.assert_called_once_with("smtp.rpi.edu", 587, timeout=15)
        smtp.starttls.assert_called_once()
        smtp.login.assert_called_once_with("birdwatch@rpi.edu", "secret")
        smtp.send_message.assert_called_once_with(message)
        smtp.quit.assert_called_once()

    def test_port_465_uses_implicit_tls(self, client, smtp):
        client.send(make_message(), env(port=465))

        client.smtp_ssl_factory.assert_called_once()
        client.smtp_factory.assert_not_called()
        smtp.starttls.assert_not_called()

    def test_no_tls_when_disabled(self, client, smtp):
        client.send(make_message(), env(port=25), use_tls=False)

        smtp.starttls.assert_not_called()

    def test_no_login_without_credentials(self, client, smtp):
        client.send(make_message(), env(user=None, password=None))

        smtp.login.assert_not_called()
        smtp.send_message.assert_called_once()

    def test_smtp_error_is_wrapped_and_connection_closed(self, client, smtp):
        smtp.send_message.side_effect = smtplib.SMTPRecipientsRefused({"u@rpi.edu": (550, b"no")})

        with pytest.raises(SMTPDeliveryError, match="SMTP error"):
            client.send(make_message(), env())

        smtp.quit.assert_called_once()

    def test_network_error_is_wrapped(self, client):
        client.smtp_factory.side_effect = ConnectionRefusedError("refused")

        with pytest.raises(SMTPDeliveryError, match="Network error"):
            client.send(make_message(), env())

    def test_quit_failure_is_ignored(self, client, smtp):
        smtp.quit.side_effect = smtplib.SMTPServerDisconnected("gone")

        client.send(make_message(), env())

        smtp.send_message.assert_called_once()


class TestRecipients:
    def test_normalize_sorts_and_deduplicates(self):
        assert normalize_recipients(["bob@rpi.edu", "alice@rpi.edu", "bob@rpi.edu"]) == [
            "alice@rpi.edu",
            "bob@rpi.edu",
        ]

    def test_normalize_drops_invalid_and_blank(self):
        assert normalize_recipients(["alice@rpi.edu", "nope", "", "  "]) == ["alice@rpi.edu"]

    def test_sender_address_with_user(self):
        assert build_sender_address(env()) == "QuACS Birdwatch <birdwatch@rpi.edu>"

    def test_sender_address_without_user(self):
        config = EnvironmentConfig(smtp_host="smtp.rpi.edu", smtp_port=25, smtp_sender_name="Seat Bot")
        assert build_sender_address(config) == "Seat Bot <noreply@smtp.rpi.edu>"
