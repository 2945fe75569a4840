import pytest

from app.utils import formatting, whatsapp
from config import settings


@pytest.mark.parametrize(
    "size, expected",
    [(500, "500 B"), (1536, "1.50 KB"), (2 * 1024 * 1024, "2.00 MB")],
)
def test_format_file_size(size, expected):
    assert formatting.format_file_size(size) == expected


def test_is_admin_email_case_insensitive(monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_EMAILS", ["marc.s@seelenbinderconsulting.com"])
    assert formatting.is_admin_email("Marc.S@SeelenbinderConsulting.com")
    assert not formatting.is_admin_email("someone@example.com")
    assert not formatting.is_admin_email(None)


def test_secure_message_url(monkeypatch):
    monkeypatch.setattr(settings, "APP_DOMAIN", "echo-vault.app")
    url = formatting.generate_secure_message_url("m1", "a+b@example.com", "d1")
    assert url == "https://echo-vault.app/secure-message?id=m1&recipient=a%2Bb%40example.com&delivery=d1"


def test_secure_message_url_keeps_protocol():
    url = formatting.generate_secure_message_url("m1", "a@example.com", domain="http://localhost:8080/")
    assert url == "http://localhost:8080/secure-message?id=m1&recipient=a%40example.com"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("whatsapp:+1 (555) 123-4567", "+15551234567"),
        ("WhatsApp:+44 20 7946 0958", "+442079460958"),
        ("15551234567", "+15551234567"),
        ("0049 30 123456", "+4930123456"),
        ("", ""),
    ],
)
def test_normalize_phone_number(raw, expected):
    assert whatsapp.normalize_phone_number(raw) == expected


def test_format_whatsapp_number():
    assert whatsapp.format_whatsapp_number("+1 555 123 4567") == "whatsapp:+15551234567"


def test_send_whatsapp_dev_mode(monkeypatch):
    monkeypatch.setattr(settings, "TWILIO_ACCOUNT_SID", None)
    assert whatsapp.send_whatsapp("+15551234567", "hi", "Ann") is None
