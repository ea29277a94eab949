import pytest

from clubhub.models.email_config import EmailConfig
from clubhub.services import email as email_service
from clubhub.services.email import SMTPTransport, TransportCache, transport_from_config


class Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.mark.anyio
async def test_transport_cache_ttl_and_invalidate(db, monkeypatch):
    loads = []

    async def fake_load(session):
        loads.append(session)
        return SMTPTransport("smtp.test", 587, "u", "p", "from@test", "Club")

    monkeypatch.setattr(email_service, "load_active_transport", fake_load)
    clock = Clock()
    cache = TransportCache(ttl_seconds=300, clock=clock)

    first = await cache.get(db)
    second = await cache.get(db)
    assert first is second
    assert len(loads) == 1

    clock.now += 301
    await cache.get(db)
    assert len(loads) == 2

    cache.invalidate()
    await cache.get(db)
    assert len(loads) == 3


@pytest.mark.anyio
async def test_send_without_config_is_logged_only(db, caplog):
    caplog.set_level("INFO", logger="clubhub.services.email")

    result = await email_service.send_email(db, "someone@example.com", "Hello", "Body text")

    assert result is None
    assert "mock send to=someone@example.com" in caplog.text


def test_transport_from_gmail_and_smtp_config():
    gmail = transport_from_config(
        EmailConfig(provider="gmail", gmail_user="club@gmail.com", gmail_app_password="app-pass")
    )
    assert (gmail.host, gmail.port, gmail.use_ssl) == ("smtp.gmail.com", 465, True)
    assert gmail.from_email == "club@gmail.com"

    smtp = transport_from_config(
        EmailConfig(provider="smtp", smtp_host="mail.example.com", smtp_port=587, smtp_secure=False,
                    smtp_user="bot", smtp_pass="pw", smtp_from="noreply@example.com")
    )
    assert (smtp.host, smtp.port, smtp.use_ssl) == ("mail.example.com", 587, False)
    assert smtp.from_email == "noreply@example.com"

    msg = smtp.build_message("to@example.com", "Subject", "plain", "<p>html</p>")
    assert msg["To"] == "to@example.com"
    assert msg.is_multipart()


@pytest.mark.anyio
async def test_email_config_admin_endpoints(async_client, make_user, headers_for, monkeypatch):
    admin = await make_user(role="admin")
    h = headers_for(admin)

    r = await async_client.get("/admin/email-config", headers=h)
    assert r.status_code == 200
    assert r.json()["config"] is None

    r = await async_client.post("/admin/email-config", json={"provider": "gmail", "gmail_user": "x@gmail.com"}, headers=h)
    assert r.status_code == 400

    r = await async_client.post("/admin/email-config", json={"provider": "smtp", "smtp_host": "h"}, headers=h)
    assert r.status_code == 400

    invalidations = []
    monkeypatch.setattr(email_service.transport_cache, "invalidate", lambda: invalidations.append(1))

    r = await async_client.post(
        "/admin/email-config",
        json={"provider": "gmail", "gmail_user": "club@gmail.com", "gmail_app_password": "secret-pass"},
        headers=h,
    )
    assert r.status_code == 200
    config = r.json()["config"]
    assert config["is_active"] is True
    assert "gmail_app_password" not in config
    assert "secret-pass" not in r.text
    assert invalidations == [1]

    r = await async_client.get("/admin/email-config", headers=h)
    assert r.json()["config"]["gmail_user"] == "club@gmail.com"


@pytest.mark.anyio
async def test_email_test_endpoint_uses_sender(async_client, make_user, headers_for, monkeypatch):
    admin = await make_user(role="admin")
    sent = []

    async def fake_send(db, to, subject, text, html=None):
        sent.append((to, subject))
        return "<id@test>"

    monkeypatch.setattr("clubhub.services.email_config.send_email", fake_send)

    r = await async_client.post("/admin/email-config/test", json={"test_email": "ops@example.com"}, headers=headers_for(admin))

    assert r.status_code == 200
    assert sent == [("ops@example.com", "ISS Yemen - Email Configuration Test")]


def test_account_emails_escape_the_user_name():
    name = '<img src=x onerror="alert(1)">'

    for build in (email_service.verification_email, email_service.password_reset_email):
        _, text, html = build(name, "https://club.test/link?token=a&email=b")
        assert "<img" not in html
        assert "&lt;img" in html
        assert 'href="https://club.test/link?token=a&amp;email=b"' in html
        assert name in text
