"""
Outbound email.

The active EmailConfig row decides the transport (Gmail app password or a
generic SMTP relay). The built transport is cached process-wide for
EMAIL_TRANSPORT_TTL_SECONDS and dropped explicitly whenever the config changes.
With no active config, messages are only logged.
"""
from __future__ import annotations

import asyncio
import html as html_lib
import logging
import smtplib
import ssl
import time
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr, formatdate, make_msgid
from typing import Callable, Optional

import certifi
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clubhub.core.config import settings
from clubhub.models.email_config import EmailConfig

logger = logging.getLogger(__name__)

GMAIL_HOST = "smtp.gmail.com"
GMAIL_PORT = 465


def _tls_context() -> ssl.SSLContext:
    # certifi bundle, some slim runtimes ship without system CAs
    return ssl.create_default_context(cafile=certifi.where())


@dataclass(frozen=True)
class SMTPTransport:
    host: str
    port: int
    username: str
    password: str
    from_email: str
    from_name: str
    use_ssl: bool = False
    timeout: int = 30

    def build_message(self, to: str, subject: str, text: str, html: Optional[str] = None) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = formataddr((self.from_name, self.from_email))
        msg["To"] = to
        msg["Subject"] = subject
        msg["Date"] = formatdate(localtime=True)
        domain = self.from_email.split("@")[-1] if "@" in self.from_email else "localhost"
        msg["Message-ID"] = make_msgid(domain=domain)
        msg.set_content(text)
        if html:
            msg.add_alternative(html, subtype="html")
        return msg

    def _send_sync(self, msg: EmailMessage) -> str:
        context = _tls_context()
        if self.use_ssl:
            with smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=self.timeout) as server:
                server.login(self.username, self.password)
                refused = server.send_message(msg)
        else:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.ehlo()
                server.starttls(context=context)
                server.ehlo()
                server.login(self.username, self.password)
                refused = server.send_message(msg)
        if refused:
            logger.warning("[email] refused recipients: %s", refused)
        return msg.get("Message-ID", "unknown")

    async def send(self, to: str, subject: str, text: str, html: Optional[str] = None) -> str:
        msg = self.build_message(to, subject, text, html)
        logger.info("[email] sending to=%s subject=%s via=%s:%s", to, subject, self.host, self.port)
        return await asyncio.to_thread(self._send_sync, msg)


def transport_from_config(cfg: EmailConfig) -> SMTPTransport:
    if cfg.provider == "gmail":
        return SMTPTransport(
            host=GMAIL_HOST,
            port=GMAIL_PORT,
            username=cfg.gmail_user or "",
            password=cfg.gmail_app_password or "",
            from_email=cfg.gmail_user or "",
            from_name=settings.CLUB_NAME,
            use_ssl=True,
        )

    return SMTPTransport(
        host=cfg.smtp_host or "",
        port=int(cfg.smtp_port or 587),
        username=cfg.smtp_user or "",
        password=cfg.smtp_pass or "",
        from_email=cfg.smtp_from or cfg.smtp_user or "",
        from_name=settings.CLUB_NAME,
        # 465 is implicit TLS; anything else upgrades with STARTTLS
        use_ssl=bool(cfg.smtp_secure) or int(cfg.smtp_port or 587) == 465,
    )


async def load_active_transport(db: AsyncSession) -> Optional[SMTPTransport]:
    res = await db.execute(
        select(EmailConfig).where(EmailConfig.is_active.is_(True)).order_by(EmailConfig.updated_at.desc())
    )
    cfg = res.scalars().first()
    if cfg is None:
        return None
    return transport_from_config(cfg)


class TransportCache:
    """Single cached transport handle with a TTL; safe to share across requests."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = asyncio.Lock()
        self._transport: Optional[SMTPTransport] = None
        self._loaded_at: Optional[float] = None

    def _fresh(self) -> bool:
        return self._loaded_at is not None and (self._clock() - self._loaded_at) < self.ttl_seconds

    async def get(self, db: AsyncSession) -> Optional[SMTPTransport]:
        if self._fresh():
            return self._transport

        async with self._lock:
            if self._fresh():
                return self._transport
            self._transport = await load_active_transport(db)
            self._loaded_at = self._clock()
            logger.debug("[email] transport reloaded (configured=%s)", self._transport is not None)
            return self._transport

    def invalidate(self) -> None:
        self._transport = None
        self._loaded_at = None


transport_cache = TransportCache(ttl_seconds=settings.EMAIL_TRANSPORT_TTL_SECONDS)


async def send_email(
    db: AsyncSession,
    to: str,
    subject: str,
    text: str,
    html: Optional[str] = None,
) -> Optional[str]:
    transport = await transport_cache.get(db)
    if transport is None:
        logger.info("[email] no active email config; mock send to=%s subject=%s\n%s", to, subject, text)
        return None
    return await transport.send(to, subject, text, html)


async def send_email_safely(
    db: AsyncSession,
    to: str,
    subject: str,
    text: str,
    html: Optional[str] = None,
) -> bool:
    try:
        await send_email(db, to, subject, text, html)
        return True
    except Exception:
        logger.exception("[email] send failed to=%s subject=%s", to, subject)
        return False


# -------------------------
# Account lifecycle messages
# -------------------------
def verification_email(name: Optional[str], verify_url: str) -> tuple[str, str, str]:
    who = name or "there"
    safe_who = html_lib.escape(who)
    safe_url = html_lib.escape(verify_url, quote=True)
    subject = f"Verify your {settings.CLUB_NAME} account"
    text = (
        f"Hi {who},\n\n"
        f"Please verify your email address by opening the link below:\n{verify_url}\n\n"
        f"The link expires in {settings.EMAIL_TOKEN_TTL_MINUTES} minutes."
    )
    html = (
        f"<p>Hi {safe_who},</p>"
        f'<p>Please verify your email address: <a href="{safe_url}">Verify email</a></p>'
        f"<p>The link expires in {settings.EMAIL_TOKEN_TTL_MINUTES} minutes.</p>"
    )
    return subject, text, html


def password_reset_email(name: Optional[str], reset_url: str) -> tuple[str, str, str]:
    who = name or "there"
    safe_who = html_lib.escape(who)
    safe_url = html_lib.escape(reset_url, quote=True)
    subject = f"{settings.CLUB_NAME} password reset"
    text = (
        f"Hi {who},\n\n"
        f"Use the link below to choose a new password:\n{reset_url}\n\n"
        f"The link expires in {settings.PASSWORD_RESET_TTL_MINUTES} minutes. "
        "If you did not ask for this, ignore this email."
    )
    html = (
        f"<p>Hi {safe_who},</p>"
        f'<p><a href="{safe_url}">Reset your password</a></p>'
        f"<p>The link expires in {settings.PASSWORD_RESET_TTL_MINUTES} minutes. "
        "If you did not ask for this, ignore this email.</p>"
    )
    return subject, text, html
