# sitecheck/services/email_reports.py
import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from typing import Callable, Optional, Protocol

import httpx

from ..errors import DeliveryError, TransportError
from ..report.render import RenderedReport, render_failure_notice
from ..settings import Settings, get_settings
from ..utils.rate_limit import RateLimiter
from ..utils.urls import domain_of
from .resend_admin import ensure_click_tracking_disabled

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str
    text: str


class EmailTransport(Protocol):
    name: str

    async def send(self, message: EmailMessage) -> str:
        """Deliver the message and return the provider's message id. Raises TransportError."""


# ============================================================
# Resend (HTTP API)
# ============================================================

class ResendTransport:
    name = "resend"

    def __init__(self, client: httpx.AsyncClient, settings: Optional[Settings] = None,
                 timeout: Optional[float] = None):
        self.client = client
        self.settings = settings or get_settings()
        self.timeout = self.settings.EMAIL_TIMEOUT if timeout is None else timeout
        self._tracking_checked = False

    async def _prepare(self) -> None:
        s = self.settings
        if self._tracking_checked or not (s.EMAIL_DISABLE_CLICK_TRACKING and s.RESEND_DOMAIN):
            return
        await ensure_click_tracking_disabled(self.client, s)
        self._tracking_checked = True

    async def _send(self, message: EmailMessage) -> str:
        s = self.settings
        if not s.RESEND_API_KEY:
            raise TransportError(self.name, "RESEND_API_KEY missing")
        await self._prepare()
        r = await self.client.post(
            f"{s.RESEND_API_URL}/emails",
            headers={"Authorization": f"Bearer {s.RESEND_API_KEY}", "Content-Type": "application/json"},
            json={
                "from": formataddr((s.EMAIL_FROM_NAME, s.EMAIL_FROM)),
                "to": [message.to],
                "subject": message.subject,
                "html": message.html,
                "text": message.text,
            },
            timeout=self.timeout,
        )
        if r.status_code >= 400:
            raise TransportError(self.name, f"HTTP {r.status_code}: {r.text[:200]}")
        message_id = (r.json() or {}).get("id")
        if not message_id:
            raise TransportError(self.name, "response did not include a message id")
        return message_id

    async def send(self, message: EmailMessage) -> str:
        try:
            return await asyncio.wait_for(self._send(message), self.timeout)
        except asyncio.TimeoutError as e:
            raise TransportError(self.name, f"timed out after {self.timeout:g}s") from e
        except (httpx.HTTPError, ValueError) as e:
            raise TransportError(self.name, str(e) or e.__class__.__name__) from e


# ============================================================
# SMTP
# ============================================================

SmtpFactory = Callable[[str, int, float], smtplib.SMTP]


def default_smtp_factory(host: str, port: int, timeout: float) -> smtplib.SMTP:
    if port == 465:
        return smtplib.SMTP_SSL(host, port, timeout=timeout)
    return smtplib.SMTP(host, port, timeout=timeout)


class SmtpTransport:
    name = "smtp"

    def __init__(self, settings: Optional[Settings] = None, timeout: Optional[float] = None,
                 smtp_factory: SmtpFactory = default_smtp_factory):
        self.settings = settings or get_settings()
        self.timeout = self.settings.EMAIL_TIMEOUT if timeout is None else timeout
        self.smtp_factory = smtp_factory

    def build_mime(self, message: EmailMessage) -> MIMEMultipart:
        s = self.settings
        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = formataddr((s.EMAIL_FROM_NAME, s.EMAIL_FROM))
        msg["To"] = message.to
        msg["Message-ID"] = make_msgid(domain=s.EMAIL_FROM.split("@")[-1])
        msg.attach(MIMEText(message.text, "plain", "utf-8"))
        msg.attach(MIMEText(message.html, "html", "utf-8"))
        return msg

    def _send_blocking(self, message: EmailMessage) -> str:
        s = self.settings
        msg = self.build_mime(message)
        with self.smtp_factory(s.SMTP_HOST, s.SMTP_PORT, self.timeout) as conn:
            if s.SMTP_PORT != 465:
                conn.starttls()
            if s.SMTP_USERNAME and s.SMTP_PASSWORD:
                conn.login(s.SMTP_USERNAME, s.SMTP_PASSWORD)
            conn.sendmail(s.EMAIL_FROM, [message.to], msg.as_string())
        return msg["Message-ID"]

    async def send(self, message: EmailMessage) -> str:
        try:
            return await asyncio.wait_for(asyncio.to_thread(self._send_blocking, message), self.timeout)
        except asyncio.TimeoutError as e:
            raise TransportError(self.name, f"timed out after {self.timeout:g}s") from e
        except (smtplib.SMTPException, OSError) as e:
            raise TransportError(self.name, str(e) or e.__class__.__name__) from e


# ============================================================
# Gateway
# ============================================================

class DeliveryGateway:
    """
    Sends through the primary transport; on failure, and only when fallback
    is enabled, retries once through the secondary.
    """

    def __init__(
        self,
        primary: EmailTransport,
        secondary: Optional[EmailTransport] = None,
        *,
        use_fallback: bool = True,
        notice_limiter: Optional[RateLimiter] = None,
        settings: Optional[Settings] = None,
    ):
        self.primary = primary
        self.secondary = secondary
        self.use_fallback = use_fallback
        self.notice_limiter = notice_limiter
        self.settings = settings or get_settings()

    async def _attempt(self, transport: EmailTransport, message: EmailMessage) -> str:
        try:
            return await transport.send(message)
        except TransportError:
            raise
        except Exception as e:
            raise TransportError(transport.name, f"{type(e).__name__}: {e}") from e

    async def send(self, message: EmailMessage) -> str:
        try:
            return await self._attempt(self.primary, message)
        except TransportError as primary_error:
            logger.warning("Primary transport %s failed: %s", self.primary.name, primary_error)
            if not self.use_fallback or self.secondary is None:
                raise DeliveryError(primary_error) from primary_error
            try:
                message_id = await self._attempt(self.secondary, message)
            except TransportError as secondary_error:
                raise DeliveryError(primary_error, secondary_error) from secondary_error
            logger.info("Delivered via fallback transport %s", self.secondary.name)
            return message_id

    async def send_report(self, to: str, url: str, rendered: RenderedReport) -> str:
        subject = f"Your {self.settings.BRAND_NAME} Report for {domain_of(url)} is Ready!"
        return await self.send(EmailMessage(to=to, subject=subject, html=rendered.html, text=rendered.plaintext))

    async def send_failure_notice(self, to: str, url: str) -> Optional[str]:
        """Returns None when the recipient has had too many notices recently."""
        if self.notice_limiter is not None:
            self.notice_limiter.purge_expired()
            verdict = self.notice_limiter.hit(to.lower())
            if not verdict.allowed:
                logger.warning("Failure notice to %s suppressed by rate limit", to)
                return None
        rendered = render_failure_notice(url, brand=self.settings.BRAND_NAME)
        subject = f"Issue with your {self.settings.BRAND_NAME} report for {domain_of(url)}"
        return await self.send(EmailMessage(to=to, subject=subject, html=rendered.html, text=rendered.plaintext))


def build_gateway(client: httpx.AsyncClient, settings: Optional[Settings] = None) -> DeliveryGateway:
    settings = settings or get_settings()
    resend = ResendTransport(client, settings)
    smtp = SmtpTransport(settings)
    primary, secondary = (resend, smtp) if settings.EMAIL_PROVIDER == "resend" else (smtp, resend)
    return DeliveryGateway(
        primary,
        secondary,
        use_fallback=settings.EMAIL_USE_FALLBACK,
        notice_limiter=RateLimiter(settings.FAILURE_NOTICE_LIMIT, settings.FAILURE_NOTICE_WINDOW_SECONDS),
        settings=settings,
    )
