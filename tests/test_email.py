import smtplib

import httpx
import pytest

from sitecheck.errors import DeliveryError, TransportError
from sitecheck.report.render import RenderedReport
from sitecheck.services.email_reports import (
    DeliveryGateway,
    EmailMessage,
    ResendTransport,
    SmtpTransport,
    build_gateway,
)
from sitecheck.utils.rate_limit import RateLimiter

pytestmark = pytest.mark.anyio

MESSAGE = EmailMessage(to="owner@acme.example", subject="Hi", html="<p>Hi</p>", text="Hi")


class FakeTransport:
    def __init__(self, name, fail=False):
        self.name = name
        self.fail = fail
        self.sent = []

    async def send(self, message):
        self.sent.append(message)
        if self.fail:
            raise TransportError(self.name, "provider unavailable")
        return f"{self.name}-id"


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


async def test_primary_success_skips_secondary(settings):
    primary, secondary = FakeTransport("resend"), FakeTransport("smtp")
    gateway = DeliveryGateway(primary, secondary, settings=settings)
    assert await gateway.send(MESSAGE) == "resend-id"
    assert secondary.sent == []


async def test_falls_back_when_primary_fails(settings):
    primary, secondary = FakeTransport("resend", fail=True), FakeTransport("smtp")
    gateway = DeliveryGateway(primary, secondary, settings=settings)
    assert await gateway.send(MESSAGE) == "smtp-id"
    assert len(secondary.sent) == 1


async def test_both_transports_failing_names_both(settings):
    gateway = DeliveryGateway(FakeTransport("resend", fail=True), FakeTransport("smtp", fail=True), settings=settings)
    with pytest.raises(DeliveryError) as exc:
        await gateway.send(MESSAGE)
    assert "resend: provider unavailable" in str(exc.value)
    assert "smtp: provider unavailable" in str(exc.value)
    assert exc.value.secondary is not None


async def test_fallback_disabled(settings):
    secondary = FakeTransport("smtp")
    gateway = DeliveryGateway(FakeTransport("resend", fail=True), secondary, use_fallback=False, settings=settings)
    with pytest.raises(DeliveryError, match="fallback disabled"):
        await gateway.send(MESSAGE)
    assert secondary.sent == []


async def test_report_subject_uses_brand_and_domain(settings):
    primary = FakeTransport("resend")
    gateway = DeliveryGateway(primary, settings=settings)
    await gateway.send_report("owner@acme.example", "https://www.acme.example/", RenderedReport("<p>r</p>", "r"))
    assert primary.sent[0].subject == "Your SEO CheckSite Report for acme.example is Ready!"


async def test_failure_notices_are_rate_limited_per_recipient(settings):
    primary = FakeTransport("resend")
    limiter = RateLimiter(max_requests=2, window_seconds=3600)
    gateway = DeliveryGateway(primary, notice_limiter=limiter, settings=settings)

    results = [await gateway.send_failure_notice("Owner@acme.example", "https://acme.example/") for _ in range(3)]
    assert results == ["resend-id", "resend-id", None]
    assert await gateway.send_failure_notice("other@acme.example", "https://acme.example/") == "resend-id"

    notice = primary.sent[0]
    assert notice.subject == "Issue with your SEO CheckSite report for acme.example"
    assert "re-run the audit or issue a refund" in notice.text


class BuggyTransport:
    """Fails with something other than a TransportError, like a provider SDK bug."""

    def __init__(self, name):
        self.name = name

    async def send(self, message):
        raise RuntimeError("provider SDK bug")


async def test_unexpected_primary_error_still_falls_back(settings):
    secondary = FakeTransport("smtp")
    gateway = DeliveryGateway(BuggyTransport("resend"), secondary, settings=settings)
    assert await gateway.send(MESSAGE) == "smtp-id"
    assert len(secondary.sent) == 1


async def test_unexpected_errors_become_delivery_errors(settings):
    gateway = DeliveryGateway(BuggyTransport("resend"), BuggyTransport("smtp"), settings=settings)
    with pytest.raises(DeliveryError) as exc:
        await gateway.send(MESSAGE)
    assert "resend: RuntimeError: provider SDK bug" in str(exc.value)
    assert isinstance(exc.value.secondary, TransportError)


async def test_expired_notice_windows_are_dropped(settings):
    clock = FakeClock()
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)
    gateway = DeliveryGateway(FakeTransport("resend"), notice_limiter=limiter, settings=settings)

    await gateway.send_failure_notice("a@acme.example", "https://acme.example/")
    await gateway.send_failure_notice("b@acme.example", "https://acme.example/")
    assert len(limiter) == 2

    clock.now += 61
    await gateway.send_failure_notice("c@acme.example", "https://acme.example/")
    assert len(limiter) == 1


# ── Resend ───────────────────────────────────────────────────────────────────

async def test_resend_posts_message(settings, make_client):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": "re_123"})

    transport = ResendTransport(make_client(handler), settings)
    assert await transport.send(MESSAGE) == "re_123"

    request = seen[0]
    assert request.url.path == "/emails"
    assert request.extensions["timeout"]["read"] == settings.EMAIL_TIMEOUT
    assert request.headers["Authorization"] == "Bearer re_test"
    body = request.read()
    assert b'"to":["owner@acme.example"]' in body.replace(b" ", b"")


async def test_resend_http_error_is_a_transport_error(settings, make_client):
    transport = ResendTransport(make_client(lambda request: httpx.Response(422, text="invalid from")), settings)
    with pytest.raises(TransportError, match="HTTP 422"):
        await transport.send(MESSAGE)


async def test_resend_without_message_id(settings, make_client):
    transport = ResendTransport(make_client(lambda request: httpx.Response(200, json={})), settings)
    with pytest.raises(TransportError, match="message id"):
        await transport.send(MESSAGE)


async def test_resend_disables_click_tracking_once(settings, make_client):
    tracked = settings.model_copy(update={"RESEND_DOMAIN": "acme.example"})
    calls = []

    def handler(request):
        calls.append((request.method, request.url.path))
        if request.url.path == "/domains":
            return httpx.Response(200, json={"data": [{"id": "d1", "name": "acme.example", "click_tracking": True}]})
        if request.url.path == "/domains/d1":
            return httpx.Response(200, json={"id": "d1"})
        return httpx.Response(200, json={"id": "re_1"})

    transport = ResendTransport(make_client(handler), tracked)
    await transport.send(MESSAGE)
    await transport.send(MESSAGE)
    assert calls == [
        ("GET", "/domains"),
        ("PATCH", "/domains/d1"),
        ("POST", "/emails"),
        ("POST", "/emails"),
    ]


async def test_unknown_resend_domain_blocks_sending(settings, make_client):
    tracked = settings.model_copy(update={"RESEND_DOMAIN": "acme.example"})
    transport = ResendTransport(make_client(lambda request: httpx.Response(200, json={"data": []})), tracked)
    with pytest.raises(TransportError, match="not added in Resend"):
        await transport.send(MESSAGE)


# ── SMTP ─────────────────────────────────────────────────────────────────────

class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout, fail=False):
        self.host, self.port, self.timeout, self.fail = host, port, timeout, fail
        self.actions = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.actions.append("starttls")

    def login(self, user, password):
        self.actions.append(("login", user))

    def sendmail(self, sender, recipients, body):
        if self.fail:
            raise smtplib.SMTPRecipientsRefused({recipients[0]: (550, b"no such user")})
        self.actions.append(("sendmail", sender, recipients))
        self.body = body


async def test_smtp_sends_multipart_over_ssl(settings):
    creds = settings.model_copy(update={"SMTP_USERNAME": "bot", "SMTP_PASSWORD": "secret"})
    FakeSMTP.instances.clear()
    transport = SmtpTransport(creds, smtp_factory=FakeSMTP)

    message_id = await transport.send(MESSAGE)

    conn = FakeSMTP.instances[0]
    assert (conn.host, conn.port) == ("smtp.zoho.com", 465)
    assert conn.actions == [("login", "bot"), ("sendmail", creds.EMAIL_FROM, ["owner@acme.example"])]
    assert message_id.startswith("<")
    assert "multipart/alternative" in conn.body


async def test_smtp_uses_starttls_on_submission_port(settings):
    FakeSMTP.instances.clear()
    transport = SmtpTransport(settings.model_copy(update={"SMTP_PORT": 587}), smtp_factory=FakeSMTP)
    await transport.send(MESSAGE)
    assert FakeSMTP.instances[0].actions[0] == "starttls"


async def test_smtp_errors_are_transport_errors(settings):
    transport = SmtpTransport(settings, smtp_factory=lambda host, port, timeout: FakeSMTP(host, port, timeout, fail=True))
    with pytest.raises(TransportError, match="smtp"):
        await transport.send(MESSAGE)


def test_build_gateway_orders_transports_by_provider(settings, make_client):
    gateway = build_gateway(make_client(), settings)
    assert (gateway.primary.name, gateway.secondary.name) == ("resend", "smtp")

    smtp_first = build_gateway(make_client(), settings.model_copy(update={"EMAIL_PROVIDER": "smtp"}))
    assert (smtp_first.primary.name, smtp_first.secondary.name) == ("smtp", "resend")
    assert smtp_first.notice_limiter is not None
