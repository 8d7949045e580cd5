import httpx
import pytest

from sitecheck.errors import TransportError
from sitecheck.pipeline import AuditPipeline, report_link
from sitecheck.report.synthesizer import Synthesizer
from sitecheck.repository import InMemoryAuditRepository
from sitecheck.schemas import AuditStatus, ModuleKey
from sitecheck.services.email_reports import DeliveryGateway

pytestmark = pytest.mark.anyio

MODULES = ["on_page", "security", "mobile"]


def not_found(request):
    return httpx.Response(404)


class FakeTransport:
    def __init__(self, name, fail=False):
        self.name = name
        self.fail = fail
        self.sent = []

    async def send(self, message):
        if self.fail:
            raise TransportError(self.name, "provider unavailable")
        self.sent.append(message)
        return f"{self.name}-{len(self.sent)}"


class BrokenGenerator:
    async def generate(self, messages, *, temperature):
        raise RuntimeError("model overloaded")


@pytest.fixture
def repo():
    return InMemoryAuditRepository()


@pytest.fixture
def outbox():
    return FakeTransport("resend")


@pytest.fixture
def make_pipeline(repo, outbox, settings, make_client, serve_site, good_html):
    def factory(handler=None, synthesizer=None, gateway=None):
        return AuditPipeline(
            repo,
            synthesizer or Synthesizer(None, settings),
            gateway or DeliveryGateway(outbox, settings=settings),
            settings=settings,
            client=make_client(handler or serve_site(good_html)),
        )
    return factory


async def test_happy_path_completes_and_emails(repo, outbox, make_pipeline):
    audit_id = repo.add_audit("https://acme.example/", "owner@acme.example", MODULES)

    status = await make_pipeline().process(audit_id)

    record = repo.records[audit_id]
    assert status == AuditStatus.COMPLETED
    assert record.status_history == [AuditStatus.RUNNING, AuditStatus.GENERATING_REPORT, AuditStatus.COMPLETED]
    assert set(record.module_results) == {ModuleKey.ON_PAGE, ModuleKey.SECURITY, ModuleKey.MOBILE}
    assert record.raw_result_json["overallScore"] == 100
    assert record.email_sent_at is not None
    assert record.completed_at == record.email_sent_at
    assert record.error_log is None

    message = outbox.sent[0]
    assert message.to == "owner@acme.example"
    assert message.subject == "Your SEO CheckSite Report for acme.example is Ready!"
    assert message.text == record.formatted_report_plaintext
    assert f"https://seochecksite.net/report/{audit_id}" in message.html


async def test_unreachable_site_fails_and_sends_generic_notice(repo, outbox, make_pipeline):
    audit_id = repo.add_audit("https://acme.example/", "owner@acme.example", MODULES)

    status = await make_pipeline(handler=not_found).process(audit_id)

    record = repo.records[audit_id]
    assert status == AuditStatus.FAILED
    assert record.status_history == [AuditStatus.RUNNING, AuditStatus.FAILED]
    assert record.error_log["errorName"] == "FetchError"
    assert record.error_log["stage"] == "running"
    assert record.error_log["hasRawResults"] is False
    assert record.error_log["moduleCount"] == 3
    assert "Traceback" in record.error_log["errorStack"]

    notice = outbox.sent[0]
    assert notice.subject == "Issue with your SEO CheckSite report for acme.example"
    assert "404" not in notice.text
    assert "FetchError" not in notice.html


async def test_synthesis_failure_keeps_raw_results(repo, settings, make_pipeline):
    audit_id = repo.add_audit("https://acme.example/", "owner@acme.example", MODULES)

    status = await make_pipeline(synthesizer=Synthesizer(BrokenGenerator(), settings)).process(audit_id)

    record = repo.records[audit_id]
    assert status == AuditStatus.FAILED
    assert record.error_log["errorName"] == "SynthesisError"
    assert record.error_log["stage"] == "generating_report"
    assert record.error_log["hasRawResults"] is True
    assert record.error_log["hasFormattedReport"] is False
    assert record.raw_result_json is not None


async def test_email_failure_after_report_is_written(repo, settings, make_pipeline):
    audit_id = repo.add_audit("https://acme.example/", "owner@acme.example", MODULES)
    gateway = DeliveryGateway(FakeTransport("resend", fail=True), FakeTransport("smtp", fail=True), settings=settings)

    status = await make_pipeline(gateway=gateway).process(audit_id)

    record = repo.records[audit_id]
    assert status == AuditStatus.FAILED
    assert record.error_log["errorName"] == "DeliveryError"
    assert record.error_log["stage"] == "sending_email"
    assert record.error_log["hasFormattedReport"] is True
    assert record.email_sent_at is None


async def test_completed_audit_is_not_processed_again(repo, outbox, make_pipeline):
    audit_id = repo.add_audit(
        "https://acme.example/", "owner@acme.example", MODULES, status=AuditStatus.COMPLETED,
    )
    assert await make_pipeline().process(audit_id) == AuditStatus.COMPLETED
    assert repo.records[audit_id].status_history == []
    assert outbox.sent == []


async def test_audit_without_modules_fails(repo, make_pipeline):
    audit_id = repo.add_audit("https://acme.example/", "owner@acme.example", [])
    assert await make_pipeline().process(audit_id) == AuditStatus.FAILED
    assert repo.records[audit_id].error_log["errorName"] == "AuditError"
    assert repo.records[audit_id].error_log["stage"] == "loading"


async def test_failed_audit_can_be_retried(repo, outbox, make_pipeline):
    audit_id = repo.add_audit("https://acme.example/", "owner@acme.example", MODULES)

    assert await make_pipeline(handler=not_found).process(audit_id) == AuditStatus.FAILED
    assert await make_pipeline().process(audit_id) == AuditStatus.COMPLETED

    record = repo.records[audit_id]
    assert record.status_history == [
        AuditStatus.RUNNING,
        AuditStatus.FAILED,
        AuditStatus.RUNNING,
        AuditStatus.GENERATING_REPORT,
        AuditStatus.COMPLETED,
    ]
    assert len(record.module_results) == 3
    assert len(outbox.sent) == 2


def test_report_link_strips_trailing_slash(settings):
    linked = settings.model_copy(update={"PUBLIC_URL": "https://seochecksite.net/"})
    assert report_link(linked, "abc") == "https://seochecksite.net/report/abc"


async def test_undeliverable_failure_notice_does_not_raise(repo, settings, make_pipeline):
    audit_id = repo.add_audit("https://acme.example/", "owner@acme.example", MODULES)
    gateway = DeliveryGateway(FakeTransport("resend", fail=True), use_fallback=False, settings=settings)

    status = await make_pipeline(handler=not_found, gateway=gateway).process(audit_id)

    assert status == AuditStatus.FAILED
    assert repo.records[audit_id].error_log["errorName"] == "FetchError"


class BuggyTransport:
    name = "resend"

    async def send(self, message):
        raise RuntimeError("provider SDK bug")


class BrokenNoticeGateway(DeliveryGateway):
    async def send_failure_notice(self, to, url):
        raise KeyError("id")


async def test_notice_transport_bug_does_not_escape(repo, settings, make_pipeline):
    audit_id = repo.add_audit("https://acme.example/", "owner@acme.example", MODULES)
    gateway = DeliveryGateway(BuggyTransport(), settings=settings)

    status = await make_pipeline(handler=not_found, gateway=gateway).process(audit_id)

    assert status == AuditStatus.FAILED
    assert repo.records[audit_id].status == AuditStatus.FAILED


async def test_any_notice_error_is_only_logged(repo, settings, outbox, make_pipeline, caplog):
    audit_id = repo.add_audit("https://acme.example/", "owner@acme.example", MODULES)
    gateway = BrokenNoticeGateway(outbox, settings=settings)

    status = await make_pipeline(handler=not_found, gateway=gateway).process(audit_id)

    assert status == AuditStatus.FAILED
    assert repo.records[audit_id].error_log["errorName"] == "FetchError"
    assert "could not be sent" in caplog.text
