# sitecheck/pipeline.py
import logging
import traceback
from datetime import datetime, timezone
from typing import Optional

import httpx

from .audit.runner import audit_site
from .errors import AuditError, DeliveryError, InvalidTransitionError
from .repository import AuditJob, AuditRepository
from .report.render import RenderedReport, render_report
from .report.synthesizer import Synthesizer
from .schemas import AuditResult, AuditStatus, ErrorEnvelope, can_transition
from .services.email_reports import DeliveryGateway
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

MAX_STACK_CHARS = 5000


def _now() -> datetime:
    return datetime.now(timezone.utc)


def report_link(settings: Settings, audit_id: str) -> str:
    return f"{settings.PUBLIC_URL.rstrip('/')}/report/{audit_id}"


class AuditPipeline:
    """
    Runs one purchased audit end to end:
    pending -> running -> generating_report -> completed.

    Any exception moves the audit to failed with an ErrorEnvelope in its
    error log, then the customer gets one generic failure notice.
    """

    def __init__(
        self,
        repository: AuditRepository,
        synthesizer: Synthesizer,
        gateway: DeliveryGateway,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.repository = repository
        self.synthesizer = synthesizer
        self.gateway = gateway
        self.settings = settings or get_settings()
        self.client = client

    async def _move(self, job: AuditJob, current: AuditStatus, target: AuditStatus, **kwargs) -> AuditStatus:
        if not can_transition(current, target):
            raise InvalidTransitionError(current.value, target.value)
        await self.repository.set_status(job.id, target, **kwargs)
        logger.info("Audit %s: %s -> %s", job.id, current.value, target.value)
        return target

    async def process(self, audit_id: str) -> AuditStatus:
        """Returns the status the audit ends in."""
        job = await self.repository.get_audit(audit_id)
        if job.status == AuditStatus.COMPLETED:
            logger.info("Audit %s already completed; skipping", audit_id)
            return job.status

        stage = "loading"
        status = job.status
        state = {"raw": job.has_raw_result, "report": job.has_report, "modules": len(job.modules)}
        try:
            if not job.modules:
                raise AuditError(f"Audit {audit_id} has no enabled modules")

            stage = "running"
            status = await self._move(job, status, AuditStatus.RUNNING)
            result = await audit_site(
                job.url,
                job.modules,
                client=self.client,
                settings=self.settings,
                competitor_url=job.competitor_url,
            )
            await self.repository.save_module_results(job.id, result.modules)
            await self.repository.save_raw_result(job.id, result.to_json_dict())
            state["raw"] = True

            stage = "generating_report"
            status = await self._move(job, status, AuditStatus.GENERATING_REPORT)
            rendered = await self._write_report(job, result)
            state["report"] = True

            stage = "sending_email"
            message_id = await self.gateway.send_report(job.email, job.url, rendered)
            sent_at = _now()
            await self.repository.mark_email_sent(job.id, sent_at)
            logger.info("Report for audit %s sent to %s (%s)", job.id, job.email, message_id)

            stage = "completing"
            return await self._move(job, status, AuditStatus.COMPLETED, completed_at=sent_at)
        except Exception as e:
            logger.exception("Audit %s failed during %s", audit_id, stage)
            await self._fail(job, e, stage, state)
            return AuditStatus.FAILED

    async def _write_report(self, job: AuditJob, result: AuditResult) -> RenderedReport:
        report = await self.synthesizer.synthesize(result, job.modules)
        rendered = render_report(
            report,
            result,
            brand=self.settings.BRAND_NAME,
            report_url=report_link(self.settings, job.id),
        )
        await self.repository.save_report(job.id, rendered.html, rendered.plaintext)
        return rendered

    async def _fail(self, job: AuditJob, error: BaseException, stage: str, state: dict) -> None:
        stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        envelope = ErrorEnvelope(
            error_name=type(error).__name__,
            error_message=str(error),
            error_stack=stack[:MAX_STACK_CHARS],
            timestamp=_now().isoformat(),
            audit_id=job.id,
            url=job.url,
            stage=stage,
            has_raw_results=state["raw"],
            has_formatted_report=state["report"],
            module_count=state["modules"],
        )
        await self.repository.save_error(job.id, envelope.to_json_dict())

        # Best effort: the audit is already failed whatever happens here.
        try:
            await self.gateway.send_failure_notice(job.email, job.url)
        except DeliveryError as notice_error:
            logger.error("Failure notice for audit %s not delivered: %s", job.id, notice_error)
        except Exception:
            logger.exception("Failure notice for audit %s could not be sent", job.id)
