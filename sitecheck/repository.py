"""
Audit persistence used by the pipeline. Every write is an upsert keyed by
audit id, so a retried or overlapping run converges on the same record.
"""
import asyncio
import copy
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from .errors import AuditNotFoundError
from .models import Audit, AuditModule, Customer
from .schemas import AuditStatus, ModuleKey, ModuleResult


@dataclass(frozen=True)
class AuditJob:
    """What the pipeline needs to know about one audit."""
    id: str
    url: str
    email: str
    modules: List[ModuleKey]
    status: AuditStatus
    competitor_url: Optional[str] = None
    has_raw_result: bool = False
    has_report: bool = False
    email_sent_at: Optional[datetime] = None


class AuditRepository(Protocol):
    async def get_audit(self, audit_id: str) -> AuditJob: ...

    async def set_status(self, audit_id: str, status: AuditStatus, *, completed_at: Optional[datetime] = None) -> None: ...

    async def save_module_results(self, audit_id: str, results: Sequence[ModuleResult]) -> None: ...

    async def save_raw_result(self, audit_id: str, raw: Dict[str, Any]) -> None: ...

    async def save_report(self, audit_id: str, html: str, plaintext: str) -> None: ...

    async def mark_email_sent(self, audit_id: str, sent_at: datetime) -> None: ...

    async def save_error(self, audit_id: str, error_log: Dict[str, Any]) -> None: ...


def _module_keys(values: Sequence[str]) -> List[ModuleKey]:
    out: List[ModuleKey] = []
    for v in values:
        key = ModuleKey(v)
        if key not in out:
            out.append(key)
    return out


# ============================================================
# In-memory
# ============================================================

@dataclass
class AuditRecord:
    id: str
    url: str
    email: str
    modules: List[ModuleKey]
    competitor_url: Optional[str] = None
    status: AuditStatus = AuditStatus.PENDING
    module_results: Dict[ModuleKey, Dict[str, Any]] = field(default_factory=dict)
    raw_result_json: Optional[Dict[str, Any]] = None
    formatted_report_html: Optional[str] = None
    formatted_report_plaintext: Optional[str] = None
    email_sent_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error_log: Optional[Dict[str, Any]] = None
    status_history: List[AuditStatus] = field(default_factory=list)


class InMemoryAuditRepository:
    def __init__(self):
        self.records: Dict[str, AuditRecord] = {}

    def add_audit(self, url: str, email: str, modules: Sequence[str], *,
                  competitor_url: Optional[str] = None, audit_id: Optional[str] = None,
                  status: AuditStatus = AuditStatus.PENDING) -> str:
        audit_id = audit_id or str(uuid.uuid4())
        self.records[audit_id] = AuditRecord(
            id=audit_id, url=url, email=email, modules=_module_keys(modules),
            competitor_url=competitor_url, status=status,
        )
        return audit_id

    def _get(self, audit_id: str) -> AuditRecord:
        try:
            return self.records[audit_id]
        except KeyError:
            raise AuditNotFoundError(audit_id) from None

    async def get_audit(self, audit_id: str) -> AuditJob:
        r = self._get(audit_id)
        return AuditJob(
            id=r.id, url=r.url, email=r.email, modules=list(r.modules), status=r.status,
            competitor_url=r.competitor_url, has_raw_result=r.raw_result_json is not None,
            has_report=r.formatted_report_html is not None, email_sent_at=r.email_sent_at,
        )

    async def set_status(self, audit_id, status, *, completed_at=None):
        r = self._get(audit_id)
        r.status = AuditStatus(status)
        r.status_history.append(r.status)
        if completed_at is not None:
            r.completed_at = completed_at

    async def save_module_results(self, audit_id, results):
        r = self._get(audit_id)
        for result in results:
            r.module_results[result.module_key] = {
                "raw_score": result.score,
                "raw_issues_json": [i.to_json_dict() for i in result.issues],
            }

    async def save_raw_result(self, audit_id, raw):
        self._get(audit_id).raw_result_json = copy.deepcopy(raw)

    async def save_report(self, audit_id, html, plaintext):
        r = self._get(audit_id)
        r.formatted_report_html = html
        r.formatted_report_plaintext = plaintext

    async def mark_email_sent(self, audit_id, sent_at):
        self._get(audit_id).email_sent_at = sent_at

    async def save_error(self, audit_id, error_log):
        r = self._get(audit_id)
        r.error_log = copy.deepcopy(error_log)
        r.status = AuditStatus.FAILED
        r.status_history.append(AuditStatus.FAILED)


# ============================================================
# SQLAlchemy
# ============================================================

class SqlAlchemyAuditRepository:
    """
    Backed by the customers/audits/audit_modules tables. Sessions are
    synchronous, so every call runs in a worker thread.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def _load(self, session: Session, audit_id: str) -> Audit:
        audit = session.get(Audit, audit_id)
        if audit is None:
            raise AuditNotFoundError(audit_id)
        return audit

    def _write(self, audit_id: str, apply) -> None:
        with self.session_factory() as session, session.begin():
            apply(session, self._load(session, audit_id))

    def create_audit(self, url: str, email: str, modules: Sequence[str], *,
                     competitor_url: Optional[str] = None, name: Optional[str] = None) -> str:
        with self.session_factory() as session, session.begin():
            customer = session.scalars(select(Customer).where(Customer.email == email)).first()
            if customer is None:
                customer = Customer(email=email, name=name)
                session.add(customer)
                session.flush()
            audit = Audit(
                customer_id=customer.id, url=url, competitor_url=competitor_url,
                status=AuditStatus.PENDING.value,
            )
            audit.modules = [AuditModule(module_key=k.value, enabled=True) for k in _module_keys(modules)]
            session.add(audit)
            session.flush()
            return audit.id

    def _get_audit(self, audit_id: str) -> AuditJob:
        with self.session_factory() as session:
            audit = self._load(session, audit_id)
            email = audit.customer.email if audit.customer else ""
            keys = _module_keys([m.module_key for m in sorted(audit.modules, key=lambda m: m.id) if m.enabled])
            return AuditJob(
                id=audit.id, url=audit.url, email=email, modules=keys,
                status=AuditStatus(audit.status), competitor_url=audit.competitor_url,
                has_raw_result=audit.raw_result_json is not None,
                has_report=audit.formatted_report_html is not None,
                email_sent_at=audit.email_sent_at,
            )

    async def get_audit(self, audit_id: str) -> AuditJob:
        return await asyncio.to_thread(self._get_audit, audit_id)

    async def set_status(self, audit_id, status, *, completed_at=None):
        def apply(session, audit):
            audit.status = AuditStatus(status).value
            if completed_at is not None:
                audit.completed_at = completed_at
        await asyncio.to_thread(self._write, audit_id, apply)

    async def save_module_results(self, audit_id, results):
        def apply(session, audit):
            rows = {m.module_key: m for m in audit.modules}
            for result in results:
                row = rows.get(result.module_key.value)
                if row is None:
                    row = AuditModule(module_key=result.module_key.value, enabled=True)
                    audit.modules.append(row)
                row.raw_score = result.score
                row.raw_issues_json = [i.to_json_dict() for i in result.issues]
        await asyncio.to_thread(self._write, audit_id, apply)

    async def save_raw_result(self, audit_id, raw):
        def apply(session, audit):
            audit.raw_result_json = raw
        await asyncio.to_thread(self._write, audit_id, apply)

    async def save_report(self, audit_id, html, plaintext):
        def apply(session, audit):
            audit.formatted_report_html = html
            audit.formatted_report_plaintext = plaintext
        await asyncio.to_thread(self._write, audit_id, apply)

    async def mark_email_sent(self, audit_id, sent_at):
        def apply(session, audit):
            audit.email_sent_at = sent_at
        await asyncio.to_thread(self._write, audit_id, apply)

    async def save_error(self, audit_id, error_log):
        def apply(session, audit):
            audit.error_log = error_log
            audit.status = AuditStatus.FAILED.value
        await asyncio.to_thread(self._write, audit_id, apply)
