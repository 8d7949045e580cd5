import uuid

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class TimestampMixin:
    """Mixin to add automatic created/updated timestamps"""
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class Customer(Base, TimestampMixin):
    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)

    audits = relationship("Audit", back_populates="customer")

    def __repr__(self):
        return f"<Customer(id={self.id}, email='{self.email}')>"


class Audit(Base, TimestampMixin):
    __tablename__ = "audits"

    id = Column(String(36), primary_key=True, default=_uuid)
    customer_id = Column(String(36), ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)
    url = Column(String(2048), nullable=False)
    competitor_url = Column(String(2048), nullable=True)
    status = Column(String(32), default="pending", nullable=False, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    raw_result_json = Column(JSON, nullable=True)
    formatted_report_html = Column(Text, nullable=True)
    formatted_report_plaintext = Column(Text, nullable=True)
    email_sent_at = Column(DateTime(timezone=True), nullable=True)
    error_log = Column(JSON, nullable=True)

    customer = relationship("Customer", back_populates="audits")
    modules = relationship("AuditModule", back_populates="audit", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Audit(id={self.id}, url='{self.url}', status='{self.status}')>"


class AuditModule(Base):
    __tablename__ = "audit_modules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    audit_id = Column(String(36), ForeignKey("audits.id", ondelete="CASCADE"), nullable=False, index=True)
    module_key = Column(String(64), nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)
    raw_score = Column(Integer, nullable=True)
    raw_issues_json = Column(JSON, nullable=True)

    audit = relationship("Audit", back_populates="modules")

    __table_args__ = (
        UniqueConstraint("audit_id", "module_key", name="uq_audit_module_key"),
    )

    def __repr__(self):
        return f"<AuditModule(audit_id={self.audit_id}, key='{self.module_key}', score={self.raw_score})>"
