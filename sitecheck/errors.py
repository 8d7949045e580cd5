from typing import Optional


class AuditError(Exception):
    """Base class for every error raised by the audit pipeline."""


class FetchError(AuditError):
    """The subject site could not be fetched (network, timeout, non-2xx)."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ModuleError(AuditError):
    """A single check module failed. Never fatal to the run."""

    def __init__(self, module_key: str, cause: BaseException):
        super().__init__(f"Module {module_key} failed: {cause!r}")
        self.module_key = module_key
        self.cause = cause


class SynthesisError(AuditError):
    """Narrative generation timed out, was unparsable, or came back incomplete."""


class TransportError(AuditError):
    """One email transport failed to send a message."""

    def __init__(self, transport: str, message: str):
        super().__init__(f"{transport}: {message}")
        self.transport = transport


class DeliveryError(AuditError):
    """No transport managed to deliver the message."""

    def __init__(self, primary: TransportError, secondary: Optional[TransportError] = None):
        if secondary is None:
            message = f"Email delivery failed ({primary}); fallback disabled"
        else:
            message = f"Email delivery failed: primary ({primary}); fallback ({secondary})"
        super().__init__(message)
        self.primary = primary
        self.secondary = secondary


class AuditNotFoundError(AuditError):
    def __init__(self, audit_id: str):
        super().__init__(f"Audit {audit_id} not found")
        self.audit_id = audit_id


class InvalidTransitionError(AuditError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move audit from {current} to {target}")
        self.current = current
        self.target = target
