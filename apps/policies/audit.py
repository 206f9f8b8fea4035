"""
Audit/Decision Reporter.

Every individual policy decision becomes an ``AuditEvent`` handed to each
configured sink. Sinks are listed by dotted path in
``settings.POLICY_AUDIT_SINKS``:

    POLICY_AUDIT_SINKS = [
        'apps.policies.audit.LoggingAuditSink',
        'apps.policies.audit.MetricsAuditSink',
        'apps.policies.audit.DatabaseAuditSink',
    ]

A failing sink is logged and skipped; it never changes the decision.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from asgiref.sync import sync_to_async
from django.conf import settings
from django.utils.module_loading import import_string

from apps.core.metrics import increment_policy_decision
from apps.core.middleware import celery_request_id_headers
from apps.core.observability import LogContext, get_logger

from .decisions import Decision
from .identity import PolicyContext

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_SINKS = (
    'apps.policies.audit.LoggingAuditSink',
    'apps.policies.audit.MetricsAuditSink',
)


@dataclass(frozen=True)
class AuditEvent:
    """One policy decision, flattened for logs and storage."""
    chain: str
    policy: str
    outcome: str
    operation: str
    credential_kind: str
    principal_id: Optional[str] = None
    role: Optional[str] = None
    resource: Optional[str] = None
    reason_code: Optional[str] = None
    message: str = ''
    details: Dict[str, Any] = field(default_factory=dict)
    request_id: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def allowed(self) -> bool:
        return self.outcome != 'deny'

    @classmethod
    def from_decision(cls, chain: str, context: PolicyContext, decision: Decision) -> 'AuditEvent':
        principal = context.principal
        return cls(
            chain=chain,
            policy=decision.policy,
            outcome=decision.outcome,
            operation=context.operation,
            credential_kind=context.credential_kind.value,
            principal_id=str(principal.id) if principal and principal.id is not None else None,
            role=principal.role_label if principal else None,
            resource=context.resource_ref,
            reason_code=decision.reason_code.value if decision.reason_code else None,
            message=decision.message,
            details=dict(getattr(decision, 'details', None) or {}),
            request_id=context.request_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# Sinks
# =============================================================================

class AuditSink:
    """
    Base sink.

    ``blocking`` sinks touch the database or the broker and are run in a
    worker thread when reported from async code.
    """
    blocking = False

    def emit(self, event: AuditEvent) -> None:
        raise NotImplementedError


class LoggingAuditSink(AuditSink):
    """Writes "[AUDIT]" JSON lines; denials at WARNING, the rest at INFO."""

    def __init__(self):
        self._logger = get_logger('newsdesk.audit', prefix='[AUDIT]')

    def emit(self, event: AuditEvent) -> None:
        ctx = LogContext(
            component='policies',
            operation=event.operation,
            request_id=event.request_id,
            user_id=event.principal_id,
            resource=event.resource,
        )
        fields = {
            'chain': event.chain,
            'policy': event.policy,
            'outcome': event.outcome,
            'role': event.role,
            'credential_kind': event.credential_kind,
        }
        if event.reason_code:
            fields['reason_code'] = event.reason_code

        if event.allowed:
            self._logger.info(event.message or 'Policy passed', ctx, **fields)
        else:
            self._logger.warning(event.message, ctx, **fields)


class MetricsAuditSink(AuditSink):
    """Counts decisions in Prometheus."""

    def emit(self, event: AuditEvent) -> None:
        increment_policy_decision(event.policy, event.outcome, event.reason_code)


class DatabaseAuditSink(AuditSink):
    """
    Persists decisions through the ``record_policy_decision`` Celery task.

    Denials are always stored; allows only when
    ``POLICY_AUDIT_PERSIST_ALLOWED`` is true.
    """
    blocking = True

    def __init__(self, persist_allowed: Optional[bool] = None):
        if persist_allowed is None:
            persist_allowed = getattr(settings, 'POLICY_AUDIT_PERSIST_ALLOWED', False)
        self.persist_allowed = persist_allowed

    def emit(self, event: AuditEvent) -> None:
        if event.allowed and not self.persist_allowed:
            return
        from .tasks import record_policy_decision
        record_policy_decision.apply_async(
            args=[event.to_dict()],
            headers=celery_request_id_headers(),
        )


# =============================================================================
# Reporter
# =============================================================================

class AuditReporter:
    """Fans audit events out to sinks."""

    def __init__(self, sinks: Sequence[AuditSink]):
        self.sinks: List[AuditSink] = list(sinks)

    async def report(self, event: AuditEvent) -> None:
        for sink in self.sinks:
            try:
                if sink.blocking:
                    await sync_to_async(sink.emit, thread_sensitive=True)(event)
                else:
                    sink.emit(event)
            except Exception:
                logger.exception(
                    "Audit sink %s failed for %s/%s", type(sink).__name__, event.chain, event.policy
                )

    def report_sync(self, event: AuditEvent) -> None:
        for sink in self.sinks:
            try:
                sink.emit(event)
            except Exception:
                logger.exception(
                    "Audit sink %s failed for %s/%s", type(sink).__name__, event.chain, event.policy
                )


def build_sinks(paths: Sequence[str]) -> List[AuditSink]:
    """Instantiate sinks from dotted paths."""
    return [import_string(path)() for path in paths]


_audit_reporter: Optional[AuditReporter] = None


def get_audit_reporter() -> AuditReporter:
    """Get the process-wide reporter built from settings."""
    global _audit_reporter
    if _audit_reporter is None:
        paths = getattr(settings, 'POLICY_AUDIT_SINKS', DEFAULT_AUDIT_SINKS)
        _audit_reporter = AuditReporter(build_sinks(paths))
    return _audit_reporter


def reset_audit_reporter() -> None:
    """Forget the cached reporter (settings changed, or between tests)."""
    global _audit_reporter
    _audit_reporter = None
