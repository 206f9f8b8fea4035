"""
Celery tasks for the policy audit trail.
"""

import logging
from typing import Any, Dict

from celery import shared_task
from django.utils.dateparse import parse_datetime

from .models import PolicyDecisionLog

logger = logging.getLogger(__name__)


@shared_task(bind=True, ignore_result=True, max_retries=3)
def record_policy_decision(self, event: Dict[str, Any]):
    """
    Store one audit event (the dict form of ``AuditEvent``).
    """
    try:
        decided_at = parse_datetime(event.get('timestamp') or '')
        log = PolicyDecisionLog(
            chain=event['chain'],
            policy=event['policy'],
            outcome=event['outcome'],
            reason_code=event.get('reason_code') or '',
            message=event.get('message') or '',
            details=event.get('details') or {},
            principal_id=event.get('principal_id') or '',
            role=event.get('role') or '',
            credential_kind=event['credential_kind'],
            operation=event['operation'],
            resource=event.get('resource') or '',
            request_id=event.get('request_id') or '',
        )
        if decided_at is not None:
            log.decided_at = decided_at
        log.save()
        return str(log.id)
    except KeyError as exc:
        logger.error("Malformed audit event, missing %s: %r", exc, event)
        return None
    except Exception as exc:
        logger.error("Failed to record policy decision %s/%s: %s",
                     event.get('chain'), event.get('policy'), exc)
        raise self.retry(exc=exc, countdown=30 * (self.request.retries + 1))
