"""
Policy decision audit trail.
"""

from django.db import models
from django.utils import timezone

from apps.core.models import BaseModel


class PolicyDecisionLog(BaseModel):
    """
    One stored policy decision.

    Written by the ``record_policy_decision`` task; rows are never updated.
    """

    OUTCOME_CHOICES = [
        ('allow', 'Allow'),
        ('bypass', 'Bypass'),
        ('deny', 'Deny'),
    ]

    chain = models.CharField(
        max_length=100,
        db_index=True,
        verbose_name='Chain',
        help_text='Operation whose chain produced the decision'
    )

    policy = models.CharField(
        max_length=100,
        verbose_name='Policy'
    )

    outcome = models.CharField(
        max_length=10,
        choices=OUTCOME_CHOICES,
        db_index=True,
        verbose_name='Outcome'
    )

    reason_code = models.CharField(
        max_length=40,
        blank=True,
        default='',
        db_index=True,
        verbose_name='Reason Code'
    )

    message = models.TextField(
        blank=True,
        default='',
        verbose_name='Message'
    )

    details = models.JSONField(
        default=dict,
        blank=True,
        verbose_name='Details'
    )

    # Actor
    principal_id = models.CharField(
        max_length=100,
        blank=True,
        default='',
        db_index=True,
        verbose_name='Principal'
    )

    role = models.CharField(
        max_length=50,
        blank=True,
        default='',
        verbose_name='Role'
    )

    credential_kind = models.CharField(
        max_length=20,
        verbose_name='Credential Kind'
    )

    # Target
    operation = models.CharField(
        max_length=100,
        verbose_name='Operation'
    )

    resource = models.CharField(
        max_length=255,
        blank=True,
        default='',
        db_index=True,
        verbose_name='Resource'
    )

    request_id = models.CharField(
        max_length=64,
        blank=True,
        default='',
        verbose_name='Request ID'
    )

    decided_at = models.DateTimeField(
        default=timezone.now,
        db_index=True,
        verbose_name='Decided At'
    )

    class Meta:
        db_table = 'policy_decision_logs'
        ordering = ['-decided_at']
        verbose_name = 'Policy Decision'
        verbose_name_plural = 'Policy Decisions'
        indexes = [
            models.Index(fields=['outcome', '-decided_at']),
        ]

    def __str__(self):
        return f"{self.chain}/{self.policy}: {self.outcome}"
