"""
Policy Chain Engine.

A chain evaluates its policies in order and stops at the first denial.
Every policy in a chain is wrapped with ``with_bypass`` when the chain is
built, so each one independently allows trusted service credentials no
matter how policies are combined per route.

Usage:
    chain = PolicyChain('articles.update', [
        role_gate(AUTHORING_ROLES),
        owner_or_editor(),
        workflow_status(),
    ])
    decision = await chain.evaluate(context)
    if not decision.allowed:
        raise PolicyDeniedError(decision)
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Optional, Tuple

from asgiref.sync import async_to_sync

from apps.core.metrics import observe_chain_duration

from .audit import AuditEvent, AuditReporter, get_audit_reporter
from .decisions import Allowed, Decision
from .identity import PolicyContext, is_trusted_credential
from .ownership import ResourceCache

logger = logging.getLogger(__name__)


CheckFunction = Callable[[PolicyContext], Awaitable[Decision]]


@dataclass(frozen=True)
class Policy:
    """A named asynchronous check."""
    name: str
    check: CheckFunction
    honors_bypass: bool = False

    async def __call__(self, context: PolicyContext) -> Decision:
        return await self.check(context)


def with_bypass(policy: Policy) -> Policy:
    """
    Wrap ``policy`` so trusted service credentials pass it without
    evaluation. Wrapping twice is a no-op.
    """
    if policy.honors_bypass:
        return policy

    async def check(context: PolicyContext) -> Decision:
        if is_trusted_credential(context):
            return Allowed(
                policy=policy.name,
                message='Trusted service credential',
                bypassed=True,
            )
        return await policy(context)

    return Policy(name=policy.name, check=check, honors_bypass=True)


class PolicyChain:
    """
    Ordered, short-circuiting list of policies for one operation.

    Args:
        name: Operation name, used in logs, metrics and audit events
        policies: Policies in evaluation order
        reporter: Audit reporter (defaults to the configured one)
    """

    def __init__(
        self,
        name: str,
        policies: Iterable[Policy],
        reporter: Optional[AuditReporter] = None,
    ):
        self.name = name
        self.policies: Tuple[Policy, ...] = tuple(with_bypass(p) for p in policies)
        if not self.policies:
            raise ValueError(f"Policy chain '{name}' has no policies")
        self._reporter = reporter

    def __repr__(self):
        return f"PolicyChain({self.name!r}, [{', '.join(self.policy_names)}])"

    @property
    def policy_names(self) -> Tuple[str, ...]:
        return tuple(p.name for p in self.policies)

    @property
    def reporter(self) -> AuditReporter:
        return self._reporter or get_audit_reporter()

    async def evaluate(self, context: PolicyContext) -> Decision:
        """
        Run the chain.

        Returns:
            The first ``Denied``, or an aggregate ``Allowed``

        Raises:
            PolicyInfrastructureError: a collaborator failed; no decision was reached
        """
        if context.resources is None:
            context.resources = ResourceCache()

        bypassed = True
        with observe_chain_duration(self.name):
            for policy in self.policies:
                decision = await policy(context)
                await self.reporter.report(AuditEvent.from_decision(self.name, context, decision))

                if not decision.allowed:
                    logger.info(
                        "Policy chain %s denied by %s: %s (%s)",
                        self.name, decision.policy, decision.reason_code.value, decision.message,
                    )
                    return decision
                bypassed = bypassed and decision.bypassed

        return Allowed(
            policy=self.name,
            message='Bypassed for trusted service credential' if bypassed else 'All policies passed',
            bypassed=bypassed,
        )

    def evaluate_sync(self, context: PolicyContext) -> Decision:
        """Run the chain from synchronous code (DRF views, admin actions)."""
        return async_to_sync(self.evaluate)(context)
