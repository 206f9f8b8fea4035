"""
Individual policies.

Each factory returns a ``Policy``: a named async check over a
``PolicyContext`` that returns ``Allowed`` or ``Denied``. Policies never
raise for ordinary denials; only collaborator failures escape as
``PolicyInfrastructureError``.

- role_gate / cms_role: actor holds one of the allowed role tags
- is_owner: actor created the resource
- owner_or_editor: actor created the resource, or is editor/admin
- workflow_status: requested status is a legal transition (or initial status)
- implicit_transition: fixed-target transition of a workflow action
- can_publish: actor may publish/unpublish at all
"""

import logging
from typing import Iterable, Optional

from apps.articles.state_machine import (
    InvalidStatusError,
    WorkflowStatus,
    allowed_transitions,
    evaluate_initial_status,
    evaluate_transition,
    parse_status,
)

from .chain import Policy
from .decisions import Decision, ReasonCode, allow, deny
from .identity import PolicyContext
from .ownership import OwnershipResolver, ResourceLookupError, get_default_resolver
from .roles import (
    CMS_ROLES,
    Capability,
    has_capability,
    normalize_roles,
)

logger = logging.getLogger(__name__)


AUTHENTICATION_REQUIRED = 'Authentication required'
PUBLISH_FORBIDDEN = (
    'You do not have permission to publish content. '
    'Only Editors can publish or unpublish articles.'
)


def _unauthenticated(policy: str) -> Decision:
    return deny(policy, ReasonCode.UNAUTHENTICATED, AUTHENTICATION_REQUIRED)


def _is_anonymous(context: PolicyContext) -> bool:
    return context.principal is None or not context.principal.is_authenticated


def _lookup_denied(policy: str, exc: ResourceLookupError, context: PolicyContext) -> Decision:
    return deny(
        policy,
        exc.reason_code,
        exc.message,
        details={'resource': context.resource_ref} if context.resource_ref else None,
    )


def _resolver(resolver: Optional[OwnershipResolver]) -> OwnershipResolver:
    return resolver or get_default_resolver()


def _verdict_decision(policy: str, verdict) -> Decision:
    if verdict.allowed:
        return allow(policy, verdict.message)
    return deny(policy, verdict.reason_code, verdict.message, verdict.details)


# =============================================================================
# Role gates
# =============================================================================

def role_gate(allowed_roles: Iterable[str], name: str = 'role-gate') -> Policy:
    """
    Pass when the actor's role type or role name is one of ``allowed_roles``.

    Matching is case-insensitive and ignores surrounding whitespace. An
    empty ``allowed_roles`` is a configuration error and always denies.
    """
    allowed = normalize_roles(allowed_roles)
    required = ', '.join(sorted(allowed))

    async def check(context: PolicyContext) -> Decision:
        if _is_anonymous(context):
            return _unauthenticated(name)

        if not allowed:
            logger.error("Policy %s invoked without allowed roles", name)
            return deny(
                name,
                ReasonCode.MISCONFIGURED,
                'Policy misconfigured: no allowed roles configured',
            )

        principal = context.principal
        tags = set(principal.role_tags)
        if principal.role is not None:
            tags.add(principal.role.value)

        if not tags:
            return deny(
                name,
                ReasonCode.FORBIDDEN,
                f'No role assigned to user. Required roles: {required}',
                details={'required_roles': sorted(allowed), 'role': None},
            )

        if tags & allowed:
            return allow(name, f'Role {principal.role_label} permitted')

        return deny(
            name,
            ReasonCode.FORBIDDEN,
            f'Access denied. Required roles: {required}. Your role: {principal.role_label}',
            details={'required_roles': sorted(allowed), 'role': principal.role_label},
        )

    return Policy(name=name, check=check)


def cms_role() -> Policy:
    """Role gate for CMS (back-office) access."""
    return role_gate(CMS_ROLES, name='cms-role')


# =============================================================================
# Ownership
# =============================================================================

def is_owner(resolver: Optional[OwnershipResolver] = None, name: str = 'is-owner') -> Policy:
    """Pass only for the resource's creator. No role overrides ownership."""

    async def check(context: PolicyContext) -> Decision:
        if _is_anonymous(context):
            return _unauthenticated(name)
        return await _check_ownership(name, context, resolver)

    return Policy(name=name, check=check)


def owner_or_editor(
    resolver: Optional[OwnershipResolver] = None,
    name: str = 'is-owner-or-editor',
) -> Policy:
    """Pass for editors and admins, otherwise only for the resource's creator."""

    async def check(context: PolicyContext) -> Decision:
        if _is_anonymous(context):
            return _unauthenticated(name)

        if has_capability(context.principal.role, Capability.OVERRIDE_OWNERSHIP):
            return allow(name, f'Ownership override for {context.principal.role_label}')

        return await _check_ownership(name, context, resolver)

    return Policy(name=name, check=check)


async def _check_ownership(
    name: str,
    context: PolicyContext,
    resolver: Optional[OwnershipResolver],
) -> Decision:
    try:
        owner_id = await _resolver(resolver).resolve_owner(
            context.content_type, context.resource_id, cache=context.resources,
        )
    except ResourceLookupError as exc:
        return _lookup_denied(name, exc, context)

    if str(owner_id) == str(context.principal.id):
        return allow(name, 'Actor owns the resource')

    return deny(
        name,
        ReasonCode.FORBIDDEN,
        'You can only modify your own content',
        details={'resource': context.resource_ref},
    )


# =============================================================================
# Workflow
# =============================================================================

def workflow_status(
    resolver: Optional[OwnershipResolver] = None,
    name: str = 'workflow-status',
) -> Policy:
    """
    Check the status change carried by a create or update request.

    Creation (no resource id) uses the initial-status rule; updates look up
    the current status and consult the transition table.
    """

    async def check(context: PolicyContext) -> Decision:
        if _is_anonymous(context):
            return _unauthenticated(name)

        role = context.principal.role
        requested = context.requested_status

        if context.resource_id in (None, ''):
            return _verdict_decision(name, evaluate_initial_status(role, requested))

        # Validate and short-circuit before touching the store
        try:
            target = parse_status(requested)
        except InvalidStatusError:
            return _verdict_decision(name, evaluate_transition(role, None, requested))
        if target is None:
            return allow(name, 'No status change requested')

        try:
            snapshot = await _resolver(resolver).fetch(
                context.content_type, context.resource_id, cache=context.resources,
            )
        except ResourceLookupError as exc:
            return _lookup_denied(name, exc, context)

        return _verdict_decision(
            name, evaluate_transition(role, snapshot.workflow_status, target),
        )

    return Policy(name=name, check=check)


def implicit_transition(
    source: WorkflowStatus,
    target: WorkflowStatus,
    action: str,
    resolver: Optional[OwnershipResolver] = None,
) -> Policy:
    """
    Check a workflow action with a fixed transition, e.g. submit-for-review
    (draft -> review).

    The article must be in ``source``; the transition table then decides.
    Approve (review -> review) passes as an unchanged status.
    """
    name = f'workflow-{action}'

    async def check(context: PolicyContext) -> Decision:
        if _is_anonymous(context):
            return _unauthenticated(name)

        try:
            snapshot = await _resolver(resolver).fetch(
                context.content_type, context.resource_id, cache=context.resources,
            )
        except ResourceLookupError as exc:
            return _lookup_denied(name, exc, context)

        role = context.principal.role
        try:
            current = parse_status(snapshot.workflow_status) or WorkflowStatus.DRAFT
        except InvalidStatusError:
            return _verdict_decision(
                name, evaluate_transition(role, snapshot.workflow_status, target),
            )

        if current != source:
            permitted = allowed_transitions(role, current)
            return deny(
                name,
                ReasonCode.INVALID_TRANSITION,
                f'Cannot {action.replace("-", " ")}: article is "{current.value}", '
                f'expected "{source.value}"',
                details={
                    'current_status': current.value,
                    'requested_status': target.value,
                    'expected_status': source.value,
                    'role': role.value if role else None,
                    'allowed_statuses': sorted(s.value for s in permitted),
                },
            )

        return _verdict_decision(name, evaluate_transition(role, current, target))

    return Policy(name=name, check=check)


# =============================================================================
# Publishing
# =============================================================================

def can_publish(name: str = 'can-publish') -> Policy:
    """Only roles with the publish capability may publish or unpublish."""

    async def check(context: PolicyContext) -> Decision:
        if _is_anonymous(context):
            return _unauthenticated(name)

        role = context.principal.role
        if has_capability(role, Capability.PUBLISH):
            return allow(name, f'Role {role.value} may publish')

        return deny(
            name,
            ReasonCode.FORBIDDEN,
            PUBLISH_FORBIDDEN,
            details={'role': context.principal.role_label},
        )

    return Policy(name=name, check=check)
