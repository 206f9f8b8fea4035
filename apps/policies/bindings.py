"""
Operation → policy chain bindings.

    operation                 chain
    articles.create           role-gate(authoring) → workflow-status (initial rule)
    articles.update           role-gate(authoring) → is-owner-or-editor → workflow-status
    articles.delete           role-gate(editor, admin) → is-owner-or-editor
    articles.submit_for_review role-gate(reporter, editor, admin) → is-owner-or-editor
                              → workflow-submit-for-review (draft → review)
    articles.approve          role-gate(reviewer, editor, admin) → workflow-approve (review → review)
    articles.reject           role-gate(reviewer, editor, admin) → workflow-reject (review → draft)
    articles.publish          can-publish
    articles.unpublish        can-publish
    articles.my               role-gate(authoring)
    articles.review_queue     role-gate(reviewer, editor, admin)
    articles.admin            cms-role
    tags.write                cms-role

Public reads are not bound to a chain.
"""

from enum import Enum
from typing import Dict, Optional

from apps.articles.state_machine import WorkflowStatus

from .audit import AuditReporter
from .chain import PolicyChain
from .checks import (
    can_publish,
    cms_role,
    implicit_transition,
    owner_or_editor,
    role_gate,
    workflow_status,
)
from .ownership import OwnershipResolver
from .roles import AUTHORING_ROLES, DELETE_ROLES, REVIEW_ROLES, SUBMIT_ROLES


class Operation(str, Enum):
    """Operations gated by a policy chain."""
    CREATE = 'articles.create'
    UPDATE = 'articles.update'
    DELETE = 'articles.delete'
    SUBMIT_FOR_REVIEW = 'articles.submit_for_review'
    APPROVE = 'articles.approve'
    REJECT = 'articles.reject'
    PUBLISH = 'articles.publish'
    UNPUBLISH = 'articles.unpublish'
    MY_ARTICLES = 'articles.my'
    REVIEW_QUEUE = 'articles.review_queue'
    ADMIN_READ = 'articles.admin'
    TAG_WRITE = 'tags.write'


def build_chains(
    resolver: Optional[OwnershipResolver] = None,
    reporter: Optional[AuditReporter] = None,
) -> Dict[Operation, PolicyChain]:
    """
    Build every operation's chain.

    Args:
        resolver: Ownership resolver shared by ownership and workflow checks
            (defaults to the Django-backed resolver)
        reporter: Audit reporter (defaults to the configured one)
    """
    D, R = WorkflowStatus.DRAFT, WorkflowStatus.REVIEW

    definitions = {
        Operation.CREATE: [
            role_gate(AUTHORING_ROLES),
            workflow_status(resolver),
        ],
        Operation.UPDATE: [
            role_gate(AUTHORING_ROLES),
            owner_or_editor(resolver),
            workflow_status(resolver),
        ],
        Operation.DELETE: [
            role_gate(DELETE_ROLES),
            owner_or_editor(resolver),
        ],
        Operation.SUBMIT_FOR_REVIEW: [
            role_gate(SUBMIT_ROLES),
            owner_or_editor(resolver),
            implicit_transition(D, R, 'submit-for-review', resolver),
        ],
        Operation.APPROVE: [
            role_gate(REVIEW_ROLES),
            implicit_transition(R, R, 'approve', resolver),
        ],
        Operation.REJECT: [
            role_gate(REVIEW_ROLES),
            implicit_transition(R, D, 'reject', resolver),
        ],
        Operation.PUBLISH: [can_publish()],
        Operation.UNPUBLISH: [can_publish()],
        Operation.MY_ARTICLES: [role_gate(AUTHORING_ROLES)],
        Operation.REVIEW_QUEUE: [role_gate(REVIEW_ROLES)],
        Operation.ADMIN_READ: [cms_role()],
        Operation.TAG_WRITE: [cms_role()],
    }

    return {
        operation: PolicyChain(operation.value, policies, reporter=reporter)
        for operation, policies in definitions.items()
    }


_chains: Optional[Dict[Operation, PolicyChain]] = None


def get_chain(operation) -> PolicyChain:
    """Get the process-wide chain for ``operation`` (Operation or its value)."""
    global _chains
    if _chains is None:
        _chains = build_chains()
    return _chains[Operation(operation)]
