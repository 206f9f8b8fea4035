"""
Article Editorial Workflow State Machine.

States:
    draft → review → published
      ↑       │          │
      └───────┴──────────┘

Transitions are permitted per role. The table enumerates, for each role and
current state, the exact set of states the role may move an article to:

    role       draft →              review →             published →
    reader     -                    -                    -
    reporter   review               -                    -
    reviewer   review               draft                -
    editor     review, published    draft, published     draft
    admin      (same as editor)

Creation has no current state, so it follows the initial-status rule
instead: reporters may only create drafts, editors and admins may create in
any state, everybody else may not create at all.

The evaluation functions are pure. ``WorkflowStateMachine`` applies an
already-authorized transition to a stored article in one atomic update.

Usage:
    verdict = evaluate_transition(Role.REPORTER, 'draft', 'review')
    if verdict.allowed:
        WorkflowStateMachine(article).transition_to('review', actor=user)
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

from django.db import transaction
from django.utils import timezone

from apps.policies.decisions import ReasonCode
from apps.policies.roles import Capability, Role, capabilities_of

logger = logging.getLogger(__name__)


class InvalidStatusError(ValueError):
    """Raised when a value is not one of the workflow states."""


class WorkflowStatus(str, Enum):
    """Editorial states of an article."""
    DRAFT = 'draft'
    REVIEW = 'review'
    PUBLISHED = 'published'

    @classmethod
    def from_string(cls, value: Any) -> 'WorkflowStatus':
        """Convert string to WorkflowStatus."""
        if isinstance(value, cls):
            return value
        for state in cls:
            if state.value == value:
                return state
        raise InvalidStatusError(
            f'Invalid status value: "{value}". Valid values are: {", ".join(VALID_STATUSES)}'
        )

    @classmethod
    def choices(cls):
        return [(state.value, state.value.title()) for state in cls]


VALID_STATUSES = tuple(state.value for state in WorkflowStatus)

_D = WorkflowStatus.DRAFT
_R = WorkflowStatus.REVIEW
_P = WorkflowStatus.PUBLISHED

_NO_TRANSITIONS: Mapping[WorkflowStatus, FrozenSet[WorkflowStatus]] = MappingProxyType({
    _D: frozenset(),
    _R: frozenset(),
    _P: frozenset(),
})

_EDITOR_TRANSITIONS: Mapping[WorkflowStatus, FrozenSet[WorkflowStatus]] = MappingProxyType({
    _D: frozenset({_R, _P}),
    _R: frozenset({_D, _P}),
    _P: frozenset({_D}),
})

VALID_TRANSITIONS: Mapping[Role, Mapping[WorkflowStatus, FrozenSet[WorkflowStatus]]] = MappingProxyType({
    Role.READER: _NO_TRANSITIONS,
    Role.REPORTER: MappingProxyType({
        _D: frozenset({_R}),
        _R: frozenset(),
        _P: frozenset(),
    }),
    Role.REVIEWER: MappingProxyType({
        _D: frozenset({_R}),
        _R: frozenset({_D}),
        _P: frozenset(),
    }),
    Role.EDITOR: _EDITOR_TRANSITIONS,
    Role.ADMIN: _EDITOR_TRANSITIONS,
})

# Role-specific explanations for the most common dead ends
TRANSITION_ERROR_MESSAGES: Mapping[tuple, str] = MappingProxyType({
    (Role.REPORTER, _R): (
        'Reporters cannot modify articles that are in review. '
        'Please wait for a Reviewer or Editor to process your submission.'
    ),
    (Role.REPORTER, _P): (
        'Reporters cannot modify published articles. '
        'Please contact an Editor if changes are needed.'
    ),
    (Role.REVIEWER, _P): (
        'Reviewers cannot unpublish articles. Only Editors can unpublish content.'
    ),
})

READER_TRANSITION_MESSAGE = 'Readers do not have permission to change article status.'


@dataclass(frozen=True)
class TransitionVerdict:
    """Outcome of evaluating one requested status change."""
    allowed: bool
    requested: Optional[WorkflowStatus] = None
    current: Optional[WorkflowStatus] = None
    allowed_statuses: FrozenSet[WorkflowStatus] = frozenset()
    reason_code: Optional[ReasonCode] = None
    message: str = ''
    details: Dict[str, Any] = field(default_factory=dict)


def _format_statuses(statuses) -> str:
    names = sorted(s.value for s in statuses)
    return ', '.join(names) if names else 'none'


def _sorted_values(statuses) -> List[str]:
    return sorted(s.value for s in statuses)


def parse_status(value: Any) -> Optional[WorkflowStatus]:
    """
    Parse a requested status.

    None and '' mean "no status requested".

    Raises:
        InvalidStatusError: value is not a workflow state
    """
    if value is None or value == '':
        return None
    return WorkflowStatus.from_string(value)


def transitions_for(role: Optional[Role]) -> Mapping[WorkflowStatus, FrozenSet[WorkflowStatus]]:
    """Transition row for a role. Unknown or missing roles get the reader row."""
    if role is None:
        return VALID_TRANSITIONS[Role.READER]
    return VALID_TRANSITIONS.get(role, VALID_TRANSITIONS[Role.READER])


def allowed_transitions(role: Optional[Role], current: WorkflowStatus) -> FrozenSet[WorkflowStatus]:
    """States ``role`` may move an article in ``current`` to."""
    return transitions_for(role).get(current, frozenset())


def transition_allowed(role: Optional[Role], current: Any, requested: Any) -> bool:
    """Boolean shorthand for ``evaluate_transition``."""
    return evaluate_transition(role, current, requested).allowed


def _invalid_status(value: Any) -> TransitionVerdict:
    return TransitionVerdict(
        allowed=False,
        reason_code=ReasonCode.INVALID_STATUS_VALUE,
        message=f'Invalid status value: "{value}". Valid values are: {", ".join(VALID_STATUSES)}',
        details={'requested_status': str(value), 'valid_statuses': list(VALID_STATUSES)},
    )


def evaluate_transition(role: Optional[Role], current: Any, requested: Any) -> TransitionVerdict:
    """
    Decide whether ``role`` may move an existing article from ``current``
    to ``requested``.

    - No requested status, or requested == current: allowed (no-op edit)
    - Requested value outside the three states: INVALID_STATUS_VALUE
    - Missing current status counts as draft
    - Otherwise requested must be in the role's row: INVALID_TRANSITION
    """
    try:
        target = parse_status(requested)
    except InvalidStatusError:
        return _invalid_status(requested)

    if target is None:
        return TransitionVerdict(allowed=True, message='No status change requested')

    try:
        source = parse_status(current) or WorkflowStatus.DRAFT
    except InvalidStatusError:
        return TransitionVerdict(
            allowed=False,
            requested=target,
            reason_code=ReasonCode.INTEGRITY_ERROR,
            message=f'Article has an unrecognized workflow status "{current}"',
            details={'current_status': str(current), 'requested_status': target.value},
        )

    if source == target:
        return TransitionVerdict(
            allowed=True,
            requested=target,
            current=source,
            message=f'Status unchanged ({source.value})',
        )

    permitted = allowed_transitions(role, source)
    details = {
        'current_status': source.value,
        'requested_status': target.value,
        'role': role.value if role else None,
        'allowed_statuses': _sorted_values(permitted),
    }

    if target in permitted:
        return TransitionVerdict(
            allowed=True,
            requested=target,
            current=source,
            allowed_statuses=permitted,
            message=f'{source.value} -> {target.value}',
            details=details,
        )

    if role is None or role == Role.READER:
        explanation = READER_TRANSITION_MESSAGE
    else:
        explanation = TRANSITION_ERROR_MESSAGES.get((role, source))

    if explanation is None:
        explanation = (
            f'Invalid status transition: "{source.value}" -> "{target.value}" '
            f'is not allowed for {role.value} role.'
        )
    else:
        explanation = f'{explanation} Requested transition: "{source.value}" -> "{target.value}".'

    return TransitionVerdict(
        allowed=False,
        requested=target,
        current=source,
        allowed_statuses=permitted,
        reason_code=ReasonCode.INVALID_TRANSITION,
        message=(
            f'{explanation} Allowed transitions from "{source.value}": '
            f'{_format_statuses(permitted)}'
        ),
        details=details,
    )


def evaluate_initial_status(role: Optional[Role], requested: Any) -> TransitionVerdict:
    """
    Decide whether ``role`` may create an article in ``requested`` state.

    The requested status defaults to draft.
    """
    try:
        target = parse_status(requested) or WorkflowStatus.DRAFT
    except InvalidStatusError:
        return _invalid_status(requested)

    caps = capabilities_of(role)
    details = {'requested_status': target.value, 'role': role.value if role else None}

    if Capability.CREATE_ARTICLE not in caps:
        if role == Role.REVIEWER:
            message = 'Reviewers cannot create articles. Only Reporters and Editors can create content.'
        elif role == Role.READER:
            message = 'Readers cannot create articles.'
        else:
            message = 'An authoring role is required to create articles.'
        return TransitionVerdict(
            allowed=False,
            requested=target,
            reason_code=ReasonCode.FORBIDDEN,
            message=message,
            details={**details, 'allowed_statuses': []},
        )

    if Capability.CREATE_ANY_STATUS in caps:
        permitted = frozenset(WorkflowStatus)
    else:
        permitted = frozenset({WorkflowStatus.DRAFT})
    details['allowed_statuses'] = _sorted_values(permitted)

    if target not in permitted:
        return TransitionVerdict(
            allowed=False,
            requested=target,
            allowed_statuses=permitted,
            reason_code=ReasonCode.INVALID_TRANSITION,
            message=(
                'Reporters can only create articles in draft status. '
                'Submit for review after creation. '
                f'Allowed initial statuses: {_format_statuses(permitted)}'
            ),
            details=details,
        )

    return TransitionVerdict(
        allowed=True,
        requested=target,
        allowed_statuses=permitted,
        message=f'New article with status "{target.value}"',
        details=details,
    )


def transition_fields(
    article,
    target: WorkflowStatus,
    now,
    actor=None,
    review_notes: Optional[str] = None,
    reviewed: bool = False,
) -> Dict[str, Any]:
    """
    Field changes for moving ``article`` to ``target``.

    Keeps ``published_at`` in step with the published state: entering it
    stamps the time, leaving it clears it.
    """
    current = parse_status(article.workflow_status) or WorkflowStatus.DRAFT
    changes: Dict[str, Any] = {
        'workflow_status': target.value,
        'updated_at': now,
    }

    if target == WorkflowStatus.PUBLISHED:
        if current != WorkflowStatus.PUBLISHED or article.published_at is None:
            changes['published_at'] = now
    else:
        changes['published_at'] = None

    if target == WorkflowStatus.REVIEW and current != WorkflowStatus.REVIEW:
        changes['submitted_for_review_at'] = now

    if reviewed:
        changes['reviewed_at'] = now
        changes['reviewed_by'] = actor
        changes['review_notes'] = review_notes or ''

    return changes


class WorkflowStateMachine:
    """
    Applies authorized workflow transitions to a stored article.

    Every change is written as a single UPDATE inside a transaction, on a row
    locked with SELECT ... FOR UPDATE, so no reader sees a half-applied
    transition.
    """

    def __init__(self, article):
        self.article = article

    @property
    def current_state(self) -> WorkflowStatus:
        return parse_status(self.article.workflow_status) or WorkflowStatus.DRAFT

    def can_transition_to(self, role: Optional[Role], target: Any) -> bool:
        return transition_allowed(role, self.current_state, target)

    def get_valid_transitions(self, role: Optional[Role]) -> FrozenSet[WorkflowStatus]:
        return allowed_transitions(role, self.current_state)

    def transition_to(
        self,
        target: Any,
        actor=None,
        review_notes: Optional[str] = None,
        reviewed: bool = False,
    ):
        """
        Move the article to ``target``.

        Authorization is the policy chain's job; this only persists.

        Args:
            target: Target state (WorkflowStatus or string)
            actor: User performing the change (recorded as reviewer when reviewed=True)
            review_notes: Notes stored with a review decision
            reviewed: Also stamp reviewed_at/reviewed_by/review_notes

        Returns:
            The updated article instance
        """
        target = WorkflowStatus.from_string(target)
        return self._apply(
            lambda locked, now: transition_fields(
                locked, target, now, actor=actor, review_notes=review_notes, reviewed=reviewed,
            )
        )

    def record_review(self, actor, review_notes: Optional[str] = None):
        """Stamp review metadata without changing the workflow status."""
        return self._apply(
            lambda locked, now: {
                'reviewed_at': now,
                'reviewed_by': actor,
                'review_notes': review_notes or '',
                'updated_at': now,
            }
        )

    def _apply(self, build_changes):
        model = type(self.article)
        with transaction.atomic():
            locked = model._default_manager.select_for_update().get(pk=self.article.pk)
            before = parse_status(locked.workflow_status) or WorkflowStatus.DRAFT
            changes = build_changes(locked, timezone.now())
            model._default_manager.filter(pk=locked.pk).update(**changes)

        for name, value in changes.items():
            setattr(self.article, name, value)

        after = self.current_state
        if before != after:
            from apps.core.metrics import increment_workflow_transition
            increment_workflow_transition(before.value, after.value)
            logger.info(
                "Article %s transitioned: %s → %s", self.article.pk, before.value, after.value
            )
        return self.article
