"""
Tests for the workflow transition table and its evaluation functions.

Covers:
- Table shape and immutability
- Per-role transitions, including the admin/editor parity
- Error messages and reason codes
- Initial-status rule for creation
"""

import itertools

import pytest

from apps.articles.state_machine import (
    READER_TRANSITION_MESSAGE,
    VALID_STATUSES,
    VALID_TRANSITIONS,
    InvalidStatusError,
    WorkflowStatus,
    allowed_transitions,
    evaluate_initial_status,
    evaluate_transition,
    parse_status,
    transition_allowed,
)
from apps.policies.decisions import ReasonCode
from apps.policies.roles import Role

D, R, P = WorkflowStatus.DRAFT, WorkflowStatus.REVIEW, WorkflowStatus.PUBLISHED


class TestTable:

    def test_every_role_has_a_row_for_every_state(self):
        for role in Role:
            assert set(VALID_TRANSITIONS[role]) == set(WorkflowStatus)

    def test_table_is_immutable(self):
        with pytest.raises(TypeError):
            VALID_TRANSITIONS[Role.READER] = {}
        with pytest.raises(TypeError):
            VALID_TRANSITIONS[Role.REPORTER][D] = frozenset({P})

    def test_no_self_transitions_listed(self):
        for role in Role:
            for state, targets in VALID_TRANSITIONS[role].items():
                assert state not in targets

    def test_admin_matches_editor(self):
        for state in WorkflowStatus:
            assert allowed_transitions(Role.ADMIN, state) == allowed_transitions(Role.EDITOR, state)

    @pytest.mark.parametrize('role,current,expected', [
        (Role.READER, D, set()),
        (Role.REPORTER, D, {R}),
        (Role.REPORTER, R, set()),
        (Role.REPORTER, P, set()),
        (Role.REVIEWER, D, {R}),
        (Role.REVIEWER, R, {D}),
        (Role.REVIEWER, P, set()),
        (Role.EDITOR, D, {R, P}),
        (Role.EDITOR, R, {D, P}),
        (Role.EDITOR, P, {D}),
    ])
    def test_rows(self, role, current, expected):
        assert allowed_transitions(role, current) == expected

    def test_missing_role_uses_reader_row(self):
        for state in WorkflowStatus:
            assert allowed_transitions(None, state) == frozenset()

    def test_statuses(self):
        assert VALID_STATUSES == ('draft', 'review', 'published')


class TestParseStatus:

    @pytest.mark.parametrize('value', [None, ''])
    def test_empty_means_no_request(self, value):
        assert parse_status(value) is None

    def test_enum_passes_through(self):
        assert parse_status(P) is P

    @pytest.mark.parametrize('value', ['archived', 'Draft', 'PUBLISHED', 3])
    def test_invalid(self, value):
        with pytest.raises(InvalidStatusError):
            parse_status(value)


class TestEvaluateTransition:

    def test_table_agrees_with_evaluation(self):
        for role, current, target in itertools.product(Role, WorkflowStatus, WorkflowStatus):
            expected = current == target or target in allowed_transitions(role, current)
            assert transition_allowed(role, current.value, target.value) is expected

    def test_no_request_is_allowed(self):
        assert evaluate_transition(Role.READER, 'published', None).allowed

    def test_missing_current_counts_as_draft(self):
        assert evaluate_transition(Role.REPORTER, None, 'review').allowed

    def test_invalid_requested_value(self):
        verdict = evaluate_transition(Role.EDITOR, 'draft', 'archived')
        assert verdict.reason_code == ReasonCode.INVALID_STATUS_VALUE
        assert verdict.message == (
            'Invalid status value: "archived". Valid values are: draft, review, published'
        )

    def test_invalid_stored_value(self):
        verdict = evaluate_transition(Role.EDITOR, 'archived', 'draft')
        assert verdict.reason_code == ReasonCode.INTEGRITY_ERROR

    def test_reader_message(self):
        verdict = evaluate_transition(Role.READER, 'draft', 'review')
        assert verdict.reason_code == ReasonCode.INVALID_TRANSITION
        assert verdict.message == (
            f'{READER_TRANSITION_MESSAGE} Requested transition: "draft" -> "review". '
            'Allowed transitions from "draft": none'
        )

    def test_reporter_published_message(self):
        verdict = evaluate_transition(Role.REPORTER, 'published', 'draft')
        assert verdict.message.startswith('Reporters cannot modify published articles.')

    def test_role_specific_message_names_all_states(self):
        verdict = evaluate_transition(Role.REPORTER, 'review', 'published')
        assert verdict.message == (
            'Reporters cannot modify articles that are in review. '
            'Please wait for a Reviewer or Editor to process your submission. '
            'Requested transition: "review" -> "published". '
            'Allowed transitions from "review": none'
        )

    def test_generic_message_lists_allowed(self):
        verdict = evaluate_transition(Role.REPORTER, 'draft', 'published')
        assert verdict.message == (
            'Invalid status transition: "draft" -> "published" is not allowed for reporter role. '
            'Allowed transitions from "draft": review'
        )
        assert verdict.details == {
            'current_status': 'draft',
            'requested_status': 'published',
            'role': 'reporter',
            'allowed_statuses': ['review'],
        }

    def test_editor_unpublishes(self):
        verdict = evaluate_transition(Role.EDITOR, 'published', 'draft')
        assert verdict.allowed
        assert verdict.current is P and verdict.requested is D


class TestInitialStatus:

    @pytest.mark.parametrize('role,requested,allowed', [
        (Role.REPORTER, None, True),
        (Role.REPORTER, 'draft', True),
        (Role.REPORTER, 'review', False),
        (Role.REPORTER, 'published', False),
        (Role.EDITOR, 'published', True),
        (Role.ADMIN, 'review', True),
        (Role.REVIEWER, 'draft', False),
        (Role.READER, 'draft', False),
        (None, 'draft', False),
    ])
    def test_rule(self, role, requested, allowed):
        assert evaluate_initial_status(role, requested).allowed is allowed

    def test_reporter_non_draft_is_invalid_transition(self):
        verdict = evaluate_initial_status(Role.REPORTER, 'review')
        assert verdict.reason_code == ReasonCode.INVALID_TRANSITION
        assert verdict.details['allowed_statuses'] == ['draft']

    @pytest.mark.parametrize('role', [Role.REVIEWER, Role.READER, None])
    def test_non_authors_are_forbidden(self, role):
        assert evaluate_initial_status(role, 'draft').reason_code == ReasonCode.FORBIDDEN

    def test_no_role_message(self):
        verdict = evaluate_initial_status(None, None)
        assert verdict.message == 'An authoring role is required to create articles.'

    def test_invalid_value(self):
        verdict = evaluate_initial_status(Role.EDITOR, 'live')
        assert verdict.reason_code == ReasonCode.INVALID_STATUS_VALUE
