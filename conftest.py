"""
Pytest configuration and shared fixtures.
"""

import pytest

from apps.policies.roles import Role as CanonicalRole


ROLE_NAMES = {
    CanonicalRole.READER: 'Reader',
    CanonicalRole.REPORTER: 'Reporter',
    CanonicalRole.REVIEWER: 'Reviewer',
    CanonicalRole.EDITOR: 'Editor',
    CanonicalRole.ADMIN: 'Administrator',
}


@pytest.fixture(autouse=True)
def fresh_audit_reporter():
    """Rebuild the audit reporter from the active settings for every test."""
    from apps.policies.audit import reset_audit_reporter

    reset_audit_reporter()
    yield
    reset_audit_reporter()


@pytest.fixture
def api_client():
    """Return DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def roles(db):
    """The five editorial roles, keyed by canonical role."""
    from apps.core.models import Role

    return {
        canonical: Role.objects.create(type=canonical.value, name=name)
        for canonical, name in ROLE_NAMES.items()
    }


@pytest.fixture
def make_user(db, django_user_model, roles):
    """Factory: ``make_user('alice', CanonicalRole.REPORTER)``; role=None leaves the user without one."""

    def _make_user(username, role=None):
        user = django_user_model.objects.create_user(username=username, password='pass-1234')
        if role is not None:
            profile = user.editorial_profile
            profile.role = roles[role]
            profile.save()
        return user

    return _make_user


@pytest.fixture
def reporter(make_user):
    return make_user('reporter', CanonicalRole.REPORTER)


@pytest.fixture
def other_reporter(make_user):
    return make_user('other-reporter', CanonicalRole.REPORTER)


@pytest.fixture
def reviewer(make_user):
    return make_user('reviewer', CanonicalRole.REVIEWER)


@pytest.fixture
def editor(make_user):
    return make_user('editor', CanonicalRole.EDITOR)


@pytest.fixture
def admin_user(make_user):
    return make_user('admin', CanonicalRole.ADMIN)


@pytest.fixture
def reader(make_user):
    return make_user('reader', CanonicalRole.READER)


@pytest.fixture
def roleless_user(make_user):
    return make_user('no-role')


@pytest.fixture
def client_for():
    """Factory: an API client authenticated as ``user``."""
    from rest_framework.test import APIClient

    def _client_for(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    return _client_for


@pytest.fixture
def make_article(db):
    """Factory for stored articles."""
    from apps.articles.models import Article

    def _make_article(created_by=None, workflow_status='draft', title='Budget vote delayed', **fields):
        return Article.objects.create(
            title=title,
            body=fields.pop('body', 'The council postponed the vote.'),
            created_by=created_by,
            workflow_status=workflow_status,
            **fields,
        )

    return _make_article


@pytest.fixture
def service_token(db):
    """An active service token and its raw key."""
    from apps.core.models import ServiceToken

    return ServiceToken.objects.create_token('frontend-ssr')


@pytest.fixture
def service_client(service_token):
    """API client authenticated with a service key."""
    from rest_framework.test import APIClient

    _, raw_key = service_token
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f'Api-Key {raw_key}')
    return client
