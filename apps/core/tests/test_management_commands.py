"""
Tests for management commands.

Covers:
- seed_roles: creates the five roles, idempotent, --update
- create_service_token: create, duplicate, revoke
"""

from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from apps.core.models import Role, ServiceToken


def run(*args):
    out = StringIO()
    call_command(*args, stdout=out)
    return out.getvalue()


# ============================================================================
# seed_roles
# ============================================================================

@pytest.mark.django_db
class TestSeedRoles:

    def test_creates_roles(self):
        output = run('seed_roles')

        assert set(Role.objects.values_list('type', flat=True)) == {
            'reader', 'reporter', 'reviewer', 'editor', 'admin',
        }
        assert Role.objects.get(type='admin').name == 'Administrator'
        assert 'Done. 5 role(s) created.' in output

    def test_idempotent(self):
        run('seed_roles')
        output = run('seed_roles')
        assert Role.objects.count() == 5
        assert 'Done. 0 role(s) created.' in output

    def test_update_restores_names(self):
        run('seed_roles')
        Role.objects.filter(type='editor').update(name='Chief')

        run('seed_roles', '--update')

        assert Role.objects.get(type='editor').name == 'Editor'

    def test_existing_names_kept_without_update(self):
        run('seed_roles')
        Role.objects.filter(type='editor').update(name='Chief')

        run('seed_roles')

        assert Role.objects.get(type='editor').name == 'Chief'


# ============================================================================
# create_service_token
# ============================================================================

@pytest.mark.django_db
class TestCreateServiceToken:

    def test_create_prints_usable_key(self):
        output = run('create_service_token', '--name', 'frontend-ssr')

        raw_key = output.strip().splitlines()[-1]
        token = ServiceToken.objects.get_active(raw_key)
        assert token is not None
        assert token.name == 'frontend-ssr'

    def test_duplicate_name(self):
        run('create_service_token', '--name', 'frontend-ssr')
        with pytest.raises(CommandError, match='already exists'):
            run('create_service_token', '--name', 'frontend-ssr')

    def test_blank_name(self):
        with pytest.raises(CommandError):
            run('create_service_token', '--name', '   ')

    def test_revoke(self):
        output = run('create_service_token', '--name', 'frontend-ssr')
        raw_key = output.strip().splitlines()[-1]

        run('create_service_token', '--name', 'frontend-ssr', '--revoke')

        assert ServiceToken.objects.get_active(raw_key) is None
        assert not ServiceToken.objects.get(name='frontend-ssr').is_active

    def test_revoke_unknown(self):
        with pytest.raises(CommandError, match='No active service token'):
            run('create_service_token', '--name', 'ghost', '--revoke')
