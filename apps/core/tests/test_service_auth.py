"""
Tests for authentication.

Covers:
- Service keys (valid, unknown, revoked, malformed header)
- Service credentials on /api/auth/me/
- JWT login with role claim and profile capabilities
- Principal construction for policy evaluation
"""

import pytest
from rest_framework.test import APIClient, APIRequestFactory
from rest_framework_simplejwt.tokens import AccessToken

from apps.core.authentication import ServiceTokenAuthentication, is_service_request
from apps.core.models import ServiceToken, hash_service_key

ME = '/api/auth/me/'


# ============================================================================
# Service Keys
# ============================================================================

@pytest.mark.django_db
class TestServiceTokenAuthentication:

    def _authenticate(self, header):
        request = APIRequestFactory().get('/api/articles/', HTTP_AUTHORIZATION=header)
        return ServiceTokenAuthentication().authenticate(request)

    def test_only_hash_is_stored(self, service_token):
        token, raw_key = service_token
        assert token.key_hash == hash_service_key(raw_key)
        assert token.prefix == raw_key[:8]
        assert raw_key not in token.key_hash

    def test_valid_key(self, service_token):
        token, raw_key = service_token

        user, auth = self._authenticate(f'Api-Key {raw_key}')

        assert user == token
        assert auth == token

    def test_keyword_is_case_insensitive(self, service_token):
        token, raw_key = service_token
        assert self._authenticate(f'api-key {raw_key}')[1] == token

    def test_other_schemes_are_ignored(self):
        assert self._authenticate('Bearer abc') is None

    def test_records_last_use(self, service_token):
        token, raw_key = service_token

        self._authenticate(f'Api-Key {raw_key}')

        token.refresh_from_db()
        assert token.last_used_at is not None

    def test_unknown_key(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION='Api-Key not-a-real-key')

        response = api_client.get(ME)

        assert response.status_code == 401
        assert response.json()['error']['code'] == 'AUTHENTICATION_REQUIRED'
        assert response.json()['error']['message'] == 'Invalid service key.'

    def test_malformed_header(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION='Api-Key')
        response = api_client.get(ME)
        assert response.status_code == 401
        assert response.json()['error']['message'] == 'Invalid service key header.'

    def test_revoked_key(self, service_token):
        token, raw_key = service_token
        token.is_active = False
        token.save()

        assert ServiceToken.objects.get_active(raw_key) is None

    def test_token_behaves_like_authenticated_user(self, service_token):
        token, _ = service_token
        assert token.is_authenticated
        assert not token.is_anonymous


@pytest.mark.django_db
class TestServiceCredentialEndpoints:

    def test_me_for_service(self, service_client):
        response = service_client.get(ME)

        assert response.status_code == 200
        assert response.json()['service'] == 'frontend-ssr'
        assert response.json()['credential'] == 'service'

    def test_service_has_no_profile_to_update(self, service_client):
        response = service_client.patch(ME, {'first_name': 'Bot'}, format='json')
        assert response.status_code == 400
        assert response.json()['error']['code'] == 'INVALID_REQUEST'


# ============================================================================
# JWT
# ============================================================================

@pytest.mark.django_db
class TestJWTLogin:

    def test_login_includes_role(self, api_client, reporter):
        response = api_client.post(
            '/api/auth/login/', {'username': 'reporter', 'password': 'pass-1234'}, format='json',
        )

        assert response.status_code == 200
        body = response.json()
        assert AccessToken(body['access'])['role'] == 'reporter'
        assert body['user']['profile']['role']['type'] == 'reporter'

    def test_login_without_role_has_no_claim(self, api_client, roleless_user):
        response = api_client.post(
            '/api/auth/login/', {'username': 'no-role', 'password': 'pass-1234'}, format='json',
        )
        assert 'role' not in AccessToken(response.json()['access'])

    def test_wrong_password(self, api_client, reporter):
        response = api_client.post(
            '/api/auth/login/', {'username': 'reporter', 'password': 'nope'}, format='json',
        )
        assert response.status_code == 401

    def test_bearer_token_me(self, api_client, editor):
        login = api_client.post(
            '/api/auth/login/', {'username': 'editor', 'password': 'pass-1234'}, format='json',
        )
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {login.json()['access']}")

        response = client.get(ME)

        assert response.status_code == 200
        capabilities = response.json()['profile']['capabilities']
        assert 'publish' in capabilities
        assert 'override_ownership' in capabilities

    def test_me_requires_authentication(self, api_client):
        assert api_client.get(ME).status_code == 401

    def test_admin_display_name_resolves(self, client_for, admin_user):
        response = client_for(admin_user).get(ME)
        assert 'publish' in response.json()['profile']['capabilities']


# ============================================================================
# Principals
# ============================================================================

@pytest.mark.django_db
class TestPrincipalForRequest:

    def _drf_request(self, user=None, auth=None):
        from rest_framework.request import Request

        request = Request(APIRequestFactory().get('/api/articles/'))
        request.user = user
        request.auth = auth
        return request

    def test_service_principal(self, service_token):
        from apps.policies.identity import CredentialKind
        from apps.policies.permissions import classify_request, principal_for

        token, _ = service_token
        request = self._drf_request(user=token, auth=token)

        assert is_service_request(request)
        assert classify_request(request) == CredentialKind.SERVICE
        assert principal_for(request).id == 'service:frontend-ssr'

    def test_user_principal(self, reporter):
        from apps.policies.identity import CredentialKind
        from apps.policies.permissions import classify_request, principal_for
        from apps.policies.roles import Role

        request = self._drf_request(user=reporter)
        principal = principal_for(request)

        assert classify_request(request) == CredentialKind.USER
        assert principal.id == reporter.pk
        assert principal.role == Role.REPORTER
        assert principal_for(request) is principal
