"""
Service token authentication.

Trusted first-party automation authenticates with

    Authorization: Api-Key <raw key>

Users authenticate with JWT (rest_framework_simplejwt); both classes are
listed in REST_FRAMEWORK['DEFAULT_AUTHENTICATION_CLASSES'].
"""

import logging

from django.conf import settings
from rest_framework import authentication, exceptions

from .models import ServiceToken

logger = logging.getLogger(__name__)


class ServiceTokenAuthentication(authentication.BaseAuthentication):
    """
    Authenticate a request by service key.

    On success ``request.user`` and ``request.auth`` are both the
    ``ServiceToken``.
    """

    @property
    def keyword(self) -> str:
        return getattr(settings, 'SERVICE_TOKEN_KEYWORD', 'Api-Key')

    def authenticate(self, request):
        auth = authentication.get_authorization_header(request).split()

        if not auth or auth[0].lower() != self.keyword.lower().encode():
            return None

        if len(auth) != 2:
            raise exceptions.AuthenticationFailed('Invalid service key header.')

        try:
            raw_key = auth[1].decode()
        except UnicodeError:
            raise exceptions.AuthenticationFailed('Invalid service key header.')

        token = ServiceToken.objects.get_active(raw_key)
        if token is None:
            logger.warning("Rejected unknown or inactive service key %s...", raw_key[:8])
            raise exceptions.AuthenticationFailed('Invalid service key.')

        token.touch()
        return (token, token)

    def authenticate_header(self, request):
        return self.keyword


def is_service_request(request) -> bool:
    """True when DRF authenticated ``request`` with a service token."""
    return isinstance(getattr(request, 'auth', None), ServiceToken)
