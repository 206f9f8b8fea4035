"""
Request middleware for Newsdesk.

RequestIDMiddleware generates and propagates unique request IDs for tracing:
- Accepts incoming X-Request-ID header (UUID format)
- Adds request ID to response headers
- Injects request ID into thread-local logging context
- Provides context for Celery task correlation

SecurityLoggerMiddleware writes structured "[SECURITY]" lines for
authentication failures, permission violations, policy failures, slow
requests and unhandled request errors.

Usage:
    Add to MIDDLEWARE in settings:

    MIDDLEWARE = [
        ...
        'apps.core.middleware.RequestIDMiddleware',
        'apps.core.middleware.SecurityLoggerMiddleware',
        ...
    ]

Access request ID in views:
    from apps.core.middleware import get_request_id

    def my_view(request):
        request_id = get_request_id()
        # or
        request_id = request.request_id
"""

import time
import uuid
import threading
import logging

from django.conf import settings
from django.utils.deprecation import MiddlewareMixin

from apps.core.metrics import increment_http_request
from apps.core.observability import get_logger

logger = logging.getLogger(__name__)

security_logger = get_logger('newsdesk.security', prefix='[SECURITY]')

# Thread-local storage for request context
_request_context = threading.local()


def get_request_id():
    """
    Get the current request ID from thread-local storage.

    Returns None if called outside of a request context.
    """
    return getattr(_request_context, 'request_id', None)


def set_request_context(request_id):
    """Set the current request ID; used by Celery tasks."""
    _request_context.request_id = request_id


def clear_request_context():
    """Clear request context from thread-local storage."""
    _request_context.request_id = None


class RequestIDMiddleware(MiddlewareMixin):
    """
    Middleware to handle request IDs for tracing.

    Flow:
    1. Check for incoming X-Request-ID header
    2. Generate new UUID if not present
    3. Store in thread-local for access in views/logging
    4. Attach to request object as request.request_id
    5. Add to response headers
    """

    REQUEST_ID_HEADER = 'HTTP_X_REQUEST_ID'
    RESPONSE_HEADER = 'X-Request-ID'

    def process_request(self, request):
        """Extract or generate request ID."""
        request_id = request.META.get(self.REQUEST_ID_HEADER)

        if request_id:
            try:
                uuid.UUID(request_id)
            except (ValueError, TypeError):
                request_id = str(uuid.uuid4())
        else:
            request_id = str(uuid.uuid4())

        _request_context.request_id = request_id
        request.request_id = request_id

        return None

    def process_response(self, request, response):
        """Add request ID to response headers."""
        request_id = getattr(request, 'request_id', None)

        if request_id:
            response[self.RESPONSE_HEADER] = request_id

        clear_request_context()

        return response


class RequestIDFilter(logging.Filter):
    """
    Logging filter that adds request_id to log records.

    Usage in LOGGING config:

    LOGGING = {
        'filters': {
            'request_id': {
                '()': 'apps.core.middleware.RequestIDFilter',
            },
        },
        'formatters': {
            'verbose': {
                'format': '[{request_id}] {levelname} {name} {message}',
                'style': '{',
            },
        },
    }
    """

    def filter(self, record):
        """Add request_id to log record."""
        record.request_id = get_request_id() or '-'
        return True


def celery_request_id_headers():
    """
    Get headers to pass to Celery tasks for correlation.

    Usage:
        task.apply_async(
            args=[...],
            headers=celery_request_id_headers(),
        )
    """
    request_id = get_request_id()
    if request_id:
        return {'request_id': request_id}
    return {}


def setup_celery_request_context(headers):
    """
    Set up request context in Celery task from headers.

    Usage in Celery task:
        @app.task(bind=True)
        def my_task(self, *args):
            setup_celery_request_context(self.request.headers or {})
    """
    request_id = (headers or {}).get('request_id')
    if request_id:
        set_request_context(request_id)
    else:
        set_request_context(str(uuid.uuid4()))


# =============================================================================
# Security logging
# =============================================================================

def get_client_ip(request) -> str:
    """Client IP, honouring the first X-Forwarded-For hop."""
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip()
    real_ip = request.META.get('HTTP_X_REAL_IP')
    if real_ip:
        return real_ip
    return request.META.get('REMOTE_ADDR') or 'unknown'


def _user_fields(request):
    user = getattr(request, 'user', None)
    if user is None or not getattr(user, 'is_authenticated', False):
        return {'user_id': None, 'user_role': None}

    profile = getattr(user, 'editorial_profile', None)
    role = getattr(profile, 'role', None)
    return {
        'user_id': str(user.pk),
        'user_role': (role.type or role.name) if role is not None else None,
    }


class SecurityLoggerMiddleware:
    """
    Structured security event logging.

    Events: AUTHENTICATION_FAILURE (401), PERMISSION_VIOLATION (403),
    POLICY_FAILURE (a policy chain denied the request), RATE_LIMIT_EXCEEDED
    (429), SLOW_REQUEST, REQUEST_ERROR (unhandled exception).

    Settings:
        SECURITY_LOG_EXCLUDE_PATHS: path prefixes skipped for slow-request logging
        SECURITY_SLOW_REQUEST_MS: slow-request threshold (default 3000)
    """

    def __init__(self, get_response):
        self.get_response = get_response
        self.exclude_paths = tuple(
            getattr(settings, 'SECURITY_LOG_EXCLUDE_PATHS', ('/admin', '/health', '/favicon.ico'))
        )
        self.slow_request_ms = getattr(settings, 'SECURITY_SLOW_REQUEST_MS', 3000)

    def __call__(self, request):
        start = time.perf_counter()
        response = self.get_response(request)
        duration_ms = int((time.perf_counter() - start) * 1000)

        increment_http_request(response.status_code)
        self._log_response(request, response, duration_ms)
        return response

    def process_exception(self, request, exception):
        self._emit(
            'REQUEST_ERROR', request, level='error',
            details={
                'error_name': type(exception).__name__,
                'error_message': str(exception),
            },
        )
        return None

    def _log_response(self, request, response, duration_ms):
        status_code = response.status_code

        if status_code == 401:
            self._emit(
                'AUTHENTICATION_FAILURE', request, status_code=status_code, duration_ms=duration_ms,
                details={'message': 'Authentication required or token invalid'},
            )
        elif status_code == 403:
            self._emit(
                'PERMISSION_VIOLATION', request, status_code=status_code, duration_ms=duration_ms,
                details={'message': 'Access denied - insufficient permissions'},
            )
        elif status_code == 429:
            self._emit(
                'RATE_LIMIT_EXCEEDED', request, status_code=status_code, duration_ms=duration_ms,
                details={'message': 'Rate limit exceeded'},
            )

        denied = getattr(request, 'policy_denial', None)
        if denied is not None:
            self._emit(
                'POLICY_FAILURE', request, status_code=status_code, duration_ms=duration_ms,
                details={
                    'policy': denied.policy,
                    'reason_code': denied.reason_code.value,
                    'message': denied.message,
                },
            )

        if duration_ms > self.slow_request_ms and not request.path.startswith(self.exclude_paths):
            self._emit(
                'SLOW_REQUEST', request, status_code=status_code, duration_ms=duration_ms,
                details={
                    'threshold_ms': self.slow_request_ms,
                    'message': f'Request took {duration_ms}ms (threshold: {self.slow_request_ms}ms)',
                },
            )

    def _emit(self, event, request, level='warning', status_code=None, duration_ms=None, details=None):
        fields = {
            'event': event,
            'request_id': getattr(request, 'request_id', None),
            'ip': get_client_ip(request),
            'method': request.method,
            'path': request.path,
            **_user_fields(request),
        }
        if status_code is not None:
            fields['status_code'] = status_code
        if duration_ms is not None:
            fields['duration_ms'] = duration_ms
        if details:
            fields['details'] = details

        log = security_logger.error if level == 'error' else security_logger.warning
        log(event, **fields)
