"""
Development settings for Newsdesk project.
"""

from .base import *

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = True

ALLOWED_HOSTS = ['localhost', '127.0.0.1', '[::1]', 'testserver']

# Disable HTTPS redirect in development
SECURE_SSL_REDIRECT = False
SESSION_COOKIE_SECURE = False
CSRF_COOKIE_SECURE = False

# Show more detailed error pages
DEBUG_PROPAGATE_EXCEPTIONS = True

# Development logging - more verbose
LOGGING['root']['level'] = 'DEBUG'
LOGGING['loggers']['apps']['level'] = 'DEBUG'

# Allowed decisions are interesting while developing policies
POLICY_AUDIT_PERSIST_ALLOWED = os.getenv('POLICY_AUDIT_PERSIST_ALLOWED', 'true').lower() == 'true'
