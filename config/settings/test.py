"""
Test settings for Newsdesk project.
"""

from .base import *

DEBUG = False

ALLOWED_HOSTS = ['testserver', 'localhost']

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
    }
}

# Fast hashing for test users
PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

STORAGES['staticfiles'] = {
    'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
}

# Run tasks inline
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

POLICY_STORE_TIMEOUT_SECONDS = 2.0
POLICY_AUDIT_SINKS = [
    'apps.policies.audit.LoggingAuditSink',
    'apps.policies.audit.MetricsAuditSink',
    'apps.policies.audit.DatabaseAuditSink',
]
POLICY_AUDIT_PERSIST_ALLOWED = False

LOGGING['root']['level'] = 'WARNING'
LOGGING['loggers']['apps']['level'] = 'WARNING'
LOGGING['loggers']['django']['level'] = 'WARNING'
