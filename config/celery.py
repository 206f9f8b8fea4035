"""
Celery configuration for Newsdesk project.

Includes request ID propagation so audit tasks log with the request that
produced them.
"""

import logging
import os
from celery import Celery
from celery.signals import task_prerun, task_postrun

# Set default Django settings module
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.development')

logger = logging.getLogger(__name__)

app = Celery('newsdesk')

# Load configuration from Django settings with CELERY namespace
app.config_from_object('django.conf:settings', namespace='CELERY')

# Auto-discover tasks from all installed apps
app.autodiscover_tasks()

app.conf.task_routes = {
    'apps.policies.tasks.*': {'queue': 'audit'},
}

# Default queue if not specified
app.conf.task_default_queue = 'default'


@task_prerun.connect
def setup_task_request_context(task_id, task, args, kwargs, **signals_kwargs):
    """
    Set up request context at the start of each Celery task.

    Extracts request_id from task headers (if passed via celery_request_id_headers)
    and sets up thread-local context for logging correlation.
    """
    try:
        from apps.core.middleware import setup_celery_request_context

        headers = getattr(task.request, 'headers', None) or {}
        setup_celery_request_context(headers)
    except Exception:
        # Context is for log correlation only; the task still runs
        logger.warning("Failed to set request context for task %s", task_id, exc_info=True)


@task_postrun.connect
def cleanup_task_request_context(task_id, task, args, kwargs, retval, state, **signals_kwargs):
    """
    Clean up request context after task completes.
    """
    try:
        from apps.core.middleware import clear_request_context
        clear_request_context()
    except Exception:
        logger.warning("Failed to clear request context for task %s", task_id, exc_info=True)
