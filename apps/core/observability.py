"""
Observability utilities for Newsdesk.

``StructuredLogger`` writes one JSON object per line, optionally behind a
tag such as ``[AUDIT]`` or ``[SECURITY]`` so the policy audit trail and the
security middleware can be filtered out of the shared log stream.
``HealthChecker`` backs the /health/ and /readyz/ endpoints.
"""

import json
import logging
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Structured Logging
# =============================================================================

@dataclass
class LogContext:
    """Who did what to which resource, attached to every line it scopes."""
    component: str
    operation: str
    request_id: Optional[str] = None
    user_id: Optional[str] = None
    resource: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value}


class StructuredLogger:
    """
    Tagged JSON-line logger over a stdlib ``logging.Logger``.

    Field precedence, lowest first: the default component, contexts
    entered with ``context()``, the context passed to the call, keyword
    fields.
    """

    def __init__(self, name: str, component: Optional[str] = None, prefix: str = ""):
        self._logger = logging.getLogger(name)
        self._base = {"component": component} if component else {}
        self._prefix = prefix
        self._scopes: List[LogContext] = []

    @contextmanager
    def context(self, ctx: LogContext):
        self._scopes.append(ctx)
        try:
            yield
        finally:
            self._scopes.pop()

    def _render(self, level: str, message: str, context: Optional[LogContext], fields) -> str:
        payload = {"message": message, "level": level, "timestamp": _utcnow().isoformat()}
        payload.update(self._base)
        for scope in self._scopes:
            payload.update(scope.to_dict())
        if context is not None:
            payload.update(context.to_dict())
        payload.update(fields)

        line = json.dumps(payload, default=str)
        return f"{self._prefix} {line}" if self._prefix else line

    def _log(self, level: str, message: str, context: Optional[LogContext], fields) -> None:
        if not self._logger.isEnabledFor(getattr(logging, level)):
            return
        write = getattr(self._logger, level.lower())
        write(self._render(level, message, context, fields))

    def info(self, message: str, context: Optional[LogContext] = None, **fields):
        self._log("INFO", message, context, fields)

    def warning(self, message: str, context: Optional[LogContext] = None, **fields):
        self._log("WARNING", message, context, fields)

    def error(self, message: str, context: Optional[LogContext] = None, **fields):
        self._log("ERROR", message, context, fields)


def get_logger(name: str, component: Optional[str] = None, prefix: str = "") -> StructuredLogger:
    """
    Get a structured logger.

    Args:
        name: Logger name; handlers and levels come from settings.LOGGING.
        component: Component written on every line unless a context overrides it.
        prefix: Tag placed before each JSON payload, e.g. "[AUDIT]".
    """
    return StructuredLogger(name, component=component, prefix=prefix)


# =============================================================================
# Health Checks
# =============================================================================

class HealthStatus(Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


_SEVERITY = {
    HealthStatus.HEALTHY: 0,
    HealthStatus.DEGRADED: 1,
    HealthStatus.UNHEALTHY: 2,
}


@dataclass
class HealthCheckResult:
    name: str
    status: HealthStatus
    message: str = ""
    duration_ms: float = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "message": self.message,
            "duration_ms": round(self.duration_ms, 2),
        }


class HealthChecker:
    """Named dependency checks; the overall status is the worst result."""

    def __init__(self):
        self._checks: Dict[str, Callable[[], HealthCheckResult]] = {}

    def register(self, name: str, check_fn: Callable[[], HealthCheckResult]) -> None:
        self._checks[name] = check_fn

    def check(self, name: str) -> HealthCheckResult:
        check_fn = self._checks.get(name)
        if check_fn is None:
            return HealthCheckResult(name, HealthStatus.UNHEALTHY, f"Unknown check: {name}")

        start = time.perf_counter()
        try:
            result = check_fn()
        except Exception as exc:
            result = HealthCheckResult(name, HealthStatus.UNHEALTHY, str(exc))
        result.duration_ms = (time.perf_counter() - start) * 1000
        return result

    def check_all(self) -> Dict[str, Any]:
        results = [self.check(name) for name in self._checks]
        overall = max(
            (result.status for result in results),
            key=_SEVERITY.__getitem__,
            default=HealthStatus.HEALTHY,
        )
        return {
            "status": overall.value,
            "checks": {result.name: result.to_dict() for result in results},
            "timestamp": _utcnow().isoformat(),
        }


health_checker = HealthChecker()


# =============================================================================
# Built-in Health Checks
# =============================================================================

def check_database() -> HealthCheckResult:
    from django.db import connection

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
    except Exception as exc:
        return HealthCheckResult("database", HealthStatus.UNHEALTHY, f"Database error: {exc}")
    return HealthCheckResult("database", HealthStatus.HEALTHY, "Database connection successful")


def check_cache() -> HealthCheckResult:
    """A get/set mismatch degrades rather than fails."""
    from django.core.cache import cache

    try:
        cache.set("newsdesk:health", "ok", 10)
        value = cache.get("newsdesk:health")
    except Exception as exc:
        return HealthCheckResult("cache", HealthStatus.UNHEALTHY, f"Cache error: {exc}")
    if value != "ok":
        return HealthCheckResult("cache", HealthStatus.DEGRADED, "Cache get/set mismatch")
    return HealthCheckResult("cache", HealthStatus.HEALTHY, "Cache connection successful")


def register_default_checks():
    health_checker.register("database", check_database)
    health_checker.register("cache", check_cache)
