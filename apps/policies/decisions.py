"""
Policy decisions.

Every policy check returns either ``Allowed`` or ``Denied``. Denials carry a
reason code and a human-readable message that client UIs show as-is, so
messages must say *why* a request failed, not just that it did.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union


class ReasonCode(str, Enum):
    """Why a policy denied a request."""

    # No principal on a non-bypassed request
    UNAUTHENTICATED = "UNAUTHENTICATED"
    # Policy invoked without required configuration
    MISCONFIGURED = "MISCONFIGURED"
    # Authenticated, but lacks the capability
    FORBIDDEN = "FORBIDDEN"
    # Required reference missing (e.g. no resource id)
    INVALID_REQUEST = "INVALID_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    # Resource exists but lacks data the check depends on
    INTEGRITY_ERROR = "INTEGRITY_ERROR"
    INVALID_STATUS_VALUE = "INVALID_STATUS_VALUE"
    INVALID_TRANSITION = "INVALID_TRANSITION"


@dataclass(frozen=True)
class Allowed:
    """The check passed."""
    policy: str
    message: str = ""
    bypassed: bool = False

    allowed = True
    reason_code = None

    @property
    def outcome(self) -> str:
        return "bypass" if self.bypassed else "allow"


@dataclass(frozen=True)
class Denied:
    """The check failed; the chain stops here."""
    policy: str
    reason_code: ReasonCode
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    allowed = False
    bypassed = False

    @property
    def outcome(self) -> str:
        return "deny"

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "policy": self.policy,
            "reason_code": self.reason_code.value,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


Decision = Union[Allowed, Denied]


def allow(policy: str, message: str = "") -> Allowed:
    return Allowed(policy=policy, message=message)


def deny(
    policy: str,
    reason_code: ReasonCode,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> Denied:
    return Denied(policy=policy, reason_code=reason_code, message=message, details=details or {})
