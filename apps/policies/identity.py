"""
Identity and credential classification.

A request reaches the policy chain as a ``PolicyContext``: who is acting
(``Principal``), with what kind of credential, on which resource, and with
which requested workflow status.

Service credentials (first-party automation such as migration scripts or
the frontend's server-side renderer) are trusted: ``is_trusted_credential``
returning True makes every policy in a chain allow without evaluating
ownership or workflow rules.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, FrozenSet, Optional

from .roles import Role, normalize_tag, resolve_role

if TYPE_CHECKING:
    from .ownership import ResourceCache


class CredentialKind(str, Enum):
    """How the caller authenticated."""
    USER = 'user'
    SERVICE = 'service'


@dataclass(frozen=True)
class Principal:
    """
    The authenticated actor.

    ``role_type`` and ``role_name`` are stored normalized; ``role`` is the
    single canonical role derived from them once, at construction.
    """
    id: Any
    role_type: Optional[str] = None
    role_name: Optional[str] = None
    role: Optional[Role] = field(init=False, default=None)

    def __post_init__(self):
        object.__setattr__(self, 'role_type', normalize_tag(self.role_type) or None)
        object.__setattr__(self, 'role_name', normalize_tag(self.role_name) or None)
        object.__setattr__(self, 'role', resolve_role(self.role_type, self.role_name))

    @property
    def is_authenticated(self) -> bool:
        return self.id is not None and self.id != ''

    @property
    def role_tags(self) -> FrozenSet[str]:
        """Raw role tags; matching either one is sufficient for a role gate."""
        return frozenset(t for t in (self.role_type, self.role_name) if t)

    @property
    def role_label(self) -> str:
        """Role as shown in messages and logs."""
        if self.role is not None:
            return self.role.value
        return self.role_type or self.role_name or 'none'

    @classmethod
    def from_user(cls, user) -> Optional['Principal']:
        """
        Build a principal from a Django user.

        Returns None for anonymous users.
        """
        if user is None or not getattr(user, 'is_authenticated', False):
            return None

        role_type = role_name = None
        profile = getattr(user, 'editorial_profile', None)
        role = getattr(profile, 'role', None) if profile is not None else None
        if role is not None:
            role_type = role.type
            role_name = role.name

        return cls(id=user.pk, role_type=role_type, role_name=role_name)


@dataclass
class PolicyContext:
    """Everything a policy may look at for one request."""
    principal: Optional[Principal]
    operation: str
    credential_kind: CredentialKind = CredentialKind.USER
    content_type: str = 'articles.article'
    resource_id: Optional[Any] = None
    requested_status: Optional[str] = None
    request_id: Optional[str] = None
    resources: Optional['ResourceCache'] = None

    @property
    def principal_id(self) -> Optional[Any]:
        return self.principal.id if self.principal else None

    @property
    def resource_ref(self) -> Optional[str]:
        if self.resource_id in (None, ''):
            return None
        return f"{self.content_type}:{self.resource_id}"


def is_trusted_credential(context: PolicyContext) -> bool:
    """True when the request carries a service credential."""
    return context.credential_kind == CredentialKind.SERVICE
