"""
Role Registry for Newsdesk.

Static mapping of editorial roles to capability sets.

Roles:
- reader: Read-only access to published content
- reporter: Writes articles and submits them for review
- reviewer: Reviews submitted articles (approve/reject)
- editor: Full editorial control, including publishing
- admin: Superset of editor

Usage:
    from apps.policies.roles import Role, Capability, capabilities_of

    if Capability.PUBLISH in capabilities_of(principal.role):
        ...
"""

from enum import Enum
from types import MappingProxyType
from typing import FrozenSet, Iterable, Mapping, Optional


class Role(str, Enum):
    """Canonical editorial roles."""
    READER = 'reader'
    REPORTER = 'reporter'
    REVIEWER = 'reviewer'
    EDITOR = 'editor'
    ADMIN = 'admin'

    @classmethod
    def from_tag(cls, tag: Optional[str]) -> Optional['Role']:
        """Resolve a raw role tag (type or display name) to a Role."""
        normalized = normalize_tag(tag)
        if not normalized:
            return None
        normalized = ROLE_ALIASES.get(normalized, normalized)
        for role in cls:
            if role.value == normalized:
                return role
        return None

    @property
    def is_administrative(self) -> bool:
        """Editor and admin override ownership and may publish."""
        return self in (Role.EDITOR, Role.ADMIN)


class Capability(str, Enum):
    """Things a role may do."""
    READ = 'read'
    ACCESS_CMS = 'access_cms'
    CREATE_ARTICLE = 'create_article'
    CREATE_ANY_STATUS = 'create_any_status'
    EDIT_OWN = 'edit_own'
    OVERRIDE_OWNERSHIP = 'override_ownership'
    DELETE_ARTICLE = 'delete_article'
    SUBMIT_FOR_REVIEW = 'submit_for_review'
    REVIEW = 'review'
    PUBLISH = 'publish'


# Display names the host system uses for the same roles
ROLE_ALIASES: Mapping[str, str] = MappingProxyType({
    'administrator': 'admin',
})


_READER_CAPS = frozenset({Capability.READ})

_REPORTER_CAPS = _READER_CAPS | {
    Capability.ACCESS_CMS,
    Capability.CREATE_ARTICLE,
    Capability.EDIT_OWN,
    Capability.SUBMIT_FOR_REVIEW,
}

_REVIEWER_CAPS = _READER_CAPS | {
    Capability.ACCESS_CMS,
    Capability.EDIT_OWN,
    Capability.REVIEW,
}

_EDITOR_CAPS = _REPORTER_CAPS | _REVIEWER_CAPS | {
    Capability.CREATE_ANY_STATUS,
    Capability.OVERRIDE_OWNERSHIP,
    Capability.DELETE_ARTICLE,
    Capability.PUBLISH,
}

ROLE_CAPABILITIES: Mapping[Role, FrozenSet[Capability]] = MappingProxyType({
    Role.READER: frozenset(_READER_CAPS),
    Role.REPORTER: frozenset(_REPORTER_CAPS),
    Role.REVIEWER: frozenset(_REVIEWER_CAPS),
    Role.EDITOR: frozenset(_EDITOR_CAPS),
    Role.ADMIN: frozenset(_EDITOR_CAPS),
})


# =============================================================================
# Role sets bound to operations
# =============================================================================

AUTHORING_ROLES = ('reporter', 'reviewer', 'editor', 'admin')
SUBMIT_ROLES = ('reporter', 'editor', 'admin')
REVIEW_ROLES = ('reviewer', 'editor', 'admin')
DELETE_ROLES = ('editor', 'admin')

# author/contributor are legacy CMS tags still assigned to some accounts
CMS_ROLES = ('admin', 'editor', 'reviewer', 'reporter', 'author', 'contributor')


def normalize_tag(tag: Optional[str]) -> str:
    """Lowercase and strip a role tag; non-strings normalize to ''."""
    if not isinstance(tag, str):
        return ''
    return tag.strip().lower()


def normalize_roles(roles: Iterable[str]) -> FrozenSet[str]:
    """Normalize a configured list of role tags, dropping blanks."""
    return frozenset(t for t in (normalize_tag(r) for r in roles or ()) if t)


def resolve_role(role_type: Optional[str], role_name: Optional[str]) -> Optional[Role]:
    """
    Produce the single canonical role for a principal.

    The type tag wins; the display name is consulted only when the type
    does not name a known role.
    """
    return Role.from_tag(role_type) or Role.from_tag(role_name)


def capabilities_of(role: Optional[Role]) -> FrozenSet[Capability]:
    """Capability set for a role. Unknown or missing roles have none."""
    if role is None:
        return frozenset()
    return ROLE_CAPABILITIES.get(role, frozenset())


def has_capability(role: Optional[Role], capability: Capability) -> bool:
    return capability in capabilities_of(role)
