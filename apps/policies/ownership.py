"""
Ownership Resolver.

Looks up a resource's immutable creator (and its workflow status) through a
``ResourceStore``. Every lookup is bounded by a timeout; store failures are
raised as ``PolicyInfrastructureError`` so that "the system is broken" is never
reported as "policy says no".

Lookups are memoized per request in a ``ResourceCache`` so a chain that runs
ownership and workflow checks against the same article reads it once.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Sequence, Tuple

from django.apps import apps
from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError

from apps.core.exceptions import PolicyInfrastructureError

from .decisions import ReasonCode

logger = logging.getLogger(__name__)


DEFAULT_CONTENT_TYPE = 'articles.article'


@dataclass(frozen=True)
class ResourceSnapshot:
    """The policy-relevant slice of a stored resource."""
    id: Any
    creator_id: Optional[Any]
    workflow_status: Optional[str] = None


class ResourceStore(Protocol):
    """Resource Store collaborator."""

    async def find_by_id(
        self,
        content_type: str,
        resource_id: Any,
        populate: Sequence[str] = ('created_by',),
    ) -> Optional[ResourceSnapshot]:
        ...


class ResourceLookupError(Exception):
    """A lookup could not produce the data a policy needs."""

    def __init__(self, reason_code: ReasonCode, message: str):
        self.reason_code = reason_code
        self.message = message
        super().__init__(message)


class DjangoResourceStore:
    """Resource store backed by the Django async ORM."""

    async def find_by_id(
        self,
        content_type: str,
        resource_id: Any,
        populate: Sequence[str] = ('created_by',),
    ) -> Optional[ResourceSnapshot]:
        try:
            model = apps.get_model(content_type)
        except (LookupError, ValueError):
            raise ResourceLookupError(
                ReasonCode.MISCONFIGURED,
                f"Unknown content type '{content_type}'",
            )

        queryset = model._default_manager.all()
        if populate:
            queryset = queryset.select_related(*populate)

        try:
            instance = await queryset.filter(pk=resource_id).afirst()
        except (ValueError, TypeError, DjangoValidationError):
            # Malformed primary key: nothing can match it
            return None

        if instance is None:
            return None

        creator_id = getattr(instance, 'created_by_id', None)
        return ResourceSnapshot(
            id=instance.pk,
            creator_id=creator_id,
            workflow_status=getattr(instance, 'workflow_status', None),
        )


class ResourceCache:
    """Per-request memo of resource lookups."""

    def __init__(self):
        self._entries: Dict[Tuple[str, str], Optional[ResourceSnapshot]] = {}

    def _key(self, content_type: str, resource_id: Any) -> Tuple[str, str]:
        return (content_type, str(resource_id))

    def __contains__(self, key) -> bool:
        return self._key(*key) in self._entries

    def get(self, content_type: str, resource_id: Any) -> Optional[ResourceSnapshot]:
        return self._entries.get(self._key(content_type, resource_id))

    def put(self, content_type: str, resource_id: Any, snapshot: Optional[ResourceSnapshot]):
        self._entries[self._key(content_type, resource_id)] = snapshot

    def __len__(self) -> int:
        return len(self._entries)


class OwnershipResolver:
    """
    Resolves resources and their creators.

    Args:
        store: Resource store collaborator
        timeout: Seconds allowed for a single store read
    """

    def __init__(self, store: Optional[ResourceStore] = None, timeout: Optional[float] = None):
        self.store = store or DjangoResourceStore()
        if timeout is None:
            timeout = getattr(settings, 'POLICY_STORE_TIMEOUT_SECONDS', 5.0)
        self.timeout = timeout

    async def fetch(
        self,
        content_type: str,
        resource_id: Any,
        cache: Optional[ResourceCache] = None,
    ) -> ResourceSnapshot:
        """
        Fetch a resource snapshot.

        Raises:
            ResourceLookupError: INVALID_REQUEST if no id, NOT_FOUND if absent
            PolicyInfrastructureError: store failed or timed out
        """
        if resource_id in (None, ''):
            raise ResourceLookupError(ReasonCode.INVALID_REQUEST, "Resource ID is required")

        if cache is not None and (content_type, resource_id) in cache:
            snapshot = cache.get(content_type, resource_id)
        else:
            snapshot = await self._read(content_type, resource_id)
            if cache is not None:
                cache.put(content_type, resource_id, snapshot)

        if snapshot is None:
            raise ResourceLookupError(ReasonCode.NOT_FOUND, "Resource not found")
        return snapshot

    async def resolve_owner(
        self,
        content_type: str,
        resource_id: Any,
        cache: Optional[ResourceCache] = None,
    ) -> Any:
        """
        Return the creator id of a resource.

        Raises:
            ResourceLookupError: INTEGRITY_ERROR if the resource has no creator,
                plus everything ``fetch`` raises
        """
        snapshot = await self.fetch(content_type, resource_id, cache)
        if snapshot.creator_id in (None, ''):
            logger.warning(
                "Resource %s:%s has no recorded creator", content_type, resource_id
            )
            raise ResourceLookupError(
                ReasonCode.INTEGRITY_ERROR,
                "Unable to verify ownership - resource has no creator",
            )
        return snapshot.creator_id

    async def _read(self, content_type: str, resource_id: Any) -> Optional[ResourceSnapshot]:
        try:
            return await asyncio.wait_for(
                self.store.find_by_id(content_type, resource_id, populate=('created_by',)),
                timeout=self.timeout,
            )
        except ResourceLookupError:
            raise
        except asyncio.TimeoutError as exc:
            logger.error(
                "Resource store timed out after %ss reading %s:%s",
                self.timeout, content_type, resource_id,
            )
            raise PolicyInfrastructureError(
                "Timed out while verifying access permissions",
                details={"content_type": content_type},
            ) from exc
        except Exception as exc:
            logger.error(
                "Resource store failed reading %s:%s: %s", content_type, resource_id, exc
            )
            raise PolicyInfrastructureError(
                "An error occurred while verifying access permissions",
                details={"content_type": content_type},
            ) from exc


_default_resolver: Optional[OwnershipResolver] = None


def get_default_resolver() -> OwnershipResolver:
    """Get the process-wide resolver backed by the Django ORM."""
    global _default_resolver
    if _default_resolver is None:
        _default_resolver = OwnershipResolver()
    return _default_resolver
