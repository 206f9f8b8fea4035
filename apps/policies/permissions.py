"""
DRF adapter for policy chains.

Views declare which operation each action performs:

    class ArticleViewSet(viewsets.ModelViewSet):
        permission_classes = [PolicyChainPermission]
        policy_operations = {
            'create': Operation.CREATE,
            'partial_update': Operation.UPDATE,
            ...
        }

Actions without an entry are not gated. A denial is raised as
``PolicyDeniedError`` and rendered by the project exception handler with
the denial's reason code, message and details.
"""

import logging
from typing import Any, Optional

from rest_framework.permissions import BasePermission

from apps.core.authentication import is_service_request
from apps.core.exceptions import PolicyDeniedError

from .bindings import Operation, get_chain
from .decisions import Decision
from .identity import CredentialKind, PolicyContext, Principal

logger = logging.getLogger(__name__)


STATUS_FIELD = 'workflow_status'


def classify_request(request) -> CredentialKind:
    """Service credential or ordinary user."""
    if is_service_request(request):
        return CredentialKind.SERVICE
    return CredentialKind.USER


def principal_for(request) -> Optional[Principal]:
    """Build the principal once per request; None when anonymous."""
    cached = getattr(request, '_policy_principal', None)
    if cached is not None:
        return cached

    if is_service_request(request):
        principal = Principal(id=f'service:{request.auth.name}')
    else:
        principal = Principal.from_user(getattr(request, 'user', None))

    request._policy_principal = principal
    return principal


def build_policy_context(
    request,
    operation,
    resource_id: Optional[Any] = None,
    requested_status: Optional[Any] = None,
    content_type: str = 'articles.article',
) -> PolicyContext:
    return PolicyContext(
        principal=principal_for(request),
        operation=Operation(operation).value,
        credential_kind=classify_request(request),
        content_type=content_type,
        resource_id=resource_id,
        requested_status=requested_status,
        request_id=getattr(request, 'request_id', None),
    )


def enforce(request, operation, **context_kwargs) -> Decision:
    """
    Evaluate ``operation``'s chain for ``request``.

    Returns:
        The aggregate ``Allowed`` decision

    Raises:
        PolicyDeniedError: the chain denied the request
        PolicyInfrastructureError: a collaborator failed
    """
    context = build_policy_context(request, operation, **context_kwargs)
    decision = get_chain(operation).evaluate_sync(context)
    if not decision.allowed:
        raise PolicyDeniedError(decision)
    return decision


class PolicyChainPermission(BasePermission):
    """
    Evaluate the policy chain bound to the current view action.

    The resource id comes from the view's lookup kwarg; the requested
    workflow status from the request body.
    """

    def has_permission(self, request, view):
        operation = self.get_operation(request, view)
        if operation is None:
            return True

        lookup_kwarg = getattr(view, 'lookup_url_kwarg', None) or getattr(view, 'lookup_field', 'pk')
        resource_id = getattr(view, 'kwargs', {}).get(lookup_kwarg)

        requested_status = None
        if request.method in ('POST', 'PUT', 'PATCH') and hasattr(request.data, 'get'):
            requested_status = request.data.get(STATUS_FIELD)

        enforce(
            request,
            operation,
            resource_id=resource_id,
            requested_status=requested_status,
            content_type=getattr(view, 'policy_content_type', 'articles.article'),
        )
        return True

    def get_operation(self, request, view) -> Optional[Operation]:
        operations = getattr(view, 'policy_operations', None) or {}
        # ViewSets name the action; plain APIViews are keyed by HTTP method
        action = getattr(view, 'action', None) or request.method.lower()
        return operations.get(action)
