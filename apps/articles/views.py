"""
Article and tag API views.

Every mutating action is gated by the policy chain bound to it in
``policy_operations``; public reads are ungated and only ever see
published articles.
"""

from django.core.exceptions import ValidationError as DjangoValidationError
from django.http import Http404
from rest_framework import generics, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from apps.core.exceptions import NotFoundError
from apps.policies.bindings import Operation
from apps.policies.permissions import PolicyChainPermission

from .models import Article, Tag
from .serializers import (
    ArticleDetailSerializer,
    ArticleListSerializer,
    ArticleWriteSerializer,
    ReviewSerializer,
    TagSerializer,
)
from .services import EditorialService, _user_or_none
from .state_machine import WorkflowStatus

PUBLIC_ACTIONS = ('list', 'retrieve')


class SafeLookupMixin:
    """Malformed lookup values (e.g. a non-UUID id) are reported as not found."""

    not_found_message = "Resource not found"

    def get_object(self):
        try:
            return super().get_object()
        except (DjangoValidationError, ValueError, TypeError, Http404):
            raise NotFoundError(self.not_found_message)


class ArticleViewSet(SafeLookupMixin, viewsets.ModelViewSet):
    """
    Articles API.

    GET    /api/articles/                          - Published articles
    GET    /api/articles/{id}/                     - Published article
    GET    /api/articles/my/                       - Articles created by the caller
    GET    /api/articles/review-queue/             - Articles awaiting review
    POST   /api/articles/                          - Create
    PUT    /api/articles/{id}/                     - Update
    PATCH  /api/articles/{id}/                     - Partial update
    DELETE /api/articles/{id}/                     - Delete
    POST   /api/articles/{id}/submit-for-review/   - draft → review
    POST   /api/articles/{id}/approve/             - Record approval (stays in review)
    POST   /api/articles/{id}/reject/              - review → draft, with notes
    POST   /api/articles/{id}/publish/             - → published
    POST   /api/articles/{id}/unpublish/           - published → draft
    """

    permission_classes = [PolicyChainPermission]
    queryset = Article.objects.select_related('created_by', 'reviewed_by').prefetch_related('tags')
    policy_operations = {
        'create': Operation.CREATE,
        'update': Operation.UPDATE,
        'partial_update': Operation.UPDATE,
        'destroy': Operation.DELETE,
        'submit_for_review': Operation.SUBMIT_FOR_REVIEW,
        'approve': Operation.APPROVE,
        'reject': Operation.REJECT,
        'publish': Operation.PUBLISH,
        'unpublish': Operation.UNPUBLISH,
        'my': Operation.MY_ARTICLES,
        'review_queue': Operation.REVIEW_QUEUE,
    }

    service_class = EditorialService
    not_found_message = 'Article not found'

    def get_service(self) -> EditorialService:
        return self.service_class()

    def get_serializer_class(self):
        if self.action in ('list', 'my', 'review_queue'):
            return ArticleListSerializer
        if self.action in ('create', 'update', 'partial_update'):
            return ArticleWriteSerializer
        return ArticleDetailSerializer

    def get_queryset(self):
        queryset = super().get_queryset()

        if self.action in PUBLIC_ACTIONS:
            queryset = queryset.filter(
                workflow_status=WorkflowStatus.PUBLISHED.value
            ).order_by('-published_at')

            tag = self.request.query_params.get('tag')
            if tag:
                queryset = queryset.filter(tags__slug=tag)

            search = self.request.query_params.get('search')
            if search:
                queryset = queryset.filter(title__icontains=search)

        return queryset

    # =========================================================================
    # CRUD
    # =========================================================================

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        tags = data.pop('tags', None)

        article = self.get_service().create(request.user, data, tags=tags)
        return Response(ArticleDetailSerializer(article).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        article = self.get_object()
        serializer = self.get_serializer(article, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        tags = data.pop('tags', None)

        article = self.get_service().update(article, request.user, data, tags=tags)
        return Response(ArticleDetailSerializer(article).data)

    def destroy(self, request, *args, **kwargs):
        article = self.get_object()
        self.get_service().delete(article, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)

    # =========================================================================
    # Editorial listings
    # =========================================================================

    @action(detail=False, methods=['get'])
    def my(self, request):
        """Articles created by the caller, any status."""
        user = _user_or_none(request.user)
        queryset = self.get_queryset().filter(created_by=user) if user else Article.objects.none()

        status_filter = request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(workflow_status=status_filter)

        return self._paginated(queryset.order_by('-updated_at'))

    @action(detail=False, methods=['get'], url_path='review-queue')
    def review_queue(self, request):
        """Articles in review, oldest submission first."""
        queryset = self.get_queryset().filter(
            workflow_status=WorkflowStatus.REVIEW.value
        ).order_by('submitted_for_review_at', 'created_at')
        return self._paginated(queryset)

    def _paginated(self, queryset):
        page = self.paginate_queryset(queryset)
        if page is not None:
            serializer = self.get_serializer(page, many=True)
            return self.get_paginated_response(serializer.data)
        serializer = self.get_serializer(queryset, many=True)
        return Response(serializer.data)

    # =========================================================================
    # Workflow actions
    # =========================================================================

    @action(detail=True, methods=['post'], url_path='submit-for-review')
    def submit_for_review(self, request, pk=None):
        article = self.get_service().submit_for_review(self.get_object(), request.user)
        return self._workflow_response(article, 'Article submitted for review')

    @action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        review = ReviewSerializer(data=request.data)
        review.is_valid(raise_exception=True)
        article = self.get_service().approve(
            self.get_object(), request.user, review.validated_data['notes'],
        )
        return self._workflow_response(article, 'Article approved')

    @action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        review = ReviewSerializer(data=request.data)
        review.is_valid(raise_exception=True)
        article = self.get_service().reject(
            self.get_object(), request.user, review.validated_data['notes'],
        )
        return self._workflow_response(article, 'Article returned to draft')

    @action(detail=True, methods=['post'])
    def publish(self, request, pk=None):
        article = self.get_service().publish(self.get_object(), request.user)
        return self._workflow_response(article, 'Article published')

    @action(detail=True, methods=['post'])
    def unpublish(self, request, pk=None):
        article = self.get_service().unpublish(self.get_object(), request.user)
        return self._workflow_response(article, 'Article unpublished')

    def _workflow_response(self, article, message):
        return Response({
            'message': message,
            'article': ArticleDetailSerializer(article).data,
        })


class ArticleBySlugView(SafeLookupMixin, generics.RetrieveAPIView):
    """GET /api/articles/slug/{slug}/ - Published article by slug."""

    permission_classes = [PolicyChainPermission]
    serializer_class = ArticleDetailSerializer
    queryset = Article.published.select_related('created_by', 'reviewed_by').prefetch_related('tags')
    lookup_field = 'slug'
    not_found_message = 'Article not found'


# =============================================================================
# CMS (all states)
# =============================================================================

class ArticleAdminListView(generics.ListAPIView):
    """GET /api/articles/admin/ - Every article, any status (CMS roles)."""

    permission_classes = [PolicyChainPermission]
    policy_operations = {'get': Operation.ADMIN_READ}
    serializer_class = ArticleListSerializer
    queryset = Article.objects.select_related('created_by').prefetch_related('tags')

    def get_queryset(self):
        queryset = super().get_queryset()
        status_filter = self.request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(workflow_status=status_filter)
        created_by = self.request.query_params.get('created_by')
        if created_by:
            queryset = queryset.filter(created_by_id=created_by)
        return queryset.order_by('-updated_at')


class ArticleAdminDetailView(SafeLookupMixin, generics.RetrieveAPIView):
    """
    GET /api/articles/admin/{id}/        - Article by id, any status (CMS roles)
    GET /api/articles/admin/slug/{slug}/ - Article by slug, any status (CMS roles)
    """

    permission_classes = [PolicyChainPermission]
    policy_operations = {'get': Operation.ADMIN_READ}
    serializer_class = ArticleDetailSerializer
    queryset = Article.objects.select_related('created_by', 'reviewed_by').prefetch_related('tags')

    def get_object(self):
        if 'slug' in self.kwargs:
            self.lookup_field = 'slug'
        return super().get_object()


# =============================================================================
# Tags
# =============================================================================

class TagViewSet(SafeLookupMixin, viewsets.ModelViewSet):
    """
    Tags API.

    GET    /api/tags/                 - List tags
    GET    /api/tags/{id}/            - Tag detail
    GET    /api/tags/slug/{slug}/     - Tag by slug
    POST   /api/tags/                 - Create (CMS roles)
    PATCH  /api/tags/{id}/            - Update (CMS roles)
    DELETE /api/tags/{id}/            - Delete (CMS roles)
    """

    permission_classes = [PolicyChainPermission]
    serializer_class = TagSerializer
    queryset = Tag.objects.all()
    policy_content_type = 'articles.tag'
    not_found_message = 'Tag not found'
    policy_operations = {
        'create': Operation.TAG_WRITE,
        'update': Operation.TAG_WRITE,
        'partial_update': Operation.TAG_WRITE,
        'destroy': Operation.TAG_WRITE,
    }

    @action(detail=False, methods=['get'], url_path=r'slug/(?P<slug>[-\w]+)')
    def by_slug(self, request, slug=None):
        tag = Tag.objects.filter(slug=slug).first()
        if tag is None:
            raise NotFoundError("Tag not found")
        return Response(self.get_serializer(tag).data)
