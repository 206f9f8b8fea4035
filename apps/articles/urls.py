"""
Articles API URLs.

Mounted at /api/articles/; tag endpoints are mounted at /api/tags/ in the
project urls.py.
"""

from django.urls import path, include
from config.routers import SafeDefaultRouter
from .views import (
    ArticleViewSet,
    ArticleBySlugView,
    ArticleAdminListView,
    ArticleAdminDetailView,
    TagViewSet,
)

app_name = 'articles'

router = SafeDefaultRouter()
router.register(r'', ArticleViewSet, basename='article')

urlpatterns = [
    # Explicit paths before the router so they are not read as article ids
    path('slug/<slug:slug>/', ArticleBySlugView.as_view(), name='article-by-slug'),

    # CMS views (all workflow states)
    path('admin/', ArticleAdminListView.as_view(), name='article-admin-list'),
    path('admin/slug/<slug:slug>/', ArticleAdminDetailView.as_view(), name='article-admin-by-slug'),
    path('admin/<str:pk>/', ArticleAdminDetailView.as_view(), name='article-admin-detail'),

    path('', include(router.urls)),
]

tag_router = SafeDefaultRouter()
tag_router.register(r'', TagViewSet, basename='tag')

# Mounted at /api/tags/ in main urls.py
tag_urlpatterns = [
    path('', include(tag_router.urls)),
]
