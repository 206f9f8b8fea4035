"""
URL configuration for Newsdesk project.
"""

from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static

from apps.core.urls import auth_urlpatterns
from apps.articles.urls import tag_urlpatterns

urlpatterns = [
    path('admin/', admin.site.urls),
    # Auth endpoints
    path('api/auth/', include((auth_urlpatterns, 'auth'))),
    # Articles API
    path('api/articles/', include('apps.articles.urls')),
    # Tags API
    path('api/tags/', include((tag_urlpatterns, 'tags'))),
    # Observability endpoints
    path('', include('apps.core.urls')),
]

# Serve media files in development
if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)

# Customize admin site
admin.site.site_header = "Newsdesk Administration"
admin.site.site_title = "Newsdesk Admin Portal"
admin.site.index_title = "Welcome to Newsdesk Administration"
