"""
URL patterns for core app observability and auth endpoints.
"""

from django.urls import path
from .views import (
    HealthCheckView,
    LivenessView,
    ReadinessView,
    MetricsView,
    CustomTokenObtainPairView,
    CustomTokenRefreshView,
    CurrentUserView,
)

app_name = 'core'

urlpatterns = [
    # Health checks
    path('health/', HealthCheckView.as_view(), name='health'),
    path('health/<str:check_name>/', HealthCheckView.as_view(), name='health-check'),

    # Kubernetes liveness and readiness
    path('livez/', LivenessView.as_view(), name='liveness'),
    path('readyz/', ReadinessView.as_view(), name='readiness'),

    # Metrics
    path('metrics/', MetricsView.as_view(), name='metrics'),
]

# Auth URLs - mounted at /api/auth/ in main urls.py
auth_urlpatterns = [
    path('login/', CustomTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('refresh/', CustomTokenRefreshView.as_view(), name='token_refresh'),
    path('me/', CurrentUserView.as_view(), name='current_user'),
]
