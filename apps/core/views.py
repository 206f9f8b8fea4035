"""
Health check, metrics and authentication views.
"""

from django.http import JsonResponse
from django.views import View
from django.views.decorators.csrf import csrf_exempt
from django.utils.decorators import method_decorator

from rest_framework import status
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from apps.core.authentication import is_service_request
from apps.core.exceptions import ErrorCode, error_response
from apps.core.metrics import metrics_view
from apps.core.observability import (
    health_checker,
    register_default_checks,
    HealthStatus,
)
from apps.core.serializers import (
    CustomTokenObtainPairSerializer,
    UserSerializer,
    UserUpdateSerializer,
)


# Register default health checks on module load
register_default_checks()


@method_decorator(csrf_exempt, name='dispatch')
class HealthCheckView(View):
    """
    Health check endpoint.

    GET /health/ - Run all health checks
    GET /health/<check_name>/ - Run specific health check
    """

    def get(self, request, check_name=None):
        """Run health checks."""
        if check_name:
            result = health_checker.check(check_name)
            status_code = 200 if result.status == HealthStatus.HEALTHY else 503
            return JsonResponse(result.to_dict(), status=status_code)

        # Run all checks
        results = health_checker.check_all()
        status_code = 200 if results["status"] == "healthy" else 503
        return JsonResponse(results, status=status_code)


@method_decorator(csrf_exempt, name='dispatch')
class LivenessView(View):
    """
    Kubernetes liveness endpoint.

    Returns 200 if the application is running.
    """

    def get(self, request):
        """Simple liveness check."""
        return JsonResponse({"status": "alive"})


@method_decorator(csrf_exempt, name='dispatch')
class ReadinessView(View):
    """
    Kubernetes readiness endpoint.

    Returns 200 if the application is ready to serve traffic.
    """

    def get(self, request):
        """Check if application is ready."""
        db_check = health_checker.check("database")

        if db_check.status == HealthStatus.HEALTHY:
            return JsonResponse({"status": "ready"})
        else:
            return JsonResponse({
                "status": "not_ready",
                "reason": db_check.message,
            }, status=503)


@method_decorator(csrf_exempt, name='dispatch')
class MetricsView(View):
    """
    Prometheus metrics endpoint.

    GET /metrics/ - Metrics in Prometheus text format
    """

    def get(self, request):
        return metrics_view(request)


# =============================================================================
# JWT Authentication Views
# =============================================================================

class CustomTokenObtainPairView(TokenObtainPairView):
    """
    Login endpoint that returns JWT tokens.

    POST /api/auth/login/
    Body: {"username": "...", "password": "..."}
    Returns: {"access": "...", "refresh": "...", "user": {...}}
    """
    serializer_class = CustomTokenObtainPairSerializer
    permission_classes = [AllowAny]


class CustomTokenRefreshView(TokenRefreshView):
    """
    Token refresh endpoint.

    POST /api/auth/refresh/
    Body: {"refresh": "..."}
    Returns: {"access": "..."}
    """
    permission_classes = [AllowAny]


class CurrentUserView(APIView):
    """
    Get or update the current authenticated user.

    GET /api/auth/me/ - Get current user info, role and capabilities
    PATCH /api/auth/me/ - Update name/email
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        """Get current user with profile."""
        if is_service_request(request):
            token = request.auth
            return Response({
                "service": token.name,
                "prefix": token.prefix,
                "credential": "service",
            })
        serializer = UserSerializer(request.user)
        return Response(serializer.data)

    def patch(self, request):
        """Update current user info."""
        if is_service_request(request):
            return error_response(
                ErrorCode.INVALID_REQUEST,
                "Service credentials have no user profile",
                status_code=status.HTTP_400_BAD_REQUEST,
                request_id=getattr(request, "request_id", None),
            )

        user_serializer = UserUpdateSerializer(
            request.user,
            data=request.data,
            partial=True
        )
        user_serializer.is_valid(raise_exception=True)
        user_serializer.save()
        return Response(UserSerializer(request.user).data)
