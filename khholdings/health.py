import time

from django.conf import settings
from django.core.cache import cache
from django.db import connection, DatabaseError
from django.utils import timezone

from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny
from rest_framework import status


def _measure_ms(fn):
    start = time.monotonic()
    fn()
    return round((time.monotonic() - start) * 1000, 2)


def _ping_database():
    with connection.cursor() as cursor:
        cursor.execute("SELECT 1")


def _ping_cache():
    cache.set("health_check", "ok", 1)
    cache.get("health_check")


class HealthCheckView(APIView):
    """Liveness report for monitoring. 503 when the database or cache is down."""
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        checks = {}
        healthy = True

        try:
            checks["database"] = {
                "status": "healthy",
                "message": "Database connection successful",
                "response_time_ms": _measure_ms(_ping_database),
            }
        except DatabaseError as e:
            checks["database"] = {
                "status": "unhealthy",
                "message": f"Database connection failed: {e}",
                "response_time_ms": None,
            }
            healthy = False

        backend = settings.CACHES["default"]["BACKEND"].rsplit(".", 1)[-1]
        try:
            checks["cache"] = {
                "status": "healthy",
                "message": f"Using {backend} cache",
                "response_time_ms": _measure_ms(_ping_cache),
            }
        except Exception as e:
            checks["cache"] = {
                "status": "unhealthy",
                "message": f"Cache connection failed: {e}",
                "response_time_ms": None,
            }
            healthy = False

        checks["application"] = {
            "status": "healthy",
            "message": "Application is running",
            "version": settings.APP_VERSION,
            "debug_mode": settings.DEBUG,
        }

        gateway_configured = bool(settings.CURLEC_KEY_ID and settings.CURLEC_KEY_SECRET)
        checks["payment_gateway"] = {
            "status": "healthy" if gateway_configured else "unhealthy",
            "message": "Curlec payment gateway configured" if gateway_configured else "Curlec payment gateway not configured",
            "configured": gateway_configured,
            "sandbox": settings.CURLEC_SANDBOX,
        }

        mail_configured = bool(settings.EMAIL_HOST and settings.EMAIL_HOST_USER)
        checks["mail"] = {
            "status": "healthy" if mail_configured else "unhealthy",
            "message": "Mail configuration found" if mail_configured else "Mail configuration incomplete",
            "configured": mail_configured,
        }

        overall = "healthy" if healthy else "unhealthy"
        return Response(
            {
                "status": overall,
                "timestamp": timezone.now().isoformat(),
                "service": "KH Holdings Insurance API",
                "version": settings.APP_VERSION,
                "checks": checks,
            },
            status=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        )
