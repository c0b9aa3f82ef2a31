"""
Core views providing infrastructure endpoints.

Only the health check lives here; business endpoints belong to the
domain apps.
"""

import logging

from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def health_check(request):
    """
    Health check endpoint for load balancers and container orchestration.

    The database is required; the cache is reported but a cache outage
    only degrades the response (django-redis is configured to ignore
    connection errors).

    Returns:
        200 with {"status": "healthy", ...} when the database answers,
        503 otherwise.
    """
    health_status = {"status": "healthy", "database": "unknown", "cache": "unknown"}

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except DatabaseError:
        logger.error("Health check database query failed", exc_info=True)
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"

    cache.set("health_check", "ok", timeout=1)
    health_status["cache"] = (
        "connected" if cache.get("health_check") == "ok" else "disconnected"
    )

    status_code = 200 if health_status["status"] == "healthy" else 503
    return JsonResponse(health_status, status=status_code)
