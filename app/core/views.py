"""
Core views and response helpers.

This module contains infrastructure endpoints (health check) and the
translation of domain exceptions into HTTP responses used by every app's
API views.
"""

from __future__ import annotations

import logging

from django.db import connection
from django.http import JsonResponse
from rest_framework import status
from rest_framework.response import Response

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# Most specific classes first; subclasses inherit their parent's status.
ERROR_STATUS_MAP: list[tuple[type[BaseApplicationError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ExternalServiceError, status.HTTP_502_BAD_GATEWAY),
]


def status_for_error(exc: BaseApplicationError) -> int:
    """Return the HTTP status code for a domain exception."""
    for error_class, status_code in ERROR_STATUS_MAP:
        if isinstance(exc, error_class):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def error_response(exc: BaseApplicationError) -> Response:
    """
    Build a DRF Response for a domain exception.

    Usage:
        try:
            booking = BookingLifecycleManager.accept(pk, request.user)
        except BaseApplicationError as e:
            return error_response(e)
    """
    status_code = status_for_error(exc)
    logger.info(
        "Domain error returned to client",
        extra={"error_code": exc.error_code, "status_code": status_code},
    )
    return Response(exc.to_dict(), status=status_code)


def health_check(request):
    """
    Health check endpoint for load balancers and container probes.

    Returns:
        JsonResponse with overall status plus database and cache state.
        200 when the database is reachable, 503 otherwise. Cache failures
        degrade the report but do not fail the check.
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "cache": "unknown",
    }
    is_healthy = True

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except Exception:
        logger.exception("Health check database probe failed")
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        is_healthy = False

    try:
        from django.core.cache import cache

        cache.set("health_check", "ok", timeout=1)
        health_status["cache"] = (
            "connected" if cache.get("health_check") == "ok" else "disconnected"
        )
    except Exception:
        logger.warning("Health check cache probe failed", exc_info=True)
        health_status["cache"] = "disconnected"

    return JsonResponse(health_status, status=200 if is_healthy else 503)
