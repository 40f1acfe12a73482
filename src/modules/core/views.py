"""Liveness/readiness endpoint for load balancers and orchestration."""

import time
from typing import Any, Callable, Dict

import structlog
from django.conf import settings
from django.core.cache import cache
from django.db import connections
from django.http import HttpRequest, JsonResponse
from django.utils import timezone

logger = structlog.get_logger(__name__)


def _ping_database() -> None:
    conn = connections["default"]
    conn.ensure_connection()
    with conn.cursor() as cursor:
        cursor.execute("SELECT 1")
        cursor.fetchone()


def _ping_cache() -> None:
    cache.set("_health_check", "ok", 10)
    if cache.get("_health_check") != "ok":
        raise ConnectionError("Cache read failed")


def _probe(name: str, ping: Callable[[], None]) -> Dict[str, Any]:
    start = time.monotonic()
    try:
        ping()
    except Exception:
        logger.exception("health.dependency_down", dependency=name)
        return {"status": "down"}
    return {
        "status": "up",
        "response_time_ms": round((time.monotonic() - start) * 1000, 2),
    }


def health_check(request: HttpRequest) -> JsonResponse:
    """GET /health: database and cache probes; routing is reported, not probed."""
    services = {
        "database": _probe("database", _ping_database),
        "cache": _probe("cache", _ping_cache),
    }
    healthy = all(s["status"] == "up" for s in services.values())
    services["routing"] = {
        "status": "enabled" if settings.ROUTING_BASE_URL else "straight-line only"
    }

    logger.info("health.checked", healthy=healthy)
    return JsonResponse(
        {
            "status": "healthy" if healthy else "unhealthy",
            "timestamp": timezone.now().isoformat(),
            "services": services,
        },
        status=200 if healthy else 503,
    )
