"""Project-level views for ROBDESK."""

from django.http import JsonResponse


def health_check(request):
    """Report database, cache and ROB bookkeeping health.

    ``drifted_robs`` lists ROBs whose ``current_load`` no longer matches
    their assigned holders; any entry marks the service degraded.
    """
    from django.core.cache import cache
    from django.db import DatabaseError, connection

    from tooling.services.assignment import find_drifted_robs

    try:
        connection.ensure_connection()
        database_ok = True
    except DatabaseError:
        database_ok = False

    try:
        cache.set("_robdesk_health", "1", timeout=10)
        cache_ok = cache.get("_robdesk_health") == "1"
    except Exception:
        cache_ok = False

    drifted = find_drifted_robs() if database_ok else []

    healthy = database_ok and cache_ok and not drifted
    return JsonResponse(
        {
            "status": "ok" if healthy else "degraded",
            "database": database_ok,
            "cache": cache_ok,
            "drifted_robs": drifted,
        },
        status=200 if database_ok else 503,
    )
