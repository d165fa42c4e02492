"""Structured logging helpers (PII-safe)."""

from typing import Any


def build_log_context(
    *,
    actor_user_id: str | None = None,
    effective_user_id: str | None = None,
    org_id: str | None = None,
    request_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict.

    Never pass tokens, token hashes, emails or raw IPs here.
    """
    context: dict[str, Any] = {}
    if actor_user_id:
        context["actor_user_id"] = actor_user_id
    if effective_user_id and effective_user_id != actor_user_id:
        context["effective_user_id"] = effective_user_id
    if org_id:
        context["org_id"] = str(org_id)
    if request_id:
        context["request_id"] = request_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
