from __future__ import annotations

from django.contrib.auth import get_user_model

from .models import AuditLog


def client_ip(request) -> str:
    if request is None:
        return ""
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR", "")


def log_action(  # noqa: PLR0913
    action: str,
    *,
    actor: object | None = None,
    organization=None,
    entity_type: str = "",
    entity_id: object | None = None,
    message: str = "",
    before: dict | list | None = None,
    after: dict | list | None = None,
    ip_address: str = "",
    user_agent: str = "",
) -> AuditLog:
    user_model = get_user_model()
    actor_user = actor if isinstance(actor, user_model) else None
    return AuditLog.objects.create(
        action=action,
        actor=actor_user,
        organization=organization,
        entity_type=entity_type,
        entity_id="" if entity_id is None else str(entity_id),
        message=message,
        before=before,
        after=after,
        ip_address=ip_address,
        user_agent=user_agent[:255],
    )


def log_request_action(request, action: str, **kwargs) -> AuditLog:
    """``log_action`` with actor, IP and user agent taken from ``request``."""

    return log_action(
        action,
        actor=getattr(request, "user", None),
        ip_address=client_ip(request),
        user_agent=request.META.get("HTTP_USER_AGENT", ""),
        **kwargs,
    )
