"""
Core — Audit Service

Writes AuditLog rows on behalf of the API layer. Domain services hand back
the records they changed; views snapshot them here before and after.

@file core/services.py
"""

from datetime import date
from typing import Any

from core.models import AuditLog


def client_ip(request) -> str | None:
    """First hop of X-Forwarded-For when behind a proxy, else REMOTE_ADDR."""
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR', '')
    first_hop = forwarded.split(',')[0].strip()
    return first_hop or request.META.get('REMOTE_ADDR')


def _json_safe(value):
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    if isinstance(value, dict):
        return {key: _json_safe(item) for key, item in value.items()}
    if isinstance(value, date):
        return value.isoformat()
    # UUID, Decimal
    return str(value)


class AuditService:
    """Single entry point for audit writes."""

    @staticmethod
    def log(
        *,
        actor,
        action: str,
        model_name: str,
        object_id: str,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        ip_address: str | None = None,
        user_agent: str = '',
    ) -> AuditLog:
        return AuditLog.objects.create(
            actor=actor,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            old_values=old_values,
            new_values=new_values,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    @staticmethod
    def log_request(
        request,
        *,
        action: str,
        instance,
        old_values: dict[str, Any] | None = None,
    ) -> AuditLog:
        """Audit a change made through `request`, snapshotting `instance` as the new state."""
        return AuditService.log(
            actor=request.user if request.user.is_authenticated else None,
            action=action,
            model_name=type(instance).__name__,
            object_id=instance.pk,
            old_values=old_values,
            new_values=AuditService.snapshot(instance),
            ip_address=client_ip(request),
            user_agent=request.META.get('HTTP_USER_AGENT', ''),
        )

    @staticmethod
    def snapshot(instance, fields=None) -> dict[str, Any]:
        """
        Editable concrete fields of `instance` as a JSON-safe dict. Foreign
        keys appear under the field name as the related pk.
        """
        return {
            field.name: _json_safe(field.value_from_object(instance))
            for field in instance._meta.concrete_fields
            if field.editable and (fields is None or field.name in fields)
        }
