"""Audit log creation service."""

from django.core import serializers

from ..models import AuditLog, Family, Holder, Rob

ENTITY_NAMES = {
    Family: "families",
    Holder: "holders",
    Rob: "robs",
}


def snapshot(instance) -> dict:
    """Return a JSON-safe dict of the instance's field values."""
    data = serializers.serialize("python", [instance])[0]["fields"]
    data["id"] = instance.pk
    return data


def record(
    operation: str,
    instance,
    *,
    before: dict | None = None,
    after: dict | None = None,
    user=None,
) -> AuditLog:
    """Append an audit entry for ``instance``. Returns the AuditLog."""
    return AuditLog.objects.create(
        entity=ENTITY_NAMES[type(instance)],
        entity_id=str(instance.pk),
        operation=operation,
        old_data=before,
        new_data=after,
        user=user if user is not None and user.is_authenticated else None,
    )
