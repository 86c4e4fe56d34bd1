from typing import Optional

from ..models import AuditLog, Entity


def log_action(
    *,
    action: str,
    instance,
    actor: str = "system",
    entity: Optional[Entity] = None,
    changes: dict | None = None,
):
    """
    Central audit logger.
    Safe to call multiple times (caller ensures idempotency).
    """

    if not entity:
        entity = getattr(instance, "entity", None)

    return AuditLog.objects.create(
        entity=entity,
        actor=actor,
        action=action,
        object_type=instance.__class__.__name__,
        object_id=str(instance.pk),
        changes=changes,
    )
