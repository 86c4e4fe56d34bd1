from django.db import models

from ..managers import TenantManager
from .tenant import Entity


# ---------- Audit / Event log ----------
class AuditLog(
    models.Model
):  # Gives accountability and traceability across the posting engine
    # Nullable because some actions are system-wide (e.g. chart seeding)
    entity = models.ForeignKey(
        Entity,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
    )
    # Who performed the action: a user name, or "system" for workers
    actor = models.CharField(max_length=150, default="system")
    # Common choices: issue, post, post_failed, retry, finalize
    action = models.CharField(max_length=50)
    # e.g. "Invoice", "Journal", "OpeningBalance"
    object_type = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    # Before/after details of what changed, in JSON format
    changes = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["entity", "created_at"], name="audit_entity_created_idx"),
            models.Index(fields=["object_type", "object_id"], name="audit_object_idx"),
        ]

    def __str__(self):
        time = self.created_at
        return f"[{time:%Y-%m-%d %H:%M}] {self.actor} {self.action} {self.object_type}({self.object_id})"

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
