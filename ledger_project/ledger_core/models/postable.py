from django.db import models

from ..choices import PENDING, POSTING_STATUS, POSTING_TRANSITIONS
from ..exceptions import InvalidStatusTransition
from ..managers import PostableManager
from .tenant import Entity


class PostableDocument(models.Model):
    """
    Business document that triggers a journal posting.

    posting_status workflow:
        Pending -> Processing -> Success
        Processing -> Failed -> Pending (retry)
    Success is terminal.
    """

    # Journal reference prefix, e.g. "INV" -> "INV-42"
    JOURNAL_PREFIX = ""

    entity = models.ForeignKey(Entity, on_delete=models.CASCADE)
    posting_status = models.CharField(
        max_length=12, choices=POSTING_STATUS, default=PENDING
    )
    journal_reference = models.CharField(max_length=64, blank=True, default="")
    posted_at = models.DateTimeField(null=True, blank=True)
    error_message = models.TextField(blank=True, default="")
    error_code = models.CharField(max_length=64, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = PostableManager()

    class Meta:
        abstract = True

    def journal_reference_for(self):
        """Deterministic: the same document always maps to the same journal"""
        return f"{self.JOURNAL_PREFIX}-{self.pk}"

    @property
    def posting_amount(self):
        raise NotImplementedError

    def set_posting_status(self, new_status, **fields):
        """
        Compare-and-swap on posting_status. The row only moves if it is still
        in the status this instance last saw, so two workers cannot both win.
        """
        current = self.posting_status
        if new_status not in POSTING_TRANSITIONS.get(current, []):
            raise InvalidStatusTransition(
                f"Cannot go from {current} to {new_status}")

        updated = (
            type(self)
            .objects.filter(pk=self.pk, posting_status=current)
            .update(posting_status=new_status, **fields)
        )
        if updated != 1:
            raise InvalidStatusTransition(
                f"{type(self).__name__} {self.pk} is no longer {current}"
            )

        self.posting_status = new_status
        for name, value in fields.items():
            setattr(self, name, value)
