from django.db import models

from .choices import FAILED, PENDING


# -----------------------------------------
# Enforce tenant scoping across all models
# that belong to an entity (or a group)
# -----------------------------------------
class TenantQuerySet(models.QuerySet):
    def for_entity(self, entity):
        return self.filter(entity=entity)

    def active(self, entity):
        return self.filter(
            entity=entity,  # enforce tenant scoping
            is_active=True,  # only fetch active records
        )

    # chart of accounts is shared by every entity of a group
    def for_group(self, group):
        return self.filter(group=group)


class TenantManager(models.Manager):
    # every model gets TenantQuerySet, so .for_entity() is always available
    def get_queryset(self):
        return TenantQuerySet(self.model, using=self._db)

    def for_entity(self, entity):
        return self.get_queryset().for_entity(entity)

    def active(self, entity):
        return self.get_queryset().active(entity)

    def for_group(self, group):
        return self.get_queryset().for_group(group)

    # Enables query:
    # Invoice.objects.for_entity(entity)


# Documents that feed the posting pipeline
class PostableQuerySet(TenantQuerySet):
    def pending(self):
        return self.filter(posting_status=PENDING)

    def failed(self):
        return self.filter(posting_status=FAILED)


class PostableManager(TenantManager):
    def get_queryset(self):
        return PostableQuerySet(self.model, using=self._db)

    def pending(self):
        return self.get_queryset().pending()

    def failed(self):
        return self.get_queryset().failed()
