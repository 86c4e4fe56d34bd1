from django.db import models


# ---------- Tenant / Group ----------
class Group(models.Model):
    """Tenant: owns the chart of accounts shared by its entities"""

    name = models.CharField(max_length=200)
    # A URL-friendly identifier, no two groups share one
    slug = models.SlugField(max_length=80, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name


# ---------- Entity ----------
class Entity(models.Model):
    """Legal / operating unit under a group. Accounts and documents hang off it."""

    group = models.ForeignKey(
        Group,
        on_delete=models.CASCADE,
        related_name="entities",
    )
    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=80)
    # Functional currency, every amount of the entity is in its minor units
    currency_code = models.CharField(max_length=10, default="USD")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "entities"
        constraints = [
            models.UniqueConstraint(
                fields=["group", "slug"], name="uq_group_entity_slug"
            ),
        ]

    def __str__(self):
        return f"{self.group.slug}/{self.slug}"
