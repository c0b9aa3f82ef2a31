"""
Core base models providing common functionality for all domain models.

Base Classes:
    BaseModel: Abstract model with timestamps (created_at, updated_at)
    VersionedModel: BaseModel plus a monotonic ``version`` counter used by
        conditional (state-guarded) writes

For mixins (UUIDPrimaryKeyMixin), see core.model_mixins.

Usage:
    from core.models import VersionedModel
    from core.model_mixins import UUIDPrimaryKeyMixin

    class Transfer(UUIDPrimaryKeyMixin, VersionedModel):
        status = models.CharField(max_length=20)

Note:
    - Always list mixins before BaseModel in inheritance
    - Queryset ``update()`` calls bypass ``save()``; writers that use them
      must bump ``version`` themselves (see payments.ledger)
"""

from __future__ import annotations

from django.db import models
from django.db.models import F


class BaseModel(models.Model):
    """
    Abstract base model providing creation and modification timestamps.

    Fields:
        created_at: Automatically set when the object is first created
        updated_at: Automatically updated whenever the object is saved
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        db_index=True,
        help_text="Timestamp when this record was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="Timestamp when this record was last modified",
    )

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(id={self.pk})"


class VersionedModel(BaseModel):
    """
    Abstract model with an optimistic-locking version counter.

    The version is incremented atomically on every ``save()`` of an
    existing row, so concurrent writers can be detected by comparing it.
    """

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each write",
    )

    class Meta(BaseModel.Meta):
        abstract = True

    def save(self, *args, **kwargs):
        """Save with version auto-increment on update."""
        is_update = not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
            update_fields = kwargs.get("update_fields")
            if update_fields is not None:
                kwargs["update_fields"] = {*update_fields, "version", "updated_at"}
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])
