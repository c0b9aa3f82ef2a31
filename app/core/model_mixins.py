"""
Model mixins providing reusable functionality for Django models.

Available Mixins:
    UUIDPrimaryKeyMixin: Use UUID as primary key

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin

    class Charge(UUIDPrimaryKeyMixin, BaseModel):
        external_charge_id = models.CharField(max_length=64)

Note:
    Always list mixins before BaseModel in inheritance.
"""

from __future__ import annotations

import uuid

from django.db import models


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    Ids of payment orders and transfers travel to the payment gateway as
    external references, so they must be non-guessable and safe to
    generate before the row is inserted.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True
