"""
Model mixins shared across marketplace apps.

Available Mixins:
    UUIDPrimaryKeyMixin: Use a random UUID as primary key

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin

    class Payment(UUIDPrimaryKeyMixin, BaseModel):
        reference = models.CharField(max_length=64, unique=True)
"""

from __future__ import annotations

import uuid

from django.db import models


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of an auto-increment integer.

    Booking, payment and dispute ids appear in URLs and gateway metadata,
    so they must not reveal record counts or be guessable.

    Fields:
        id: UUIDField primary key (auto-generated)
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True
