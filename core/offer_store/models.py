"""
Shopfront Offer Store - Relational Offer and Experiment State
==============================================================
Offers and experiments are written by store operators and only read by
the engine. Exposure and conversion rows are append-only telemetry; an
exposure is unique per (experiment, variant, visitor, offer).
"""

from __future__ import annotations

from typing import Any

from django.db import models


class OfferType(models.TextChoices):
    PERCENT_DISCOUNT = "percent_discount", "Percent discount"
    FLAT_DISCOUNT = "flat_discount", "Flat discount"
    BUY_X_GET_Y = "buy_x_get_y", "Buy X get Y"
    FREE_ITEM = "free_item", "Free item"


class OfferStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"


class ExperimentStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    RUNNING = "running", "Running"
    PAUSED = "paused", "Paused"
    COMPLETED = "completed", "Completed"
    ARCHIVED = "archived", "Archived"


class OfferRecord(models.Model):
    offer_id = models.CharField(primary_key=True, max_length=100)
    name = models.CharField(max_length=255)
    marketing_text = models.TextField(default="", blank=True)
    offer_type = models.CharField(max_length=32, choices=OfferType.choices)
    status = models.CharField(
        max_length=16,
        choices=OfferStatus.choices,
        default=OfferStatus.ACTIVE,
    )
    priority = models.IntegerField(default=0)
    valid_from = models.DateTimeField(null=True, blank=True)
    valid_until = models.DateTimeField(null=True, blank=True)
    exclusivity_group = models.CharField(max_length=100, null=True, blank=True)
    channels = models.JSONField(default=list, blank=True)
    benefit = models.JSONField(default=dict, blank=True)
    qualifying_filters = models.JSONField(default=dict, blank=True)
    caps_config = models.JSONField(default=dict, blank=True)
    conditions = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "shopfront_offers"
        ordering = ["-priority", "offer_id"]
        indexes = [
            models.Index(fields=["status", "priority"], name="idx_offer_status_priority"),
        ]

    def __str__(self) -> str:
        return f"{self.offer_id} ({self.name})"

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.offer_id,
            "name": self.name,
            "marketing_text": self.marketing_text,
            "offer_type": self.offer_type,
            "status": self.status,
            "priority": self.priority,
            "valid_from": self.valid_from,
            "valid_until": self.valid_until,
            "exclusivity_group": self.exclusivity_group,
            "channels": list(self.channels or []),
            "benefit": dict(self.benefit or {}),
            "qualifying_filters": dict(self.qualifying_filters or {}),
            "caps_config": dict(self.caps_config or {}),
            "conditions": dict(self.conditions or {}),
        }


class ExperimentRecord(models.Model):
    experiment_id = models.CharField(primary_key=True, max_length=100)
    name = models.CharField(max_length=255)
    description = models.TextField(default="", blank=True)
    status = models.CharField(
        max_length=16,
        choices=ExperimentStatus.choices,
        default=ExperimentStatus.DRAFT,
    )
    traffic_percent = models.PositiveSmallIntegerField(default=100)
    start_date = models.DateTimeField(null=True, blank=True)
    end_date = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "shopfront_experiments"
        ordering = ["experiment_id"]

    def __str__(self) -> str:
        return f"{self.experiment_id} ({self.status})"

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.experiment_id,
            "name": self.name,
            "status": self.status,
            "traffic_percent": self.traffic_percent,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "variants": [variant.to_row() for variant in self.variants.all()],
        }


class VariantRecord(models.Model):
    variant_id = models.CharField(primary_key=True, max_length=100)
    experiment = models.ForeignKey(
        ExperimentRecord,
        on_delete=models.CASCADE,
        related_name="variants",
        db_column="experiment_id",
    )
    name = models.CharField(max_length=255)
    weight = models.PositiveIntegerField(default=1)
    offer_ids = models.JSONField(default=list, blank=True)
    suppress_offer_ids = models.JSONField(default=list, blank=True)
    is_control = models.BooleanField(default=False)
    sort_order = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "shopfront_experiment_variants"
        ordering = ["experiment_id", "sort_order", "variant_id"]

    def __str__(self) -> str:
        return f"{self.variant_id} ({self.experiment_id})"

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.variant_id,
            "name": self.name,
            "weight": self.weight,
            "offer_ids": list(self.offer_ids or []),
            "suppress_offer_ids": list(self.suppress_offer_ids or []),
            "is_control": self.is_control,
        }


class ExposureRecord(models.Model):
    id = models.BigAutoField(primary_key=True)
    experiment_id = models.CharField(max_length=100)
    variant_id = models.CharField(max_length=100)
    visitor_id = models.CharField(max_length=255)
    offer_id = models.CharField(max_length=100)
    user_id = models.CharField(max_length=255, null=True, blank=True)
    session_id = models.CharField(max_length=255, null=True, blank=True)
    channel = models.CharField(max_length=32, default="web")
    occurred_at = models.DateTimeField()
    recorded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "shopfront_experiment_exposures"
        ordering = ["experiment_id", "variant_id", "occurred_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["experiment_id", "variant_id", "visitor_id", "offer_id"],
                name="uq_exposure_exp_variant_visitor_offer",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.experiment_id}/{self.variant_id} {self.visitor_id} saw {self.offer_id}"


class ConversionRecord(models.Model):
    id = models.BigAutoField(primary_key=True)
    experiment_id = models.CharField(max_length=100)
    variant_id = models.CharField(max_length=100)
    visitor_id = models.CharField(max_length=255)
    user_id = models.CharField(max_length=255, null=True, blank=True)
    session_id = models.CharField(max_length=255, null=True, blank=True)
    conversion_type = models.CharField(max_length=64)
    conversion_value = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True,
    )
    order_id = models.CharField(max_length=100, null=True, blank=True)
    properties = models.JSONField(default=dict, blank=True)
    occurred_at = models.DateTimeField()
    recorded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "shopfront_experiment_conversions"
        ordering = ["experiment_id", "variant_id", "occurred_at", "id"]
        indexes = [
            models.Index(
                fields=["experiment_id", "variant_id"],
                name="idx_conversion_exp_variant",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.experiment_id}/{self.variant_id} {self.visitor_id} {self.conversion_type}"
