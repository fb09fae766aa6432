"""
Shopfront Offer Store - App Configuration
==========================================
Persistent offer catalog, experiment definitions and experiment telemetry.
"""

from django.apps import AppConfig


class CoreOfferStoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core.offer_store"
    label = "core_offer_store"
    verbose_name = "Shopfront Offer Store"
