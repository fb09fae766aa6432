"""
Shopfront Django adapter URL routing.
"""

from django.urls import path

from adapters.django_api import views


urlpatterns = [
    path("offers/evaluate", views.evaluate_offers_view),
    path("experiments/conversions", views.record_conversion_view),
    path("experiments/stats", views.experiment_stats_view),
]
