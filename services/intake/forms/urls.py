"""Route registration for configuration and intake endpoints."""
from __future__ import annotations

from django.urls import include, path
from rest_framework.routers import SimpleRouter

from .views import (
    ActiveConfigurationView,
    BackgroundSelectionViewSet,
    IntakeSubmissionViewSet,
    PresetViewSet,
    configuration_list,
    configuration_preview,
    configuration_validate,
    field_change,
    health,
    queue_metrics,
    readiness,
)

router = SimpleRouter()
router.register("presets", PresetViewSet, basename="preset")
router.register("background-selections", BackgroundSelectionViewSet, basename="background-selection")
router.register("intake/submissions", IntakeSubmissionViewSet, basename="intake-submission")

urlpatterns = [
    path("healthz/", health, name="intake-health"),
    path("configurations/", configuration_list, name="configuration-list"),
    path("configurations/active/", ActiveConfigurationView.as_view(), name="configuration-active"),
    path("configurations/validate/", configuration_validate, name="configuration-validate"),
    path("configurations/preview/", configuration_preview, name="configuration-preview"),
    path("intake/field-change/", field_change, name="intake-field-change"),
    path("intake/readiness/", readiness, name="intake-readiness"),
    path("intake/queue-metrics/", queue_metrics, name="intake-queue-metrics"),
    path("", include(router.urls)),
]
