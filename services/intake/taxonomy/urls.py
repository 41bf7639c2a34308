"""Route registration for taxonomy endpoints."""
from __future__ import annotations

from django.urls import include, path
from rest_framework.routers import SimpleRouter

from .views import CategoryViewSet, StudyFieldViewSet

router = SimpleRouter()
router.register("categories", CategoryViewSet, basename="category")
router.register("study-fields", StudyFieldViewSet, basename="study-field")

urlpatterns = [
    path("", include(router.urls)),
]
