"""API views for the study field and category taxonomies."""
from __future__ import annotations

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import APIException
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.request import Request
from rest_framework.response import Response

from .exceptions import ProtectedEntityError
from .models import Category, StudyField
from .providers import get_category_provider, get_study_field_provider
from .serializers import (
    CategoryOrderSerializer,
    CategorySerializer,
    DetectCategorySerializer,
    DetectTextSerializer,
    StudyFieldSerializer,
    ToggleStatusSerializer,
)


class Conflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The entry is protected."
    default_code = "conflict"


class CategoryViewSet(viewsets.ModelViewSet):
    queryset = Category.objects.all()
    serializer_class = CategorySerializer
    lookup_field = "category_id"
    filter_backends = [SearchFilter, OrderingFilter]
    search_fields = ["category_id", "name", "description"]
    ordering_fields = ["display_order", "name", "updated_at"]
    ordering = ["display_order"]

    def perform_create(self, serializer):  # type: ignore[override]
        created = get_category_provider().add(dict(serializer.validated_data))
        serializer.instance = Category.objects.get(category_id=created["category_id"])

    def perform_update(self, serializer):  # type: ignore[override]
        instance = serializer.instance
        try:
            get_category_provider().update(instance.category_id, dict(serializer.validated_data))
        except ProtectedEntityError as exc:
            raise Conflict(str(exc)) from exc
        instance.refresh_from_db()

    def perform_destroy(self, instance):  # type: ignore[override]
        try:
            get_category_provider().delete(instance.category_id)
        except ProtectedEntityError as exc:
            raise Conflict(str(exc)) from exc

    @action(detail=False, methods=["get"], url_path="options", url_name="options")
    def option_list(self, request: Request) -> Response:
        return Response(get_category_provider().get_options())

    @action(detail=False, methods=["get"], url_path="sections")
    def sections(self, request: Request) -> Response:
        return Response(get_category_provider().organized_sections())

    @action(detail=False, methods=["get"], url_path="statistics")
    def statistics(self, request: Request) -> Response:
        return Response(get_category_provider().statistics())

    @action(detail=False, methods=["post"], url_path="reorder")
    def reorder(self, request: Request) -> Response:
        """Persist a new display order for several categories at once."""

        serializer = CategoryOrderSerializer(data=request.data, many=True)
        serializer.is_valid(raise_exception=True)
        provider = get_category_provider()
        provider.reorder((item["category_id"], item["order"]) for item in serializer.validated_data)
        return Response(provider.get_options())

    @action(detail=True, methods=["post"], url_path="toggle")
    def toggle(self, request: Request, *args, **kwargs) -> Response:
        category = self.get_object()
        serializer = ToggleStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        get_category_provider().toggle_status(
            category.category_id, serializer.validated_data["is_active"]
        )
        category.refresh_from_db()
        return Response(self.get_serializer(category).data)

    @action(detail=False, methods=["post"], url_path="detect")
    def detect(self, request: Request) -> Response:
        """Suggest a section for a form field from its id, label or section."""

        serializer = DetectCategorySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        category = get_category_provider().detect_category_from_field(serializer.validated_data)
        return Response(category)


class StudyFieldViewSet(viewsets.ModelViewSet):
    queryset = StudyField.objects.all()
    serializer_class = StudyFieldSerializer
    lookup_field = "field_id"
    filter_backends = [SearchFilter, OrderingFilter]
    search_fields = ["field_id", "name", "description"]
    ordering_fields = ["created_at", "name"]
    ordering = ["created_at"]

    def perform_create(self, serializer):  # type: ignore[override]
        created = get_study_field_provider().add(dict(serializer.validated_data))
        serializer.instance = StudyField.objects.get(field_id=created["field_id"])

    def perform_update(self, serializer):  # type: ignore[override]
        instance = serializer.instance
        get_study_field_provider().update(instance.field_id, dict(serializer.validated_data))
        instance.refresh_from_db()

    def perform_destroy(self, instance):  # type: ignore[override]
        try:
            get_study_field_provider().delete(instance.field_id)
        except ProtectedEntityError as exc:
            raise Conflict(str(exc)) from exc

    @action(detail=False, methods=["get"], url_path="options", url_name="options")
    def option_list(self, request: Request) -> Response:
        return Response(get_study_field_provider().get_options())

    @action(detail=False, methods=["get"], url_path="statistics")
    def statistics(self, request: Request) -> Response:
        return Response(get_study_field_provider().statistics())

    @action(detail=False, methods=["post"], url_path="detect")
    def detect(self, request: Request) -> Response:
        """Guess the study field a piece of free text is about."""

        serializer = DetectTextSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        field = get_study_field_provider().detect_field_from_text(serializer.validated_data["text"])
        return Response({"field": field})
