"""ORM-backed collections consumed by the taxonomy providers."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List

from django.apps import apps
from django.db import transaction

from .models import Category, QuestionFieldMapping, StudyField

CATEGORY_COLUMNS = (
    "category_id",
    "name",
    "description",
    "icon",
    "color",
    "display_order",
    "is_active",
    "is_system",
)

STUDY_FIELD_COLUMNS = (
    "field_id",
    "name",
    "icon",
    "description",
    "color",
    "is_active",
)


class CategoryRepository:
    """Collection operations on the ``categories`` table."""

    def list_active(self) -> List[Dict[str, Any]]:
        return list(
            Category.objects.filter(is_active=True)
            .order_by("display_order", "id")
            .values(*CATEGORY_COLUMNS)
        )

    def get(self, category_id: str) -> Dict[str, Any] | None:
        return (
            Category.objects.filter(category_id=category_id)
            .values(*CATEGORY_COLUMNS)
            .first()
        )

    def insert(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        values = {key: payload[key] for key in CATEGORY_COLUMNS if key in payload}
        with transaction.atomic():
            category = Category.objects.create(**values)
        return {key: getattr(category, key) for key in CATEGORY_COLUMNS}

    def update(self, category_id: str, changes: Dict[str, Any]) -> int:
        values = {key: changes[key] for key in CATEGORY_COLUMNS if key in changes}
        category = Category.objects.filter(category_id=category_id).first()
        if category is None:
            return 0
        for attr, value in values.items():
            setattr(category, attr, value)
        category.save(update_fields=[*values.keys(), "updated_at"])
        return 1

    def delete(self, category_id: str) -> int:
        deleted, _ = Category.objects.filter(category_id=category_id).delete()
        return deleted

    def bulk_reorder(self, orders: Iterable[tuple[str, int]]) -> None:
        with transaction.atomic():
            for category_id, order in orders:
                Category.objects.filter(category_id=category_id).update(display_order=order)

    def count_configuration_references(self, category_id: str) -> int:
        """Count stored configuration fields that point at ``category_id``."""

        configuration_model = apps.get_model("forms", "FormConfiguration")
        references = 0
        for fields in configuration_model.objects.values_list("fields", flat=True):
            for field in fields or []:
                if not isinstance(field, dict):
                    continue
                if category_id in (field.get("section"), field.get("category_id")):
                    references += 1
        return references


class StudyFieldRepository:
    """Collection operations on the ``study_fields`` table."""

    def list_active(self) -> List[Dict[str, Any]]:
        return list(
            StudyField.objects.filter(is_active=True)
            .order_by("created_at", "id")
            .values(*STUDY_FIELD_COLUMNS)
        )

    def get(self, field_id: str) -> Dict[str, Any] | None:
        return (
            StudyField.objects.filter(field_id=field_id)
            .values(*STUDY_FIELD_COLUMNS)
            .first()
        )

    def insert(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        values = {key: payload[key] for key in STUDY_FIELD_COLUMNS if key in payload}
        field = StudyField.objects.create(**values)
        return {key: getattr(field, key) for key in STUDY_FIELD_COLUMNS}

    def update(self, field_id: str, changes: Dict[str, Any]) -> int:
        values = {key: changes[key] for key in STUDY_FIELD_COLUMNS if key in changes}
        field = StudyField.objects.filter(field_id=field_id).first()
        if field is None:
            return 0
        for attr, value in values.items():
            setattr(field, attr, value)
        field.save(update_fields=[*values.keys(), "updated_at"])
        return 1

    def delete(self, field_id: str) -> int:
        deleted, _ = StudyField.objects.filter(field_id=field_id).delete()
        return deleted

    def count_questions(self, field_id: str) -> int:
        return QuestionFieldMapping.objects.filter(field_id=field_id).count()
