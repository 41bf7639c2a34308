"""Serializers for taxonomy entries."""
from __future__ import annotations

from rest_framework import serializers

from .models import Category, StudyField


class CategorySerializer(serializers.ModelSerializer):
    category_id = serializers.SlugField(max_length=100)

    class Meta:
        model = Category
        fields = [
            "id",
            "category_id",
            "name",
            "description",
            "icon",
            "color",
            "display_order",
            "is_active",
            "is_system",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["is_system"]

    def validate_category_id(self, value: str) -> str:
        queryset = Category.objects.filter(category_id=value)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError("A category with this id already exists.")
        return value


class StudyFieldSerializer(serializers.ModelSerializer):
    field_id = serializers.SlugField(max_length=100)

    class Meta:
        model = StudyField
        fields = [
            "id",
            "field_id",
            "name",
            "icon",
            "description",
            "color",
            "is_active",
            "created_at",
            "updated_at",
        ]

    def validate_field_id(self, value: str) -> str:
        queryset = StudyField.objects.filter(field_id=value)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError("A study field with this id already exists.")
        return value


class CategoryOrderSerializer(serializers.Serializer):
    category_id = serializers.CharField()
    order = serializers.IntegerField()


class ToggleStatusSerializer(serializers.Serializer):
    is_active = serializers.BooleanField()


class DetectTextSerializer(serializers.Serializer):
    text = serializers.CharField(allow_blank=True)


class DetectCategorySerializer(serializers.Serializer):
    id = serializers.CharField(required=False, allow_blank=True)
    label = serializers.CharField(required=False, allow_blank=True)
    section = serializers.CharField(required=False, allow_blank=True)
