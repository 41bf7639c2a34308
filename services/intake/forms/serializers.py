"""Serializers for configuration, progression and submission payloads."""
from __future__ import annotations

from typing import Any, Dict

from rest_framework import serializers

from .models import BackgroundSelection, IntakeSubmission
from .progression import (
    COLLECTING_BACKGROUND,
    COLLECTING_REMAINING,
    PERSONALIZATION_ERROR,
    PERSONALIZED,
    PERSONALIZING,
    READY_TO_SUBMIT,
)

STAGE_CHOICES = [
    COLLECTING_BACKGROUND,
    PERSONALIZING,
    PERSONALIZED,
    PERSONALIZATION_ERROR,
    COLLECTING_REMAINING,
    READY_TO_SUBMIT,
]


class ConfigurationSerializer(serializers.Serializer):
    """Envelope check only; field level rules belong to the validator."""

    id = serializers.CharField(max_length=128, required=False, allow_blank=True)
    name = serializers.CharField(required=False, allow_blank=True, default="")
    description = serializers.CharField(required=False, allow_blank=True, default="")
    fields = serializers.JSONField(required=False, default=list)
    sections = serializers.JSONField(required=False, default=dict)
    metadata = serializers.JSONField(required=False, default=dict)
    hasBackgroundSelection = serializers.BooleanField(required=False, default=False)

    def to_internal_value(self, data: Dict[str, Any]) -> Dict[str, Any]:  # type: ignore[override]
        internal = super().to_internal_value(data)
        if not internal.get("id"):
            internal.pop("id", None)
        for key in ("sections", "metadata"):
            if not isinstance(internal.get(key), dict):
                raise serializers.ValidationError({key: "Must be a JSON object."})
        return internal


class PreviewSerializer(serializers.Serializer):
    config = ConfigurationSerializer(required=False)
    include_background = serializers.BooleanField(required=False, default=True)
    background_overrides = serializers.JSONField(required=False, default=dict)
    field_of_study = serializers.CharField(required=False, allow_blank=True)
    class_level = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    learning_goals = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        if not attrs.get("config") and not attrs.get("field_of_study"):
            raise serializers.ValidationError("Provide a config or a field_of_study to preview.")
        return attrs


class PresetCreateSerializer(serializers.Serializer):
    config = ConfigurationSerializer(required=False)
    name = serializers.CharField(required=False, allow_blank=False)
    description = serializers.CharField(required=False, allow_blank=True)


class PresetMetadataSerializer(serializers.Serializer):
    name = serializers.CharField(required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)


class BackgroundSelectionSerializer(serializers.ModelSerializer):
    class Meta:
        model = BackgroundSelection
        fields = [
            "user_id",
            "field_of_study",
            "class_level",
            "learning_goals",
            "created_at",
            "updated_at",
        ]
        # Upserts are keyed on user_id, so the unique check must not reject them.
        extra_kwargs = {"user_id": {"validators": []}}


class FieldChangeSerializer(serializers.Serializer):
    field_id = serializers.CharField()
    value = serializers.JSONField(allow_null=True, required=False, default=None)
    form_data = serializers.DictField(required=False, default=dict)
    config = serializers.JSONField(required=False)
    stage = serializers.ChoiceField(choices=STAGE_CHOICES, required=False)


class ReadinessSerializer(serializers.Serializer):
    form_data = serializers.DictField(required=False, default=dict)
    config = serializers.JSONField(required=False)


class IntakeSubmissionSerializer(serializers.ModelSerializer):
    background_selection = BackgroundSelectionSerializer(read_only=True)

    class Meta:
        model = IntakeSubmission
        fields = [
            "id",
            "client_reference",
            "status",
            "user_id",
            "config_id",
            "background_selection",
            "error_message",
            "created_at",
            "updated_at",
            "completed_at",
        ]


class IntakeSubmissionRequestSerializer(serializers.Serializer):
    user_id = serializers.CharField(max_length=128)
    answers = serializers.DictField()
    client_reference = serializers.UUIDField(required=False)
