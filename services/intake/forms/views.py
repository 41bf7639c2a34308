"""API views for form configurations, presets and student intake."""
from __future__ import annotations

import uuid
from typing import Any, Dict

from django.db.models import Count
from django.utils import timezone
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action, api_view
from rest_framework.exceptions import NotFound
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from taxonomy.exceptions import ProtectedEntityError
from taxonomy.views import Conflict

from .background import BackgroundSelectionService
from .exceptions import (
    ActivationInconsistency,
    ConfigurationError,
    ConfigurationNotFound,
    ConfigurationValidationError,
)
from .merger import build_personalized_config, create_enhanced_config
from .models import IntakeSubmission
from .progression import FormProgression, submission_readiness
from .serializers import (
    BackgroundSelectionSerializer,
    ConfigurationSerializer,
    FieldChangeSerializer,
    IntakeSubmissionRequestSerializer,
    IntakeSubmissionSerializer,
    PresetCreateSerializer,
    PresetMetadataSerializer,
    PreviewSerializer,
    ReadinessSerializer,
)
from .store import ConfigurationStore
from .tasks import process_intake_submission
from .validation import validate_configuration


def configuration_error_response(exc: ConfigurationError) -> Response:
    """Translate store and validation failures into API responses."""

    if isinstance(exc, ConfigurationValidationError):
        return Response({"errors": exc.errors}, status=status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, ConfigurationNotFound):
        raise NotFound(str(exc)) from exc
    if isinstance(exc, ActivationInconsistency):
        return Response(
            {"detail": str(exc), "recovered": exc.recovered},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    return Response({"detail": str(exc)}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(["GET"])
def health(request: Request):  # type: ignore[override]
    """Readiness endpoint for orchestration tooling."""

    return Response({"status": "ok"})


class ActiveConfigurationView(APIView):
    def get(self, request: Request) -> Response:
        return Response(ConfigurationStore().get_active())

    def put(self, request: Request) -> Response:
        """Validate and activate a configuration, demoting the current one."""

        serializer = ConfigurationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            config = ConfigurationStore().save(serializer.validated_data)
        except ConfigurationError as exc:
            return configuration_error_response(exc)
        return Response(config)


@api_view(["GET"])
def configuration_list(request: Request) -> Response:
    return Response(ConfigurationStore().list_all())


@api_view(["POST"])
def configuration_validate(request: Request) -> Response:
    serializer = ConfigurationSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    errors = validate_configuration(serializer.validated_data)
    return Response({"isValid": not errors, "errors": errors})


@api_view(["POST"])
def configuration_preview(request: Request) -> Response:
    """Resolve a configuration without saving it."""

    serializer = PreviewSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    if data.get("field_of_study"):
        config = build_personalized_config(
            data["field_of_study"],
            data.get("class_level"),
            data.get("learning_goals"),
            include_background=data["include_background"],
            background_overrides=data["background_overrides"],
        )
    else:
        config = create_enhanced_config(
            data["config"],
            background_overrides=data["background_overrides"],
            include_background=data["include_background"],
        )
    return Response({**config, "errors": validate_configuration(config)})


class PresetViewSet(viewsets.ViewSet):
    lookup_value_regex = "[^/]+"

    def list(self, request: Request) -> Response:
        return Response(ConfigurationStore().get_all_presets())

    def create(self, request: Request) -> Response:
        serializer = PresetCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        store = ConfigurationStore()
        config = data.get("config") or store.get_active()
        try:
            preset = store.save_as_preset(config, data.get("name"), data.get("description"))
        except ConfigurationError as exc:
            return configuration_error_response(exc)
        return Response(preset, status=status.HTTP_201_CREATED)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        try:
            return Response(ConfigurationStore().load_preset(pk))
        except ConfigurationError as exc:
            return configuration_error_response(exc)

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        serializer = PresetMetadataSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            preset = ConfigurationStore().update_preset_metadata(pk, **serializer.validated_data)
        except ConfigurationError as exc:
            return configuration_error_response(exc)
        return Response(preset)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        try:
            ConfigurationStore().delete_preset(pk)
        except ProtectedEntityError as exc:
            raise Conflict(str(exc)) from exc
        except ConfigurationError as exc:
            return configuration_error_response(exc)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="activate")
    def activate(self, request: Request, pk: str | None = None) -> Response:
        try:
            return Response(ConfigurationStore().activate_preset(pk))
        except ConfigurationError as exc:
            return configuration_error_response(exc)


class BackgroundSelectionViewSet(viewsets.ViewSet):
    lookup_field = "user_id"
    lookup_value_regex = "[^/]+"

    def create(self, request: Request) -> Response:
        serializer = BackgroundSelectionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        selection = BackgroundSelectionService().save(data["user_id"], data)
        return Response(BackgroundSelectionSerializer(selection).data, status=status.HTTP_200_OK)

    def retrieve(self, request: Request, user_id: str | None = None) -> Response:
        selection = BackgroundSelectionService().get(user_id)
        if selection is None:
            raise NotFound(f"No background selection for {user_id}")
        return Response(BackgroundSelectionSerializer(selection).data)

    def destroy(self, request: Request, user_id: str | None = None) -> Response:
        if not BackgroundSelectionService().delete(user_id):
            raise NotFound(f"No background selection for {user_id}")
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["get"], url_path="form-config")
    def form_config(self, request: Request, user_id: str | None = None) -> Response:
        config = BackgroundSelectionService().form_config_for_user(user_id)
        if config is None:
            raise NotFound(f"No background selection for {user_id}")
        return Response(config)


@api_view(["POST"])
def field_change(request: Request) -> Response:
    """Apply one field change and return the possibly regenerated configuration."""

    serializer = FieldChangeSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    progression = FormProgression(data.get("config") or ConfigurationStore().get_active())
    if data.get("stage"):
        progression.stage = data["stage"]
    result = progression.on_field_change(data["field_id"], data["value"], data["form_data"])
    return Response(result)


@api_view(["POST"])
def readiness(request: Request) -> Response:
    serializer = ReadinessSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    config = data.get("config") or ConfigurationStore().get_active()
    return Response(submission_readiness(data["form_data"], config))


class IntakeSubmissionViewSet(
    mixins.CreateModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    queryset = IntakeSubmission.objects.select_related("background_selection").all()
    serializer_class = IntakeSubmissionSerializer
    lookup_field = "id"
    lookup_value_regex = r"[0-9a-f\-]+"

    def create(self, request: Request, *args, **kwargs):  # type: ignore[override]
        payload_serializer = IntakeSubmissionRequestSerializer(data=request.data)
        payload_serializer.is_valid(raise_exception=True)
        data = payload_serializer.validated_data

        config = ConfigurationStore().get_active()
        readiness_report = submission_readiness(data["answers"], config)
        if not readiness_report["isReady"]:
            return Response(
                {
                    "errors": readiness_report["validationErrors"],
                    "completionPercentage": readiness_report["completionPercentage"],
                },
                status=status.HTTP_400_BAD_REQUEST,
            )

        request_values: Dict[str, Any] = {
            "user_id": data["user_id"],
            "config_id": config.get("id") or "",
            "answers": data["answers"],
        }
        client_reference = data.get("client_reference")
        submission: IntakeSubmission | None = None
        if client_reference is not None:
            submission = IntakeSubmission.objects.filter(client_reference=client_reference).first()
            if submission:
                if submission.status == IntakeSubmission.FAILED:
                    submission.status = IntakeSubmission.PENDING
                    submission.error_message = ""
                    submission.background_selection = None
                    submission.completed_at = None
                    for attr, value in request_values.items():
                        setattr(submission, attr, value)
                    submission.save()
                serializer = self.get_serializer(submission)
                if submission.status in {IntakeSubmission.PENDING, IntakeSubmission.PROCESSING}:
                    process_intake_submission.delay(str(submission.id))
                status_code = (
                    status.HTTP_200_OK
                    if submission.status == IntakeSubmission.COMPLETED
                    else status.HTTP_202_ACCEPTED
                )
                return Response(serializer.data, status=status_code)

        submission = IntakeSubmission.objects.create(
            client_reference=client_reference or uuid.uuid4(), **request_values
        )
        process_intake_submission.delay(str(submission.id))
        serializer = self.get_serializer(submission)
        return Response(serializer.data, status=status.HTTP_202_ACCEPTED)


@api_view(["GET"])
def queue_metrics(_: Request) -> Response:
    """Provide observability data for the submission queue."""

    totals: Dict[str, int] = {value: 0 for value, _ in IntakeSubmission.STATUS_CHOICES}
    for entry in IntakeSubmission.objects.values("status").order_by().annotate(total=Count("id")):
        if entry["status"] in totals:
            totals[entry["status"]] = int(entry["total"])

    oldest_pending = (
        IntakeSubmission.objects.filter(
            status__in=[IntakeSubmission.PENDING, IntakeSubmission.PROCESSING]
        )
        .order_by("created_at")
        .first()
    )
    wait_seconds = 0
    if oldest_pending is not None:
        wait_seconds = max(int((timezone.now() - oldest_pending.created_at).total_seconds()), 0)

    return Response({**totals, "oldestPendingSeconds": wait_seconds})
