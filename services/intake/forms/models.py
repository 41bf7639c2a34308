"""Database models for the intake form service."""
from __future__ import annotations

import uuid

from django.db import models
from django.utils import timezone


class FormConfiguration(models.Model):
    """A resolved form configuration; at most one is active at a time."""

    id = models.CharField(primary_key=True, max_length=128)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    fields = models.JSONField(default=list, blank=True)
    sections = models.JSONField(default=dict, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    has_background_selection = models.BooleanField(default=False)
    is_active = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-updated_at", "id"]
        indexes = [models.Index(fields=["is_active"], name="forms_formc_is_acti_5b1f0e_idx")]

    def __str__(self) -> str:
        return f"{self.name} ({'active' if self.is_active else 'preset'})"


class BackgroundSelection(models.Model):
    """A student's answers to the background questions, one row per user."""

    user_id = models.CharField(max_length=128, unique=True)
    field_of_study = models.CharField(max_length=100)
    class_level = models.CharField(max_length=100)
    learning_goals = models.CharField(max_length=100)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-updated_at"]

    def __str__(self) -> str:
        return f"{self.user_id}: {self.field_of_study}/{self.class_level}"


class IntakeSubmission(models.Model):
    """Queue-backed intake submission processed by a Celery worker."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    STATUS_CHOICES = [
        (PENDING, "Pending"),
        (PROCESSING, "Processing"),
        (COMPLETED, "Completed"),
        (FAILED, "Failed"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    client_reference = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    status = models.CharField(max_length=32, choices=STATUS_CHOICES, default=PENDING)
    user_id = models.CharField(max_length=128)
    config_id = models.CharField(max_length=128, blank=True)
    answers = models.JSONField(default=dict)
    background_selection = models.ForeignKey(
        BackgroundSelection,
        on_delete=models.SET_NULL,
        related_name="submissions",
        null=True,
        blank=True,
    )
    error_message = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="forms_intak_status_3c9d2a_idx"),
            models.Index(fields=["client_reference"], name="forms_intak_client__8e41b7_idx"),
        ]

    def mark_processing(self) -> None:
        self.status = self.PROCESSING
        self.save(update_fields=["status", "updated_at"])

    def mark_completed(self, selection: BackgroundSelection | None) -> None:
        self.background_selection = selection
        self.status = self.COMPLETED
        self.completed_at = timezone.now()
        self.error_message = ""
        self.save(
            update_fields=[
                "background_selection",
                "status",
                "completed_at",
                "error_message",
                "updated_at",
            ]
        )

    def mark_failed(self, message: str) -> None:
        self.status = self.FAILED
        self.error_message = message
        self.completed_at = timezone.now()
        self.save(update_fields=["status", "error_message", "completed_at", "updated_at"])
