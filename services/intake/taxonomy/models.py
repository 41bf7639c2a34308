"""Database models for the taxonomy app."""
from __future__ import annotations

from django.db import models


class Category(models.Model):
    """A form section that groups fields visually."""

    category_id = models.CharField(max_length=100, unique=True)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    icon = models.CharField(max_length=64, blank=True)
    color = models.CharField(max_length=128, blank=True)
    display_order = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)
    is_system = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["display_order", "id"]
        verbose_name_plural = "categories"

    def __str__(self) -> str:
        return f"{self.name} ({self.category_id})"


class StudyField(models.Model):
    """A subject domain a student can study in."""

    field_id = models.CharField(max_length=100, unique=True)
    name = models.CharField(max_length=255)
    icon = models.CharField(max_length=64, blank=True)
    description = models.TextField(blank=True)
    color = models.CharField(max_length=128, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return self.name


class QuestionFieldMapping(models.Model):
    """Links a question bank entry to the study field it belongs to."""

    question_id = models.CharField(max_length=100)
    field_id = models.CharField(max_length=100, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["field_id", "question_id"]
        unique_together = ("question_id", "field_id")

    def __str__(self) -> str:
        return f"{self.question_id} -> {self.field_id}"
