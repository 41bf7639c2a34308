"""Persistence facade for form configurations and presets.

At most one configuration is active. Saving or activating a configuration
demotes every other one inside a single transaction; if the database still
ends up with no active configuration the store re-activates the previous one
and reports the inconsistency.
"""
from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Mapping, Optional

from django.db import DatabaseError, transaction
from django.utils import timezone

from taxonomy.exceptions import ProtectedEntityError
from taxonomy.providers import get_category_provider, get_study_field_provider

from .authoring import classify_fields
from .constants import field_order
from .defaults import INITIAL_CONFIG_ID, core_fields, default_form_config
from .exceptions import (
    ActivationInconsistency,
    ConfigurationNotFound,
    ConfigurationStoreError,
    ConfigurationValidationError,
)
from .merger import create_enhanced_config, resolve_sections
from .models import FormConfiguration
from .validation import validate_configuration

logger = logging.getLogger(__name__)

STORED_KEYS = ("id", "name", "description", "fields", "sections", "metadata")


def serialize_configuration(row: FormConfiguration) -> Dict[str, Any]:
    return {
        "id": row.id,
        "name": row.name,
        "description": row.description,
        "fields": copy.deepcopy(row.fields or []),
        "sections": copy.deepcopy(row.sections or {}),
        "metadata": copy.deepcopy(row.metadata or {}),
        "hasBackgroundSelection": row.has_background_selection,
        "is_active": row.is_active,
        "created_at": row.created_at.isoformat() if row.created_at else None,
        "updated_at": row.updated_at.isoformat() if row.updated_at else None,
    }


def _generated_id(prefix: str) -> str:
    return f"{prefix}_{timezone.now().strftime('%Y%m%d%H%M%S%f')}"


class ConfigurationStore:
    def __init__(self, study_fields: Any = None, categories: Any = None) -> None:
        self.study_fields = study_fields or get_study_field_provider()
        self.categories = categories or get_category_provider()

    # Reads

    def get_active(self) -> Dict[str, Any]:
        """The active configuration with core fields and live options patched in."""

        try:
            row = FormConfiguration.objects.filter(is_active=True).order_by("-updated_at").first()
        except DatabaseError:
            logger.warning("Reading the active configuration failed, using the default", exc_info=True)
            row = None
        if row is not None:
            config = serialize_configuration(row)
        else:
            config = default_form_config()
            config["fields"] = classify_fields(config["fields"], self.study_fields, self.categories)
        return self._with_core_fields(config)

    def _with_core_fields(self, config: Dict[str, Any]) -> Dict[str, Any]:
        fields = list(config.get("fields") or [])
        present = {field.get("id") for field in fields}
        missing = [field for field in core_fields() if field["id"] not in present]
        fields.extend(classify_fields(missing, self.study_fields, self.categories))

        study_field_options = self.study_fields.get_options()
        for field in fields:
            if field.get("id") == "field_of_study":
                field["options"] = copy.deepcopy(study_field_options)
        fields.sort(key=field_order)
        # Stored section metadata wins; sections it lacks are resolved from the taxonomy.
        sections = {**resolve_sections(fields, self.categories), **(config.get("sections") or {})}
        return {**config, "fields": fields, "sections": sections}

    def list_all(self) -> List[Dict[str, Any]]:
        return [serialize_configuration(row) for row in FormConfiguration.objects.order_by("-updated_at", "id")]

    def get_all_presets(self) -> List[Dict[str, Any]]:
        rows = FormConfiguration.objects.filter(is_active=False).order_by("-updated_at", "id")
        return [serialize_configuration(row) for row in rows]

    def load_preset(self, preset_id: str) -> Dict[str, Any]:
        return serialize_configuration(self._get_row(preset_id))

    def _get_row(self, config_id: str) -> FormConfiguration:
        row = FormConfiguration.objects.filter(id=config_id).first()
        if row is None:
            raise ConfigurationNotFound(config_id)
        return row

    # Writes

    def save(self, config: Mapping[str, Any]) -> Dict[str, Any]:
        """Validate ``config`` and store it as the only active configuration."""

        errors = validate_configuration(config)
        if errors:
            raise ConfigurationValidationError(errors)
        config = {**config, "id": config.get("id") or _generated_id("config")}
        row = self._activate(config)
        logger.info("Activated configuration %s", row.id)
        return serialize_configuration(row)

    def activate_preset(self, preset_id: str) -> Dict[str, Any]:
        config = self.load_preset(preset_id)
        row = self._activate(config)
        logger.info("Activated preset %s", row.id)
        return serialize_configuration(row)

    def save_as_preset(
        self,
        config: Mapping[str, Any],
        name: str | None = None,
        description: str | None = None,
    ) -> Dict[str, Any]:
        errors = validate_configuration({**config, "name": name or config.get("name")})
        if errors:
            raise ConfigurationValidationError(errors)
        values = self._row_values(config)
        if description is not None:
            values["description"] = description
        now = timezone.now()
        row = FormConfiguration.objects.create(
            **values,
            id=_generated_id("preset"),
            name=name or config.get("name") or "",
            is_active=False,
            created_at=now,
            updated_at=now,
        )
        logger.info("Saved preset %s", row.id)
        return serialize_configuration(row)

    def update_preset_metadata(
        self, preset_id: str, name: str | None = None, description: str | None = None
    ) -> Dict[str, Any]:
        row = self._get_row(preset_id)
        if name is not None:
            if not name.strip():
                raise ConfigurationValidationError(["Form name is required"])
            row.name = name
        if description is not None:
            row.description = description
        row.updated_at = timezone.now()
        row.save(update_fields=["name", "description", "updated_at"])
        return serialize_configuration(row)

    def delete_preset(self, preset_id: str) -> None:
        row = self._get_row(preset_id)
        if row.is_active:
            raise ProtectedEntityError(f"Cannot delete the active configuration: {preset_id}")
        row.delete()
        logger.info("Deleted preset %s", preset_id)

    def initialize_default(self) -> Optional[Dict[str, Any]]:
        """Persist the built-in configuration when nothing is active yet."""

        if FormConfiguration.objects.filter(is_active=True).exists():
            return None
        config = create_enhanced_config(
            default_form_config(),
            include_background=False,
            categories=self.categories,
            study_fields=self.study_fields,
        )
        config["id"] = INITIAL_CONFIG_ID
        return self.save(config)

    @staticmethod
    def _row_values(config: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            "description": config.get("description") or "",
            "fields": copy.deepcopy(list(config.get("fields") or [])),
            "sections": copy.deepcopy(dict(config.get("sections") or {})),
            "metadata": copy.deepcopy(dict(config.get("metadata") or {})),
            "has_background_selection": bool(config.get("hasBackgroundSelection", False)),
        }

    def _activate(self, config: Mapping[str, Any]) -> FormConfiguration:
        previous_id = (
            FormConfiguration.objects.filter(is_active=True)
            .exclude(id=config["id"])
            .values_list("id", flat=True)
            .first()
        )
        try:
            with transaction.atomic():
                FormConfiguration.objects.filter(is_active=True).exclude(id=config["id"]).update(
                    is_active=False
                )
                return self._upsert_active(config)
        except DatabaseError as exc:
            self._recover_activation(config["id"], previous_id, exc)
            raise

    def _upsert_active(self, config: Mapping[str, Any]) -> FormConfiguration:
        now = timezone.now()
        row = FormConfiguration.objects.filter(id=config["id"]).first()
        if row is None:
            row = FormConfiguration(id=config["id"], created_at=now)
        for attr, value in self._row_values(config).items():
            setattr(row, attr, value)
        row.name = config.get("name") or ""
        row.is_active = True
        row.updated_at = now
        row.save()
        return row

    def _recover_activation(self, config_id: str, previous_id: str | None, exc: Exception) -> None:
        try:
            if FormConfiguration.objects.filter(is_active=True).exists():
                raise ConfigurationStoreError(
                    f"Saving configuration {config_id} failed; the previous activation is intact"
                ) from exc
            restored = bool(previous_id) and bool(
                FormConfiguration.objects.filter(id=previous_id).update(is_active=True)
            )
        except DatabaseError:
            logger.exception("Could not inspect activations after saving %s failed", config_id)
            raise ActivationInconsistency(
                f"Activating {config_id} failed and the active configuration is unknown",
                recovered=False,
            ) from exc

        if restored:
            logger.error("Activating %s failed; re-activated %s", config_id, previous_id)
            raise ActivationInconsistency(
                f"Activating {config_id} failed; configuration {previous_id} was re-activated",
                recovered=True,
            ) from exc
        logger.error("Activating %s failed and no configuration is active", config_id)
        raise ActivationInconsistency(
            f"Activating {config_id} failed and no configuration is active", recovered=False
        ) from exc
