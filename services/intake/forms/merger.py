"""Resolve a configuration's field list, classification and section map."""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from django.conf import settings

from taxonomy.providers import get_category_provider, get_study_field_provider

from .authoring import classify_fields
from .constants import BACKGROUND_SECTION, GENERAL_SECTION, field_order
from .templates import background_selection_fields, generate_form_config_for_field

logger = logging.getLogger(__name__)

BackgroundOverrides = Optional[Mapping[str, Mapping[str, Any]] | Iterable[Mapping[str, Any]]]


def _overrides_by_id(overrides: BackgroundOverrides) -> Dict[str, Mapping[str, Any]]:
    if not overrides:
        return {}
    if isinstance(overrides, Mapping):
        return dict(overrides)
    return {override["id"]: override for override in overrides if override.get("id")}


def background_fields(overrides: BackgroundOverrides = None) -> List[Dict[str, Any]]:
    """The background templates with admin overrides applied."""

    by_id = _overrides_by_id(overrides)
    fields = []
    for template in background_selection_fields():
        override = by_id.get(template["id"]) or {}
        fields.append({**template, **override, "id": template["id"], "section": BACKGROUND_SECTION})
    return fields


def deduplicate_fields(fields: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Keep the first field for each id, dropping later ones with a warning."""

    seen = set()
    unique = []
    for field in fields:
        field_id = field.get("id")
        if field_id in seen:
            logger.warning("Dropping duplicate field id %s", field_id)
            continue
        seen.add(field_id)
        unique.append(dict(field))
    return unique


def resolve_sections(fields: Iterable[Mapping[str, Any]], categories: Any) -> Dict[str, Dict[str, Any]]:
    sections: Dict[str, Dict[str, Any]] = {}
    for field in fields:
        section_id = field.get("section") or GENERAL_SECTION
        if section_id not in sections:
            sections[section_id] = categories.section_meta(categories.ensure_exists(section_id))
    return sections


def create_enhanced_config(
    base_config: Mapping[str, Any],
    background_overrides: BackgroundOverrides = None,
    include_background: bool = True,
    categories: Any = None,
    study_fields: Any = None,
) -> Dict[str, Any]:
    """Merge background templates into ``base_config`` and resolve the result.

    Background fields come first and replace base fields with the same id.
    Fields are then de-duplicated, stable-sorted by ``order``, classified
    against the taxonomy and grouped into the sections they reference. The
    same inputs always produce the same field order.
    """

    categories = categories or get_category_provider()
    study_fields = study_fields or get_study_field_provider()

    base_fields = [dict(field) for field in base_config.get("fields") or []]
    merged: List[Dict[str, Any]] = []
    if include_background:
        background = background_fields(background_overrides)
        background_ids = {field["id"] for field in background}
        merged.extend(background)
        base_fields = [field for field in base_fields if field.get("id") not in background_ids]
    merged.extend(base_fields)

    fields = sorted(deduplicate_fields(merged), key=field_order)
    fields = classify_fields(fields, study_fields, categories)

    return {
        **base_config,
        "fields": fields,
        "sections": resolve_sections(fields, categories),
        "hasBackgroundSelection": include_background,
    }


def build_personalized_config(
    field_of_study: str,
    class_level: str | None = None,
    learning_goals: str | None = None,
    include_background: bool | None = None,
    background_overrides: BackgroundOverrides = None,
    categories: Any = None,
    study_fields: Any = None,
) -> Dict[str, Any]:
    """Generate and resolve the configuration for one set of background answers."""

    study_fields = study_fields or get_study_field_provider()
    if include_background is None:
        include_background = getattr(settings, "INTAKE_INCLUDE_BACKGROUND_SELECTION", True)

    base = generate_form_config_for_field(field_of_study, class_level, learning_goals, study_fields)
    config = create_enhanced_config(
        base,
        background_overrides=background_overrides,
        include_background=include_background,
        categories=categories,
        study_fields=study_fields,
    )
    config["metadata"] = {
        **config.get("metadata", {}),
        "fieldOfStudy": field_of_study,
        "configType": "field_specific",
    }
    logger.info("Built %s configuration %s", field_of_study, config["id"])
    return config
