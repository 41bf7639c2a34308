"""Field defaults, classification and admin editing helpers.

Each default-able attribute records where its value came from in
``field["attribute_sources"]``. An attribute an admin typed is never
overwritten; a semantic default (picked from the field id) beats a type
default, and either default may be replaced by a better one later.
"""
from __future__ import annotations

import copy
from typing import Any, Dict, Iterable, List, Mapping, Optional

from django.conf import settings

from taxonomy.exceptions import ProtectedEntityError

from .constants import AttributeSource, FieldType, field_order, is_protected_field
from .exceptions import ConfigurationValidationError, FieldNotFound

DEFAULTABLE_ATTRIBUTES = ("type", "label", "placeholder")

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"

TYPE_DEFAULTS: Dict[str, Dict[str, Any]] = {
    FieldType.TEXT: {"label": "Text Field", "placeholder": "Enter text"},
    FieldType.EMAIL: {
        "label": "Email Address",
        "placeholder": "your.email@example.com",
        "validation": {"pattern": EMAIL_PATTERN},
    },
    FieldType.NUMBER: {"label": "Number", "placeholder": "Enter a number"},
    FieldType.TEXTAREA: {"label": "Description", "placeholder": "Enter details"},
    FieldType.SELECT: {"label": "Select Option", "placeholder": "Choose an option"},
    FieldType.RADIO: {"label": "Choose One", "placeholder": ""},
    FieldType.CHECKBOX: {"label": "Checkbox", "placeholder": ""},
    FieldType.MULTI_SELECT: {"label": "Select Multiple", "placeholder": "Choose options"},
}

# Checked in order; an exact id match wins over a match on part of the id.
SEMANTIC_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "full_name": {"type": FieldType.TEXT, "label": "Full Name", "placeholder": "e.g., Asha Gupta",
                  "validation": {"minLength": 2, "maxLength": 100}},
    "student_id": {"type": FieldType.TEXT, "label": "Student ID", "placeholder": "e.g., S1234567"},
    "education_level": {"type": FieldType.SELECT, "label": "Education Level",
                        "placeholder": "Select your education level"},
    "field_of_study": {"type": FieldType.SELECT, "label": "Field of Study",
                       "placeholder": "Select your field of study"},
    "current_skills": {"type": FieldType.TEXTAREA, "label": "Current Skills",
                       "placeholder": "e.g., Python basics, HTML/CSS"},
    "preferred_learning_style": {"type": FieldType.RADIO, "label": "Preferred Learning Style"},
    "availability_per_week_hours": {"type": FieldType.NUMBER,
                                    "label": "Availability per week (hours)",
                                    "placeholder": "6", "validation": {"min": 0, "max": 168}},
    "experience_years": {"type": FieldType.NUMBER, "label": "Years of Experience",
                         "placeholder": "0", "validation": {"min": 0, "max": 50}},
    "interests": {"type": FieldType.TEXTAREA, "label": "Interests", "placeholder": "Robotics, AI"},
    "goals": {"type": FieldType.TEXTAREA, "label": "Goals",
              "placeholder": "What do you want to achieve?"},
    "grade": {"type": FieldType.SELECT, "label": "Grade/Class", "placeholder": "Select your grade"},
    "email": {"type": FieldType.EMAIL, "label": "Email", "placeholder": "your.email@example.com",
              "validation": {"pattern": EMAIL_PATTERN}},
    "phone": {"type": FieldType.TEXT, "label": "Phone", "placeholder": "999-000-1234",
              "validation": {"pattern": r"^[\d\s\-\+\(\)\.]+$"}},
    "name": {"type": FieldType.TEXT, "label": "Full Name", "placeholder": "e.g., Asha Gupta",
             "validation": {"minLength": 2, "maxLength": 100}},
    "age": {"type": FieldType.NUMBER, "label": "Age", "placeholder": "17",
            "validation": {"min": 5, "max": 100}},
}


def semantic_default_for(field_id: str | None) -> Optional[Dict[str, Any]]:
    key = (field_id or "").lower()
    if not key:
        return None
    if key in SEMANTIC_DEFAULTS:
        return SEMANTIC_DEFAULTS[key]
    tokens = key.split("_")
    for keyword, defaults in SEMANTIC_DEFAULTS.items():
        size = len(keyword.split("_"))
        windows = ("_".join(tokens[start:start + size]) for start in range(len(tokens)))
        if keyword in windows:
            return defaults
    return None


def _can_replace(current: Optional[AttributeSource], incoming: AttributeSource) -> bool:
    if current is AttributeSource.USER_AUTHORED:
        return False
    if current is AttributeSource.SEMANTIC_DEFAULT:
        return incoming is AttributeSource.SEMANTIC_DEFAULT
    return True


def attribute_sources(field: Mapping[str, Any]) -> Dict[str, AttributeSource]:
    """Read the provenance map, treating untagged values as admin authored."""

    stored = field.get("attribute_sources") or {}
    sources: Dict[str, AttributeSource] = {}
    for attr in DEFAULTABLE_ATTRIBUTES:
        if attr in stored:
            sources[attr] = AttributeSource(stored[attr])
        elif field.get(attr) not in (None, ""):
            sources[attr] = AttributeSource.USER_AUTHORED
    return sources


def apply_field_defaults(field: Mapping[str, Any]) -> Dict[str, Any]:
    """Fill missing type, label and placeholder, recording their source."""

    result = copy.deepcopy(dict(field))
    sources = attribute_sources(result)

    def assign(attr: str, value: Any, source: AttributeSource) -> None:
        if value is None or not _can_replace(sources.get(attr), source):
            return
        result[attr] = value
        sources[attr] = source

    semantic = semantic_default_for(result.get("id"))
    # A semantic default only applies to fields of its own type.
    if semantic and result.get("type") not in (None, "", semantic["type"]):
        semantic = None
    if semantic:
        for attr in DEFAULTABLE_ATTRIBUTES:
            assign(attr, semantic.get(attr), AttributeSource.SEMANTIC_DEFAULT)
        if semantic.get("validation"):
            result["validation"] = {**semantic["validation"], **(result.get("validation") or {})}

    if not result.get("type"):
        assign("type", FieldType.TEXT, AttributeSource.TYPE_DEFAULT)
    type_defaults = TYPE_DEFAULTS.get(result.get("type"), {})
    for attr in ("label", "placeholder"):
        if attr not in sources:
            assign(attr, type_defaults.get(attr), AttributeSource.TYPE_DEFAULT)
    if type_defaults.get("validation"):
        result["validation"] = {**type_defaults["validation"], **(result.get("validation") or {})}

    result["attribute_sources"] = {attr: source.value for attr, source in sources.items()}
    return result


def classify_fields(
    fields: Iterable[Mapping[str, Any]],
    study_fields: Any,
    categories: Any,
    default_study_field: str | None = None,
) -> List[Dict[str, Any]]:
    """Apply defaults and assign ``study_field_id`` and ``category_id``."""

    fallback = default_study_field or getattr(settings, "INTAKE_DEFAULT_STUDY_FIELD", "stem")
    classified = []
    for field in fields:
        field = apply_field_defaults(field)
        if not field.get("study_field_id"):
            text = " ".join(part for part in (field.get("label"), field.get("helpText")) if part)
            detected = study_fields.detect_field_from_text(text)
            field["study_field_id"] = detected["field_id"] if detected else fallback
        if not field.get("category_id"):
            field["category_id"] = categories.detect_category_from_field(field)["category_id"]
        classified.append(field)
    return classified


def _field_index(config: Mapping[str, Any], field_id: str) -> int:
    for index, field in enumerate(config.get("fields") or []):
        if field.get("id") == field_id:
            return index
    raise FieldNotFound(field_id)


def add_field(config: Mapping[str, Any], field: Mapping[str, Any]) -> Dict[str, Any]:
    result = copy.deepcopy(dict(config))
    fields = result.setdefault("fields", [])
    field_id = field.get("id")
    if any(existing.get("id") == field_id for existing in fields):
        raise ConfigurationValidationError([f"Field id already exists: {field_id}"])
    new_field = dict(field)
    if "order" not in new_field:
        new_field["order"] = max((field_order(existing) for existing in fields), default=0) + 1
    fields.append(apply_field_defaults(new_field))
    return result


def update_field(
    config: Mapping[str, Any], field_id: str, changes: Mapping[str, Any]
) -> Dict[str, Any]:
    """Apply admin edits to one field; edited attributes become user authored."""

    changes = dict(changes)
    new_id = changes.pop("id", field_id)
    result = rename_field(config, field_id, new_id) if new_id != field_id else copy.deepcopy(dict(config))
    index = _field_index(result, new_id)
    field = result["fields"][index]
    sources = dict(field.get("attribute_sources") or {})
    for attr, value in changes.items():
        field[attr] = value
        if attr in DEFAULTABLE_ATTRIBUTES:
            sources[attr] = AttributeSource.USER_AUTHORED.value
    field["attribute_sources"] = sources
    return result


def remove_field(config: Mapping[str, Any], field_id: str) -> Dict[str, Any]:
    if is_protected_field(field_id):
        raise ProtectedEntityError(f"Cannot delete protected field: {field_id}")
    result = copy.deepcopy(dict(config))
    del result["fields"][_field_index(result, field_id)]
    return result


def rename_field(config: Mapping[str, Any], field_id: str, new_id: str) -> Dict[str, Any]:
    if is_protected_field(field_id):
        raise ProtectedEntityError(f"Cannot rename protected field: {field_id}")
    result = copy.deepcopy(dict(config))
    index = _field_index(result, field_id)
    if any(field.get("id") == new_id for field in result["fields"]):
        raise ConfigurationValidationError([f"Field id already exists: {new_id}"])
    result["fields"][index]["id"] = new_id
    return result
