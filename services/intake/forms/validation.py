"""Schema checks for configurations and value checks for answers."""
from __future__ import annotations

import logging
import re
from collections import Counter
from typing import Any, Dict, List, Mapping

from .constants import DYNAMIC_OPTION_FIELD_IDS, FieldType, has_value, is_field_required

logger = logging.getLogger(__name__)


def validate_configuration(config: Mapping[str, Any]) -> List[str]:
    """Return every structural problem with ``config``; empty means savable."""

    errors: List[str] = []
    if not str(config.get("name") or "").strip():
        errors.append("Form name is required")

    fields = config.get("fields")
    if not isinstance(fields, list):
        errors.append("Fields array is required")
        return errors

    for position, field in enumerate(fields, start=1):
        if not isinstance(field, Mapping):
            errors.append(f"Field {position}: Field definition must be an object")
            continue
        if not str(field.get("id") or "").strip():
            errors.append(f"Field {position}: ID is required")
        if field.get("type") not in FieldType.ALL:
            errors.append(f"Field {position}: Valid field type is required")
        if not str(field.get("label") or "").strip():
            errors.append(f"Field {position}: Label is required")
        if not str(field.get("study_field_id") or "").strip():
            errors.append(f"Field {position}: Study field must be selected")
        if not str(field.get("category_id") or "").strip():
            errors.append(f"Field {position}: Question category must be selected")
        if (
            field.get("type") in FieldType.OPTION_TYPES
            and field.get("id") not in DYNAMIC_OPTION_FIELD_IDS
            and not field.get("options")
        ):
            errors.append(
                f"Field {position}: Options are required for select/radio/multi-select fields"
            )

    counts = Counter(field.get("id") for field in fields if isinstance(field, Mapping) and field.get("id"))
    for field_id, count in counts.items():
        if count > 1:
            errors.append(f"Field ID '{field_id}' is used {count} times")
    return errors


def _as_number(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _value_error(field: Mapping[str, Any], value: Any) -> str | None:
    label = field.get("label") or field.get("id")
    rules = field.get("validation") or {}

    if isinstance(value, str):
        if rules.get("minLength") is not None and len(value) < rules["minLength"]:
            return f"{label} must be at least {rules['minLength']} characters"
        if rules.get("maxLength") is not None and len(value) > rules["maxLength"]:
            return f"{label} must be no more than {rules['maxLength']} characters"

    if rules.get("min") is not None or rules.get("max") is not None:
        number = _as_number(value)
        if number is None:
            return f"{label} must be a number"
        if rules.get("min") is not None and number < rules["min"]:
            return f"{label} must be at least {rules['min']}"
        if rules.get("max") is not None and number > rules["max"]:
            return f"{label} must be no more than {rules['max']}"

    pattern = rules.get("pattern")
    if pattern:
        try:
            matched = re.search(pattern, str(value))
        except re.error:
            logger.warning("Ignoring invalid pattern on field %s", field.get("id"))
            return None
        if not matched:
            return f"{label} format is invalid"
    return None


def validate_form_data(form_data: Mapping[str, Any], config: Mapping[str, Any]) -> Dict[str, Any]:
    """Check answers against required-ness, lengths, bounds and patterns.

    Returns ``{"isValid": bool, "errors": {field_id: message}}``.
    """

    errors: Dict[str, str] = {}
    for field in config.get("fields") or []:
        value = form_data.get(field.get("id"))
        if not has_value(value):
            if is_field_required(field):
                errors[field["id"]] = f"{field.get('label') or field['id']} is required"
            continue
        message = _value_error(field, value)
        if message:
            errors[field["id"]] = message
    return {"isValid": not errors, "errors": errors}
