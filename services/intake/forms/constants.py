"""Field vocabulary shared by the form configuration engine."""
from __future__ import annotations

import enum
from typing import Any, Mapping


class FieldType:
    TEXT = "text"
    EMAIL = "email"
    NUMBER = "number"
    TEXTAREA = "textarea"
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    MULTI_SELECT = "multi_select"

    CHOICES = [
        (TEXT, "Text"),
        (EMAIL, "Email"),
        (NUMBER, "Number"),
        (TEXTAREA, "Long text"),
        (SELECT, "Select"),
        (RADIO, "Radio"),
        (CHECKBOX, "Checkbox"),
        (MULTI_SELECT, "Multi-select"),
    ]

    ALL = frozenset(value for value, _ in CHOICES)
    # Choice types that cannot render without options.
    OPTION_TYPES = frozenset({SELECT, RADIO, MULTI_SELECT})


class AttributeSource(str, enum.Enum):
    """Where a field's label, placeholder or type came from."""

    USER_AUTHORED = "user_authored"
    SEMANTIC_DEFAULT = "semantic_default"
    TYPE_DEFAULT = "type_default"


GENERAL_SECTION = "general"
BACKGROUND_SECTION = "background_selection"

# Always required and never deletable, whatever the stored ``required`` flag says.
PROTECTED_FIELD_IDS = frozenset(
    {"name", "email", "grade", "field_of_study", "question_category"}
)

# Options for these are filled from the taxonomy at render time.
DYNAMIC_OPTION_FIELD_IDS = frozenset({"field_of_study", "question_category"})

BACKGROUND_TRIGGER_FIELDS = ("field_of_study", "class_level", "learning_goals")

EDUCATION_LEVEL_FIELD = "education_level"
PROFESSIONAL_LEVEL = "professional"


def is_protected_field(field_id: str | None) -> bool:
    return field_id in PROTECTED_FIELD_IDS


def is_field_required(field: Mapping[str, Any]) -> bool:
    return is_protected_field(field.get("id")) or bool(field.get("required"))


def has_value(value: Any) -> bool:
    """Whether an answer counts as filled in."""

    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) > 0
    return True


def field_order(field: Mapping[str, Any]) -> float:
    order = field.get("order")
    return order if isinstance(order, (int, float)) and not isinstance(order, bool) else 0
