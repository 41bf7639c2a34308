"""Built-in configuration served when nothing usable is stored."""
from __future__ import annotations

import copy
from typing import Any, Dict, List

from .constants import FieldType
from .templates import option_list

DEFAULT_CONFIG_ID = "default"
INITIAL_CONFIG_ID = "initial_config"

GRADE_FIELD: Dict[str, Any] = {
    "id": "grade",
    "type": FieldType.SELECT,
    "label": "Grade/Class",
    "placeholder": "Select your grade",
    "required": True,
    "order": 5,
    "section": "academic_info",
    "options": option_list(
        ("grade_9", "Grade 9"),
        ("grade_10", "Grade 10"),
        ("grade_11", "Grade 11"),
        ("grade_12", "Grade 12"),
        ("undergraduate", "Undergraduate"),
        ("graduate", "Graduate"),
        ("other", "Other"),
    ),
}

FIELD_OF_STUDY_FIELD: Dict[str, Any] = {
    "id": "field_of_study",
    "type": FieldType.SELECT,
    "label": "Field of Study",
    "placeholder": "Select your field of study",
    "required": True,
    "order": 6,
    "section": "academic_info",
    "options": [],
}

QUESTION_CATEGORY_FIELD: Dict[str, Any] = {
    "id": "question_category",
    "type": FieldType.SELECT,
    "label": "Question Category",
    "placeholder": "Select question category",
    "required": True,
    "order": 6.5,
    "section": "academic_info",
    "options": [],
}

# Injected into the active configuration on read when an admin removed them.
CORE_FIELDS: List[Dict[str, Any]] = [GRADE_FIELD, FIELD_OF_STUDY_FIELD, QUESTION_CATEGORY_FIELD]

DEFAULT_FORM_CONFIG: Dict[str, Any] = {
    "id": DEFAULT_CONFIG_ID,
    "name": "Default Student Intake Form",
    "description": "Help us understand your background and learning goals.",
    "fields": [
        {
            "id": "test_radio",
            "type": FieldType.RADIO,
            "label": "Test Radio Field",
            "required": False,
            "order": 0.5,
            "section": "personal_info",
            "options": option_list(("option1", "Option 1"), ("option2", "Option 2")),
        },
        {
            "id": "test_checkbox",
            "type": FieldType.CHECKBOX,
            "label": "Test Checkbox Field",
            "required": False,
            "order": 0.7,
            "section": "personal_info",
        },
        {
            "id": "name",
            "type": FieldType.TEXT,
            "label": "Full Name",
            "placeholder": "e.g., Asha Gupta",
            "required": True,
            "order": 1,
            "section": "personal_info",
            "validation": {"minLength": 2, "maxLength": 100},
        },
        {
            "id": "age",
            "type": FieldType.NUMBER,
            "label": "Age",
            "placeholder": "17",
            "required": False,
            "order": 2,
            "section": "personal_info",
            "validation": {"min": 5, "max": 100},
        },
        {
            "id": "email",
            "type": FieldType.EMAIL,
            "label": "Email",
            "placeholder": "your.email@example.com",
            "required": False,
            "order": 3,
            "section": "personal_info",
        },
        {
            "id": "phone",
            "type": FieldType.TEXT,
            "label": "Phone",
            "placeholder": "999-000-1234",
            "required": False,
            "order": 4,
            "section": "personal_info",
            "validation": {"pattern": r"^[\d\s\-\+\(\)\.]+$"},
        },
        GRADE_FIELD,
        FIELD_OF_STUDY_FIELD,
        QUESTION_CATEGORY_FIELD,
        {
            "id": "current_skills",
            "type": FieldType.TEXTAREA,
            "label": "Current Skills",
            "placeholder": "e.g., Python basics, HTML/CSS",
            "required": False,
            "order": 7,
            "section": "academic_info",
        },
        {
            "id": "interests",
            "type": FieldType.TEXTAREA,
            "label": "Interests",
            "placeholder": "Robotics, AI",
            "required": False,
            "order": 8,
            "section": "academic_info",
        },
        {
            "id": "goals",
            "type": FieldType.TEXTAREA,
            "label": "Goals",
            "placeholder": "Build a portfolio site",
            "required": False,
            "order": 9,
            "section": "academic_info",
        },
        {
            "id": "preferred_learning_style",
            "type": FieldType.RADIO,
            "label": "Preferred Learning Style",
            "required": False,
            "order": 10,
            "section": "preferences",
            "options": option_list(
                ("video", "Video Tutorials"),
                ("text", "Text-based Learning"),
                ("interactive", "Interactive Exercises"),
                ("mixed", "Mixed Approach"),
            ),
        },
        {
            "id": "availability_per_week_hours",
            "type": FieldType.NUMBER,
            "label": "Availability per week (hours)",
            "placeholder": "6",
            "required": False,
            "order": 11,
            "section": "preferences",
            "validation": {"min": 0, "max": 168},
        },
        {
            "id": "experience_years",
            "type": FieldType.NUMBER,
            "label": "Years of Experience",
            "placeholder": "0",
            "required": False,
            "order": 12,
            "section": "preferences",
            "validation": {"min": 0, "max": 50},
        },
    ],
    "sections": {},
    "metadata": {},
    "is_active": True,
}


def default_form_config() -> Dict[str, Any]:
    return copy.deepcopy(DEFAULT_FORM_CONFIG)


def core_fields() -> List[Dict[str, Any]]:
    return copy.deepcopy(CORE_FIELDS)
