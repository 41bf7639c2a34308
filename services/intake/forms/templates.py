"""Catalogue of field templates keyed by study field.

Everything returned from this module is a fresh copy; callers are free to
mutate what they get back.
"""
from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional

from django.utils import timezone

from .constants import BACKGROUND_SECTION, FieldType


def option_list(*pairs: tuple[str, str]) -> List[Dict[str, str]]:
    return [{"value": value, "label": label} for value, label in pairs]


BACKGROUND_SELECTION_FIELDS: List[Dict[str, Any]] = [
    {
        "id": "field_of_study",
        "type": FieldType.RADIO,
        "label": "What field are you studying or working in?",
        "required": True,
        "order": -3,
        "section": BACKGROUND_SECTION,
        "helpText": "This helps us personalize your learning experience",
        "options": [],
        "validation": {},
        "styling": {
            "displayType": "card_grid",
            "gridCols": "2",
            "showIcons": True,
            "showDescriptions": True,
        },
    },
    {
        "id": "class_level",
        "type": FieldType.RADIO,
        "label": "What's your current education level?",
        "required": True,
        "order": -2,
        "section": BACKGROUND_SECTION,
        "options": option_list(
            ("high_school", "High School (9th-12th Grade)"),
            ("undergraduate", "Undergraduate (Bachelor's)"),
            ("graduate", "Graduate (Master's)"),
            ("postgraduate", "Postgraduate (PhD/Doctorate)"),
            ("professional", "Professional/Working"),
        ),
        "styling": {"displayType": "card_grid", "gridCols": "2"},
    },
    {
        "id": "learning_goals",
        "type": FieldType.RADIO,
        "label": "What's your main learning goal?",
        "required": True,
        "order": -1,
        "section": BACKGROUND_SECTION,
        "options": option_list(
            ("skill_building", "Build specific skills for career"),
            ("academic_support", "Academic support & exam prep"),
            ("career_change", "Career change or transition"),
            ("personal_growth", "Personal growth & learning"),
            ("certification", "Professional certification"),
            ("exploration", "Explore new interests"),
        ),
        "styling": {"displayType": "card_grid", "gridCols": "2"},
    },
    {
        "id": "question_category",
        "type": FieldType.SELECT,
        "label": "Which question category do you prefer?",
        "required": True,
        "order": 0,
        "section": BACKGROUND_SECTION,
        "options": [],
    },
]

BASE_FIELDS: List[Dict[str, Any]] = [
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
]

EDUCATION_LEVEL_OPTIONS = option_list(
    ("high_school", "High School"),
    ("undergraduate", "Undergraduate"),
    ("graduate", "Graduate"),
    ("postgraduate", "Postgraduate"),
    ("professional", "Professional/Working"),
    ("other", "Other"),
)

FIELD_SPECIFIC_CONFIGS: Dict[str, Dict[str, Any]] = {
    "stem": {
        "name": "STEM Student Intake",
        "description": (
            "Help us understand your technical background and interests in Science, "
            "Technology, Engineering, and Math."
        ),
        "fields": [
            {
                "id": "programming_languages",
                "type": FieldType.MULTI_SELECT,
                "label": "Programming Languages (if any)",
                "required": False,
                "order": 5,
                "options": option_list(
                    ("python", "Python"),
                    ("javascript", "JavaScript"),
                    ("java", "Java"),
                    ("cpp", "C++"),
                    ("c", "C"),
                    ("r", "R"),
                    ("matlab", "MATLAB"),
                    ("sql", "SQL"),
                    ("none", "None"),
                ),
            },
            {
                "id": "math_level",
                "type": FieldType.SELECT,
                "label": "Highest Math Level Completed",
                "required": False,
                "order": 6,
                "options": option_list(
                    ("algebra", "Algebra"),
                    ("geometry", "Geometry"),
                    ("trigonometry", "Trigonometry"),
                    ("precalculus", "Pre-Calculus"),
                    ("calculus1", "Calculus I"),
                    ("calculus2", "Calculus II"),
                    ("calculus3", "Calculus III"),
                    ("linear_algebra", "Linear Algebra"),
                    ("differential_equations", "Differential Equations"),
                    ("statistics", "Statistics"),
                ),
            },
            {
                "id": "technical_interests",
                "type": FieldType.TEXTAREA,
                "label": "Technical Interests & Specializations",
                "placeholder": "e.g., Machine Learning, Web Development, Robotics, Data Science",
                "required": False,
                "order": 7,
                "helpText": "What specific areas of technology or science interest you most?",
            },
            {
                "id": "project_experience",
                "type": FieldType.TEXTAREA,
                "label": "Project Experience",
                "placeholder": "Describe any technical projects you've worked on",
                "required": False,
                "order": 8,
            },
            {
                "id": "preferred_learning_tools",
                "type": FieldType.MULTI_SELECT,
                "label": "Preferred Learning Tools",
                "required": False,
                "order": 9,
                "options": option_list(
                    ("hands_on_coding", "Hands-on Coding"),
                    ("video_tutorials", "Video Tutorials"),
                    ("documentation", "Documentation Reading"),
                    ("interactive_labs", "Interactive Labs"),
                    ("peer_collaboration", "Peer Collaboration"),
                    ("theory_first", "Theory First, Then Practice"),
                ),
            },
        ],
    },
    "business": {
        "name": "Business & Economics Student Intake",
        "description": "Share your business interests and career aspirations.",
        "fields": [
            {
                "id": "business_areas",
                "type": FieldType.MULTI_SELECT,
                "label": "Areas of Business Interest",
                "required": False,
                "order": 5,
                "options": option_list(
                    ("marketing", "Marketing"),
                    ("finance", "Finance"),
                    ("management", "Management"),
                    ("entrepreneurship", "Entrepreneurship"),
                    ("consulting", "Consulting"),
                    ("operations", "Operations"),
                    ("hr", "Human Resources"),
                    ("strategy", "Business Strategy"),
                    ("analytics", "Business Analytics"),
                ),
            },
            {
                "id": "business_experience",
                "type": FieldType.SELECT,
                "label": "Business Experience Level",
                "required": False,
                "order": 6,
                "options": option_list(
                    ("none", "No formal business experience"),
                    ("academic", "Academic coursework only"),
                    ("internship", "Internship experience"),
                    ("part_time", "Part-time work experience"),
                    ("full_time", "Full-time work experience"),
                    ("leadership", "Leadership/Management experience"),
                    ("entrepreneur", "Entrepreneurial experience"),
                ),
            },
            {
                "id": "industry_interests",
                "type": FieldType.TEXTAREA,
                "label": "Industry Interests",
                "placeholder": "e.g., Technology, Healthcare, Retail, Financial Services",
                "required": False,
                "order": 7,
                "helpText": "Which industries or sectors interest you most?",
            },
            {
                "id": "career_goals",
                "type": FieldType.RADIO,
                "label": "Primary Career Goal",
                "required": False,
                "order": 8,
                "options": option_list(
                    ("corporate", "Corporate Career Advancement"),
                    ("startup", "Start My Own Business"),
                    ("consulting", "Management Consulting"),
                    ("finance", "Finance/Investment Banking"),
                    ("nonprofit", "Nonprofit/Social Impact"),
                    ("exploring", "Still Exploring Options"),
                ),
            },
            {
                "id": "analytical_tools",
                "type": FieldType.MULTI_SELECT,
                "label": "Analytical Tools Experience",
                "required": False,
                "order": 9,
                "options": option_list(
                    ("excel", "Microsoft Excel"),
                    ("powerpoint", "PowerPoint"),
                    ("tableau", "Tableau"),
                    ("sql", "SQL"),
                    ("python", "Python for Business"),
                    ("r", "R for Statistics"),
                    ("none", "None of the above"),
                ),
            },
        ],
    },
    "social_sciences": {
        "name": "Social Sciences & Humanities Student Intake",
        "description": "Help us understand your research interests and social focus.",
        "fields": [
            {
                "id": "social_science_areas",
                "type": FieldType.MULTI_SELECT,
                "label": "Areas of Social Science Interest",
                "required": False,
                "order": 5,
                "options": option_list(
                    ("psychology", "Psychology"),
                    ("sociology", "Sociology"),
                    ("anthropology", "Anthropology"),
                    ("political_science", "Political Science"),
                    ("economics", "Economics"),
                    ("international_relations", "International Relations"),
                    ("criminology", "Criminology"),
                    ("social_work", "Social Work"),
                ),
            },
            {
                "id": "research_methods",
                "type": FieldType.MULTI_SELECT,
                "label": "Research Methods Experience",
                "required": False,
                "order": 6,
                "options": option_list(
                    ("surveys", "Surveys & Questionnaires"),
                    ("interviews", "Interviews"),
                    ("focus_groups", "Focus Groups"),
                    ("statistical_analysis", "Statistical Analysis"),
                    ("qualitative_analysis", "Qualitative Analysis"),
                    ("literature_review", "Literature Reviews"),
                    ("none", "No formal research experience"),
                ),
            },
            {
                "id": "social_issues",
                "type": FieldType.TEXTAREA,
                "label": "Social Issues of Interest",
                "placeholder": "e.g., Mental Health, Social Justice, Education Policy, Climate Change",
                "required": False,
                "order": 7,
                "helpText": "What social issues or problems are you passionate about?",
            },
            {
                "id": "career_path",
                "type": FieldType.RADIO,
                "label": "Intended Career Path",
                "required": False,
                "order": 8,
                "options": option_list(
                    ("research", "Academic Research"),
                    ("clinical", "Clinical Practice (Psychology/Social Work)"),
                    ("policy", "Policy Analysis/Government"),
                    ("nonprofit", "Nonprofit Organizations"),
                    ("private_sector", "Private Sector (HR, Consulting)"),
                    ("education", "Education/Teaching"),
                    ("undecided", "Still Deciding"),
                ),
            },
        ],
    },
    "health_medicine": {
        "name": "Health & Medicine Student Intake",
        "description": "Tell us about your healthcare interests and science background.",
        "fields": [
            {
                "id": "health_specialties",
                "type": FieldType.MULTI_SELECT,
                "label": "Areas of Health Interest",
                "required": False,
                "order": 5,
                "options": option_list(
                    ("medicine", "Medicine/Physician"),
                    ("nursing", "Nursing"),
                    ("pharmacy", "Pharmacy"),
                    ("dentistry", "Dentistry"),
                    ("public_health", "Public Health"),
                    ("physical_therapy", "Physical Therapy"),
                    ("mental_health", "Mental Health/Psychology"),
                    ("research", "Medical Research"),
                    ("administration", "Healthcare Administration"),
                ),
            },
            {
                "id": "science_background",
                "type": FieldType.MULTI_SELECT,
                "label": "Science Coursework Completed",
                "required": False,
                "order": 6,
                "options": option_list(
                    ("biology", "Biology"),
                    ("chemistry", "Chemistry"),
                    ("organic_chemistry", "Organic Chemistry"),
                    ("physics", "Physics"),
                    ("anatomy", "Anatomy & Physiology"),
                    ("microbiology", "Microbiology"),
                    ("biochemistry", "Biochemistry"),
                    ("statistics", "Statistics/Biostatistics"),
                ),
            },
            {
                "id": "healthcare_experience",
                "type": FieldType.SELECT,
                "label": "Healthcare Experience",
                "required": False,
                "order": 7,
                "options": option_list(
                    ("none", "No healthcare experience"),
                    ("volunteer", "Hospital/Clinic Volunteer"),
                    ("shadowing", "Job Shadowing"),
                    ("internship", "Healthcare Internship"),
                    ("work", "Healthcare Work Experience"),
                    ("research", "Medical Research Experience"),
                ),
            },
            {
                "id": "patient_interaction",
                "type": FieldType.RADIO,
                "label": "Interest in Patient Interaction",
                "required": False,
                "order": 8,
                "options": option_list(
                    ("high", "High - Direct patient care is my priority"),
                    ("moderate", "Moderate - Some patient interaction is fine"),
                    ("low", "Low - Prefer behind-the-scenes work"),
                    ("research", "Research-focused - Minimal patient contact"),
                ),
            },
        ],
    },
    "creative_arts": {
        "name": "Creative Arts Student Intake",
        "description": "Share your artistic journey and creative goals.",
        "fields": [
            {
                "id": "art_mediums",
                "type": FieldType.MULTI_SELECT,
                "label": "Artistic Mediums",
                "required": False,
                "order": 5,
                "options": option_list(
                    ("drawing", "Drawing"),
                    ("painting", "Painting"),
                    ("sculpture", "Sculpture"),
                    ("photography", "Photography"),
                    ("digital_art", "Digital Art"),
                    ("graphic_design", "Graphic Design"),
                    ("music", "Music"),
                    ("dance", "Dance"),
                    ("theater", "Theater"),
                    ("film", "Film/Video"),
                ),
            },
            {
                "id": "skill_level",
                "type": FieldType.SELECT,
                "label": "Overall Skill Level",
                "required": False,
                "order": 6,
                "options": option_list(
                    ("beginner", "Beginner - Just starting out"),
                    ("intermediate", "Intermediate - Some experience"),
                    ("advanced", "Advanced - Significant experience"),
                    ("professional", "Professional - Working artist"),
                ),
            },
            {
                "id": "artistic_goals",
                "type": FieldType.RADIO,
                "label": "Primary Artistic Goal",
                "required": False,
                "order": 7,
                "options": option_list(
                    ("personal", "Personal Expression & Enjoyment"),
                    ("professional", "Professional Career in Arts"),
                    ("academic", "Academic Study & Art History"),
                    ("commercial", "Commercial/Applied Arts"),
                    ("teaching", "Teaching Arts to Others"),
                ),
            },
            {
                "id": "portfolio_status",
                "type": FieldType.RADIO,
                "label": "Portfolio Status",
                "required": False,
                "order": 8,
                "options": option_list(
                    ("none", "No portfolio yet"),
                    ("building", "Currently building portfolio"),
                    ("complete", "Have a complete portfolio"),
                    ("professional", "Professional portfolio for work"),
                ),
            },
        ],
    },
}

GENERIC_FIELDS: List[Dict[str, Any]] = [
    {
        "id": "field_of_study",
        "type": FieldType.TEXT,
        "label": "Field of Study",
        "placeholder": "Please specify your field of study",
        "required": True,
        "order": 5,
    },
    {
        "id": "current_skills",
        "type": FieldType.TEXTAREA,
        "label": "Current Skills & Knowledge",
        "placeholder": "Tell us about your current skills and areas of knowledge",
        "required": False,
        "order": 6,
    },
    {
        "id": "interests",
        "type": FieldType.TEXTAREA,
        "label": "Interests & Goals",
        "placeholder": "What are you interested in learning or achieving?",
        "required": False,
        "order": 7,
    },
]

COMMON_END_FIELDS: List[Dict[str, Any]] = [
    {
        "id": "availability_per_week_hours",
        "type": FieldType.NUMBER,
        "label": "Availability per week (hours)",
        "placeholder": "6",
        "required": False,
        "order": 100,
        "section": "preferences",
        "validation": {"min": 0, "max": 168},
    },
    {
        "id": "preferred_learning_style",
        "type": FieldType.RADIO,
        "label": "Preferred Learning Style",
        "required": False,
        "order": 101,
        "section": "preferences",
        "options": option_list(
            ("video", "Video Tutorials"),
            ("text", "Text-based Learning"),
            ("interactive", "Interactive Exercises"),
            ("mixed", "Mixed Approach"),
        ),
    },
]

WORK_EXPERIENCE_FIELD: Dict[str, Any] = {
    "id": "work_experience",
    "type": FieldType.TEXTAREA,
    "label": "Work Experience",
    "placeholder": "Describe your relevant work experience",
    "required": False,
    "order": 100,
    "section": "academic_info",
}

LEARNING_GOAL_DESCRIPTIONS = {
    "skill_building": "Build specific skills for career advancement",
    "academic_support": "Get academic support and exam preparation",
    "career_change": "Transition to a new career path",
    "personal_growth": "Focus on personal growth and learning",
    "certification": "Obtain professional certification",
    "exploration": "Explore new interests and subjects",
}


def background_selection_fields() -> List[Dict[str, Any]]:
    return copy.deepcopy(BACKGROUND_SELECTION_FIELDS)


def background_field_ids() -> List[str]:
    return [field["id"] for field in BACKGROUND_SELECTION_FIELDS]


def field_templates_for(study_field_id: str | None) -> List[Dict[str, Any]]:
    """Domain-specific fields for a study field, or the generic fallback."""

    config = FIELD_SPECIFIC_CONFIGS.get(study_field_id or "")
    return copy.deepcopy(config["fields"] if config else GENERIC_FIELDS)


def available_field_configurations() -> List[str]:
    return list(FIELD_SPECIFIC_CONFIGS)


def get_field_configuration(study_field_id: str) -> Optional[Dict[str, Any]]:
    config = FIELD_SPECIFIC_CONFIGS.get(study_field_id)
    return copy.deepcopy(config) if config else None


def work_experience_field() -> Dict[str, Any]:
    return copy.deepcopy(WORK_EXPERIENCE_FIELD)


def learning_goal_description(learning_goals: str | None) -> str | None:
    return LEARNING_GOAL_DESCRIPTIONS.get(learning_goals or "", learning_goals)


def generate_form_config_for_field(
    field_of_study: str,
    class_level: str | None = None,
    learning_goals: str | None = None,
    study_fields: Any = None,
) -> Dict[str, Any]:
    """Build the un-merged intake configuration for one study field.

    ``study_fields`` is a study field provider; when the catalogue has no
    template for ``field_of_study`` but the taxonomy knows it, the form is
    named after the taxonomy entry.
    """

    template = FIELD_SPECIFIC_CONFIGS.get(field_of_study)
    if template:
        name = template["name"]
        description = template["description"]
    else:
        name = "General Student Intake"
        description = "Tell us about your academic background and learning goals."
        known = study_fields.get_by_id(field_of_study) if study_fields is not None else None
        if known:
            name = f"{known['name']} Student Intake"
            description = (
                f"Help us understand your background and interests in {known['name'].lower()}."
            )
    description = description.rstrip(".")
    if class_level:
        description += f" ({class_level.replace('_', ' ')})"
    if learning_goals:
        description += f" focused on {learning_goals.replace('_', ' ')}"
    description += "."

    education_level = {
        "id": "education_level",
        "type": FieldType.SELECT,
        "label": "Education Level",
        "placeholder": "Select your education level",
        "required": False,
        "order": 5,
        "section": "academic_info",
        "defaultValue": class_level,
        "options": copy.deepcopy(EDUCATION_LEVEL_OPTIONS),
    }
    goals = {
        "id": "goals",
        "type": FieldType.TEXTAREA,
        "label": "Goals",
        "placeholder": "What do you want to achieve?",
        "required": False,
        "order": 90,
        "section": "preferences",
        "defaultValue": learning_goal_description(learning_goals),
    }
    specific = field_templates_for(field_of_study)
    for field in specific:
        field.setdefault("section", "academic_info")

    fields = [
        *copy.deepcopy(BASE_FIELDS),
        education_level,
        *specific,
        goals,
        *copy.deepcopy(COMMON_END_FIELDS),
    ]
    fields.sort(key=lambda field: field.get("order") or 0)

    now = timezone.now().isoformat()
    return {
        "id": f"dynamic_{field_of_study}_{timezone.now().strftime('%Y%m%d%H%M%S%f')}",
        "name": name,
        "description": description,
        "fields": fields,
        "metadata": {
            "fieldCategory": field_of_study,
            "classLevel": class_level,
            "learningGoals": learning_goals,
            "generatedAt": now,
        },
        "created_at": now,
        "updated_at": now,
        "is_active": True,
    }
