"""Built-in taxonomy used when the database cannot be reached."""
from __future__ import annotations

from typing import Any, Dict, List, Tuple

DEFAULT_CATEGORY_ICON = "Settings"
DEFAULT_CATEGORY_COLOR = "text-gray-400 bg-gray-400/10 border-gray-400/20"
DEFAULT_CATEGORY_ORDER = 10
GENERAL_CATEGORY_ID = "general"

DEFAULT_CATEGORIES: List[Dict[str, Any]] = [
    {
        "category_id": "background_selection",
        "name": "Background Selection",
        "description": "Tell us about your academic background and goals",
        "icon": "GraduationCap",
        "color": "text-blue-400 bg-blue-400/10 border-blue-400/20",
        "display_order": -3,
        "is_active": True,
        "is_system": True,
    },
    {
        "category_id": "personal_info",
        "name": "Personal Information",
        "description": "Basic information about you",
        "icon": "User",
        "color": "text-green-400 bg-green-400/10 border-green-400/20",
        "display_order": 0,
        "is_active": True,
        "is_system": True,
    },
    {
        "category_id": "academic_info",
        "name": "Academic Details",
        "description": "Your educational background and preferences",
        "icon": "BookOpen",
        "color": "text-purple-400 bg-purple-400/10 border-purple-400/20",
        "display_order": 1,
        "is_active": True,
        "is_system": True,
    },
    {
        "category_id": "preferences",
        "name": "Learning Preferences",
        "description": "How you prefer to learn",
        "icon": "Settings",
        "color": "text-orange-400 bg-orange-400/10 border-orange-400/20",
        "display_order": 2,
        "is_active": True,
        "is_system": True,
    },
    {
        "category_id": GENERAL_CATEGORY_ID,
        "name": "Additional Information",
        "description": "Other relevant details",
        "icon": "FileText",
        "color": "text-gray-400 bg-gray-400/10 border-gray-400/20",
        "display_order": 3,
        "is_active": True,
        "is_system": True,
    },
]

DEFAULT_STUDY_FIELDS: List[Dict[str, Any]] = [
    {
        "field_id": "stem",
        "name": "STEM",
        "icon": "🔬",
        "description": "Science, Technology, Engineering, and Mathematics",
        "color": "text-blue-400 bg-blue-400/10 border-blue-400/20",
        "is_active": True,
    },
    {
        "field_id": "business",
        "name": "Business",
        "icon": "💼",
        "description": "Business and Economics",
        "color": "text-green-400 bg-green-400/10 border-green-400/20",
        "is_active": True,
    },
    {
        "field_id": "social_sciences",
        "name": "Social Sciences",
        "icon": "🏛️",
        "description": "Social Sciences and Humanities",
        "color": "text-purple-400 bg-purple-400/10 border-purple-400/20",
        "is_active": True,
    },
    {
        "field_id": "health_medicine",
        "name": "Health & Medicine",
        "icon": "⚕️",
        "description": "Healthcare and Medical Sciences",
        "color": "text-red-400 bg-red-400/10 border-red-400/20",
        "is_active": True,
    },
    {
        "field_id": "creative_arts",
        "name": "Creative Arts",
        "icon": "🎨",
        "description": "Arts, Design, and Creative Fields",
        "color": "text-pink-400 bg-pink-400/10 border-pink-400/20",
        "is_active": True,
    },
]

# Ordered: earlier rows win ties when scoring field ids and labels.
CATEGORY_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("background_selection", ("field_of_study", "class_level", "learning_goals")),
    ("personal_info", ("name", "email", "phone", "age", "gender")),
    ("academic_info", ("education", "grade", "school", "major", "gpa", "year")),
    ("preferences", ("style", "pace", "schedule", "preference", "availability")),
    (GENERAL_CATEGORY_ID, ("other", "additional", "comments", "notes")),
)

STUDY_FIELD_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "stem": (
        "computer", "software", "programming", "coding", "developer", "data science",
        "engineering", "mathematics", "physics", "chemistry", "biology", "technology",
        "science", "math", "algorithm", "ai", "machine learning", "robotics", "python",
    ),
    "business": (
        "business", "finance", "marketing", "economics", "management", "entrepreneurship",
        "accounting", "mba", "sales", "operations", "supply chain", "hr", "commerce",
    ),
    "social_sciences": (
        "psychology", "sociology", "political", "anthropology", "history", "philosophy",
        "social work", "criminology", "geography", "international relations",
    ),
    "health_medicine": (
        "medicine", "medical", "health", "nursing", "pharmacy", "doctor", "healthcare",
        "biology", "anatomy", "physiology", "dentistry", "veterinary",
    ),
    "creative_arts": (
        "art", "design", "music", "theater", "film", "creative", "literature",
        "writing", "painting", "sculpture", "photography", "dance",
    ),
}

NAME_MATCH_SCORE = 10
DESCRIPTION_MATCH_SCORE = 5
KEYWORD_MATCH_SCORE = 1
