"""Per-student background answers and the configuration they select."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional

from .merger import build_personalized_config
from .models import BackgroundSelection

logger = logging.getLogger(__name__)

SELECTION_FIELDS = ("field_of_study", "class_level", "learning_goals")


def serialize_selection(selection: BackgroundSelection) -> Dict[str, Any]:
    return {
        "user_id": selection.user_id,
        "field_of_study": selection.field_of_study,
        "class_level": selection.class_level,
        "learning_goals": selection.learning_goals,
        "updated_at": selection.updated_at.isoformat() if selection.updated_at else None,
    }


class BackgroundSelectionService:
    def __init__(self, builder: Callable[..., Dict[str, Any]] | None = None) -> None:
        self._builder = builder or build_personalized_config

    def save(self, user_id: str, selection: Mapping[str, Any]) -> BackgroundSelection:
        """Insert or update the single row for ``user_id``."""

        row, created = BackgroundSelection.objects.update_or_create(
            user_id=user_id,
            defaults={field: selection.get(field) or "" for field in SELECTION_FIELDS},
        )
        logger.info("%s background selection for %s", "Created" if created else "Updated", user_id)
        return row

    def get(self, user_id: str) -> Optional[BackgroundSelection]:
        return BackgroundSelection.objects.filter(user_id=user_id).first()

    def exists(self, user_id: str) -> bool:
        return BackgroundSelection.objects.filter(user_id=user_id).exists()

    def delete(self, user_id: str) -> bool:
        deleted, _ = BackgroundSelection.objects.filter(user_id=user_id).delete()
        return bool(deleted)

    def form_config_for_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        selection = self.get(user_id)
        if selection is None:
            return None
        return self._builder(
            selection.field_of_study, selection.class_level, selection.learning_goals
        )
