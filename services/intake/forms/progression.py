"""Reactive progression through one student's intake form.

:class:`FormProgression` holds the configuration currently shown to a student
and reacts to field-change events. Completing the three background questions
regenerates a personalized configuration; the completion helpers below are
pure functions of ``(form_data, config)``.
"""
from __future__ import annotations

import copy
import logging
import math
import threading
from concurrent.futures import Future
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .constants import (
    BACKGROUND_TRIGGER_FIELDS,
    EDUCATION_LEVEL_FIELD,
    GENERAL_SECTION,
    PROFESSIONAL_LEVEL,
    has_value,
    is_field_required,
)
from .exceptions import PersonalizationFailure
from .merger import build_personalized_config
from .templates import work_experience_field
from .validation import validate_form_data

logger = logging.getLogger(__name__)

COLLECTING_BACKGROUND = "collecting_background"
PERSONALIZING = "personalizing"
PERSONALIZED = "personalized"
PERSONALIZATION_ERROR = "personalization_error"
COLLECTING_REMAINING = "collecting_remaining"
READY_TO_SUBMIT = "ready_to_submit"

BACKGROUND_LABELS = {
    "field_of_study": "Field of Study",
    "class_level": "Education Level",
    "learning_goals": "Learning Goals",
}

WORK_EXPERIENCE_FIELD_ID = "work_experience"

Triple = Tuple[Any, ...]


def _required_fields(config: Mapping[str, Any], section: str | None = None) -> List[Mapping[str, Any]]:
    return [
        field
        for field in config.get("fields") or []
        if is_field_required(field)
        and (section is None or (field.get("section") or GENERAL_SECTION) == section)
    ]


def is_background_complete(form_data: Mapping[str, Any]) -> bool:
    return all(has_value(form_data.get(field_id)) for field_id in BACKGROUND_TRIGGER_FIELDS)


def background_progress(form_data: Mapping[str, Any]) -> str:
    completed = [BACKGROUND_LABELS[f] for f in BACKGROUND_TRIGGER_FIELDS if has_value(form_data.get(f))]
    remaining = [BACKGROUND_LABELS[f] for f in BACKGROUND_TRIGGER_FIELDS if not has_value(form_data.get(f))]
    if not remaining:
        return "Background selection complete!"
    return f"Complete: {', '.join(completed)} | Remaining: {', '.join(remaining)}"


def completion_percentage(form_data: Mapping[str, Any], config: Mapping[str, Any]) -> int:
    required = _required_fields(config)
    if not required:
        return 100
    completed = sum(1 for field in required if has_value(form_data.get(field["id"])))
    # Halves round up.
    return int(math.floor(100 * completed / len(required) + 0.5))


def section_completion(
    section_id: str, form_data: Mapping[str, Any], config: Mapping[str, Any]
) -> Dict[str, Any]:
    required = _required_fields(config, section_id)
    missing = [field for field in required if not has_value(form_data.get(field["id"]))]
    return {
        "isComplete": not missing,
        "completedCount": len(required) - len(missing),
        "totalCount": len(required),
        "missingFields": [field.get("label") or field["id"] for field in missing],
    }


def next_section(form_data: Mapping[str, Any], config: Mapping[str, Any]) -> Optional[str]:
    """The first section, by section order, with an unanswered required field."""

    sections = config.get("sections") or {}
    referenced: List[str] = []
    for field in config.get("fields") or []:
        section_id = field.get("section") or GENERAL_SECTION
        if section_id not in referenced:
            referenced.append(section_id)
    referenced.sort(key=lambda section_id: (sections.get(section_id) or {}).get("order", 0))
    for section_id in referenced:
        if not section_completion(section_id, form_data, config)["isComplete"]:
            return section_id
    return None


def submission_readiness(form_data: Mapping[str, Any], config: Mapping[str, Any]) -> Dict[str, Any]:
    percentage = completion_percentage(form_data, config)
    validation = validate_form_data(form_data, config)
    return {
        "isReady": validation["isValid"] and percentage == 100,
        "completionPercentage": percentage,
        "validationErrors": validation["errors"],
        "canSubmit": validation["isValid"],
    }


def toggle_work_experience(config: Mapping[str, Any], education_level: Any) -> Tuple[Dict[str, Any], bool]:
    """Show the work experience field only for professionals.

    Returns the possibly updated configuration and whether it changed.
    Repeating the same transition is a no-op.
    """

    fields = list(config.get("fields") or [])
    present = any(field.get("id") == WORK_EXPERIENCE_FIELD_ID for field in fields)
    if education_level == PROFESSIONAL_LEVEL:
        if present:
            return dict(config), False
        fields.append(work_experience_field())
    else:
        if not present:
            return dict(config), False
        fields = [field for field in fields if field.get("id") != WORK_EXPERIENCE_FIELD_ID]
    return {**config, "fields": fields}, True


class FormProgression:
    """Field-change state machine for one in-progress intake.

    Regenerations are numbered when they start. A regeneration only replaces
    the configuration if no newer one started in the meantime, and a second
    completion of the same answer triple while one is in flight waits for
    that regeneration instead of starting another.
    """

    def __init__(
        self,
        config: Mapping[str, Any],
        builder: Callable[..., Dict[str, Any]] | None = None,
    ) -> None:
        self.config: Dict[str, Any] = copy.deepcopy(dict(config))
        self.stage = COLLECTING_BACKGROUND
        self._builder = builder or build_personalized_config
        self._lock = threading.Lock()
        self._sequence = 0
        self._applied_triple: Triple | None = None
        self._in_flight: Dict[Triple, Future] = {}

    def on_field_change(
        self, field_id: str, value: Any, form_data: Mapping[str, Any]
    ) -> Dict[str, Any]:
        updated = {**form_data, field_id: value}
        if field_id in BACKGROUND_TRIGGER_FIELDS:
            return self._on_background_change(updated)
        if field_id == EDUCATION_LEVEL_FIELD:
            return self._on_education_level_change(value, updated)
        self._advance(updated)
        return self._result(updated, False)

    def _result(self, form_data: Dict[str, Any], updated: bool, **extra: Any) -> Dict[str, Any]:
        result = {"formData": form_data, "configUpdated": updated, "stage": self.stage, **extra}
        if updated:
            result["newConfig"] = copy.deepcopy(self.config)
        return result

    def _advance(self, form_data: Mapping[str, Any]) -> None:
        if self.stage in (PERSONALIZED, COLLECTING_REMAINING, READY_TO_SUBMIT):
            ready = submission_readiness(form_data, self.config)["isReady"]
            self.stage = READY_TO_SUBMIT if ready else COLLECTING_REMAINING

    def _on_education_level_change(self, value: Any, form_data: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            config, changed = toggle_work_experience(self.config, value)
            self.config = config
        self._advance(form_data)
        return self._result(form_data, changed)

    def _on_background_change(self, form_data: Dict[str, Any]) -> Dict[str, Any]:
        if not is_background_complete(form_data):
            if self.stage not in (PERSONALIZING, PERSONALIZATION_ERROR):
                self.stage = COLLECTING_BACKGROUND
            return self._result(form_data, False, message=background_progress(form_data))

        triple = tuple(str(form_data[field_id]) for field_id in BACKGROUND_TRIGGER_FIELDS)
        with self._lock:
            if triple == self._applied_triple:
                return self._result(form_data, False)
            pending = self._in_flight.get(triple)
            owner = pending is None
            if owner:
                self._sequence += 1
                sequence = self._sequence
                pending = self._in_flight[triple] = Future()
                self.stage = PERSONALIZING

        if not owner:
            outcome = {key: value for key, value in pending.result().items() if key != "newConfig"}
            return {**outcome, "formData": form_data, "configUpdated": False}

        outcome: Dict[str, Any] = {}
        try:
            outcome = self._regenerate(triple, sequence, form_data)
        finally:
            with self._lock:
                self._in_flight.pop(triple, None)
            pending.set_result(outcome)
        return outcome

    def _regenerate(self, triple: Triple, sequence: int, form_data: Dict[str, Any]) -> Dict[str, Any]:
        field_of_study, class_level, learning_goals = triple
        try:
            config = self._builder(field_of_study, class_level, learning_goals)
        except Exception as exc:
            failure = PersonalizationFailure(f"Could not personalize the form for {field_of_study}: {exc}")
            logger.warning("%s, keeping the current configuration", failure, exc_info=True)
            with self._lock:
                if sequence == self._sequence:
                    self.stage = PERSONALIZATION_ERROR
            return self._result(
                form_data, False, warning="Failed to personalize form. Using the current configuration."
            )

        with self._lock:
            if sequence != self._sequence:
                logger.warning("Discarding stale personalization for %s", field_of_study)
                return self._result(form_data, False)
            self.config = config
            self._applied_triple = triple
            self.stage = PERSONALIZED
        return self._result(
            form_data,
            True,
            progression={
                "backgroundComplete": True,
                "nextSection": next_section(form_data, config),
            },
        )
