"""Cached lookups over the study field and category taxonomies.

Each provider owns an explicit in-memory cache. The first caller loads the
active rows from its repository; callers that arrive while that load is in
flight wait for the same load instead of issuing their own. The cache is only
invalidated by :meth:`TaxonomyCache.refresh`, which every admin mutation calls
after writing through to the repository.

When the repository cannot be read, the provider installs a built-in default
set and keeps serving lookups so intake forms remain usable.
"""
from __future__ import annotations

import functools
import logging
import re
import threading
from concurrent.futures import Future
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from django.conf import settings
from django.db import DatabaseError

from .defaults import (
    CATEGORY_KEYWORDS,
    DEFAULT_CATEGORIES,
    DEFAULT_CATEGORY_COLOR,
    DEFAULT_CATEGORY_ICON,
    DEFAULT_CATEGORY_ORDER,
    DEFAULT_STUDY_FIELDS,
    DESCRIPTION_MATCH_SCORE,
    GENERAL_CATEGORY_ID,
    KEYWORD_MATCH_SCORE,
    NAME_MATCH_SCORE,
    STUDY_FIELD_KEYWORDS,
)
from .exceptions import EntityInUseError, ProtectedEntityError, TaxonomyEntryNotFound
from .repositories import CategoryRepository, StudyFieldRepository

logger = logging.getLogger(__name__)


def title_case(identifier: str) -> str:
    """Turn ``study_habits`` into ``Study Habits``."""

    return re.sub(r"\b\w", lambda match: match.group().upper(), identifier.replace("_", " "))


def pick_best_match(scores: Mapping[str, int]) -> Optional[str]:
    """Return the highest scoring candidate, or ``None`` when nothing scored.

    Ties go to the candidate that reached the maximum first in iteration
    order, so the same scores always produce the same answer.
    """

    best_id: Optional[str] = None
    best_score = 0
    for candidate, score in scores.items():
        if score > best_score:
            best_id, best_score = candidate, score
    return best_id


def score_study_fields(text: str, fields: Iterable[Mapping[str, Any]]) -> Dict[str, int]:
    """Score each study field against free text, preserving taxonomy order."""

    normalized = (text or "").lower()
    scores: Dict[str, int] = {}
    for field in fields:
        score = 0
        name = (field.get("name") or "").lower()
        description = (field.get("description") or "").lower()
        if name and name in normalized:
            score += NAME_MATCH_SCORE
        if description and description in normalized:
            score += DESCRIPTION_MATCH_SCORE
        for keyword in STUDY_FIELD_KEYWORDS.get(field["field_id"], ()):
            if keyword in normalized:
                score += KEYWORD_MATCH_SCORE
        scores[field["field_id"]] = score
    return scores


def score_categories(field: Mapping[str, Any]) -> Dict[str, int]:
    """Score the keyword table against a form field's id and label."""

    field_id = str(field.get("id") or "").lower()
    label = str(field.get("label") or "").lower()
    scores: Dict[str, int] = {}
    for category_id, keywords in CATEGORY_KEYWORDS:
        scores[category_id] = sum(
            1 for keyword in keywords if keyword in field_id or keyword in label
        )
    return scores


class TaxonomyCache:
    """Single-flight cache over one taxonomy collection."""

    kind = "entry"
    key_field = "id"
    fallback: Tuple[Dict[str, Any], ...] | List[Dict[str, Any]] = ()

    def __init__(self, repository: Any) -> None:
        self.repository = repository
        self.initialized = False
        self._entries: List[Dict[str, Any]] = []
        self._by_id: Dict[str, Dict[str, Any]] = {}
        self._by_name: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()
        self._pending: Future | None = None
        # Bumped by refresh(); loads started under an older generation are discarded.
        self._generation = 0

    def _fetch(self) -> List[Dict[str, Any]]:
        try:
            entries = [dict(entry) for entry in self.repository.list_active()]
            logger.info("Loaded %d %s entries", len(entries), self.kind)
        except DatabaseError:
            logger.warning(
                "Loading %s entries failed, using built-in defaults", self.kind, exc_info=True
            )
            entries = [dict(entry) for entry in self.fallback]
        return entries

    def load_all(self) -> List[Dict[str, Any]]:
        """Fetch the active entries, falling back to the built-in set."""

        with self._lock:
            generation = self._generation
        self._install(self._fetch(), generation)
        return self.get_all()

    def init(self) -> None:
        while not self.initialized:
            with self._lock:
                if self.initialized:
                    return
                pending = self._pending
                owner = pending is None
                if owner:
                    pending = self._pending = Future()
                    generation = self._generation
            if not owner:
                pending.result()
                continue
            try:
                self._install(self._fetch(), generation)
            except BaseException as exc:
                self._settle(pending, exc)
                raise
            self._settle(pending, None)

    def _settle(self, pending: Future, exc: BaseException | None) -> None:
        with self._lock:
            if self._pending is pending:
                self._pending = None
        if exc is None:
            pending.set_result(None)
        else:
            pending.set_exception(exc)

    def refresh(self) -> None:
        """Drop the cache and load again, even if an older load is still running."""

        with self._lock:
            self._generation += 1
            self.initialized = False
        self.init()

    def get_all(self) -> List[Dict[str, Any]]:
        self.init()
        with self._lock:
            return [dict(entry) for entry in self._entries]

    def get_by_id(self, entry_id: str) -> Dict[str, Any] | None:
        self.init()
        entry = self._by_id.get(entry_id)
        return dict(entry) if entry is not None else None

    def get_by_name(self, name: str) -> Dict[str, Any] | None:
        self.init()
        entry = self._by_name.get((name or "").lower())
        return dict(entry) if entry is not None else None

    def add(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        created = self.repository.insert(payload)
        self.refresh()
        return created

    def update(self, entry_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        if not self.repository.update(entry_id, changes):
            raise TaxonomyEntryNotFound(self.kind, entry_id)
        self.refresh()
        return self.repository.get(changes.get(self.key_field, entry_id))

    def toggle_status(self, entry_id: str, is_active: bool) -> Dict[str, Any]:
        return self.update(entry_id, {"is_active": is_active})

    def delete(self, entry_id: str) -> None:
        if not self.repository.delete(entry_id):
            raise TaxonomyEntryNotFound(self.kind, entry_id)
        self.refresh()

    def _install(self, entries: List[Dict[str, Any]], generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                logger.info("Discarding %s entries loaded before a refresh", self.kind)
                return
            self._entries = entries
            self._by_id = {}
            self._by_name = {}
            for entry in entries:
                self._index(entry)
            self.initialized = True

    def _index(self, entry: Dict[str, Any]) -> None:
        self._by_id[entry[self.key_field]] = entry
        self._by_name[(entry.get("name") or "").lower()] = entry


class StudyFieldProvider(TaxonomyCache):
    kind = "study field"
    key_field = "field_id"
    fallback = DEFAULT_STUDY_FIELDS

    def get_options(self) -> List[Dict[str, Any]]:
        return [
            {
                "value": field["field_id"],
                "label": " ".join(part for part in (field.get("icon"), field["name"]) if part),
                "description": field.get("description", ""),
                "icon": field.get("icon", ""),
            }
            for field in self.get_all()
        ]

    def detect_field_from_text(self, text: str) -> Dict[str, Any] | None:
        if not text:
            return None
        best = pick_best_match(score_study_fields(text, self.get_all()))
        return self.get_by_id(best) if best else None

    def delete(self, entry_id: str) -> None:
        questions = self.repository.count_questions(entry_id)
        if questions:
            raise EntityInUseError(
                f"Cannot delete study field {entry_id}: it has {questions} questions assigned",
                questions,
            )
        super().delete(entry_id)

    def statistics(self) -> Dict[str, Dict[str, Any]]:
        stats: Dict[str, Dict[str, Any]] = {}
        for field in self.get_all():
            try:
                count = self.repository.count_questions(field["field_id"])
            except DatabaseError:
                logger.warning("Counting questions for %s failed", field["field_id"], exc_info=True)
                count = 0
            stats[field["field_id"]] = {**field, "questionCount": count}
        return stats


class CategoryProvider(TaxonomyCache):
    kind = "category"
    key_field = "category_id"
    fallback = DEFAULT_CATEGORIES

    def get_options(self) -> List[Dict[str, Any]]:
        return [
            {
                "value": category["category_id"],
                "label": " ".join(part for part in (category.get("icon"), category["name"]) if part),
                "description": category.get("description", ""),
                "icon": category.get("icon", ""),
                "color": category.get("color", ""),
            }
            for category in self.get_all()
        ]

    @staticmethod
    def section_meta(category: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            "title": category["name"],
            "description": category.get("description", ""),
            "icon": category.get("icon", ""),
            "order": category.get("display_order", 0),
            "color": category.get("color", ""),
            "isSystem": bool(category.get("is_system", False)),
        }

    def organized_sections(self) -> Dict[str, Dict[str, Any]]:
        return {
            category["category_id"]: self.section_meta(category) for category in self.get_all()
        }

    def ensure_exists(
        self, category_id: str, defaults: Mapping[str, Any] | None = None
    ) -> Dict[str, Any]:
        """Return the category, synthesizing and persisting it when missing."""

        existing = self.get_by_id(category_id)
        if existing is not None:
            return existing

        defaults = defaults or {}
        order = defaults.get("order")
        entry = {
            "category_id": category_id,
            "name": defaults.get("name") or title_case(category_id),
            "description": defaults.get("description") or f"Section for {category_id} fields",
            "icon": defaults.get("icon") or DEFAULT_CATEGORY_ICON,
            "color": defaults.get("color") or DEFAULT_CATEGORY_COLOR,
            "display_order": DEFAULT_CATEGORY_ORDER if order is None else order,
            "is_active": True,
            "is_system": False,
        }
        with self._lock:
            if category_id in self._by_id:
                return dict(self._by_id[category_id])
            self._entries.append(entry)
            self._index(entry)

        try:
            self.repository.insert(entry)
        except DatabaseError:
            logger.warning("Could not persist category %s", category_id, exc_info=True)
        else:
            logger.info("Created category %s for an unmapped section", category_id)
        return dict(entry)

    def detect_category_from_field(self, field: Mapping[str, Any]) -> Dict[str, Any]:
        section = field.get("section")
        if section:
            return self.ensure_exists(section)
        best = pick_best_match(score_categories(field))
        return self.ensure_exists(best or getattr(settings, "INTAKE_DEFAULT_CATEGORY", GENERAL_CATEGORY_ID))

    def add(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return super().add({**payload, "is_active": True, "is_system": False})

    def update(self, entry_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        current = self.repository.get(entry_id)
        if current is None:
            raise TaxonomyEntryNotFound(self.kind, entry_id)
        new_id = changes.get("category_id", entry_id)
        if current["is_system"] and new_id != entry_id:
            raise ProtectedEntityError(f"Cannot change the id of system category: {entry_id}")
        if current["is_system"] and changes.get("is_system") is False:
            raise ProtectedEntityError(f"Cannot unflag system category: {entry_id}")
        return super().update(entry_id, changes)

    def delete(self, entry_id: str) -> None:
        current = self.repository.get(entry_id)
        if current is None:
            raise TaxonomyEntryNotFound(self.kind, entry_id)
        if current["is_system"]:
            raise ProtectedEntityError(f"Cannot delete system category: {entry_id}")
        references = self.repository.count_configuration_references(entry_id)
        if references:
            raise EntityInUseError(
                f"Cannot delete category {entry_id}: {references} configured fields use it",
                references,
            )
        super().delete(entry_id)

    def reorder(self, orders: Iterable[Tuple[str, int]]) -> None:
        self.repository.bulk_reorder(list(orders))
        self.refresh()

    def statistics(self) -> Dict[str, Dict[str, Any]]:
        stats: Dict[str, Dict[str, Any]] = {}
        for category in self.get_all():
            try:
                count = self.repository.count_configuration_references(category["category_id"])
            except DatabaseError:
                logger.warning(
                    "Counting fields for %s failed", category["category_id"], exc_info=True
                )
                count = 0
            stats[category["category_id"]] = {**category, "fieldCount": count}
        return stats


@functools.lru_cache(maxsize=None)
def get_study_field_provider() -> StudyFieldProvider:
    return StudyFieldProvider(StudyFieldRepository())


@functools.lru_cache(maxsize=None)
def get_category_provider() -> CategoryProvider:
    return CategoryProvider(CategoryRepository())
