"""Tests for the cached taxonomy providers and their API."""
from __future__ import annotations

import threading
from unittest import mock

from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase
from django.urls import reverse
from rest_framework.test import APIClient

from forms.models import FormConfiguration

from .defaults import DEFAULT_STUDY_FIELDS
from .exceptions import EntityInUseError, ProtectedEntityError
from .models import Category, QuestionFieldMapping, StudyField
from .providers import (
    StudyFieldProvider,
    get_category_provider,
    get_study_field_provider,
    pick_best_match,
    score_study_fields,
    title_case,
)


def _study_field_repository(**overrides):
    repository = mock.Mock()
    repository.list_active.return_value = [dict(field) for field in DEFAULT_STUDY_FIELDS]
    repository.count_questions.return_value = 0
    for name, value in overrides.items():
        setattr(repository, name, value)
    return repository


class ScoringTests(SimpleTestCase):
    def test_ties_go_to_the_first_candidate(self) -> None:
        self.assertEqual(pick_best_match({"a": 2, "b": 2, "c": 1}), "a")

    def test_nothing_scored_means_no_match(self) -> None:
        self.assertIsNone(pick_best_match({"a": 0, "b": 0}))
        self.assertIsNone(pick_best_match({}))

    def test_name_description_and_keywords_are_weighted(self) -> None:
        scores = score_study_fields("STEM is science, technology, engineering, and mathematics", DEFAULT_STUDY_FIELDS)
        # name (10) plus description (5) plus several keyword hits
        self.assertGreater(scores["stem"], 15)
        self.assertEqual(list(scores), [field["field_id"] for field in DEFAULT_STUDY_FIELDS])

    def test_title_case(self) -> None:
        self.assertEqual(title_case("study_habits"), "Study Habits")


class StudyFieldProviderTests(SimpleTestCase):
    def test_detects_stem_from_free_text(self) -> None:
        provider = StudyFieldProvider(_study_field_repository())

        detected = provider.detect_field_from_text("I love python and machine learning")

        self.assertEqual(detected["field_id"], "stem")

    def test_detect_returns_none_without_any_hit(self) -> None:
        provider = StudyFieldProvider(_study_field_repository())

        self.assertIsNone(provider.detect_field_from_text("zzz qqq"))
        self.assertIsNone(provider.detect_field_from_text(""))

    def test_load_failure_falls_back_to_builtin_fields(self) -> None:
        repository = _study_field_repository()
        repository.list_active.side_effect = DatabaseError("connection refused")
        provider = StudyFieldProvider(repository)

        with self.assertLogs("taxonomy.providers", level="WARNING"):
            fields = provider.get_all()

        self.assertEqual([field["field_id"] for field in fields], [f["field_id"] for f in DEFAULT_STUDY_FIELDS])
        self.assertTrue(provider.initialized)

    def test_lookups_load_once_and_are_case_insensitive(self) -> None:
        repository = _study_field_repository()
        provider = StudyFieldProvider(repository)

        self.assertEqual(provider.get_by_name("business")["field_id"], "business")
        self.assertEqual(provider.get_by_id("creative_arts")["name"], "Creative Arts")
        self.assertIsNone(provider.get_by_id("unknown"))
        repository.list_active.assert_called_once()

    def test_options_follow_load_order(self) -> None:
        provider = StudyFieldProvider(_study_field_repository())

        options = provider.get_options()

        self.assertEqual(options[0]["value"], "stem")
        self.assertEqual(options[0]["label"], "🔬 STEM")
        self.assertEqual(len(options), len(DEFAULT_STUDY_FIELDS))

    def test_returned_entries_do_not_alias_the_cache(self) -> None:
        provider = StudyFieldProvider(_study_field_repository())

        provider.get_by_id("stem")["name"] = "Changed"

        self.assertEqual(provider.get_by_id("stem")["name"], "STEM")

    def test_concurrent_callers_share_one_load(self) -> None:
        started = threading.Event()
        release = threading.Event()

        def slow_load():
            started.set()
            release.wait(timeout=5)
            return [dict(field) for field in DEFAULT_STUDY_FIELDS]

        repository = _study_field_repository()
        repository.list_active.side_effect = slow_load
        provider = StudyFieldProvider(repository)
        results = []

        owner = threading.Thread(target=lambda: results.append(provider.get_all()))
        owner.start()
        self.assertTrue(started.wait(timeout=5))
        waiters = [
            threading.Thread(target=lambda: results.append(provider.get_all())) for _ in range(4)
        ]
        for thread in waiters:
            thread.start()
        release.set()
        for thread in [owner, *waiters]:
            thread.join(timeout=5)

        repository.list_active.assert_called_once()
        self.assertEqual(len(results), 5)
        self.assertTrue(all(len(result) == len(DEFAULT_STUDY_FIELDS) for result in results))

    def test_refresh_during_a_load_installs_the_newer_rows(self) -> None:
        started = threading.Event()
        release = threading.Event()
        version = [0]

        def load():
            snapshot = version[0]
            if not started.is_set():
                started.set()
                release.wait(timeout=5)
            rows = [dict(field) for field in DEFAULT_STUDY_FIELDS]
            rows[0]["name"] = f"STEM v{snapshot}"
            return rows

        repository = _study_field_repository()
        repository.list_active.side_effect = load
        provider = StudyFieldProvider(repository)

        reader = threading.Thread(target=provider.get_all)
        reader.start()
        self.assertTrue(started.wait(timeout=5))
        version[0] = 1
        refresher = threading.Thread(target=provider.refresh)
        refresher.start()
        refresher.join(timeout=0.2)
        release.set()
        for thread in (reader, refresher):
            thread.join(timeout=5)

        self.assertEqual(provider.get_by_id("stem")["name"], "STEM v1")
        self.assertEqual(repository.list_active.call_count, 2)

    def test_mutations_refresh_the_cache(self) -> None:
        repository = _study_field_repository()
        repository.insert.return_value = {"field_id": "law", "name": "Law"}
        provider = StudyFieldProvider(repository)
        provider.get_all()

        provider.add({"field_id": "law", "name": "Law"})

        repository.insert.assert_called_once()
        self.assertEqual(repository.list_active.call_count, 2)

    def test_delete_is_refused_while_questions_are_mapped(self) -> None:
        repository = _study_field_repository()
        repository.count_questions.return_value = 3
        provider = StudyFieldProvider(repository)

        with self.assertRaises(EntityInUseError) as raised:
            provider.delete("stem")

        self.assertEqual(raised.exception.references, 3)
        repository.delete.assert_not_called()


class CategoryProviderTests(TestCase):
    def setUp(self) -> None:
        get_category_provider.cache_clear()
        get_study_field_provider.cache_clear()
        self.provider = get_category_provider()

    def test_active_categories_load_in_display_order(self) -> None:
        ids = [category["category_id"] for category in self.provider.get_all()]

        self.assertEqual(ids, ["background_selection", "personal_info", "academic_info", "preferences", "general"])

    def test_ensure_exists_synthesizes_and_persists(self) -> None:
        category = self.provider.ensure_exists("study_habits")

        self.assertEqual(category["name"], "Study Habits")
        self.assertEqual(category["description"], "Section for study_habits fields")
        self.assertEqual(category["icon"], "Settings")
        self.assertEqual(category["display_order"], 10)
        self.assertTrue(Category.objects.filter(category_id="study_habits", is_system=False).exists())
        self.assertEqual(self.provider.ensure_exists("study_habits")["name"], "Study Habits")
        self.assertEqual(Category.objects.filter(category_id="study_habits").count(), 1)

    def test_ensure_exists_keeps_serving_when_persisting_fails(self) -> None:
        self.provider.get_all()
        with mock.patch.object(
            self.provider.repository, "insert", side_effect=DatabaseError("read only")
        ), self.assertLogs("taxonomy.providers", level="WARNING"):
            category = self.provider.ensure_exists("offline_section")

        self.assertEqual(category["category_id"], "offline_section")
        self.assertIsNotNone(self.provider.get_by_id("offline_section"))

    def test_detect_category_prefers_the_field_section(self) -> None:
        detected = self.provider.detect_category_from_field({"id": "email", "section": "preferences"})

        self.assertEqual(detected["category_id"], "preferences")

    def test_detect_category_scores_keywords(self) -> None:
        self.assertEqual(
            self.provider.detect_category_from_field({"id": "phone_number", "label": "Phone"})["category_id"],
            "personal_info",
        )
        self.assertEqual(
            self.provider.detect_category_from_field({"id": "q1", "label": "Anything else?"})["category_id"],
            "general",
        )

    def test_system_categories_cannot_be_deleted_or_renamed(self) -> None:
        with self.assertRaises(ProtectedEntityError):
            self.provider.delete("personal_info")
        with self.assertRaises(ProtectedEntityError):
            self.provider.update("personal_info", {"category_id": "personal"})

        self.assertTrue(Category.objects.filter(category_id="personal_info").exists())

    def test_category_referenced_by_a_configuration_cannot_be_deleted(self) -> None:
        self.provider.add({"category_id": "portfolio", "name": "Portfolio"})
        FormConfiguration.objects.create(
            id="cfg",
            name="Config",
            fields=[{"id": "site", "type": "text", "label": "Site", "section": "portfolio"}],
        )

        with self.assertRaises(EntityInUseError):
            self.provider.delete("portfolio")

        FormConfiguration.objects.all().delete()
        self.provider.delete("portfolio")
        self.assertIsNone(self.provider.get_by_id("portfolio"))

    def test_reorder_and_toggle_refresh_the_cache(self) -> None:
        self.provider.reorder([("general", -10)])
        self.assertEqual(self.provider.get_all()[0]["category_id"], "general")

        self.provider.toggle_status("preferences", False)
        self.assertIsNone(self.provider.get_by_id("preferences"))

    def test_statistics_count_referencing_fields(self) -> None:
        FormConfiguration.objects.create(
            id="cfg",
            name="Config",
            fields=[
                {"id": "a", "section": "preferences"},
                {"id": "b", "category_id": "preferences"},
                {"id": "c", "section": "general"},
            ],
        )

        stats = self.provider.statistics()

        self.assertEqual(stats["preferences"]["fieldCount"], 2)
        self.assertEqual(stats["general"]["fieldCount"], 1)
        self.assertEqual(stats["personal_info"]["fieldCount"], 0)


class TaxonomyApiTests(TestCase):
    def setUp(self) -> None:
        get_category_provider.cache_clear()
        get_study_field_provider.cache_clear()
        self.client = APIClient()

    def test_category_options(self) -> None:
        response = self.client.get(reverse("category-options"))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data[0]["value"], "background_selection")

    def test_create_and_delete_custom_category(self) -> None:
        response = self.client.post(
            reverse("category-list"),
            {"category_id": "hobbies", "name": "Hobbies", "display_order": 4},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertFalse(response.data["is_system"])
        self.assertIsNotNone(get_category_provider().get_by_id("hobbies"))

        response = self.client.delete(reverse("category-detail", args=["hobbies"]))
        self.assertEqual(response.status_code, 204)
        self.assertIsNone(get_category_provider().get_by_id("hobbies"))

    def test_deleting_a_system_category_conflicts(self) -> None:
        response = self.client.delete(reverse("category-detail", args=["general"]))

        self.assertEqual(response.status_code, 409)
        self.assertTrue(Category.objects.filter(category_id="general").exists())

    def test_duplicate_category_id_is_rejected(self) -> None:
        response = self.client.post(
            reverse("category-list"), {"category_id": "general", "name": "Again"}, format="json"
        )

        self.assertEqual(response.status_code, 400)

    def test_reorder_endpoint(self) -> None:
        response = self.client.post(
            reverse("category-reorder"),
            [{"category_id": "preferences", "order": -5}],
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data[0]["value"], "preferences")

    def test_toggle_endpoint(self) -> None:
        response = self.client.post(
            reverse("category-toggle", args=["preferences"]), {"is_active": False}, format="json"
        )

        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.data["is_active"])

    def test_study_field_detect_endpoint(self) -> None:
        response = self.client.post(
            reverse("study-field-detect"),
            {"text": "I love python and machine learning"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["field"]["field_id"], "stem")

    def test_study_field_with_questions_cannot_be_deleted(self) -> None:
        QuestionFieldMapping.objects.create(question_id="q1", field_id="business")

        response = self.client.delete(reverse("study-field-detail", args=["business"]))

        self.assertEqual(response.status_code, 409)
        self.assertTrue(StudyField.objects.filter(field_id="business").exists())

    def test_study_field_statistics(self) -> None:
        QuestionFieldMapping.objects.create(question_id="q1", field_id="stem")
        QuestionFieldMapping.objects.create(question_id="q2", field_id="stem")

        response = self.client.get(reverse("study-field-statistics"))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["stem"]["questionCount"], 2)
