"""Tests for configuration resolution, progression, storage and the intake API."""
from __future__ import annotations

import contextlib
import threading
from unittest import mock

from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase
from django.urls import reverse
from rest_framework.test import APIClient

from taxonomy.exceptions import ProtectedEntityError
from taxonomy.providers import get_category_provider, get_study_field_provider

from .authoring import add_field, apply_field_defaults, classify_fields, remove_field, rename_field, update_field
from .background import BackgroundSelectionService
from .exceptions import (
    ActivationInconsistency,
    ConfigurationNotFound,
    ConfigurationStoreError,
    ConfigurationValidationError,
)
from .merger import build_personalized_config, create_enhanced_config
from .models import BackgroundSelection, FormConfiguration, IntakeSubmission
from .progression import (
    COLLECTING_BACKGROUND,
    PERSONALIZATION_ERROR,
    PERSONALIZED,
    READY_TO_SUBMIT,
    FormProgression,
    background_progress,
    completion_percentage,
    next_section,
    section_completion,
    submission_readiness,
    toggle_work_experience,
)
from .store import ConfigurationStore
from .templates import available_field_configurations, generate_form_config_for_field, get_field_configuration
from .validation import validate_configuration, validate_form_data

BACKGROUND_IDS = ["field_of_study", "class_level", "learning_goals", "question_category"]


def _field(field_id, **extra):
    return {
        "id": field_id,
        "type": "text",
        "label": field_id.replace("_", " ").title(),
        "study_field_id": "stem",
        "category_id": "general",
        **extra,
    }


def _config(config_id="cfg", name="Intake", fields=None):
    return {
        "id": config_id,
        "name": name,
        "description": "",
        "fields": fields if fields is not None else [_field("name", section="personal_info")],
    }


def _three_required():
    return {
        "name": "Three",
        "fields": [
            _field("city", required=True, section="personal_info"),
            _field("school", required=True, section="academic_info"),
            _field("style", required=True, section="preferences"),
            _field("notes", required=False),
        ],
        "sections": {
            "personal_info": {"order": 0},
            "academic_info": {"order": 1},
            "preferences": {"order": 2},
        },
    }


def _clear_providers():
    get_category_provider.cache_clear()
    get_study_field_provider.cache_clear()


class MergerTests(TestCase):
    def setUp(self) -> None:
        _clear_providers()

    def test_background_fields_precede_unordered_base_fields(self) -> None:
        config = create_enhanced_config({"name": "Test", "fields": [{"id": "name"}, {"id": "email"}]})

        self.assertEqual(
            [field["id"] for field in config["fields"]],
            ["field_of_study", "class_level", "learning_goals", "question_category", "name", "email"],
        )
        self.assertTrue(config["hasBackgroundSelection"])

    def test_merge_is_deterministic(self) -> None:
        base = {
            "name": "Test",
            "fields": [{"id": "goals", "order": 3}, {"id": "phone"}, {"id": "age", "order": 1}],
        }

        first = create_enhanced_config(base, {"class_level": {"order": 2}})
        second = create_enhanced_config(base, {"class_level": {"order": 2}})

        self.assertEqual(first["fields"], second["fields"])
        self.assertEqual(first["sections"], second["sections"])

    def test_background_template_wins_over_same_id_base_field(self) -> None:
        base = {"name": "Test", "fields": [{"id": "field_of_study", "type": "text", "label": "Custom"}]}

        config = create_enhanced_config(base)

        fields = [field for field in config["fields"] if field["id"] == "field_of_study"]
        self.assertEqual(len(fields), 1)
        self.assertEqual(fields[0]["type"], "radio")
        self.assertEqual(fields[0]["section"], "background_selection")

    def test_duplicate_ids_keep_the_first_and_warn(self) -> None:
        base = {"name": "Test", "fields": [{"id": "x", "label": "First"}, {"id": "x", "label": "Second"}]}

        with self.assertLogs("forms.merger", level="WARNING"):
            config = create_enhanced_config(base, include_background=False)

        self.assertEqual([field["label"] for field in config["fields"]], ["First"])

    def test_equal_orders_keep_insertion_order(self) -> None:
        base = {
            "name": "Test",
            "fields": [
                {"id": "c", "order": 3},
                {"id": "a", "order": 3},
                {"id": "early", "order": 1.5},
                {"id": "b", "order": 3},
            ],
        }

        config = create_enhanced_config(base, include_background=False)

        self.assertEqual([field["id"] for field in config["fields"]], ["early", "c", "a", "b"])

    def test_every_referenced_section_is_resolved(self) -> None:
        base = {
            "name": "Test",
            "fields": [
                {"id": "habit", "label": "Habit", "section": "study_habits"},
                {"id": "loose", "label": "Loose"},
                {"id": "age", "section": "personal_info"},
            ],
        }

        config = create_enhanced_config(base)

        referenced = {field.get("section") or "general" for field in config["fields"]}
        self.assertEqual(set(config["sections"]), referenced)
        self.assertEqual(config["sections"]["study_habits"]["title"], "Study Habits")
        self.assertFalse(config["sections"]["study_habits"]["isSystem"])
        self.assertTrue(config["sections"]["background_selection"]["isSystem"])

    def test_background_can_be_left_out(self) -> None:
        config = create_enhanced_config({"name": "Test", "fields": []}, include_background=False)

        self.assertEqual(config["fields"], [])
        self.assertEqual(config["sections"], {})
        self.assertFalse(config["hasBackgroundSelection"])

    def test_overrides_keep_the_background_section(self) -> None:
        overrides = {"class_level": {"order": -10, "section": "elsewhere", "required": False}}

        config = create_enhanced_config({"name": "Test", "fields": []}, overrides)

        first = config["fields"][0]
        self.assertEqual(first["id"], "class_level")
        self.assertEqual(first["section"], "background_selection")
        self.assertFalse(first["required"])

    def test_resolved_configuration_passes_validation(self) -> None:
        config = create_enhanced_config({"name": "Test", "fields": [{"id": "name"}, {"id": "email"}]})

        self.assertEqual(validate_configuration(config), [])
        for field in config["fields"]:
            self.assertTrue(field["study_field_id"])
            self.assertTrue(field["category_id"])

    def test_personalized_business_configuration(self) -> None:
        config = build_personalized_config("business", "undergraduate", "career_change")

        ids = [field["id"] for field in config["fields"]]
        self.assertIn("business_areas", ids)
        self.assertEqual(ids[:4], BACKGROUND_IDS)
        self.assertEqual(ids.count("field_of_study"), 1)
        self.assertEqual(config["metadata"]["fieldCategory"], "business")
        self.assertEqual(config["metadata"]["fieldOfStudy"], "business")
        self.assertEqual(config["metadata"]["configType"], "field_specific")
        self.assertTrue(config["id"].startswith("dynamic_business_"))
        self.assertEqual(validate_configuration(config), [])

    def test_unknown_study_field_uses_generic_fields(self) -> None:
        config = build_personalized_config("astrology", None, None, include_background=False)

        ids = [field["id"] for field in config["fields"]]
        self.assertIn("current_skills", ids)
        self.assertIn("interests", ids)
        self.assertEqual(config["name"], "General Student Intake")


class TemplateTests(SimpleTestCase):
    def test_generated_config_prefills_level_and_goal(self) -> None:
        config = generate_form_config_for_field("stem", "graduate", "certification")

        fields = {field["id"]: field for field in config["fields"]}
        self.assertEqual(fields["education_level"]["defaultValue"], "graduate")
        self.assertEqual(fields["goals"]["defaultValue"], "Obtain professional certification")
        self.assertIn("programming_languages", fields)
        self.assertNotIn("additional_info", fields)
        self.assertIn("(graduate)", config["description"])
        self.assertEqual(config["metadata"]["classLevel"], "graduate")
        orders = [field["order"] for field in config["fields"]]
        self.assertEqual(orders, sorted(orders))

    def test_taxonomy_only_study_field_names_the_form(self) -> None:
        study_fields = mock.Mock()
        study_fields.get_by_id.return_value = {"field_id": "law", "name": "Law"}

        config = generate_form_config_for_field("law", study_fields=study_fields)

        self.assertEqual(config["name"], "Law Student Intake")

    def test_catalogue_lookups_return_copies(self) -> None:
        self.assertIn("creative_arts", available_field_configurations())
        get_field_configuration("stem")["fields"].clear()

        self.assertTrue(get_field_configuration("stem")["fields"])
        self.assertIsNone(get_field_configuration("astrology"))


class AuthoringTests(SimpleTestCase):
    def test_semantic_defaults_fill_missing_attributes(self) -> None:
        field = apply_field_defaults({"id": "age"})

        self.assertEqual(field["type"], "number")
        self.assertEqual(field["label"], "Age")
        self.assertEqual(field["validation"], {"min": 5, "max": 100})
        self.assertEqual(field["attribute_sources"]["label"], "semantic_default")

    def test_user_authored_attributes_are_never_replaced(self) -> None:
        field = apply_field_defaults({"id": "email", "label": "Work email", "validation": {"pattern": "x"}})

        self.assertEqual(field["label"], "Work email")
        self.assertEqual(field["type"], "email")
        self.assertEqual(field["validation"]["pattern"], "x")
        self.assertEqual(field["attribute_sources"]["label"], "user_authored")
        self.assertEqual(field["attribute_sources"]["type"], "semantic_default")

    def test_semantic_default_replaces_a_type_default(self) -> None:
        field = apply_field_defaults({"id": "phone", "label": "Text Field",
                                      "attribute_sources": {"label": "type_default"}})

        self.assertEqual(field["label"], "Phone")
        self.assertEqual(field["attribute_sources"]["label"], "semantic_default")

    def test_type_defaults_apply_without_a_semantic_match(self) -> None:
        field = apply_field_defaults({"id": "q7", "type": "textarea"})

        self.assertEqual(field["label"], "Description")
        self.assertEqual(field["attribute_sources"]["label"], "type_default")
        self.assertEqual(field["attribute_sources"]["type"], "user_authored")

    def test_partial_id_matches_respect_the_field_type(self) -> None:
        field = apply_field_defaults({"id": "programming_languages", "type": "multi_select", "label": "Languages"})

        self.assertEqual(field["placeholder"], "Choose options")
        self.assertNotIn("min", field.get("validation") or {})

    def test_classification_uses_detection_and_fallbacks(self) -> None:
        study_fields = mock.Mock()
        study_fields.detect_field_from_text.side_effect = lambda text: (
            {"field_id": "business"} if "marketing" in text.lower() else None
        )
        categories = mock.Mock()
        categories.detect_category_from_field.return_value = {"category_id": "general"}

        fields = classify_fields(
            [
                {"id": "focus", "label": "Marketing focus"},
                {"id": "misc", "label": "Misc"},
                {"id": "kept", "label": "Kept", "study_field_id": "creative_arts", "category_id": "preferences"},
            ],
            study_fields,
            categories,
            default_study_field="stem",
        )

        self.assertEqual([field["study_field_id"] for field in fields], ["business", "stem", "creative_arts"])
        self.assertEqual([field["category_id"] for field in fields], ["general", "general", "preferences"])

    def test_protected_fields_cannot_be_removed_or_renamed(self) -> None:
        config = _config(fields=[_field("name"), _field("hobby")])

        with self.assertRaises(ProtectedEntityError):
            remove_field(config, "name")
        with self.assertRaises(ProtectedEntityError):
            rename_field(config, "email", "mail")

        self.assertEqual([field["id"] for field in remove_field(config, "hobby")["fields"]], ["name"])
        self.assertEqual(len(config["fields"]), 2)

    def test_edits_mark_attributes_user_authored(self) -> None:
        config = add_field(_config(fields=[]), {"id": "age"})
        self.assertEqual(config["fields"][0]["attribute_sources"]["label"], "semantic_default")

        config = update_field(config, "age", {"label": "How old are you?"})

        self.assertEqual(config["fields"][0]["label"], "How old are you?")
        self.assertEqual(config["fields"][0]["attribute_sources"]["label"], "user_authored")

    def test_adding_or_renaming_onto_an_existing_id_fails(self) -> None:
        config = _config(fields=[_field("a"), _field("b")])

        with self.assertRaises(ConfigurationValidationError):
            add_field(config, {"id": "a"})
        with self.assertRaises(ConfigurationValidationError):
            rename_field(config, "a", "b")


class ConfigurationValidatorTests(SimpleTestCase):
    def test_missing_study_field_is_rejected_until_assigned(self) -> None:
        config = _config(fields=[_field("hobby", study_field_id="")])

        self.assertEqual(validate_configuration(config), ["Field 1: Study field must be selected"])

        config["fields"][0]["study_field_id"] = "stem"
        self.assertEqual(validate_configuration(config), [])

    def test_structural_rules(self) -> None:
        errors = validate_configuration(
            {
                "name": " ",
                "fields": [
                    {"type": "dropdown", "label": ""},
                    _field("level", type="select"),
                    _field("field_of_study", type="radio"),
                    _field("question_category", type="select", category_id=""),
                ],
            }
        )

        self.assertEqual(
            errors,
            [
                "Form name is required",
                "Field 1: ID is required",
                "Field 1: Valid field type is required",
                "Field 1: Label is required",
                "Field 1: Study field must be selected",
                "Field 1: Question category must be selected",
                "Field 2: Options are required for select/radio/multi-select fields",
                "Field 4: Question category must be selected",
            ],
        )

    def test_blank_identifiers_count_as_missing(self) -> None:
        config = _config(fields=[_field("   ", label="Blank", study_field_id=" ", category_id="\t")])

        self.assertEqual(
            validate_configuration(config),
            [
                "Field 1: ID is required",
                "Field 1: Study field must be selected",
                "Field 1: Question category must be selected",
            ],
        )

    def test_fields_must_be_a_list(self) -> None:
        self.assertEqual(validate_configuration({"name": "X", "fields": {}}), ["Fields array is required"])

    def test_duplicate_ids_are_reported(self) -> None:
        config = _config(fields=[_field("a"), _field("a"), _field("b")])

        self.assertEqual(validate_configuration(config), ["Field ID 'a' is used 2 times"])


class AnswerValidationTests(SimpleTestCase):
    def setUp(self) -> None:
        self.config = {
            "fields": [
                _field("name", label="Name", validation={"minLength": 2, "maxLength": 5}),
                _field("age", label="Age", type="number", validation={"min": 5, "max": 100}),
                _field("phone", label="Phone", validation={"pattern": r"^[\d\-]+$"}),
                _field("bio", label="Bio"),
            ]
        }

    def test_protected_field_is_required_even_when_flag_is_false(self) -> None:
        result = validate_form_data({}, self.config)

        self.assertFalse(result["isValid"])
        self.assertEqual(result["errors"], {"name": "Name is required"})

    def test_value_rules(self) -> None:
        result = validate_form_data(
            {"name": "Alexandra", "age": "3", "phone": "abc", "bio": ""}, self.config
        )

        self.assertEqual(
            result["errors"],
            {
                "name": "Name must be no more than 5 characters",
                "age": "Age must be at least 5",
                "phone": "Phone format is invalid",
            },
        )

    def test_non_numeric_value_for_bounded_field(self) -> None:
        result = validate_form_data({"name": "Al", "age": "old"}, self.config)

        self.assertEqual(result["errors"], {"age": "Age must be a number"})

    def test_zero_is_a_value(self) -> None:
        config = {"fields": [_field("count", label="Count", required=True, validation={"min": 0})]}

        self.assertTrue(validate_form_data({"count": 0}, config)["isValid"])


class CompletionTests(SimpleTestCase):
    def test_completion_percentage(self) -> None:
        config = _three_required()

        self.assertEqual(completion_percentage({}, config), 0)
        self.assertEqual(completion_percentage({"city": "Pune"}, config), 33)
        self.assertEqual(completion_percentage({"city": "Pune", "school": "DPS"}, config), 67)
        self.assertEqual(
            completion_percentage({"city": "Pune", "school": "DPS", "style": "video"}, config), 100
        )

    def test_no_required_fields_is_complete(self) -> None:
        self.assertEqual(completion_percentage({}, {"fields": [_field("notes")]}), 100)

    def test_blank_answers_count_as_missing(self) -> None:
        config = _three_required()

        self.assertEqual(completion_percentage({"city": "  ", "school": [], "style": None}, config), 0)

    def test_section_completion_lists_missing_labels(self) -> None:
        config = _three_required()
        config["fields"].append(_field("zip", required=True, section="personal_info", label="Zip"))

        result = section_completion("personal_info", {"city": "Pune"}, config)

        self.assertEqual(
            result, {"isComplete": False, "completedCount": 1, "totalCount": 2, "missingFields": ["Zip"]}
        )

    def test_next_section_follows_section_order(self) -> None:
        config = _three_required()

        self.assertEqual(next_section({}, config), "personal_info")
        self.assertEqual(next_section({"city": "Pune"}, config), "academic_info")
        self.assertIsNone(next_section({"city": "Pune", "school": "DPS", "style": "video"}, config))

    def test_submission_readiness(self) -> None:
        config = _three_required()

        partial = submission_readiness({"city": "Pune"}, config)
        complete = submission_readiness({"city": "Pune", "school": "DPS", "style": "video"}, config)

        self.assertFalse(partial["isReady"])
        self.assertFalse(partial["canSubmit"])
        self.assertEqual(partial["completionPercentage"], 33)
        self.assertIn("school", partial["validationErrors"])
        self.assertEqual(
            complete,
            {"isReady": True, "completionPercentage": 100, "validationErrors": {}, "canSubmit": True},
        )

    def test_background_progress_message(self) -> None:
        self.assertEqual(
            background_progress({"field_of_study": "stem"}),
            "Complete: Field of Study | Remaining: Education Level, Learning Goals",
        )
        self.assertEqual(
            background_progress({"field_of_study": "stem", "class_level": "graduate", "learning_goals": "exploration"}),
            "Background selection complete!",
        )


class EducationLevelToggleTests(SimpleTestCase):
    def test_toggle_is_idempotent(self) -> None:
        config = _config(fields=[_field("education_level")])

        once, changed = toggle_work_experience(config, "professional")
        self.assertTrue(changed)
        twice, changed = toggle_work_experience(once, "professional")
        self.assertFalse(changed)
        self.assertEqual([field["id"] for field in twice["fields"]].count("work_experience"), 1)

        reverted, changed = toggle_work_experience(twice, "graduate")
        self.assertTrue(changed)
        self.assertNotIn("work_experience", [field["id"] for field in reverted["fields"]])
        again, changed = toggle_work_experience(reverted, "graduate")
        self.assertFalse(changed)
        self.assertEqual(again["fields"], reverted["fields"])

    def test_work_experience_template(self) -> None:
        config, _ = toggle_work_experience(_config(fields=[]), "professional")

        field = config["fields"][0]
        self.assertEqual(
            (field["type"], field["order"], field["section"]), ("textarea", 100, "academic_info")
        )


class FormProgressionTests(SimpleTestCase):
    background = {"field_of_study": "business", "class_level": "undergraduate"}

    def _builder(self, field_of_study, class_level, learning_goals):
        return {
            "id": f"dynamic_{field_of_study}",
            "name": field_of_study,
            "fields": [_field("name", section="personal_info")],
            "sections": {"personal_info": {"order": 0}},
            "metadata": {"fieldCategory": field_of_study},
        }

    def test_incomplete_background_only_reports_progress(self) -> None:
        builder = mock.Mock(side_effect=self._builder)
        progression = FormProgression(_config(), builder=builder)

        result = progression.on_field_change("field_of_study", "stem", {})

        builder.assert_not_called()
        self.assertFalse(result["configUpdated"])
        self.assertEqual(result["stage"], COLLECTING_BACKGROUND)
        self.assertIn("Remaining", result["message"])

    def test_completing_background_regenerates_once(self) -> None:
        builder = mock.Mock(side_effect=self._builder)
        progression = FormProgression(_config(), builder=builder)

        result = progression.on_field_change("learning_goals", "career_change", self.background)

        builder.assert_called_once_with("business", "undergraduate", "career_change")
        self.assertTrue(result["configUpdated"])
        self.assertEqual(result["stage"], PERSONALIZED)
        self.assertEqual(result["newConfig"]["metadata"]["fieldCategory"], "business")
        self.assertEqual(result["progression"], {"backgroundComplete": True, "nextSection": "personal_info"})
        self.assertEqual(result["formData"]["learning_goals"], "career_change")

        again = progression.on_field_change("learning_goals", "career_change", self.background)
        self.assertFalse(again["configUpdated"])
        builder.assert_called_once()

    def test_failed_regeneration_keeps_the_current_configuration(self) -> None:
        progression = FormProgression(_config(), builder=mock.Mock(side_effect=RuntimeError("db down")))

        with self.assertLogs("forms.progression", level="WARNING"):
            result = progression.on_field_change("learning_goals", "career_change", self.background)

        self.assertFalse(result["configUpdated"])
        self.assertEqual(result["stage"], PERSONALIZATION_ERROR)
        self.assertIn("warning", result)
        self.assertEqual(progression.config["id"], "cfg")

    def test_other_fields_advance_towards_submission(self) -> None:
        progression = FormProgression(_config(), builder=self._builder)
        progression.on_field_change("learning_goals", "career_change", self.background)

        result = progression.on_field_change("name", "Asha", {})

        self.assertFalse(result["configUpdated"])
        self.assertEqual(result["stage"], READY_TO_SUBMIT)

    def test_education_level_event_toggles_work_experience(self) -> None:
        progression = FormProgression(_config())

        first = progression.on_field_change("education_level", "professional", {})
        second = progression.on_field_change("education_level", "professional", {})

        self.assertTrue(first["configUpdated"])
        self.assertFalse(second["configUpdated"])
        ids = [field["id"] for field in progression.config["fields"]]
        self.assertEqual(ids.count("work_experience"), 1)

    def test_stale_regeneration_does_not_overwrite_newer_one(self) -> None:
        started = threading.Event()
        release = threading.Event()

        def builder(field_of_study, class_level, learning_goals):
            if field_of_study == "stem":
                started.set()
                release.wait(timeout=5)
            return self._builder(field_of_study, class_level, learning_goals)

        progression = FormProgression(_config(), builder=builder)
        slow_results = []
        slow = threading.Thread(
            target=lambda: slow_results.append(
                progression.on_field_change(
                    "field_of_study", "stem", {"class_level": "graduate", "learning_goals": "exploration"}
                )
            )
        )
        slow.start()
        self.assertTrue(started.wait(timeout=5))

        fast = progression.on_field_change(
            "field_of_study", "business", {"class_level": "graduate", "learning_goals": "exploration"}
        )
        with self.assertLogs("forms.progression", level="WARNING"):
            release.set()
            slow.join(timeout=5)

        self.assertTrue(fast["configUpdated"])
        self.assertFalse(slow_results[0]["configUpdated"])
        self.assertEqual(progression.config["id"], "dynamic_business")
        self.assertEqual(progression.stage, PERSONALIZED)

    def test_same_answers_in_flight_are_coalesced(self) -> None:
        release = threading.Event()
        calls = []

        def builder(*args):
            calls.append(args)
            release.wait(timeout=5)
            return self._builder(*args)

        progression = FormProgression(_config(), builder=builder)
        form_data = {"class_level": "graduate", "learning_goals": "exploration"}
        threads = [
            threading.Thread(target=progression.on_field_change, args=("field_of_study", "stem", form_data))
            for _ in range(3)
        ]
        for thread in threads:
            thread.start()
        release.set()
        for thread in threads:
            thread.join(timeout=5)

        self.assertEqual(len(calls), 1)
        self.assertEqual(progression.config["id"], "dynamic_stem")


class PersonalizationScenarioTests(TestCase):
    def setUp(self) -> None:
        _clear_providers()

    def test_business_background_personalizes_the_form(self) -> None:
        progression = FormProgression(ConfigurationStore().get_active())
        form_data = {}
        result = None
        for field_id, value in (
            ("field_of_study", "business"),
            ("class_level", "undergraduate"),
            ("learning_goals", "career_change"),
        ):
            result = progression.on_field_change(field_id, value, form_data)
            form_data = result["formData"]

        self.assertTrue(result["configUpdated"])
        self.assertEqual(result["newConfig"]["metadata"]["fieldCategory"], "business")
        self.assertIn("business_areas", [field["id"] for field in result["newConfig"]["fields"]])
        self.assertEqual(result["progression"]["nextSection"], "background_selection")


class ConfigurationStoreTests(TestCase):
    def setUp(self) -> None:
        _clear_providers()
        self.store = ConfigurationStore()

    def test_only_the_latest_saved_configuration_is_active(self) -> None:
        self.store.save(_config("config_a"))
        self.store.save(_config("config_b"))

        self.assertEqual(
            list(FormConfiguration.objects.filter(is_active=True).values_list("id", flat=True)),
            ["config_b"],
        )
        self.assertEqual(FormConfiguration.objects.count(), 2)

    def test_invalid_configuration_is_not_saved(self) -> None:
        with self.assertRaises(ConfigurationValidationError) as raised:
            self.store.save(_config(fields=[_field("hobby", category_id="")]))

        self.assertEqual(raised.exception.errors, ["Field 1: Question category must be selected"])
        self.assertFalse(FormConfiguration.objects.exists())

    def test_default_configuration_is_served_without_an_active_row(self) -> None:
        config = self.store.get_active()

        self.assertEqual(config["id"], "default")
        field_of_study = next(field for field in config["fields"] if field["id"] == "field_of_study")
        self.assertEqual([option["value"] for option in field_of_study["options"]][:2], ["stem", "business"])

    def test_default_configuration_is_served_when_the_read_fails(self) -> None:
        with mock.patch("forms.store.FormConfiguration.objects.filter", side_effect=DatabaseError("gone")):
            with self.assertLogs("forms.store", level="WARNING"):
                config = self.store.get_active()

        self.assertEqual(config["id"], "default")

    def test_served_configuration_covers_every_referenced_section(self) -> None:
        served = [self.store.get_active()]
        self.store.save(_config(fields=[_field("name", section="personal_info", order=1)]))
        served.append(self.store.get_active())

        for config in served:
            referenced = {field.get("section") or "general" for field in config["fields"]}
            self.assertLessEqual(referenced, set(config["sections"]))
        self.assertEqual(served[1]["sections"]["personal_info"]["order"], 0)
        self.assertEqual(served[1]["sections"]["academic_info"]["order"], 1)

    def test_preset_description_falls_back_to_the_configuration(self) -> None:
        config = {**_config(name="Draft"), "description": "From the form"}

        inherited = self.store.save_as_preset(config)
        replaced = self.store.save_as_preset(config, name="Copy", description="Spring intake")

        self.assertEqual(inherited["description"], "From the form")
        self.assertEqual((replaced["name"], replaced["description"]), ("Copy", "Spring intake"))

    def test_core_fields_are_injected_and_options_refreshed(self) -> None:
        self.store.save(
            _config(
                fields=[
                    _field("name", order=1),
                    _field("field_of_study", type="select", order=6, options=[{"value": "stale", "label": "Stale"}]),
                ]
            )
        )
        get_study_field_provider().add({"field_id": "law", "name": "Law"})

        config = self.store.get_active()

        ids = [field["id"] for field in config["fields"]]
        self.assertEqual(ids, ["name", "grade", "field_of_study", "question_category"])
        options = next(field for field in config["fields"] if field["id"] == "field_of_study")["options"]
        self.assertNotIn("stale", [option["value"] for option in options])
        self.assertIn("law", [option["value"] for option in options])

    def test_field_attributes_round_trip(self) -> None:
        field = _field(
            "style",
            type="radio",
            options=[{"value": "v", "label": "Video", "icon": "🎥"}],
            styling={"displayType": "card_grid", "gridCols": "2"},
            defaultValue="v",
            order=2.5,
        )
        self.store.save(_config(fields=[field]))

        stored = self.store.load_preset("cfg")["fields"][0]

        self.assertEqual(stored, field)

    def test_preset_lifecycle(self) -> None:
        self.store.save(_config("live"))
        preset = self.store.save_as_preset(_config("ignored", name="Draft"), description="Spring")
        self.assertFalse(preset["is_active"])
        self.assertEqual([item["id"] for item in self.store.get_all_presets()], [preset["id"]])

        renamed = self.store.update_preset_metadata(preset["id"], name="Spring intake")
        self.assertEqual(renamed["name"], "Spring intake")
        self.assertEqual(renamed["description"], "Spring")

        activated = self.store.activate_preset(preset["id"])
        self.assertTrue(activated["is_active"])
        self.assertFalse(FormConfiguration.objects.get(id="live").is_active)

        with self.assertRaises(ProtectedEntityError):
            self.store.delete_preset(preset["id"])
        self.store.delete_preset("live")
        with self.assertRaises(ConfigurationNotFound):
            self.store.load_preset("live")

    def test_failed_activation_keeps_previous_when_rolled_back(self) -> None:
        self.store.save(_config("config_a"))

        with mock.patch.object(ConfigurationStore, "_upsert_active", side_effect=DatabaseError("disk full")):
            with self.assertRaises(ConfigurationStoreError):
                self.store.save(_config("config_b"))

        self.assertTrue(FormConfiguration.objects.get(id="config_a").is_active)

    def test_failed_activation_without_transaction_reactivates_previous(self) -> None:
        self.store.save(_config("config_a"))

        with mock.patch("forms.store.transaction.atomic", return_value=contextlib.nullcontext()), \
                mock.patch.object(ConfigurationStore, "_upsert_active", side_effect=DatabaseError("disk full")), \
                self.assertLogs("forms.store", level="ERROR"):
            with self.assertRaises(ActivationInconsistency) as raised:
                self.store.save(_config("config_b"))

        self.assertTrue(raised.exception.recovered)
        self.assertTrue(FormConfiguration.objects.get(id="config_a").is_active)

    def test_failed_first_activation_cannot_recover(self) -> None:
        with mock.patch("forms.store.transaction.atomic", return_value=contextlib.nullcontext()), \
                mock.patch.object(ConfigurationStore, "_upsert_active", side_effect=DatabaseError("disk full")), \
                self.assertLogs("forms.store", level="ERROR"):
            with self.assertRaises(ActivationInconsistency) as raised:
                self.store.save(_config("config_a"))

        self.assertFalse(raised.exception.recovered)

    def test_initialize_default_only_when_nothing_is_active(self) -> None:
        created = self.store.initialize_default()

        self.assertEqual(created["id"], "initial_config")
        self.assertTrue(created["is_active"])
        self.assertIsNone(self.store.initialize_default())
        self.assertEqual([item["id"] for item in self.store.list_all()], ["initial_config"])


class BackgroundSelectionServiceTests(TestCase):
    def setUp(self) -> None:
        _clear_providers()
        self.service = BackgroundSelectionService()

    def test_save_upserts_one_row_per_user(self) -> None:
        self.service.save("u1", {"field_of_study": "stem", "class_level": "graduate", "learning_goals": "exploration"})
        self.service.save("u1", {"field_of_study": "business", "class_level": "graduate", "learning_goals": "exploration"})

        self.assertEqual(BackgroundSelection.objects.filter(user_id="u1").count(), 1)
        self.assertEqual(self.service.get("u1").field_of_study, "business")
        self.assertTrue(self.service.exists("u1"))

    def test_form_config_for_user(self) -> None:
        self.assertIsNone(self.service.form_config_for_user("nobody"))
        self.service.save("u2", {"field_of_study": "creative_arts", "class_level": "high_school", "learning_goals": "exploration"})

        config = self.service.form_config_for_user("u2")

        self.assertEqual(config["metadata"]["fieldCategory"], "creative_arts")
        self.assertTrue(self.service.delete("u2"))
        self.assertFalse(self.service.exists("u2"))


class IntakeApiTests(TestCase):
    answers = {
        "name": "Asha Gupta",
        "email": "asha@example.com",
        "grade": "grade_11",
        "field_of_study": "stem",
        "question_category": "coding",
        "class_level": "high_school",
        "learning_goals": "skill_building",
    }

    def setUp(self) -> None:
        _clear_providers()
        self.client = APIClient()

    def test_health(self) -> None:
        response = self.client.get(reverse("intake-health"))
        self.assertEqual(response.status_code, 200)

    def test_active_configuration_get_and_put(self) -> None:
        response = self.client.get(reverse("configuration-active"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["id"], "default")

        response = self.client.put(reverse("configuration-active"), _config("mine"), format="json")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["is_active"])
        self.assertEqual(self.client.get(reverse("configuration-active")).data["id"], "mine")

    def test_invalid_configuration_put_returns_errors(self) -> None:
        response = self.client.put(reverse("configuration-active"), _config(name=""), format="json")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["errors"], ["Form name is required"])

    def test_activation_inconsistency_is_reported(self) -> None:
        with mock.patch(
            "forms.views.ConfigurationStore.save",
            side_effect=ActivationInconsistency("no active configuration", recovered=False),
        ):
            response = self.client.put(reverse("configuration-active"), _config(), format="json")

        self.assertEqual(response.status_code, 500)
        self.assertFalse(response.data["recovered"])

    def test_validate_endpoint(self) -> None:
        response = self.client.post(
            reverse("configuration-validate"), _config(fields=[_field("a"), _field("a")]), format="json"
        )

        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.data["isValid"])
        self.assertEqual(response.data["errors"], ["Field ID 'a' is used 2 times"])

    def test_preview_endpoint(self) -> None:
        response = self.client.post(
            reverse("configuration-preview"),
            {"config": {"name": "Preview", "fields": [{"id": "name"}]}},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual([field["id"] for field in response.data["fields"]], [*BACKGROUND_IDS, "name"])
        self.assertEqual(response.data["errors"], [])

        response = self.client.post(
            reverse("configuration-preview"), {"field_of_study": "health_medicine"}, format="json"
        )
        self.assertEqual(response.status_code, 200)
        self.assertIn("health_specialties", [field["id"] for field in response.data["fields"]])

        self.assertEqual(self.client.post(reverse("configuration-preview"), {}, format="json").status_code, 400)

    def test_preset_endpoints(self) -> None:
        self.client.put(reverse("configuration-active"), _config("live"), format="json")

        created = self.client.post(reverse("preset-list"), {"name": "Snapshot"}, format="json")
        self.assertEqual(created.status_code, 201)
        preset_id = created.data["id"]

        self.assertEqual(len(self.client.get(reverse("preset-list")).data), 1)
        patched = self.client.patch(
            reverse("preset-detail", args=[preset_id]), {"description": "Before changes"}, format="json"
        )
        self.assertEqual(patched.data["description"], "Before changes")

        activated = self.client.post(reverse("preset-activate", args=[preset_id]), format="json")
        self.assertEqual(activated.status_code, 200)
        self.assertTrue(activated.data["is_active"])

        self.assertEqual(self.client.delete(reverse("preset-detail", args=[preset_id])).status_code, 409)
        self.assertEqual(self.client.delete(reverse("preset-detail", args=["live"])).status_code, 204)
        self.assertEqual(self.client.get(reverse("preset-detail", args=["live"])).status_code, 404)
        self.assertEqual(len(self.client.get(reverse("configuration-list")).data), 1)

    def test_background_selection_endpoints(self) -> None:
        payload = {"user_id": "student-1", "field_of_study": "stem", "class_level": "graduate", "learning_goals": "exploration"}
        self.assertEqual(self.client.post(reverse("background-selection-list"), payload, format="json").status_code, 200)
        payload["field_of_study"] = "business"
        self.assertEqual(self.client.post(reverse("background-selection-list"), payload, format="json").status_code, 200)

        detail = self.client.get(reverse("background-selection-detail", args=["student-1"]))
        self.assertEqual(detail.data["field_of_study"], "business")

        config = self.client.get(reverse("background-selection-form-config", args=["student-1"]))
        self.assertEqual(config.status_code, 200)
        self.assertEqual(config.data["metadata"]["fieldCategory"], "business")

        self.assertEqual(
            self.client.delete(reverse("background-selection-detail", args=["student-1"])).status_code, 204
        )
        self.assertEqual(
            self.client.get(reverse("background-selection-detail", args=["student-1"])).status_code, 404
        )

    def test_field_change_endpoint(self) -> None:
        response = self.client.post(
            reverse("intake-field-change"),
            {"field_id": "education_level", "value": "professional", "form_data": {}, "config": _config()},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["configUpdated"])
        self.assertIn("work_experience", [field["id"] for field in response.data["newConfig"]["fields"]])

    def test_readiness_endpoint(self) -> None:
        response = self.client.post(reverse("intake-readiness"), {"form_data": {}}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.data["isReady"])
        self.assertIn("grade", response.data["validationErrors"])

    def test_incomplete_submission_is_rejected(self) -> None:
        response = self.client.post(
            reverse("intake-submission-list"),
            {"user_id": "student-1", "answers": {"name": "Asha Gupta"}},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertLess(response.data["completionPercentage"], 100)
        self.assertIn("email", response.data["errors"])
        self.assertFalse(IntakeSubmission.objects.exists())

    def test_submission_is_processed_via_queue(self) -> None:
        with self.settings(CELERY_TASK_ALWAYS_EAGER=True, CELERY_TASK_EAGER_PROPAGATES=True):
            response = self.client.post(
                reverse("intake-submission-list"),
                {"user_id": "student-1", "answers": self.answers},
                format="json",
            )
        self.assertEqual(response.status_code, 202)

        detail = self.client.get(reverse("intake-submission-detail", args=[response.data["id"]]))
        self.assertEqual(detail.status_code, 200)
        self.assertEqual(detail.data["status"], "completed")
        self.assertEqual(detail.data["background_selection"]["field_of_study"], "stem")
        self.assertTrue(BackgroundSelection.objects.filter(user_id="student-1").exists())

        with self.settings(CELERY_TASK_ALWAYS_EAGER=True, CELERY_TASK_EAGER_PROPAGATES=True):
            again = self.client.post(
                reverse("intake-submission-list"),
                {
                    "user_id": "student-1",
                    "answers": self.answers,
                    "client_reference": detail.data["client_reference"],
                },
                format="json",
            )
        self.assertEqual(again.status_code, 200)
        self.assertEqual(IntakeSubmission.objects.count(), 1)

    def test_queue_metrics_endpoint(self) -> None:
        response = self.client.get(reverse("intake-queue-metrics"))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["pending"], 0)
        self.assertIn("oldestPendingSeconds", response.data)
