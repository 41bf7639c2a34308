from __future__ import annotations

from django.db import migrations

from taxonomy.defaults import DEFAULT_CATEGORIES, DEFAULT_STUDY_FIELDS


def seed(apps, schema_editor):
    Category = apps.get_model("taxonomy", "Category")
    StudyField = apps.get_model("taxonomy", "StudyField")
    for category in DEFAULT_CATEGORIES:
        Category.objects.update_or_create(
            category_id=category["category_id"],
            defaults={key: value for key, value in category.items() if key != "category_id"},
        )
    for field in DEFAULT_STUDY_FIELDS:
        StudyField.objects.update_or_create(
            field_id=field["field_id"],
            defaults={key: value for key, value in field.items() if key != "field_id"},
        )


def unseed(apps, schema_editor):
    Category = apps.get_model("taxonomy", "Category")
    StudyField = apps.get_model("taxonomy", "StudyField")
    Category.objects.filter(category_id__in=[c["category_id"] for c in DEFAULT_CATEGORIES]).delete()
    StudyField.objects.filter(field_id__in=[f["field_id"] for f in DEFAULT_STUDY_FIELDS]).delete()


class Migration(migrations.Migration):
    dependencies = [("taxonomy", "0001_initial")]

    operations = [migrations.RunPython(seed, unseed)]
