"""Initial migration for the listings app."""

import uuid

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Listing",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("title", models.CharField(max_length=140)),
                ("description", models.TextField(blank=True)),
                (
                    "space_type",
                    models.CharField(
                        choices=[
                            ("chair", "Chair"),
                            ("booth", "Booth"),
                            ("room", "Private room"),
                        ],
                        default="chair",
                        max_length=16,
                    ),
                ),
                ("address", models.CharField(blank=True, default="", max_length=255)),
                ("city", models.CharField(blank=True, default="", max_length=120)),
                ("state", models.CharField(blank=True, default="", max_length=64)),
                ("zip_code", models.CharField(blank=True, default="", max_length=16)),
                ("amenities", models.JSONField(blank=True, default=list)),
                ("images", models.JSONField(blank=True, default=list)),
                (
                    "price_per_day",
                    models.PositiveIntegerField(
                        validators=[django.core.validators.MinValueValidator(1)],
                    ),
                ),
                (
                    "price_per_week",
                    models.PositiveIntegerField(
                        blank=True,
                        null=True,
                        validators=[django.core.validators.MinValueValidator(1)],
                    ),
                ),
                ("available", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "owner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="listings",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("price_per_day__gt", 0)),
                        name="listing_price_per_day_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("price_per_week__isnull", True),
                            ("price_per_week__gt", 0),
                            _connector="OR",
                        ),
                        name="listing_price_per_week_positive",
                    ),
                ],
            },
        ),
    ]
