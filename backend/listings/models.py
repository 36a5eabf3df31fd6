import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q


class Listing(models.Model):
    """A rentable salon chair, booth or private room. Prices are in minor units."""

    class SpaceType(models.TextChoices):
        CHAIR = "chair", "Chair"
        BOOTH = "booth", "Booth"
        ROOM = "room", "Private room"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="listings",
    )
    title = models.CharField(max_length=140)
    description = models.TextField(blank=True)
    space_type = models.CharField(
        max_length=16,
        choices=SpaceType.choices,
        default=SpaceType.CHAIR,
    )
    address = models.CharField(max_length=255, blank=True, default="")
    city = models.CharField(max_length=120, blank=True, default="")
    state = models.CharField(max_length=64, blank=True, default="")
    zip_code = models.CharField(max_length=16, blank=True, default="")
    amenities = models.JSONField(default=list, blank=True)
    images = models.JSONField(default=list, blank=True)
    price_per_day = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    price_per_week = models.PositiveIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1)],
    )
    available = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(price_per_day__gt=0),
                name="listing_price_per_day_positive",
            ),
            models.CheckConstraint(
                condition=Q(price_per_week__isnull=True) | Q(price_per_week__gt=0),
                name="listing_price_per_week_positive",
            ),
        ]

    def clean(self):
        if not self.title or len(self.title.strip()) < 3:
            raise ValidationError("Title too short")
        if not self.price_per_day or self.price_per_day <= 0:
            raise ValidationError("Daily rate must be greater than zero")
        if self.price_per_week is not None and self.price_per_week <= 0:
            raise ValidationError("Weekly rate must be greater than zero")

    @property
    def primary_image_url(self) -> str:
        if isinstance(self.images, list) and self.images:
            return str(self.images[0] or "")
        return ""

    def __str__(self) -> str:
        return f"{self.title} ({self.id})"
