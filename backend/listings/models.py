from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models


class StorageLocation(models.Model):
    """A rentable storage space listed by a lender."""

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="storage_locations",
    )
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    lat = models.FloatField()
    lng = models.FloatField()
    storage_length = models.FloatField(validators=[MinValueValidator(0)])
    storage_width = models.FloatField(validators=[MinValueValidator(0)])
    storage_height = models.FloatField(validators=[MinValueValidator(0)])
    price = models.PositiveIntegerField(help_text="Price in the currency's minor unit.")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name", "id"]

    def __str__(self):
        return self.name

    @property
    def storage_volume_total(self) -> float:
        return self.storage_length * self.storage_width * self.storage_height
