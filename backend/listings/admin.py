from django.contrib import admin

from .models import StorageLocation


@admin.register(StorageLocation)
class StorageLocationAdmin(admin.ModelAdmin):
    list_display = ("name", "owner", "price", "updated_at")
    search_fields = ("name", "owner__email")
