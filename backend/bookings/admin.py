from django.contrib import admin

from .models import Booking


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ("id", "storage_location", "renter", "start_date", "end_date", "total_price", "status")
    list_filter = ("status",)
    search_fields = ("renter__email", "storage_location__name")
    date_hierarchy = "start_date"
    readonly_fields = ("payment", "created_at", "updated_at")
