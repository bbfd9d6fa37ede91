from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import LenderProfile, RenterProfile, User


@admin.register(User)
class StowpointUserAdmin(UserAdmin):
    list_display = ("email", "display_name", "role", "is_active", "is_staff")
    list_filter = ("role", "is_active", "is_staff")
    search_fields = ("email", "first_name", "last_name", "firebase_uid")
    fieldsets = UserAdmin.fieldsets + (
        ("Marketplace", {"fields": ("role", "display_name", "firebase_uid")}),
    )


@admin.register(RenterProfile)
class RenterProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "stripe_customer_id", "updated_at")
    search_fields = ("user__email", "stripe_customer_id")


@admin.register(LenderProfile)
class LenderProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "stripe_account_id", "charges_enabled", "payouts_enabled")
    list_filter = ("charges_enabled", "payouts_enabled", "details_submitted")
    search_fields = ("user__email", "stripe_account_id")
