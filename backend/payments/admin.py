from django.contrib import admin

from .models import Payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "renter", "lender", "amount_charged", "platform_fee", "status", "updated_at")
    list_filter = ("status", "currency")
    search_fields = ("stripe_invoice_id", "renter__email", "lender__email")
    readonly_fields = (
        "amount_charged",
        "platform_fee",
        "amount_transferred",
        "invoice_requested_at",
        "created_at",
        "updated_at",
    )
