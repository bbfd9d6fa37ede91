from django.contrib import admin
from django.urls import include, path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenRefreshView

from accounts.api import LoginView, MeView, RegisterView
from availability.api import AvailabilityView
from bookings.api import BookingViewSet
from listings.api import StorageLocationViewSet
from payments.api import (
    ConnectOnboardingLinkView,
    ConnectStatusView,
    InvoiceUrlView,
    PaymentDetailView,
    StripeWebhookView,
)

router = DefaultRouter()
router.register(r"storage-locations", StorageLocationViewSet, basename="storage-location")
router.register(r"bookings", BookingViewSet, basename="booking")

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/auth/register/", RegisterView.as_view(), name="auth-register"),
    path("api/auth/login/", LoginView.as_view(), name="auth-login"),
    path("api/auth/refresh/", TokenRefreshView.as_view(), name="auth-refresh"),
    path("api/auth/me/", MeView.as_view(), name="auth-me"),
    path("api/availability/", AvailabilityView.as_view(), name="availability"),
    path(
        "api/payments/connect/link/",
        ConnectOnboardingLinkView.as_view(),
        name="payments-connect-link",
    ),
    path(
        "api/payments/connect/status/",
        ConnectStatusView.as_view(),
        name="payments-connect-status",
    ),
    path("api/payments/<uuid:payment_id>/", PaymentDetailView.as_view(), name="payment-detail"),
    path(
        "api/payments/<uuid:payment_id>/invoice-url/",
        InvoiceUrlView.as_view(),
        name="payment-invoice-url",
    ),
    path("api/webhooks/stripe/", StripeWebhookView.as_view(), name="stripe-webhook"),
    path("api/", include(router.urls)),
]
