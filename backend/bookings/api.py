from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied

from accounts.permissions import IsRenter
from availability.services.conflicts import bookings_in_range
from core.responses import envelope
from payments.services.invoicing import get_invoicing_client

from .models import Booking
from .serializers import (
    BookingCreateSerializer,
    BookingSerializer,
    BookingUpdateSerializer,
    DateRangeQuerySerializer,
)
from .services.lifecycle import BookingService


class BookingViewSet(viewsets.GenericViewSet):
    """
    Bookings visible to the caller: renters see their own, lenders see the ones
    on their locations. State changes go through ``BookingService``.
    """

    serializer_class = BookingSerializer
    filterset_fields = ["status", "storage_location"]
    ordering_fields = ["start_date", "created_at", "total_price"]
    lookup_value_regex = "[0-9a-fA-F-]{32,36}"

    def get_permissions(self):
        if self.action == "create":
            return [permissions.IsAuthenticated(), IsRenter()]
        return [permissions.IsAuthenticated()]

    def get_queryset(self):
        return (
            Booking.objects.visible_to(self.request.user)
            .select_related("payment", "storage_location", "renter")
            .order_by("start_date", "created_at")
        )

    def get_booking_service(self) -> BookingService:
        return BookingService(invoicing=get_invoicing_client())

    def _get_visible_booking(self, pk) -> Booking:
        return self.get_booking_service().get_booking(pk, queryset=self.get_queryset())

    def _ensure_renter(self, booking: Booking):
        user = self.request.user
        if not user.is_superuser and booking.renter_id != user.id:
            raise PermissionDenied("Only the renter who made this booking can change it.")

    def _render_list(self, queryset, message="OK"):
        queryset = self.filter_queryset(queryset)
        return envelope(BookingSerializer(queryset, many=True).data, message=message)

    def list(self, request, *args, **kwargs):
        return self._render_list(self.get_queryset())

    def retrieve(self, request, pk=None, *args, **kwargs):
        booking = self._get_visible_booking(pk)
        return envelope(BookingSerializer(booking).data)

    def create(self, request, *args, **kwargs):
        serializer = BookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        booking = self.get_booking_service().create_booking(
            renter_id=request.user.id,
            storage_location_id=data["storage_location"],
            start_date=data["start_date"],
            end_date=data["end_date"],
            total_price=data["total_price"],
        )
        return envelope(
            BookingSerializer(booking).data,
            message="Booking created.",
            status=status.HTTP_201_CREATED,
        )

    def update(self, request, pk=None, *args, **kwargs):
        booking = self._get_visible_booking(pk)
        self._ensure_renter(booking)

        serializer = BookingUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = self.get_booking_service().update_booking(booking.pk, **serializer.validated_data)
        return envelope(BookingSerializer(booking).data, message="Booking updated.")

    @action(detail=True, methods=["put"])
    def confirm(self, request, pk=None):
        booking = self._get_visible_booking(pk)
        result = self.get_booking_service().confirm(booking.pk)
        payload = BookingSerializer(result.booking).data
        payload["invoice_issued"] = result.invoice_issued
        message = (
            "Booking confirmed."
            if result.invoice_issued
            else "Booking confirmed; the invoice is pending and will be issued separately."
        )
        return envelope(payload, message=message)

    @action(detail=True, methods=["put"])
    def cancel(self, request, pk=None):
        booking = self._get_visible_booking(pk)
        booking = self.get_booking_service().cancel(booking.pk)
        return envelope(BookingSerializer(booking).data, message="Booking cancelled.")

    @action(detail=True, methods=["put"])
    def invoice(self, request, pk=None):
        booking = self._get_visible_booking(pk)
        booking = self.get_booking_service().retry_invoice(booking.pk)
        return envelope(BookingSerializer(booking).data, message="Invoice issued.")

    @action(detail=True, methods=["get"])
    def duration(self, request, pk=None):
        booking = self._get_visible_booking(pk)
        return envelope({"id": str(booking.pk), "duration_days": booking.duration_days})

    @action(detail=False, methods=["get"])
    def active(self, request):
        return self._render_list(self.get_queryset().active())

    @action(detail=False, methods=["get"])
    def upcoming(self, request):
        return self._render_list(self.get_queryset().upcoming())

    @action(detail=False, methods=["get"])
    def current(self, request):
        return self._render_list(self.get_queryset().current())

    @action(detail=False, methods=["get"])
    def expired(self, request):
        return self._render_list(self.get_queryset().expired())

    @action(detail=False, methods=["get"], url_path=r"starting-within/(?P<days>\d+)")
    def starting_within(self, request, days=None):
        return self._render_list(self.get_queryset().starting_within(int(days)))

    @action(detail=False, methods=["get"], url_path="date-range")
    def date_range(self, request):
        query = DateRangeQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        queryset = bookings_in_range(
            query.validated_data["start_date"],
            query.validated_data["end_date"],
            queryset=self.get_queryset(),
        )
        return self._render_list(queryset)
