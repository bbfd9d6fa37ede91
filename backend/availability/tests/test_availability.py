from datetime import date, datetime

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from availability.services.conflicts import (
    bookings_in_range,
    intervals_overlap,
    is_available,
    normalize_date,
)
from bookings.models import Booking
from core.exceptions import ValidationError
from listings.models import StorageLocation

User = get_user_model()


@pytest.fixture
def lender(db):
    return User.objects.create_user(username="lender@example.com", email="lender@example.com", role=User.LENDER)


@pytest.fixture
def renter(db):
    return User.objects.create_user(username="renter@example.com", email="renter@example.com", role=User.RENTER)


@pytest.fixture
def location(lender):
    return StorageLocation.objects.create(
        owner=lender,
        name="Garage Bay",
        lat=40.0,
        lng=-86.0,
        storage_length=5,
        storage_width=3,
        storage_height=2,
        price=10000,
    )


@pytest.fixture
def other_location(lender):
    return StorageLocation.objects.create(
        owner=lender,
        name="Closet",
        lat=40.0,
        lng=-86.0,
        storage_length=1,
        storage_width=1,
        storage_height=2,
        price=2000,
    )


def make_booking(renter, location, start, end, status=Booking.PENDING):
    return Booking.objects.create(
        renter=renter,
        storage_location=location,
        start_date=start,
        end_date=end,
        total_price=1000,
        status=status,
    )


INTERVAL_PAIRS = [
    # (a, b, overlaps)
    ((date(2025, 1, 1), date(2025, 1, 5)), (date(2025, 1, 5), date(2025, 1, 10)), False),
    ((date(2025, 1, 1), date(2025, 1, 5)), (date(2025, 1, 4), date(2025, 1, 10)), True),
    ((date(2025, 1, 1), date(2025, 1, 10)), (date(2025, 1, 3), date(2025, 1, 4)), True),
    ((date(2025, 1, 1), date(2025, 1, 2)), (date(2025, 1, 1), date(2025, 1, 2)), True),
    ((date(2025, 1, 1), date(2025, 1, 2)), (date(2025, 2, 1), date(2025, 2, 2)), False),
]


@pytest.mark.parametrize("a, b, expected", INTERVAL_PAIRS)
def test_intervals_overlap_is_symmetric_and_half_open(a, b, expected):
    assert intervals_overlap(*a, *b) is expected
    assert intervals_overlap(*b, *a) is expected


def test_normalize_date_drops_time_of_day():
    assert normalize_date(datetime(2025, 6, 1, 18, 30)) == date(2025, 6, 1)
    assert normalize_date("2025-06-01T08:00:00Z") == date(2025, 6, 1)
    with pytest.raises(ValidationError):
        normalize_date("not-a-date")


def test_adjacent_booking_is_available(renter, location):
    make_booking(renter, location, date(2025, 1, 1), date(2025, 1, 5))

    assert is_available(location.id, date(2025, 1, 5), date(2025, 1, 10))
    assert is_available(location.id, date(2024, 12, 28), date(2025, 1, 1))
    assert not is_available(location.id, date(2025, 1, 4), date(2025, 1, 10))


def test_cancelled_bookings_do_not_block(renter, location):
    make_booking(renter, location, date(2025, 1, 1), date(2025, 1, 5), status=Booking.CANCELLED)

    assert is_available(location.id, date(2025, 1, 2), date(2025, 1, 3))


def test_other_locations_do_not_block(renter, location, other_location):
    make_booking(renter, other_location, date(2025, 1, 1), date(2025, 1, 5))

    assert is_available(location.id, date(2025, 1, 1), date(2025, 1, 5))


def test_excluded_booking_does_not_conflict_with_itself(renter, location):
    booking = make_booking(renter, location, date(2025, 1, 1), date(2025, 1, 5))

    assert not is_available(location.id, date(2025, 1, 2), date(2025, 1, 6))
    assert is_available(location.id, date(2025, 1, 2), date(2025, 1, 6), exclude_booking_id=booking.pk)


@pytest.mark.django_db
def test_reversed_range_is_rejected():
    with pytest.raises(ValidationError):
        is_available(1, date(2025, 1, 5), date(2025, 1, 5))


def test_bookings_in_range_uses_half_open_rule(renter, location):
    early = make_booking(renter, location, date(2025, 1, 1), date(2025, 1, 5))
    late = make_booking(renter, location, date(2025, 1, 10), date(2025, 1, 12))

    assert list(bookings_in_range(date(2025, 1, 5), date(2025, 1, 10))) == []
    assert list(bookings_in_range(date(2025, 1, 4), date(2025, 1, 11))) == [early, late]


def test_availability_endpoint(renter, location):
    make_booking(renter, location, date(2025, 6, 1), date(2025, 6, 10))
    client = APIClient()
    client.force_authenticate(user=renter)

    response = client.get(
        "/api/availability/",
        {"storage_location": location.id, "start_date": "2025-06-10", "end_date": "2025-06-12"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == 200
    assert body["data"]["available"] is True

    response = client.get(
        "/api/availability/",
        {"storage_location": location.id, "start_date": "2025-06-05", "end_date": "2025-06-12"},
    )
    assert response.json()["data"]["available"] is False


def test_availability_endpoint_validates_input(renter, location):
    client = APIClient()
    client.force_authenticate(user=renter)

    response = client.get(
        "/api/availability/",
        {"storage_location": location.id, "start_date": "2025-06-12", "end_date": "2025-06-10"},
    )
    assert response.status_code == 400
    assert "end_date" in response.json()["data"]

    response = client.get(
        "/api/availability/",
        {"storage_location": 9999, "start_date": "2025-06-01", "end_date": "2025-06-10"},
    )
    assert response.status_code == 404
    assert response.json()["status"] == 404
