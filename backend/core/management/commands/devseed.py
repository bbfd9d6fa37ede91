from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils import timezone

from accounts.models import LenderProfile, RenterProfile, User
from bookings.models import Booking
from bookings.services.lifecycle import BookingService
from listings.models import StorageLocation
from payments.models import Payment
from payments.services.invoicing import StubInvoicingClient


SEED_PASSWORD = "Stowpoint123!"
SUPERUSER_EMAIL = "admin@stowpoint.test"
SUPERUSER_PASSWORD = "AdminStowpoint123!"


class Command(BaseCommand):
    help = "Populate the local development database with sample data."

    def handle(self, *args, **options):
        if not settings.DEBUG:
            raise CommandError("Refusing to seed data while DEBUG is False.")

        # Seeded bookings never reach Stripe.
        service = BookingService(invoicing=StubInvoicingClient())

        with transaction.atomic():
            self.stdout.write(self.style.MIGRATE_HEADING("Creating users"))
            renter = self._ensure_user(
                email="renter@stowpoint.test",
                first_name="Riley",
                last_name="Renter",
                role=User.RENTER,
            )
            lender = self._ensure_user(
                email="lender@stowpoint.test",
                first_name="Logan",
                last_name="Lender",
                role=User.LENDER,
            )

            self.stdout.write(self.style.MIGRATE_HEADING("Ensuring admin superuser"))
            self._ensure_superuser()

            self.stdout.write(self.style.MIGRATE_HEADING("Cleaning old bookings"))
            old_bookings = Booking.objects.filter(renter=renter)
            payment_ids = list(old_bookings.exclude(payment=None).values_list("payment_id", flat=True))
            old_bookings.delete()
            Payment.objects.filter(pk__in=payment_ids).delete()

            self.stdout.write(self.style.MIGRATE_HEADING("Creating storage locations"))
            garage, _ = StorageLocation.objects.update_or_create(
                owner=lender,
                name="Campus Garage Bay",
                defaults={
                    "description": "Dry single-car garage bay, five minutes from campus.",
                    "lat": 40.4237,
                    "lng": -86.9212,
                    "storage_length": 6.0,
                    "storage_width": 3.0,
                    "storage_height": 2.5,
                    "price": 12000,
                },
            )
            closet, _ = StorageLocation.objects.update_or_create(
                owner=lender,
                name="Basement Closet",
                defaults={
                    "description": "Climate controlled closet for boxes and suitcases.",
                    "lat": 40.4259,
                    "lng": -86.9081,
                    "storage_length": 1.5,
                    "storage_width": 1.0,
                    "storage_height": 2.0,
                    "price": 4500,
                },
            )

            self.stdout.write(self.style.MIGRATE_HEADING("Creating bookings"))
            today = timezone.localdate()
            upcoming = service.create_booking(
                renter_id=renter.id,
                storage_location_id=garage.id,
                start_date=today + timedelta(days=7),
                end_date=today + timedelta(days=37),
                total_price=36000,
            )
            current = service.create_booking(
                renter_id=renter.id,
                storage_location_id=closet.id,
                start_date=today - timedelta(days=3),
                end_date=today + timedelta(days=27),
                total_price=4500,
            )
            service.confirm(current.pk)
            # Back-to-back with the upcoming booking: the garage frees up the day this starts.
            service.create_booking(
                renter_id=renter.id,
                storage_location_id=garage.id,
                start_date=today + timedelta(days=37),
                end_date=today + timedelta(days=44),
                total_price=8400,
            )
            self.stdout.write(f"  Pending booking {upcoming.pk} and confirmed booking {current.pk}")

        self.stdout.write(self.style.SUCCESS("Development seed data created."))
        self.stdout.write(self.style.NOTICE(f"Sample login accounts use password: {SEED_PASSWORD}"))
        self.stdout.write(self.style.NOTICE(f"Admin superuser {SUPERUSER_EMAIL} password: {SUPERUSER_PASSWORD}"))

    def _ensure_user(self, email: str, first_name: str, last_name: str, role: str) -> User:
        user, created = User.objects.get_or_create(
            email=email,
            defaults={
                "username": email,
                "first_name": first_name,
                "last_name": last_name,
                "display_name": f"{first_name} {last_name}",
                "role": role,
            },
        )
        if created:
            user.set_password(SEED_PASSWORD)
            user.save()
        elif user.role != role:
            user.role = role
            user.save(update_fields=["role"])

        if role == User.LENDER:
            LenderProfile.objects.get_or_create(user=user)
        else:
            RenterProfile.objects.get_or_create(user=user)
        return user

    def _ensure_superuser(self) -> User:
        user, created = User.objects.get_or_create(
            email=SUPERUSER_EMAIL,
            defaults={
                "username": SUPERUSER_EMAIL,
                "first_name": "Admin",
                "last_name": "User",
                "display_name": "Admin User",
                "is_staff": True,
                "is_superuser": True,
            },
        )
        flag_updates = {}
        if not user.is_staff:
            flag_updates["is_staff"] = True
        if not user.is_superuser:
            flag_updates["is_superuser"] = True
        if flag_updates:
            for attr, value in flag_updates.items():
                setattr(user, attr, value)
            user.save(update_fields=list(flag_updates.keys()))
        if created or not user.has_usable_password():
            user.set_password(SUPERUSER_PASSWORD)
            user.save(update_fields=["password"])
        return user
