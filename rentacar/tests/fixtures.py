from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from django.utils import timezone

from rentacar.models import Car, Customer, Location
from rentacar.permissions import ADMIN, CUSTOMER, EMPLOYEE, MANAGER, Principal


class RentalFixturesMixin:
    """Creates a location, a car and a licensed customer for each test."""

    def setUp(self):
        super().setUp()
        self.location = Location.objects.create(
            name="Downtown",
            address="1 Main Street",
            contact_number="555-0100",
        )
        self.car = Car.objects.create(
            car_model="Corolla",
            manufacturer="Toyota",
            year=2022,
            color="Red",
            rental_rate=Decimal("100.00"),
            license_plate="ABC-123",
            current_location=self.location,
        )
        self.customer = Customer.objects.create(
            first_name="Ana",
            last_name="Perez",
            phone_number="+1 555 010 1010",
            driver_license="DL-0001",
        )
        self.other_customer = Customer.objects.create(
            first_name="Luis",
            last_name="Gomez",
            phone_number="+1 555 020 2020",
            driver_license="DL-0002",
        )
        self.customer_principal = Principal(user_id=101, role=CUSTOMER, customer_id=self.customer.pk)
        self.other_principal = Principal(user_id=102, role=CUSTOMER, customer_id=self.other_customer.pk)
        self.employee = Principal(user_id=201, role=EMPLOYEE)
        self.manager = Principal(user_id=301, role=MANAGER)
        self.admin = Principal(user_id=401, role=ADMIN)

    def in_hours(self, hours: float):
        return timezone.now() + timedelta(hours=hours)

    def reservation_payload(self, *, pickup_in_hours=48, days=3, **overrides):
        pickup = self.in_hours(pickup_in_hours)
        payload = {
            "car_id": self.car.pk,
            "customer_id": self.customer.pk,
            "pickup_date": pickup,
            "return_date": pickup + timedelta(days=days),
            "pickup_location_id": self.location.pk,
            "return_location_id": self.location.pk,
        }
        payload.update(overrides)
        return payload
