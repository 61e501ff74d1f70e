"""
Data models for the car rental backend.

This module defines the entities of the system: locations, customers,
cars, reservations, rentals, payments, insurance policies and
maintenance jobs. Business rules live in
``rentacar.services``; the models only carry the stored state.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone


class Location(models.Model):
    """A branch where cars are picked up and returned."""

    name = models.CharField(max_length=255)
    address = models.CharField(max_length=255)
    contact_number = models.CharField(max_length=20)
    manager_name = models.CharField(max_length=100, blank=True)
    opening_time = models.TimeField(null=True, blank=True)
    closing_time = models.TimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class Customer(models.Model):
    """Represents a customer renting vehicles."""

    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    phone_number = models.CharField(max_length=20)
    address = models.CharField(max_length=255, blank=True)
    # Required before the customer may reserve a car.
    driver_license = models.CharField(max_length=20, unique=True, null=True, blank=True)
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="customer",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["last_name", "first_name"]

    def __str__(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Car(models.Model):
    """Represents a vehicle available for rent."""

    AVAILABLE = "available"
    RESERVED = "reserved"
    RENTED = "rented"
    MAINTENANCE = "maintenance"

    AVAILABILITY_CHOICES = [
        (AVAILABLE, "Available"),
        (RESERVED, "Reserved"),
        (RENTED, "Rented"),
        (MAINTENANCE, "Maintenance"),
    ]

    TYPE_CHOICES = [
        ("sedan", "Sedan"),
        ("suv", "SUV"),
        ("hatchback", "Hatchback"),
        ("coupe", "Coupe"),
        ("convertible", "Convertible"),
        ("minivan", "Minivan"),
        ("truck", "Truck"),
        ("luxury", "Luxury"),
    ]

    FUEL_CHOICES = [
        ("petrol", "Petrol"),
        ("diesel", "Diesel"),
        ("electric", "Electric"),
        ("hybrid", "Hybrid"),
    ]

    car_model = models.CharField(max_length=100)
    manufacturer = models.CharField(max_length=100)
    year = models.PositiveIntegerField()
    color = models.CharField(max_length=50)
    car_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default="sedan")
    fuel_type = models.CharField(max_length=20, choices=FUEL_CHOICES, default="petrol")
    rental_rate = models.DecimalField(max_digits=10, decimal_places=2, help_text="Price per day")
    availability = models.CharField(max_length=12, choices=AVAILABILITY_CHOICES, default=AVAILABLE)
    current_location = models.ForeignKey(
        Location, on_delete=models.SET_NULL, null=True, blank=True, related_name="cars"
    )
    license_plate = models.CharField(max_length=20, unique=True)
    mileage = models.PositiveIntegerField(default=0)
    transmission = models.CharField(max_length=50, blank=True)
    seats = models.PositiveSmallIntegerField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["id"]
        indexes = [
            models.Index(fields=["availability"], name="cars_availability_idx"),
            models.Index(fields=["license_plate"], name="cars_license_plate_idx"),
            models.Index(fields=["car_type"], name="cars_type_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.manufacturer} {self.car_model} {self.color} - {self.license_plate}"


class Reservation(models.Model):
    """A future booking of a car by a customer."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    STATUS_CHOICES = [
        (PENDING, "Pending"),
        (CONFIRMED, "Confirmed"),
        (CANCELLED, "Cancelled"),
        (COMPLETED, "Completed"),
    ]

    # Statuses that still hold a claim on the car's calendar.
    BLOCKING_STATUSES = (PENDING, CONFIRMED)

    car = models.ForeignKey(Car, on_delete=models.PROTECT, related_name="reservations")
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name="reservations")
    reservation_date = models.DateTimeField(default=timezone.now)
    pickup_date = models.DateTimeField()
    return_date = models.DateTimeField()
    pickup_location = models.ForeignKey(
        Location, on_delete=models.PROTECT, related_name="pickup_reservations"
    )
    return_location = models.ForeignKey(
        Location, on_delete=models.PROTECT, related_name="return_reservations"
    )
    status = models.CharField(max_length=12, choices=STATUS_CHOICES, default=PENDING)
    advance_payment = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-reservation_date"]
        indexes = [
            models.Index(fields=["car", "status"], name="reservations_car_status_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.customer} - {self.car} ({self.pickup_date:%Y-%m-%d} - {self.return_date:%Y-%m-%d})"


class Rental(models.Model):
    """A car handed over to a customer."""

    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    OVERDUE = "overdue"

    STATUS_CHOICES = [
        (ACTIVE, "Active"),
        (COMPLETED, "Completed"),
        (CANCELLED, "Cancelled"),
        (OVERDUE, "Overdue"),
    ]

    car = models.ForeignKey(Car, on_delete=models.PROTECT, related_name="rentals")
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name="rentals")
    reservation = models.ForeignKey(
        Reservation, on_delete=models.SET_NULL, null=True, blank=True, related_name="rentals"
    )
    rental_start_date = models.DateTimeField()
    rental_end_date = models.DateTimeField()
    actual_return_date = models.DateTimeField(null=True, blank=True)
    pickup_location = models.ForeignKey(
        Location, on_delete=models.PROTECT, related_name="pickup_rentals"
    )
    return_location = models.ForeignKey(
        Location, on_delete=models.PROTECT, related_name="return_rentals"
    )
    total_amount = models.DecimalField(max_digits=10, decimal_places=2, editable=False)
    late_fee = models.DecimalField(max_digits=10, decimal_places=2, default=0, editable=False)
    final_mileage = models.PositiveIntegerField(null=True, blank=True)
    status = models.CharField(max_length=12, choices=STATUS_CHOICES, default=ACTIVE)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-rental_start_date"]
        indexes = [
            models.Index(fields=["car", "status"], name="rentals_car_status_idx"),
        ]

    def __str__(self) -> str:
        return f"Rental {self.pk} - {self.customer} - {self.car}"


class Payment(models.Model):
    """A payment recorded against a rental."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"

    STATUS_CHOICES = [
        (PENDING, "Pending"),
        (COMPLETED, "Completed"),
        (FAILED, "Failed"),
        (REFUNDED, "Refunded"),
    ]

    METHOD_CHOICES = [
        ("cash", "Cash"),
        ("credit_card", "Credit card"),
        ("debit_card", "Debit card"),
        ("mpesa", "Mpesa"),
        ("paypal", "Paypal"),
    ]

    rental = models.ForeignKey(Rental, on_delete=models.CASCADE, related_name="payments")
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    payment_method = models.CharField(max_length=20, choices=METHOD_CHOICES, default="cash")
    status = models.CharField(max_length=12, choices=STATUS_CHOICES, default=PENDING)
    transaction_id = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)
    payment_date = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-payment_date"]

    def __str__(self) -> str:
        return f"Payment {self.pk} - {self.amount} ({self.status})"


class Insurance(models.Model):
    """An insurance policy covering one car over a date range."""

    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (ACTIVE, "Active"),
        (EXPIRED, "Expired"),
        (CANCELLED, "Cancelled"),
    ]

    car = models.ForeignKey(Car, on_delete=models.PROTECT, related_name="insurances")
    insurance_provider = models.CharField(max_length=255)
    policy_number = models.CharField(max_length=50, unique=True)
    start_date = models.DateTimeField()
    end_date = models.DateTimeField()
    premium_amount = models.DecimalField(max_digits=10, decimal_places=2)
    status = models.CharField(max_length=12, choices=STATUS_CHOICES, default=ACTIVE)
    coverage_details = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-start_date"]
        indexes = [
            models.Index(fields=["car", "status"], name="insurances_car_status_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.policy_number} ({self.insurance_provider}) - {self.car}"


class Maintenance(models.Model):
    """A service or repair job booked for a car."""

    ROUTINE = "routine"
    REPAIR = "repair"
    ACCIDENT = "accident"
    UPGRADE = "upgrade"

    TYPE_CHOICES = [
        (ROUTINE, "Routine"),
        (REPAIR, "Repair"),
        (ACCIDENT, "Accident"),
        (UPGRADE, "Upgrade"),
    ]

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (SCHEDULED, "Scheduled"),
        (IN_PROGRESS, "In progress"),
        (COMPLETED, "Completed"),
        (CANCELLED, "Cancelled"),
    ]

    # No further changes once a job reaches one of these.
    CLOSED_STATUSES = (COMPLETED, CANCELLED)

    car = models.ForeignKey(Car, on_delete=models.PROTECT, related_name="maintenances")
    maintenance_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=ROUTINE)
    maintenance_date = models.DateTimeField()
    description = models.CharField(max_length=255)
    cost = models.DecimalField(max_digits=10, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=SCHEDULED)
    completed_date = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-maintenance_date"]

    def __str__(self) -> str:
        return f"{self.get_maintenance_type_display()} - {self.car} ({self.maintenance_date:%Y-%m-%d})"
