"""
Car registry.

Owns car records and the availability flag. :func:`set_availability` is
the only place that writes ``Car.availability``; the reservation and
rental services call it with a car they have locked in the current
transaction.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.utils import timezone

from ..availability import conflicting_car_ids
from ..exceptions import ConflictError, NotFoundError, ValidationError
from ..models import Car
from ..permissions import ADMIN, MANAGER, Principal, authorize
from ..transactions import apply_lock_timeout, service_operation
from .locations import get_location

logger = logging.getLogger(__name__)

MIN_YEAR = 2000
FLEET_ROLES = (MANAGER, ADMIN)

EDITABLE_FIELDS = (
    "car_model",
    "manufacturer",
    "year",
    "color",
    "car_type",
    "fuel_type",
    "rental_rate",
    "license_plate",
    "current_location_id",
    "mileage",
    "transmission",
    "seats",
)


def _validate_year(year: int) -> None:
    max_year = timezone.now().year + 1
    if year is None or year < MIN_YEAR or year > max_year:
        raise ValidationError(f"Car year must be between {MIN_YEAR} and {max_year}.")


def _validate_rate(rate: Decimal) -> None:
    if rate is None or Decimal(rate) <= 0:
        raise ValidationError("Rental rate must be greater than 0.")


def _check_location(fields: dict) -> None:
    location_id = fields.get("current_location_id")
    if location_id is not None:
        get_location(location_id)


def lock_car(car_id: int, *, include_inactive: bool = False) -> Car:
    """Fetch a car and hold its row lock until the transaction ends."""
    apply_lock_timeout()
    queryset = Car.objects.select_for_update()
    if not include_inactive:
        queryset = queryset.filter(is_active=True)
    try:
        return queryset.get(pk=car_id)
    except Car.DoesNotExist:
        raise NotFoundError(f"Car with id {car_id} not found.") from None


def set_availability(car: Car, new_state: str) -> Car:
    """Move ``car`` to ``new_state`` and persist it.

    A rented car can only go back to available; every other transition is
    allowed here and policed by the calling state machine.
    """
    if new_state not in dict(Car.AVAILABILITY_CHOICES):
        raise ValidationError(f"Unknown availability '{new_state}'.")
    if car.availability == Car.RENTED and new_state != Car.AVAILABLE:
        raise ValidationError("A rented car can only be set to available after return.")

    previous = car.availability
    car.availability = new_state
    car.save(update_fields=["availability", "updated_at"])
    logger.info("Car %s availability %s -> %s", car.pk, previous, new_state)
    return car


@service_operation("create car")
def create_car(principal: Principal, **fields) -> Car:
    authorize(principal, roles=FLEET_ROLES, message="Only managers can add cars.")

    plate = fields.get("license_plate")
    if Car.objects.filter(license_plate=plate).exists():
        raise ConflictError("Car with this license plate already exists.")
    _validate_year(fields.get("year"))
    _validate_rate(fields.get("rental_rate"))
    _check_location(fields)

    try:
        with transaction.atomic():
            car = Car.objects.create(
                availability=Car.AVAILABLE,
                is_active=True,
                **{name: value for name, value in fields.items() if name in EDITABLE_FIELDS},
            )
    except IntegrityError:
        raise ConflictError("Car with this license plate already exists.") from None
    logger.info("Car created - id=%s plate=%s model=%s", car.pk, car.license_plate, car.car_model)
    return car


@service_operation("find car", atomic=False)
def get_car(car_id: int) -> Car:
    car = Car.objects.select_related("current_location").filter(pk=car_id, is_active=True).first()
    if car is None:
        raise NotFoundError(f"Car with id {car_id} not found.")
    return car


@service_operation("list cars", atomic=False)
def list_cars() -> list[Car]:
    return list(Car.objects.filter(is_active=True).select_related("current_location"))


@service_operation("list available cars", atomic=False)
def list_available_cars() -> list[Car]:
    return list(
        Car.objects.filter(is_active=True, availability=Car.AVAILABLE)
        .select_related("current_location")
        .order_by("car_model")
    )


@service_operation("list available cars", atomic=False)
def list_available_cars_between(start: datetime, end: datetime) -> list[Car]:
    if end < start:
        raise ValidationError("End date must not be before start date.")
    return list(
        Car.objects.filter(is_active=True, availability=Car.AVAILABLE)
        .exclude(id__in=conflicting_car_ids(start, end))
        .select_related("current_location")
        .order_by("car_model")
    )


@service_operation("update car")
def update_car(car_id: int, principal: Principal, **fields) -> Car:
    authorize(principal, roles=FLEET_ROLES, message="Only managers can update cars.")
    car = lock_car(car_id)

    plate = fields.get("license_plate")
    if plate and plate != car.license_plate:
        if Car.objects.filter(license_plate=plate).exclude(pk=car.pk).exists():
            raise ConflictError("Another car with this license plate already exists.")
    if "rental_rate" in fields:
        _validate_rate(fields["rental_rate"])
        if car.availability == Car.RENTED and Decimal(fields["rental_rate"]) != car.rental_rate:
            raise ValidationError("Cannot update rental rate for a rented car.")
    if "year" in fields:
        _validate_year(fields["year"])
    _check_location(fields)

    changed = []
    for name, value in fields.items():
        if name in EDITABLE_FIELDS:
            setattr(car, name, value)
            changed.append(name)
    try:
        with transaction.atomic():
            car.save(update_fields=changed + ["updated_at"])
    except IntegrityError:
        raise ConflictError("Another car with this license plate already exists.") from None
    logger.info("Car updated - id=%s plate=%s", car.pk, car.license_plate)
    return car


@service_operation("update car availability")
def update_availability(car_id: int, new_state: str, principal: Principal) -> Car:
    """Staff override of the availability flag."""
    authorize(principal, message="Only staff members can change car availability.")
    car = lock_car(car_id)
    return set_availability(car, new_state)


@service_operation("delete car")
def soft_delete_car(car_id: int, principal: Principal) -> None:
    authorize(principal, roles=(ADMIN,), message="Only administrators can delete cars.")
    car = lock_car(car_id)
    if car.availability == Car.RENTED:
        raise ValidationError("Cannot delete a rented car.")
    if car.availability == Car.RESERVED:
        raise ValidationError("Cannot delete a reserved car.")

    set_availability(car, Car.MAINTENANCE)
    car.is_active = False
    car.save(update_fields=["is_active", "updated_at"])
    logger.info("Car %s deleted", car.pk)
