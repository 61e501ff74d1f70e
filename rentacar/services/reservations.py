"""
Reservation lifecycle.

    pending -> confirmed -> completed   (completed only through a rental)
    pending | confirmed -> cancelled

Creating a reservation flips the car to reserved; cancelling flips it back
to available. Both writes happen in the same transaction as the status
change, under the car's row lock.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from django.utils import timezone

from ..availability import has_conflict
from ..conf import get_setting
from ..exceptions import ConflictError, NotFoundError, ValidationError
from ..models import Car, Reservation
from ..permissions import Principal, authorize
from ..transactions import service_operation
from . import cars
from .customers import get_customer
from .locations import get_location

logger = logging.getLogger(__name__)

RELATED = ("car", "customer", "pickup_location", "return_location")


@dataclass(frozen=True)
class RentalHandoff:
    """Reservation fields handed to the rental service at pickup."""

    reservation_id: int
    car_id: int
    customer_id: int
    pickup_date: datetime
    return_date: datetime
    pickup_location_id: int
    return_location_id: int
    advance_payment: Decimal | None


def validate_reservation_dates(pickup_date: datetime, return_date: datetime, now: datetime) -> None:
    if pickup_date >= return_date:
        raise ValidationError("Return date must be after pickup date.")
    if pickup_date < now:
        raise ValidationError("Pickup date cannot be in the past.")
    min_hours = get_setting("MIN_ADVANCE_HOURS")
    if pickup_date < now + timedelta(hours=min_hours):
        raise ValidationError(f"Reservation must be made at least {min_hours} hour(s) in advance.")
    max_days = get_setting("MAX_RENTAL_DAYS")
    if return_date - pickup_date > timedelta(days=max_days):
        raise ValidationError(f"Maximum rental duration is {max_days} days.")


def _load(reservation_id: int, *, for_update: bool = False) -> Reservation:
    queryset = Reservation.objects.all()
    if for_update:
        queryset = queryset.select_for_update()
    reservation = queryset.filter(pk=reservation_id).first()
    if reservation is None:
        raise NotFoundError(f"Reservation with id {reservation_id} not found.")
    return reservation


@service_operation("create reservation")
def create_reservation(
    principal: Principal,
    *,
    car_id: int,
    customer_id: int,
    pickup_date: datetime,
    return_date: datetime,
    pickup_location_id: int,
    return_location_id: int,
    advance_payment: Decimal | None = None,
) -> Reservation:
    authorize(
        principal,
        owner_id=customer_id,
        allow_owner=True,
        message="You can only create reservations for yourself.",
    )
    validate_reservation_dates(pickup_date, return_date, timezone.now())
    if advance_payment is not None and advance_payment <= 0:
        raise ValidationError("Advance payment must be greater than 0.")

    car = cars.lock_car(car_id)
    customer = get_customer(customer_id)
    if not customer.driver_license:
        raise ValidationError("Customer must have a valid driver license to make reservations.")
    pickup_location = get_location(pickup_location_id)
    return_location = get_location(return_location_id)

    if car.availability != Car.AVAILABLE:
        raise ConflictError("Car is not available for reservation.")
    if has_conflict(car.pk, pickup_date, return_date):
        raise ConflictError("Car is not available for the selected dates.")

    reservation = Reservation.objects.create(
        car=car,
        customer=customer,
        pickup_date=pickup_date,
        return_date=return_date,
        pickup_location=pickup_location,
        return_location=return_location,
        advance_payment=advance_payment,
        status=Reservation.PENDING,
    )
    cars.set_availability(car, Car.RESERVED)

    logger.info(
        "Reservation created - id=%s customer=%s car=%s",
        reservation.pk,
        customer.pk,
        car.pk,
    )
    return reservation


@service_operation("find reservation", atomic=False)
def get_reservation(reservation_id: int, principal: Principal) -> Reservation:
    reservation = Reservation.objects.select_related(*RELATED).filter(pk=reservation_id).first()
    if reservation is None:
        raise NotFoundError(f"Reservation with id {reservation_id} not found.")
    authorize(
        principal,
        owner_id=reservation.customer_id,
        allow_owner=True,
        message="Access denied to this reservation.",
    )
    return reservation


@service_operation("list reservations", atomic=False)
def list_reservations(principal: Principal) -> list[Reservation]:
    queryset = Reservation.objects.select_related(*RELATED)
    if not principal.is_staff:
        queryset = queryset.filter(customer_id=principal.customer_id)
    return list(queryset)


@service_operation("list customer reservations", atomic=False)
def list_customer_reservations(customer_id: int, principal: Principal) -> list[Reservation]:
    authorize(
        principal,
        owner_id=customer_id,
        allow_owner=True,
        message="You can only view your own reservations.",
    )
    return list(Reservation.objects.select_related(*RELATED).filter(customer_id=customer_id))


@service_operation("update reservation")
def update_reservation(
    reservation_id: int,
    principal: Principal,
    *,
    pickup_location_id: int | None = None,
    return_location_id: int | None = None,
    advance_payment: Decimal | None = None,
) -> Reservation:
    """Change the locations or advance payment of an open reservation."""
    reservation = _load(reservation_id, for_update=True)
    authorize(
        principal,
        owner_id=reservation.customer_id,
        allow_owner=True,
        message="You can only update your own reservations.",
    )
    if reservation.status not in Reservation.BLOCKING_STATUSES:
        raise ValidationError("Cannot update completed or cancelled reservations.")

    changed = []
    if pickup_location_id is not None:
        reservation.pickup_location = get_location(pickup_location_id)
        changed.append("pickup_location")
    if return_location_id is not None:
        reservation.return_location = get_location(return_location_id)
        changed.append("return_location")
    if advance_payment is not None:
        if advance_payment <= 0:
            raise ValidationError("Advance payment must be greater than 0.")
        reservation.advance_payment = advance_payment
        changed.append("advance_payment")

    if changed:
        reservation.save(update_fields=changed + ["updated_at"])
        logger.info("Reservation %s updated (%s)", reservation.pk, ", ".join(changed))
    return reservation


@service_operation("confirm reservation")
def confirm_reservation(reservation_id: int, principal: Principal) -> Reservation:
    authorize(principal, message="Only staff members can confirm reservations.")
    reservation = _load(reservation_id)
    car = cars.lock_car(reservation.car_id)
    # Re-read under the car lock; a concurrent cancel may have won the race.
    reservation.refresh_from_db()

    if reservation.status != Reservation.PENDING:
        raise ValidationError("Only pending reservations can be confirmed.")
    if has_conflict(
        car.pk,
        reservation.pickup_date,
        reservation.return_date,
        exclude_reservation_id=reservation.pk,
    ):
        raise ConflictError("Car is no longer available for the selected dates.")

    reservation.status = Reservation.CONFIRMED
    reservation.save(update_fields=["status", "updated_at"])
    logger.info("Reservation %s confirmed", reservation.pk)
    return reservation


@service_operation("cancel reservation")
def cancel_reservation(reservation_id: int, principal: Principal) -> Reservation:
    reservation = _load(reservation_id)
    authorize(
        principal,
        owner_id=reservation.customer_id,
        allow_owner=True,
        message="You can only cancel your own reservations.",
    )
    car = cars.lock_car(reservation.car_id, include_inactive=True)
    reservation.refresh_from_db()

    if reservation.status == Reservation.COMPLETED:
        raise ValidationError("Cannot cancel a completed reservation.")
    if reservation.status == Reservation.CANCELLED:
        raise ValidationError("Reservation is already cancelled.")
    window = get_setting("CANCELLATION_WINDOW_HOURS")
    if reservation.pickup_date - timezone.now() < timedelta(hours=window):
        raise ValidationError(f"Reservation cannot be cancelled within {window} hours of pickup.")

    reservation.status = Reservation.CANCELLED
    reservation.save(update_fields=["status", "updated_at"])
    if car.availability == Car.RESERVED:
        cars.set_availability(car, Car.AVAILABLE)

    logger.info("Reservation %s cancelled", reservation.pk)
    return reservation


@service_operation("convert reservation to rental", atomic=False)
def convert_to_rental(reservation_id: int, principal: Principal) -> RentalHandoff:
    """Check that a reservation is ready for pickup and return its rental fields.

    Does not change the reservation; ``rentals.create_rental_from_reservation``
    completes it.
    """
    authorize(principal, message="Only staff members can convert reservations to rentals.")
    reservation = _load(reservation_id)
    if reservation.status != Reservation.CONFIRMED:
        raise ValidationError("Only confirmed reservations can be converted to rentals.")
    if reservation.pickup_date > timezone.now():
        raise ValidationError("Cannot convert reservation to rental before pickup date.")

    return RentalHandoff(
        reservation_id=reservation.pk,
        car_id=reservation.car_id,
        customer_id=reservation.customer_id,
        pickup_date=reservation.pickup_date,
        return_date=reservation.return_date,
        pickup_location_id=reservation.pickup_location_id,
        return_location_id=reservation.return_location_id,
        advance_payment=reservation.advance_payment,
    )


@service_operation("check car availability", atomic=False)
def check_availability(car_id: int, start: datetime, end: datetime) -> bool:
    """Whether ``car_id`` is free over [start, end].

    Looks at the calendar rather than the availability flag, so a car
    reserved for other dates still reports free here. Cars in maintenance
    never do.
    """
    if end < start:
        raise ValidationError("End date must not be before start date.")
    car = cars.get_car(car_id)
    if car.availability == Car.MAINTENANCE:
        return False
    return not has_conflict(car.pk, start, end)
