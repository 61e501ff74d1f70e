"""
Rental lifecycle.

A rental starts active, either from a confirmed reservation or directly at
the counter, and ends completed when the car comes back. Starting a rental
flips the car to rented; completing it computes the late fee and returns
the car to available.
"""

from __future__ import annotations

import logging
from datetime import datetime

from django.utils import timezone

from .. import pricing
from ..availability import has_conflict
from ..exceptions import ConflictError, NotFoundError, ValidationError
from ..models import Car, Rental, Reservation
from ..permissions import ADMIN, Principal, authorize
from ..transactions import service_operation
from . import cars
from .customers import get_customer
from .locations import get_location

logger = logging.getLogger(__name__)

RELATED = ("car", "customer", "reservation", "pickup_location", "return_location")


def _load(rental_id: int) -> Rental:
    rental = Rental.objects.filter(pk=rental_id).first()
    if rental is None:
        raise NotFoundError(f"Rental with id {rental_id} not found.")
    return rental


@service_operation("create rental from reservation")
def create_rental_from_reservation(reservation_id: int, principal: Principal) -> Rental:
    authorize(principal, message="Only staff members can create rentals.")

    reservation = Reservation.objects.filter(pk=reservation_id).first()
    if reservation is None:
        raise NotFoundError("Reservation not found.")
    car = cars.lock_car(reservation.car_id, include_inactive=True)
    reservation = Reservation.objects.select_for_update().get(pk=reservation.pk)

    if reservation.status != Reservation.CONFIRMED:
        raise ValidationError("Only confirmed reservations can be converted to rentals.")
    if car.availability != Car.RESERVED:
        raise ConflictError("Car is not available for rental.")
    if has_conflict(
        car.pk,
        reservation.pickup_date,
        reservation.return_date,
        include_reservations=False,
    ):
        raise ConflictError("Car is already rented for the selected dates.")

    days = pricing.rental_days(reservation.pickup_date, reservation.return_date)
    rental = Rental.objects.create(
        car=car,
        customer_id=reservation.customer_id,
        reservation=reservation,
        rental_start_date=reservation.pickup_date,
        rental_end_date=reservation.return_date,
        pickup_location_id=reservation.pickup_location_id,
        return_location_id=reservation.return_location_id,
        total_amount=pricing.total_amount(days, car.rental_rate),
        late_fee=0,
        status=Rental.ACTIVE,
    )
    reservation.status = Reservation.COMPLETED
    reservation.save(update_fields=["status", "updated_at"])
    cars.set_availability(car, Car.RENTED)

    logger.info(
        "Rental created from reservation - rental=%s reservation=%s amount=%s",
        rental.pk,
        reservation.pk,
        rental.total_amount,
    )
    return rental


@service_operation("create direct rental")
def create_direct_rental(
    principal: Principal,
    *,
    car_id: int,
    customer_id: int,
    rental_start_date: datetime,
    rental_end_date: datetime,
    pickup_location_id: int,
    return_location_id: int,
) -> Rental:
    """Counter rental without a prior reservation.

    Only other active rentals block the range here; pending or confirmed
    reservations on the same car are not consulted.
    """
    authorize(principal, message="Only staff members can create direct rentals.")
    if rental_start_date >= rental_end_date:
        raise ValidationError("Rental end date must be after start date.")
    if rental_start_date < timezone.now():
        raise ValidationError("Rental start date cannot be in the past.")

    car = cars.lock_car(car_id)
    customer = get_customer(customer_id)
    pickup_location = get_location(pickup_location_id)
    return_location = get_location(return_location_id)

    if car.availability != Car.AVAILABLE:
        raise ConflictError("Car is not available for rental.")
    if has_conflict(car.pk, rental_start_date, rental_end_date, include_reservations=False):
        raise ConflictError("Car is already rented for the selected dates.")

    days = pricing.rental_days(rental_start_date, rental_end_date)
    rental = Rental.objects.create(
        car=car,
        customer=customer,
        rental_start_date=rental_start_date,
        rental_end_date=rental_end_date,
        pickup_location=pickup_location,
        return_location=return_location,
        total_amount=pricing.total_amount(days, car.rental_rate),
        late_fee=0,
        status=Rental.ACTIVE,
    )
    cars.set_availability(car, Car.RENTED)

    logger.info("Direct rental created - rental=%s car=%s", rental.pk, car.pk)
    return rental


@service_operation("complete rental")
def complete_rental(
    rental_id: int,
    actual_return_date: datetime,
    principal: Principal,
    *,
    final_mileage: int | None = None,
) -> Rental:
    authorize(principal, message="Only staff members can complete rentals.")
    rental = _load(rental_id)
    car = cars.lock_car(rental.car_id, include_inactive=True)
    rental = Rental.objects.select_for_update().get(pk=rental.pk)

    if rental.status != Rental.ACTIVE:
        raise ValidationError("Only active rentals can be completed.")
    if actual_return_date < rental.rental_start_date:
        raise ValidationError("Return date cannot be before rental start date.")
    if final_mileage is not None and final_mileage < car.mileage:
        raise ValidationError("Final mileage cannot be lower than the car's current mileage.")

    fee = pricing.late_fee(rental.rental_end_date, actual_return_date)
    rental.status = Rental.COMPLETED
    rental.actual_return_date = actual_return_date
    rental.late_fee = fee
    rental.total_amount = rental.total_amount + fee
    rental.final_mileage = final_mileage
    rental.save(
        update_fields=[
            "status",
            "actual_return_date",
            "late_fee",
            "total_amount",
            "final_mileage",
            "updated_at",
        ]
    )

    if final_mileage is not None:
        car.mileage = final_mileage
        car.save(update_fields=["mileage", "updated_at"])
    cars.set_availability(car, Car.AVAILABLE)

    logger.info(
        "Rental %s completed - late_fee=%s total=%s",
        rental.pk,
        rental.late_fee,
        rental.total_amount,
    )
    return rental


@service_operation("find rental", atomic=False)
def get_rental(rental_id: int, principal: Principal) -> Rental:
    rental = Rental.objects.select_related(*RELATED).filter(pk=rental_id).first()
    if rental is None:
        raise NotFoundError(f"Rental with id {rental_id} not found.")
    authorize(
        principal,
        owner_id=rental.customer_id,
        allow_owner=True,
        message="Access denied to this rental.",
    )
    return rental


@service_operation("list rentals", atomic=False)
def list_rentals(principal: Principal) -> list[Rental]:
    queryset = Rental.objects.select_related(*RELATED)
    if not principal.is_staff:
        queryset = queryset.filter(customer_id=principal.customer_id)
    return list(queryset)


@service_operation("list customer rentals", atomic=False)
def list_customer_rentals(customer_id: int, principal: Principal) -> list[Rental]:
    authorize(
        principal,
        owner_id=customer_id,
        allow_owner=True,
        message="You can only view your own rentals.",
    )
    return list(Rental.objects.select_related(*RELATED).filter(customer_id=customer_id))


@service_operation("delete rental")
def delete_rental(rental_id: int, principal: Principal) -> None:
    authorize(principal, roles=(ADMIN,), message="Only administrators can delete rentals.")
    rental = _load(rental_id)
    if rental.status == Rental.ACTIVE:
        raise ValidationError("Cannot delete an active rental.")
    rental.delete()
    logger.info("Rental %s deleted", rental_id)
