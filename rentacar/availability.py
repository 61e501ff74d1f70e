"""
Date-range overlap checks for cars.

Ranges are compared with inclusive bounds: a booking that ends exactly
when another starts counts as overlapping.
"""

from __future__ import annotations

from datetime import datetime
from typing import NamedTuple

from django.db.models import Q

from .models import Rental, Reservation


class DateRange(NamedTuple):
    start: datetime
    end: datetime


def overlaps(first: DateRange, second: DateRange) -> bool:
    return first.start <= second.end and second.start <= first.end


def _reservation_overlap(start: datetime, end: datetime) -> Q:
    return Q(pickup_date__lte=end, return_date__gte=start)


def _rental_overlap(start: datetime, end: datetime) -> Q:
    return Q(rental_start_date__lte=end, rental_end_date__gte=start)


def has_conflict(
    car_id: int,
    start: datetime,
    end: datetime,
    *,
    include_reservations: bool = True,
    exclude_reservation_id: int | None = None,
    exclude_rental_id: int | None = None,
) -> bool:
    """True when a pending/confirmed reservation or an active rental of the car overlaps [start, end]."""
    if include_reservations:
        reservations = Reservation.objects.filter(
            _reservation_overlap(start, end),
            car_id=car_id,
            status__in=Reservation.BLOCKING_STATUSES,
        )
        if exclude_reservation_id is not None:
            reservations = reservations.exclude(pk=exclude_reservation_id)
        if reservations.exists():
            return True

    rentals = Rental.objects.filter(
        _rental_overlap(start, end),
        car_id=car_id,
        status=Rental.ACTIVE,
    )
    if exclude_rental_id is not None:
        rentals = rentals.exclude(pk=exclude_rental_id)
    return rentals.exists()


def conflicting_car_ids(start: datetime, end: datetime) -> set[int]:
    """IDs of cars with a blocking reservation or active rental inside the range."""
    reserved = Reservation.objects.filter(
        _reservation_overlap(start, end),
        status__in=Reservation.BLOCKING_STATUSES,
    ).values_list("car_id", flat=True)
    rented = Rental.objects.filter(
        _rental_overlap(start, end),
        status=Rental.ACTIVE,
    ).values_list("car_id", flat=True)
    return set(reserved) | set(rented)
