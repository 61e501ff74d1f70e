from decimal import Decimal
from unittest import mock

from django.db import OperationalError
from django.test import TestCase

from rentacar.exceptions import ConflictError, ForbiddenError, InternalError, NotFoundError, ValidationError
from rentacar.models import Car, Rental, Reservation
from rentacar.services import reservations

from .fixtures import RentalFixturesMixin


class CreateReservationTests(RentalFixturesMixin, TestCase):
    def test_reserves_available_car(self):
        reservation = reservations.create_reservation(self.customer_principal, **self.reservation_payload())
        self.car.refresh_from_db()
        self.assertEqual(reservation.status, Reservation.PENDING)
        self.assertEqual(self.car.availability, Car.RESERVED)

    def test_overlapping_second_reservation_conflicts(self):
        reservations.create_reservation(self.customer_principal, **self.reservation_payload())
        with self.assertRaises(ConflictError):
            reservations.create_reservation(
                self.other_principal,
                **self.reservation_payload(customer_id=self.other_customer.pk, pickup_in_hours=72),
            )
        self.assertEqual(Reservation.objects.count(), 1)

    def test_overlap_blocks_even_when_flag_says_available(self):
        reservations.create_reservation(self.customer_principal, **self.reservation_payload())
        Car.objects.filter(pk=self.car.pk).update(availability=Car.AVAILABLE)
        with self.assertRaises(ConflictError):
            reservations.create_reservation(
                self.other_principal,
                **self.reservation_payload(customer_id=self.other_customer.pk, pickup_in_hours=72),
            )

    def test_customer_cannot_book_for_someone_else(self):
        with self.assertRaises(ForbiddenError):
            reservations.create_reservation(
                self.customer_principal,
                **self.reservation_payload(customer_id=self.other_customer.pk),
            )

    def test_staff_can_book_for_customer(self):
        reservation = reservations.create_reservation(self.employee, **self.reservation_payload())
        self.assertEqual(reservation.customer_id, self.customer.pk)

    def test_driver_license_is_required(self):
        self.customer.driver_license = None
        self.customer.save()
        with self.assertRaises(ValidationError):
            reservations.create_reservation(self.customer_principal, **self.reservation_payload())

    def test_return_must_follow_pickup(self):
        with self.assertRaises(ValidationError):
            reservations.create_reservation(self.customer_principal, **self.reservation_payload(days=0))

    def test_pickup_needs_minimum_notice(self):
        with self.assertRaises(ValidationError):
            reservations.create_reservation(
                self.customer_principal,
                **self.reservation_payload(pickup_in_hours=0.5),
            )

    def test_rental_length_is_capped(self):
        with self.assertRaises(ValidationError):
            reservations.create_reservation(self.customer_principal, **self.reservation_payload(days=31))

    def test_advance_payment_must_be_positive(self):
        with self.assertRaises(ValidationError):
            reservations.create_reservation(
                self.customer_principal,
                **self.reservation_payload(advance_payment=Decimal("0")),
            )

    def test_unknown_car(self):
        with self.assertRaises(NotFoundError):
            reservations.create_reservation(self.customer_principal, **self.reservation_payload(car_id=9999))

    def test_failure_while_flagging_car_rolls_back(self):
        with mock.patch(
            "rentacar.services.cars.set_availability",
            side_effect=RuntimeError("boom"),
        ):
            with self.assertRaises(InternalError):
                reservations.create_reservation(self.customer_principal, **self.reservation_payload())
        self.car.refresh_from_db()
        self.assertFalse(Reservation.objects.exists())
        self.assertEqual(self.car.availability, Car.AVAILABLE)

    def test_lock_timeout_surfaces_as_conflict(self):
        with mock.patch(
            "rentacar.services.cars.apply_lock_timeout",
            side_effect=OperationalError("database is locked"),
        ):
            with self.assertRaises(ConflictError):
                reservations.create_reservation(self.customer_principal, **self.reservation_payload())
        self.assertFalse(Reservation.objects.exists())


class ReservationLifecycleTests(RentalFixturesMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.reservation = reservations.create_reservation(
            self.customer_principal, **self.reservation_payload(pickup_in_hours=30)
        )

    def test_staff_confirms_pending_reservation(self):
        reservation = reservations.confirm_reservation(self.reservation.pk, self.employee)
        self.car.refresh_from_db()
        self.assertEqual(reservation.status, Reservation.CONFIRMED)
        self.assertEqual(self.car.availability, Car.RESERVED)

    def test_customer_cannot_confirm(self):
        with self.assertRaises(ForbiddenError):
            reservations.confirm_reservation(self.reservation.pk, self.customer_principal)

    def test_confirm_twice_fails(self):
        reservations.confirm_reservation(self.reservation.pk, self.employee)
        with self.assertRaises(ValidationError):
            reservations.confirm_reservation(self.reservation.pk, self.employee)

    def test_confirm_conflicts_with_overlapping_pending_reservation(self):
        Reservation.objects.create(
            car=self.car,
            customer=self.other_customer,
            pickup_date=self.reservation.pickup_date,
            return_date=self.reservation.return_date,
            pickup_location=self.location,
            return_location=self.location,
        )
        with self.assertRaises(ConflictError):
            reservations.confirm_reservation(self.reservation.pk, self.employee)
        self.reservation.refresh_from_db()
        self.assertEqual(self.reservation.status, Reservation.PENDING)

    def test_confirm_conflicts_with_overlapping_active_rental(self):
        Rental.objects.create(
            car=self.car,
            customer=self.other_customer,
            rental_start_date=self.reservation.return_date,
            rental_end_date=self.in_hours(200),
            pickup_location=self.location,
            return_location=self.location,
            total_amount=Decimal("500.00"),
        )
        with self.assertRaises(ConflictError):
            reservations.confirm_reservation(self.reservation.pk, self.employee)
        self.reservation.refresh_from_db()
        self.assertEqual(self.reservation.status, Reservation.PENDING)

    def test_convert_before_pickup_fails(self):
        reservations.confirm_reservation(self.reservation.pk, self.employee)
        with self.assertRaises(ValidationError):
            reservations.convert_to_rental(self.reservation.pk, self.employee)

    def test_convert_requires_confirmation(self):
        with self.assertRaises(ValidationError):
            reservations.convert_to_rental(self.reservation.pk, self.employee)

    def test_convert_returns_rental_fields_once_pickup_is_due(self):
        reservations.confirm_reservation(self.reservation.pk, self.employee)
        Reservation.objects.filter(pk=self.reservation.pk).update(pickup_date=self.in_hours(-1))
        handoff = reservations.convert_to_rental(self.reservation.pk, self.employee)
        self.assertEqual(handoff.car_id, self.car.pk)
        self.assertEqual(handoff.customer_id, self.customer.pk)
        self.reservation.refresh_from_db()
        self.assertEqual(self.reservation.status, Reservation.CONFIRMED)

    def test_owner_cancels_outside_window_and_frees_car(self):
        reservation = reservations.cancel_reservation(self.reservation.pk, self.customer_principal)
        self.car.refresh_from_db()
        self.assertEqual(reservation.status, Reservation.CANCELLED)
        self.assertEqual(self.car.availability, Car.AVAILABLE)

    def test_cancel_inside_window_fails(self):
        Reservation.objects.filter(pk=self.reservation.pk).update(
            pickup_date=self.in_hours(3),
            return_date=self.in_hours(27),
        )
        with self.assertRaises(ValidationError):
            reservations.cancel_reservation(self.reservation.pk, self.customer_principal)
        self.car.refresh_from_db()
        self.assertEqual(self.car.availability, Car.RESERVED)

    def test_cancel_twice_fails(self):
        reservations.cancel_reservation(self.reservation.pk, self.customer_principal)
        with self.assertRaises(ValidationError):
            reservations.cancel_reservation(self.reservation.pk, self.customer_principal)

    def test_other_customer_cannot_cancel(self):
        with self.assertRaises(ForbiddenError):
            reservations.cancel_reservation(self.reservation.pk, self.other_principal)

    def test_update_changes_advance_payment(self):
        reservation = reservations.update_reservation(
            self.reservation.pk,
            self.customer_principal,
            advance_payment=Decimal("50.00"),
        )
        self.assertEqual(reservation.advance_payment, Decimal("50.00"))

    def test_update_refuses_cancelled_reservation(self):
        reservations.cancel_reservation(self.reservation.pk, self.customer_principal)
        with self.assertRaises(ValidationError):
            reservations.update_reservation(
                self.reservation.pk,
                self.customer_principal,
                advance_payment=Decimal("50.00"),
            )

    def test_customer_sees_only_own_reservations(self):
        self.assertEqual(
            [r.pk for r in reservations.list_reservations(self.customer_principal)],
            [self.reservation.pk],
        )
        self.assertEqual(reservations.list_reservations(self.other_principal), [])
        with self.assertRaises(ForbiddenError):
            reservations.list_customer_reservations(self.customer.pk, self.other_principal)


class CheckAvailabilityTests(RentalFixturesMixin, TestCase):
    def test_booked_range_is_not_available(self):
        payload = self.reservation_payload(pickup_in_hours=48, days=3)
        reservations.create_reservation(self.customer_principal, **payload)
        self.assertFalse(
            reservations.check_availability(self.car.pk, payload["pickup_date"], payload["return_date"])
        )

    def test_other_dates_stay_available_while_reserved(self):
        reservations.create_reservation(self.customer_principal, **self.reservation_payload(pickup_in_hours=48))
        self.assertTrue(reservations.check_availability(self.car.pk, self.in_hours(300), self.in_hours(320)))

    def test_car_in_maintenance_is_never_available(self):
        Car.objects.filter(pk=self.car.pk).update(availability=Car.MAINTENANCE)
        self.assertFalse(reservations.check_availability(self.car.pk, self.in_hours(300), self.in_hours(320)))
