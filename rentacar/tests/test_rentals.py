from datetime import timedelta
from decimal import Decimal

from django.test import SimpleTestCase, TestCase

from rentacar.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from rentacar.forms import CompleteRentalForm
from rentacar.models import Car, Rental, Reservation
from rentacar.services import cars, rentals, reservations

from .fixtures import RentalFixturesMixin


class RentalFlowTests(RentalFixturesMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.reservation = reservations.create_reservation(
            self.customer_principal, **self.reservation_payload(pickup_in_hours=48, days=3)
        )
        reservations.confirm_reservation(self.reservation.pk, self.employee)

    def assertAvailabilityConsistent(self):
        self.car.refresh_from_db()
        active = Rental.objects.filter(car=self.car, status=Rental.ACTIVE).count()
        blocking = Reservation.objects.filter(
            car=self.car, status__in=Reservation.BLOCKING_STATUSES
        ).count()
        if self.car.availability == Car.RENTED:
            self.assertEqual(active, 1)
        elif self.car.availability == Car.RESERVED:
            self.assertGreaterEqual(blocking, 1)
            self.assertEqual(active, 0)

    def test_rental_from_confirmed_reservation(self):
        rental = rentals.create_rental_from_reservation(self.reservation.pk, self.employee)
        self.reservation.refresh_from_db()
        self.assertEqual(rental.status, Rental.ACTIVE)
        self.assertEqual(rental.total_amount, Decimal("300.00"))
        self.assertEqual(rental.reservation_id, self.reservation.pk)
        self.assertEqual(self.reservation.status, Reservation.COMPLETED)
        self.assertEqual(Car.objects.get(pk=self.car.pk).availability, Car.RENTED)
        self.assertAvailabilityConsistent()

    def test_pending_reservation_cannot_become_rental(self):
        pending = Reservation.objects.create(
            car=self.car,
            customer=self.other_customer,
            pickup_date=self.in_hours(400),
            return_date=self.in_hours(450),
            pickup_location=self.location,
            return_location=self.location,
        )
        with self.assertRaises(ValidationError):
            rentals.create_rental_from_reservation(pending.pk, self.employee)

    def test_car_must_still_be_reserved(self):
        cars.update_availability(self.car.pk, Car.MAINTENANCE, self.employee)
        with self.assertRaises(ConflictError):
            rentals.create_rental_from_reservation(self.reservation.pk, self.employee)
        self.assertFalse(Rental.objects.exists())

    def test_unknown_reservation(self):
        with self.assertRaises(NotFoundError):
            rentals.create_rental_from_reservation(9999, self.employee)

    def test_customer_cannot_start_rental(self):
        with self.assertRaises(ForbiddenError):
            rentals.create_rental_from_reservation(self.reservation.pk, self.customer_principal)

    def test_late_return_charges_fee_and_frees_car(self):
        rental = rentals.create_rental_from_reservation(self.reservation.pk, self.employee)
        returned = rental.rental_end_date + timedelta(days=2)

        completed = rentals.complete_rental(rental.pk, returned, self.employee, final_mileage=150)

        self.car.refresh_from_db()
        self.assertEqual(completed.status, Rental.COMPLETED)
        self.assertEqual(completed.late_fee, Decimal("100.00"))
        self.assertEqual(completed.total_amount, Decimal("400.00"))
        self.assertEqual(self.car.availability, Car.AVAILABLE)
        self.assertEqual(self.car.mileage, 150)
        self.assertAvailabilityConsistent()

    def test_completing_twice_does_not_double_charge(self):
        rental = rentals.create_rental_from_reservation(self.reservation.pk, self.employee)
        returned = rental.rental_end_date + timedelta(days=1)
        rentals.complete_rental(rental.pk, returned, self.employee)

        with self.assertRaises(ValidationError):
            rentals.complete_rental(rental.pk, returned, self.employee)

        rental.refresh_from_db()
        self.assertEqual(rental.late_fee, Decimal("50.00"))
        self.assertEqual(rental.total_amount, Decimal("350.00"))

    def test_return_before_start_is_rejected(self):
        rental = rentals.create_rental_from_reservation(self.reservation.pk, self.employee)
        with self.assertRaises(ValidationError):
            rentals.complete_rental(rental.pk, rental.rental_start_date - timedelta(hours=1), self.employee)

    def test_final_mileage_cannot_go_backwards(self):
        Car.objects.filter(pk=self.car.pk).update(mileage=5000)
        rental = rentals.create_rental_from_reservation(self.reservation.pk, self.employee)
        with self.assertRaises(ValidationError):
            rentals.complete_rental(rental.pk, rental.rental_end_date, self.employee, final_mileage=4000)

    def test_active_rental_cannot_be_deleted(self):
        rental = rentals.create_rental_from_reservation(self.reservation.pk, self.employee)
        with self.assertRaises(ValidationError):
            rentals.delete_rental(rental.pk, self.admin)

    def test_admin_deletes_completed_rental(self):
        rental = rentals.create_rental_from_reservation(self.reservation.pk, self.employee)
        rentals.complete_rental(rental.pk, rental.rental_end_date, self.employee)
        with self.assertRaises(ForbiddenError):
            rentals.delete_rental(rental.pk, self.employee)
        rentals.delete_rental(rental.pk, self.admin)
        self.assertFalse(Rental.objects.filter(pk=rental.pk).exists())

    def test_rental_visibility(self):
        rental = rentals.create_rental_from_reservation(self.reservation.pk, self.employee)
        self.assertEqual(rentals.get_rental(rental.pk, self.customer_principal).pk, rental.pk)
        with self.assertRaises(ForbiddenError):
            rentals.get_rental(rental.pk, self.other_principal)
        self.assertEqual(rentals.list_rentals(self.other_principal), [])
        self.assertEqual(len(rentals.list_customer_rentals(self.customer.pk, self.employee)), 1)


class DirectRentalTests(RentalFixturesMixin, TestCase):
    def direct_payload(self, **overrides):
        start = self.in_hours(2)
        payload = {
            "car_id": self.car.pk,
            "customer_id": self.customer.pk,
            "rental_start_date": start,
            "rental_end_date": start + timedelta(days=7),
            "pickup_location_id": self.location.pk,
            "return_location_id": self.location.pk,
        }
        payload.update(overrides)
        return payload

    def test_direct_rental_prices_and_flags_car(self):
        rental = rentals.create_direct_rental(self.employee, **self.direct_payload())
        self.car.refresh_from_db()
        self.assertIsNone(rental.reservation_id)
        self.assertEqual(rental.total_amount, Decimal("630.00"))
        self.assertEqual(self.car.availability, Car.RENTED)

    def test_second_direct_rental_conflicts(self):
        rentals.create_direct_rental(self.employee, **self.direct_payload())
        with self.assertRaises(ConflictError):
            rentals.create_direct_rental(
                self.employee, **self.direct_payload(customer_id=self.other_customer.pk)
            )

    def test_start_in_past_is_rejected(self):
        with self.assertRaises(ValidationError):
            rentals.create_direct_rental(self.employee, **self.direct_payload(rental_start_date=self.in_hours(-2)))

    def test_pending_reservations_are_not_consulted(self):
        reservations.create_reservation(self.customer_principal, **self.reservation_payload(pickup_in_hours=24))
        cars.update_availability(self.car.pk, Car.AVAILABLE, self.employee)

        rental = rentals.create_direct_rental(
            self.employee, **self.direct_payload(customer_id=self.other_customer.pk)
        )

        self.assertEqual(rental.status, Rental.ACTIVE)

    def test_customer_cannot_create_direct_rental(self):
        with self.assertRaises(ForbiddenError):
            rentals.create_direct_rental(self.customer_principal, **self.direct_payload())


class CompleteRentalFormTests(SimpleTestCase):
    def test_zero_final_mileage_is_accepted(self):
        data = CompleteRentalForm(
            {"actual_return_date": "2030-01-10T10:00:00+00:00", "final_mileage": 0}
        ).validated_data()
        self.assertEqual(data["final_mileage"], 0)

    def test_negative_final_mileage_is_rejected(self):
        form = CompleteRentalForm({"actual_return_date": "2030-01-10T10:00:00+00:00", "final_mileage": -1})
        with self.assertRaises(ValidationError):
            form.validated_data()
