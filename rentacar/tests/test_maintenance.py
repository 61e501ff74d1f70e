from decimal import Decimal

from django.test import TestCase

from rentacar.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from rentacar.models import Car, Maintenance
from rentacar.services import maintenance

from .fixtures import RentalFixturesMixin


class MaintenanceTestCase(RentalFixturesMixin, TestCase):
    def job_fields(self, **overrides):
        fields = {
            "car_id": self.car.pk,
            "maintenance_type": Maintenance.ROUTINE,
            "maintenance_date": self.in_hours(72),
            "cost": Decimal("120.00"),
            "description": "Oil change",
        }
        fields.update(overrides)
        return fields


class ScheduleMaintenanceTests(MaintenanceTestCase):
    def test_staff_schedules_job(self):
        job = maintenance.schedule_maintenance(self.employee, **self.job_fields())
        self.assertEqual(job.status, Maintenance.SCHEDULED)

    def test_customer_cannot_schedule(self):
        with self.assertRaises(ForbiddenError):
            maintenance.schedule_maintenance(self.customer_principal, **self.job_fields())

    def test_routine_job_cannot_be_in_the_past(self):
        with self.assertRaises(ValidationError):
            maintenance.schedule_maintenance(self.employee, **self.job_fields(maintenance_date=self.in_hours(-24)))

    def test_repair_may_be_logged_after_the_fact(self):
        job = maintenance.schedule_maintenance(
            self.employee,
            **self.job_fields(maintenance_type=Maintenance.REPAIR, maintenance_date=self.in_hours(-24)),
        )
        self.assertEqual(job.maintenance_type, Maintenance.REPAIR)

    def test_cost_must_be_positive(self):
        with self.assertRaises(ValidationError):
            maintenance.schedule_maintenance(self.employee, **self.job_fields(cost=Decimal("0")))

    def test_second_open_job_same_day_conflicts(self):
        first = maintenance.schedule_maintenance(self.employee, **self.job_fields())
        with self.assertRaises(ConflictError):
            maintenance.schedule_maintenance(
                self.employee,
                **self.job_fields(maintenance_date=first.maintenance_date, description="Tyres"),
            )

    def test_cancelled_job_frees_the_day(self):
        first = maintenance.schedule_maintenance(self.employee, **self.job_fields())
        maintenance.update_maintenance_status(first.pk, Maintenance.CANCELLED, self.employee)
        second = maintenance.schedule_maintenance(
            self.employee,
            **self.job_fields(maintenance_date=first.maintenance_date, description="Tyres"),
        )
        self.assertEqual(second.status, Maintenance.SCHEDULED)

    def test_scheduling_leaves_car_availability_alone(self):
        maintenance.schedule_maintenance(self.employee, **self.job_fields())
        self.car.refresh_from_db()
        self.assertEqual(self.car.availability, Car.AVAILABLE)


class MaintenanceLifecycleTests(MaintenanceTestCase):
    def setUp(self):
        super().setUp()
        self.job = maintenance.schedule_maintenance(self.employee, **self.job_fields())

    def test_customer_cannot_view(self):
        with self.assertRaises(ForbiddenError):
            maintenance.list_maintenance(self.customer_principal)

    def test_car_history(self):
        found = maintenance.list_car_maintenance(self.car.pk, self.employee)
        self.assertEqual([job.pk for job in found], [self.job.pk])

    def test_missing_job(self):
        with self.assertRaises(NotFoundError):
            maintenance.get_maintenance(9999, self.employee)

    def test_update_changes_cost(self):
        job = maintenance.update_maintenance(self.job.pk, self.employee, cost=Decimal("150.00"))
        job.refresh_from_db()
        self.assertEqual(job.cost, Decimal("150.00"))

    def test_complete_requires_in_progress(self):
        with self.assertRaises(ValidationError):
            maintenance.complete_maintenance(self.job.pk, self.employee)

    def test_start_then_complete(self):
        maintenance.update_maintenance_status(self.job.pk, Maintenance.IN_PROGRESS, self.employee)
        job = maintenance.complete_maintenance(
            self.job.pk, self.employee, actual_cost=Decimal("135.50"), notes="Filter replaced too"
        )
        job.refresh_from_db()
        self.assertEqual(job.status, Maintenance.COMPLETED)
        self.assertIsNotNone(job.completed_date)
        self.assertEqual(job.cost, Decimal("135.50"))
        self.assertEqual(job.notes, "Filter replaced too")

    def test_status_update_cannot_skip_completion(self):
        with self.assertRaises(ValidationError):
            maintenance.update_maintenance_status(self.job.pk, Maintenance.COMPLETED, self.employee)

    def test_closed_job_is_frozen(self):
        maintenance.update_maintenance_status(self.job.pk, Maintenance.CANCELLED, self.employee)
        with self.assertRaises(ValidationError):
            maintenance.update_maintenance(self.job.pk, self.employee, description="Brakes")
        with self.assertRaises(ValidationError):
            maintenance.update_maintenance_status(self.job.pk, Maintenance.IN_PROGRESS, self.employee)

    def test_delete_requires_admin(self):
        with self.assertRaises(ForbiddenError):
            maintenance.delete_maintenance(self.job.pk, self.manager)
        maintenance.delete_maintenance(self.job.pk, self.admin)
        self.assertFalse(Maintenance.objects.exists())
