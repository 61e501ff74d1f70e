"""
Maintenance jobs on fleet cars.

    scheduled -> in_progress -> completed
    scheduled | in_progress -> cancelled

A car takes at most one open job per calendar day. Jobs are records only;
they do not move the car's availability flag, staff do that through
``cars.update_availability``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from django.utils import timezone

from ..exceptions import ConflictError, NotFoundError, ValidationError
from ..models import Maintenance
from ..permissions import ADMIN, Principal, authorize
from ..transactions import service_operation
from . import cars

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("maintenance_type", "maintenance_date", "description", "cost", "notes")


def _validate_cost(cost: Decimal) -> None:
    if cost is None or cost <= 0:
        raise ValidationError("Maintenance cost must be positive.")


def _check_same_day(car_id: int, maintenance_date: datetime, *, exclude_id: int | None = None) -> None:
    jobs = Maintenance.objects.filter(
        car_id=car_id,
        maintenance_date__date=timezone.localdate(maintenance_date),
    ).exclude(status__in=Maintenance.CLOSED_STATUSES)
    if exclude_id is not None:
        jobs = jobs.exclude(pk=exclude_id)
    if jobs.exists():
        raise ConflictError("Car already has maintenance scheduled for this date.")


def _load(maintenance_id: int, *, for_update: bool = False) -> Maintenance:
    queryset = Maintenance.objects.select_for_update() if for_update else Maintenance.objects.all()
    job = queryset.filter(pk=maintenance_id).first()
    if job is None:
        raise NotFoundError(f"Maintenance with id {maintenance_id} not found.")
    return job


def _ensure_open(job: Maintenance) -> None:
    if job.status in Maintenance.CLOSED_STATUSES:
        raise ValidationError("Cannot change completed or cancelled maintenance.")


@service_operation("schedule maintenance")
def schedule_maintenance(
    principal: Principal,
    *,
    car_id: int,
    maintenance_type: str,
    maintenance_date: datetime,
    cost: Decimal,
    description: str,
    notes: str = "",
) -> Maintenance:
    authorize(principal, message="Only staff members can schedule maintenance.")
    if maintenance_type not in dict(Maintenance.TYPE_CHOICES):
        raise ValidationError(f"Unknown maintenance type '{maintenance_type}'.")
    # Repairs may be logged after the fact; routine service is always booked ahead.
    if maintenance_type == Maintenance.ROUTINE and maintenance_date < timezone.now():
        raise ValidationError("Routine maintenance cannot be scheduled in the past.")
    _validate_cost(cost)

    car = cars.lock_car(car_id, include_inactive=True)
    _check_same_day(car.pk, maintenance_date)

    job = Maintenance.objects.create(
        car=car,
        maintenance_type=maintenance_type,
        maintenance_date=maintenance_date,
        cost=cost,
        description=description,
        notes=notes,
        status=Maintenance.SCHEDULED,
    )
    logger.info(
        "Maintenance scheduled - id=%s type=%s car=%s date=%s",
        job.pk,
        job.maintenance_type,
        car.pk,
        maintenance_date,
    )
    return job


@service_operation("list maintenance", atomic=False)
def list_maintenance(principal: Principal) -> list[Maintenance]:
    authorize(principal, message="Only staff members can view maintenance.")
    return list(Maintenance.objects.select_related("car"))


@service_operation("list car maintenance", atomic=False)
def list_car_maintenance(car_id: int, principal: Principal) -> list[Maintenance]:
    authorize(principal, message="Only staff members can view maintenance.")
    return list(Maintenance.objects.select_related("car").filter(car_id=car_id))


@service_operation("find maintenance", atomic=False)
def get_maintenance(maintenance_id: int, principal: Principal) -> Maintenance:
    authorize(principal, message="Only staff members can view maintenance.")
    return _load(maintenance_id)


@service_operation("update maintenance")
def update_maintenance(maintenance_id: int, principal: Principal, **fields) -> Maintenance:
    authorize(principal, message="Only staff members can update maintenance.")
    job = _load(maintenance_id)
    cars.lock_car(job.car_id, include_inactive=True)
    job = _load(maintenance_id, for_update=True)
    _ensure_open(job)

    if "maintenance_type" in fields and fields["maintenance_type"] not in dict(Maintenance.TYPE_CHOICES):
        raise ValidationError(f"Unknown maintenance type '{fields['maintenance_type']}'.")
    if "cost" in fields:
        _validate_cost(fields["cost"])
    if "maintenance_date" in fields:
        _check_same_day(job.car_id, fields["maintenance_date"], exclude_id=job.pk)

    changed = [name for name in fields if name in EDITABLE_FIELDS]
    for name in changed:
        setattr(job, name, fields[name])
    if changed:
        job.save(update_fields=changed + ["updated_at"])
        logger.info("Maintenance %s updated (%s)", job.pk, ", ".join(changed))
    return job


@service_operation("update maintenance status")
def update_maintenance_status(maintenance_id: int, status: str, principal: Principal) -> Maintenance:
    authorize(principal, message="Only staff members can update maintenance.")
    job = _load(maintenance_id, for_update=True)
    _ensure_open(job)
    if status not in dict(Maintenance.STATUS_CHOICES):
        raise ValidationError(f"Unknown maintenance status '{status}'.")
    if status == Maintenance.COMPLETED:
        raise ValidationError("Use the complete action to finish maintenance.")

    job.status = status
    job.save(update_fields=["status", "updated_at"])
    logger.info("Maintenance %s status updated to %s", job.pk, status)
    return job


@service_operation("complete maintenance")
def complete_maintenance(
    maintenance_id: int,
    principal: Principal,
    *,
    actual_cost: Decimal | None = None,
    notes: str | None = None,
) -> Maintenance:
    authorize(principal, message="Only staff members can complete maintenance.")
    job = _load(maintenance_id, for_update=True)
    if job.status != Maintenance.IN_PROGRESS:
        raise ValidationError("Can only complete maintenance that is in progress.")

    job.status = Maintenance.COMPLETED
    job.completed_date = timezone.now()
    update_fields = ["status", "completed_date", "updated_at"]
    if actual_cost is not None:
        _validate_cost(actual_cost)
        job.cost = actual_cost
        update_fields.append("cost")
    if notes is not None:
        job.notes = notes
        update_fields.append("notes")
    job.save(update_fields=update_fields)

    logger.info("Maintenance %s completed - cost=%s", job.pk, job.cost)
    return job


@service_operation("delete maintenance")
def delete_maintenance(maintenance_id: int, principal: Principal) -> None:
    authorize(principal, roles=(ADMIN,), message="Only administrators can delete maintenance.")
    job = _load(maintenance_id, for_update=True)
    job.delete()
    logger.info("Maintenance %s deleted - car=%s", maintenance_id, job.car_id)
