"""
Insurance policies on fleet cars.

A car holds at most one active policy for any instant; policy ranges are
compared with the same inclusive overlap rule as bookings.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.utils import timezone

from ..availability import DateRange, overlaps
from ..exceptions import ConflictError, NotFoundError, ValidationError
from ..models import Insurance
from ..permissions import ADMIN, Principal, authorize
from ..transactions import service_operation
from . import cars
from .cars import FLEET_ROLES

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "insurance_provider",
    "start_date",
    "end_date",
    "premium_amount",
    "coverage_details",
    "status",
)


def _validate_terms(start_date: datetime, end_date: datetime, premium_amount: Decimal) -> None:
    if start_date >= end_date:
        raise ValidationError("End date must be after start date.")
    if premium_amount is None or premium_amount <= 0:
        raise ValidationError("Premium amount must be positive.")


def _check_overlap(car_id: int, start_date: datetime, end_date: datetime, *, exclude_id: int | None = None) -> None:
    candidate = DateRange(start_date, end_date)
    policies = Insurance.objects.filter(car_id=car_id, status=Insurance.ACTIVE)
    if exclude_id is not None:
        policies = policies.exclude(pk=exclude_id)
    for policy in policies:
        if overlaps(candidate, DateRange(policy.start_date, policy.end_date)):
            raise ConflictError("Car already has active insurance for this period.")


def _load(insurance_id: int, *, for_update: bool = False) -> Insurance:
    queryset = Insurance.objects.select_for_update() if for_update else Insurance.objects.all()
    insurance = queryset.filter(pk=insurance_id).first()
    if insurance is None:
        raise NotFoundError(f"Insurance with id {insurance_id} not found.")
    return insurance


@service_operation("create insurance")
def create_insurance(
    principal: Principal,
    *,
    car_id: int,
    insurance_provider: str,
    policy_number: str,
    start_date: datetime,
    end_date: datetime,
    premium_amount: Decimal,
    coverage_details: str = "",
) -> Insurance:
    authorize(principal, roles=FLEET_ROLES, message="Only managers can add insurance policies.")
    _validate_terms(start_date, end_date, premium_amount)

    # The car lock serializes overlap checks for the same car.
    car = cars.lock_car(car_id, include_inactive=True)
    if Insurance.objects.filter(policy_number=policy_number).exists():
        raise ConflictError("Policy number already exists.")
    _check_overlap(car.pk, start_date, end_date)

    try:
        with transaction.atomic():
            insurance = Insurance.objects.create(
                car=car,
                insurance_provider=insurance_provider,
                policy_number=policy_number,
                start_date=start_date,
                end_date=end_date,
                premium_amount=premium_amount,
                coverage_details=coverage_details,
                status=Insurance.ACTIVE,
            )
    except IntegrityError:
        raise ConflictError("Policy number already exists.") from None

    logger.info(
        "Insurance created - id=%s policy=%s car=%s",
        insurance.pk,
        insurance.policy_number,
        car.pk,
    )
    return insurance


@service_operation("list insurance", atomic=False)
def list_insurances() -> list[Insurance]:
    return list(Insurance.objects.select_related("car"))


@service_operation("list active insurance", atomic=False)
def list_active_insurances() -> list[Insurance]:
    return list(
        Insurance.objects.select_related("car").filter(
            status=Insurance.ACTIVE,
            end_date__gte=timezone.now(),
        )
    )


@service_operation("list car insurance", atomic=False)
def list_car_insurances(car_id: int) -> list[Insurance]:
    return list(Insurance.objects.select_related("car").filter(car_id=car_id))


@service_operation("find insurance", atomic=False)
def get_insurance(insurance_id: int) -> Insurance:
    return _load(insurance_id)


@service_operation("update insurance")
def update_insurance(insurance_id: int, principal: Principal, **fields) -> Insurance:
    authorize(principal, roles=FLEET_ROLES, message="Only managers can update insurance policies.")
    insurance = _load(insurance_id)
    cars.lock_car(insurance.car_id, include_inactive=True)
    insurance = _load(insurance_id, for_update=True)

    if insurance.status == Insurance.EXPIRED:
        raise ValidationError("Cannot update expired insurance.")
    if "status" in fields and fields["status"] not in dict(Insurance.STATUS_CHOICES):
        raise ValidationError(f"Unknown insurance status '{fields['status']}'.")

    changed = [name for name in fields if name in EDITABLE_FIELDS]
    for name in changed:
        setattr(insurance, name, fields[name])
    _validate_terms(insurance.start_date, insurance.end_date, insurance.premium_amount)
    if insurance.status == Insurance.ACTIVE:
        _check_overlap(insurance.car_id, insurance.start_date, insurance.end_date, exclude_id=insurance.pk)

    if changed:
        insurance.save(update_fields=changed + ["updated_at"])
        logger.info("Insurance %s updated (%s)", insurance.pk, ", ".join(changed))
    return insurance


@service_operation("renew insurance")
def renew_insurance(
    insurance_id: int,
    new_end_date: datetime,
    principal: Principal,
    *,
    new_premium: Decimal | None = None,
) -> Insurance:
    """Extend a policy to ``new_end_date`` and make it active again."""
    authorize(principal, roles=FLEET_ROLES, message="Only managers can renew insurance policies.")
    insurance = _load(insurance_id)
    cars.lock_car(insurance.car_id, include_inactive=True)
    insurance = _load(insurance_id, for_update=True)

    if insurance.status == Insurance.EXPIRED:
        raise ValidationError("Cannot renew expired insurance.")
    if new_end_date <= insurance.end_date:
        raise ValidationError("New end date must be after current end date.")
    if new_premium is not None and new_premium <= 0:
        raise ValidationError("Premium amount must be positive.")
    _check_overlap(insurance.car_id, insurance.start_date, new_end_date, exclude_id=insurance.pk)

    insurance.end_date = new_end_date
    insurance.status = Insurance.ACTIVE
    update_fields = ["end_date", "status", "updated_at"]
    if new_premium is not None:
        insurance.premium_amount = new_premium
        update_fields.append("premium_amount")
    insurance.save(update_fields=update_fields)

    logger.info("Insurance %s renewed until %s", insurance.pk, new_end_date)
    return insurance


@service_operation("delete insurance")
def delete_insurance(insurance_id: int, principal: Principal) -> None:
    authorize(principal, roles=(ADMIN,), message="Only administrators can delete insurance policies.")
    insurance = _load(insurance_id, for_update=True)
    insurance.delete()
    logger.info("Insurance %s deleted", insurance_id)
