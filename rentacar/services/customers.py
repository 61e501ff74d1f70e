from __future__ import annotations

import logging
import re

from ..exceptions import ConflictError, NotFoundError, ValidationError
from ..models import Customer
from ..permissions import Principal, authorize
from ..transactions import service_operation

logger = logging.getLogger(__name__)

PHONE_RE = re.compile(r"^\+?[\d\s\-()]{10,}$")


@service_operation("create customer")
def create_customer(
    principal: Principal,
    *,
    first_name: str,
    last_name: str,
    phone_number: str,
    address: str = "",
    driver_license: str | None = None,
    user=None,
) -> Customer:
    authorize(principal, message="Only staff members can register customers.")

    if not PHONE_RE.match(phone_number or ""):
        raise ValidationError("Invalid phone number format.")
    driver_license = driver_license or None
    if driver_license and Customer.objects.filter(driver_license=driver_license).exists():
        raise ConflictError("Driver license already registered.")

    customer = Customer.objects.create(
        first_name=first_name,
        last_name=last_name,
        phone_number=phone_number,
        address=address,
        driver_license=driver_license,
        user=user,
    )
    logger.info("Customer created - id=%s name=%s", customer.pk, customer)
    return customer


def get_customer(customer_id: int) -> Customer:
    customer = Customer.objects.filter(pk=customer_id).first()
    if customer is None:
        raise NotFoundError(f"Customer with id {customer_id} not found.")
    return customer
