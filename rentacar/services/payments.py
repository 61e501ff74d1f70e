"""
Payments against rentals.

There is no real gateway: :func:`process_payment` records the payment and
marks it completed straight away.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from django.utils import timezone

from ..exceptions import NotFoundError, ValidationError
from ..models import Payment, Rental
from ..permissions import Principal, authorize
from ..transactions import service_operation

logger = logging.getLogger(__name__)


def _rental(rental_id: int) -> Rental:
    rental = Rental.objects.filter(pk=rental_id).first()
    if rental is None:
        raise NotFoundError(f"Rental with id {rental_id} not found.")
    return rental


def _payment(payment_id: int, *, for_update: bool = False) -> Payment:
    queryset = Payment.objects.select_for_update() if for_update else Payment.objects.all()
    payment = queryset.filter(pk=payment_id).first()
    if payment is None:
        raise NotFoundError(f"Payment with id {payment_id} not found.")
    return payment


def record_payment(
    rental_id: int,
    amount: Decimal,
    status: str,
    *,
    payment_method: str = "cash",
    transaction_id: str = "",
    notes: str = "",
) -> Payment:
    if amount is None or amount <= 0:
        raise ValidationError("Payment amount must be greater than 0.")
    if status not in dict(Payment.STATUS_CHOICES):
        raise ValidationError(f"Unknown payment status '{status}'.")
    rental = _rental(rental_id)
    payment = Payment.objects.create(
        rental=rental,
        amount=amount,
        status=status,
        payment_method=payment_method,
        transaction_id=transaction_id,
        notes=notes,
        payment_date=timezone.now(),
    )
    logger.info("Payment %s recorded - rental=%s amount=%s status=%s", payment.pk, rental.pk, amount, status)
    return payment


@service_operation("process payment")
def process_payment(
    principal: Principal,
    *,
    rental_id: int,
    amount: Decimal,
    payment_method: str = "cash",
    transaction_id: str = "",
) -> Payment:
    rental = _rental(rental_id)
    authorize(
        principal,
        owner_id=rental.customer_id,
        allow_owner=True,
        message="You can only pay for your own rentals.",
    )
    return record_payment(
        rental.pk,
        amount,
        Payment.COMPLETED,
        payment_method=payment_method,
        transaction_id=transaction_id,
    )


@service_operation("list payments", atomic=False)
def list_rental_payments(rental_id: int, principal: Principal) -> list[Payment]:
    rental = _rental(rental_id)
    authorize(
        principal,
        owner_id=rental.customer_id,
        allow_owner=True,
        message="Access denied to this rental.",
    )
    return list(rental.payments.all())


@service_operation("update payment status")
def update_payment_status(payment_id: int, status: str, principal: Principal) -> Payment:
    authorize(principal, message="Only staff members can update payments.")
    payment = _payment(payment_id, for_update=True)

    if status not in dict(Payment.STATUS_CHOICES):
        raise ValidationError(f"Unknown payment status '{status}'.")
    if payment.status == Payment.COMPLETED and status == Payment.PENDING:
        raise ValidationError("Cannot set completed payment back to pending.")
    if status == Payment.REFUNDED and payment.status != Payment.COMPLETED:
        raise ValidationError("Can only refund completed payments.")

    payment.status = status
    payment.save(update_fields=["status"])
    logger.info("Payment %s status updated to %s", payment.pk, status)
    return payment


@service_operation("refund payment")
def refund_payment(payment_id: int, amount: Decimal, reason: str, principal: Principal) -> Payment:
    authorize(principal, message="Only staff members can refund payments.")
    payment = _payment(payment_id, for_update=True)

    if payment.status != Payment.COMPLETED:
        raise ValidationError("Can only refund completed payments.")
    if amount is None or amount <= 0:
        raise ValidationError("Refund amount must be greater than 0.")
    if amount > payment.amount:
        raise ValidationError("Refund amount cannot exceed original payment amount.")

    payment.status = Payment.REFUNDED
    payment.notes = f"Refunded: {amount}. Reason: {reason}"
    payment.save(update_fields=["status", "notes"])
    logger.info("Payment %s refunded - amount=%s", payment.pk, amount)
    return payment
