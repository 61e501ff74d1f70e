"""
rentacar.views

JSON API over the rental services. Each view parses its input with a form
from ``rentacar.forms``, calls one service function and serializes the
result; service errors become ``{"error": kind, "message": text}`` bodies.
"""

from __future__ import annotations

import functools
import json
import logging

from django.http import HttpResponse, JsonResponse
from django.views.decorators.http import require_http_methods

from .exceptions import InternalError, RentacarError, ValidationError
from .forms import (
    AvailabilityForm,
    CarForm,
    CompleteMaintenanceForm,
    CompleteRentalForm,
    CustomerForm,
    DateRangeForm,
    DirectRentalForm,
    InsuranceForm,
    InsuranceUpdateForm,
    MaintenanceForm,
    MaintenanceStatusForm,
    MaintenanceUpdateForm,
    PaymentForm,
    PaymentStatusForm,
    RefundForm,
    RenewInsuranceForm,
    ReservationForm,
    ReservationUpdateForm,
)
from .models import Car, Customer, Insurance, Maintenance, Payment, Rental, Reservation
from .permissions import principal_from_user
from .services import cars, customers, insurance, maintenance, payments, rentals, reservations

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def _error_response(exc: RentacarError) -> JsonResponse:
    return JsonResponse({"error": exc.kind, "message": exc.message}, status=exc.status_code)


def _unauthorized() -> JsonResponse:
    return JsonResponse({"error": "unauthorized", "message": "Authentication required."}, status=401)


def api_view(*methods: str, public: bool = False):
    """Restrict methods, resolve the principal and map service errors.

    The wrapped view receives the principal after the request; anonymous
    callers get 401 unless ``public`` is set, in which case the principal
    is ``None``.
    """

    def decorator(view):
        @require_http_methods(list(methods))
        @functools.wraps(view)
        def wrapper(request, *args, **kwargs):
            principal = None
            if request.user.is_authenticated:
                principal = principal_from_user(request.user)
            elif not public:
                return _unauthorized()

            try:
                return view(request, principal, *args, **kwargs)
            except RentacarError as exc:
                return _error_response(exc)
            except Exception:
                logger.exception("Unhandled error in %s %s", request.method, request.path)
                return _error_response(InternalError())

        return wrapper

    return decorator


def _payload(request) -> dict:
    if not request.body:
        return {}
    try:
        payload = json.loads(request.body.decode("utf-8"))
    except ValueError:
        raise ValidationError("Invalid JSON body.") from None
    if not isinstance(payload, dict):
        raise ValidationError("JSON body must be an object.")
    return payload


def _iso(value):
    return value.isoformat() if value is not None else None


def _serialize_car(car: Car) -> dict:
    return {
        "id": car.id,
        "car_model": car.car_model,
        "manufacturer": car.manufacturer,
        "year": car.year,
        "color": car.color,
        "car_type": car.car_type,
        "fuel_type": car.fuel_type,
        "rental_rate": car.rental_rate,
        "availability": car.availability,
        "license_plate": car.license_plate,
        "current_location_id": car.current_location_id,
        "mileage": car.mileage,
        "transmission": car.transmission,
        "seats": car.seats,
        "updated_at": _iso(car.updated_at),
    }


def _serialize_customer(customer: Customer) -> dict:
    return {
        "id": customer.id,
        "first_name": customer.first_name,
        "last_name": customer.last_name,
        "phone_number": customer.phone_number,
        "address": customer.address,
        "driver_license": customer.driver_license,
    }


def _serialize_reservation(reservation: Reservation) -> dict:
    return {
        "id": reservation.id,
        "car_id": reservation.car_id,
        "customer_id": reservation.customer_id,
        "reservation_date": _iso(reservation.reservation_date),
        "pickup_date": _iso(reservation.pickup_date),
        "return_date": _iso(reservation.return_date),
        "pickup_location_id": reservation.pickup_location_id,
        "return_location_id": reservation.return_location_id,
        "status": reservation.status,
        "advance_payment": reservation.advance_payment,
    }


def _serialize_rental(rental: Rental) -> dict:
    return {
        "id": rental.id,
        "car_id": rental.car_id,
        "customer_id": rental.customer_id,
        "reservation_id": rental.reservation_id,
        "rental_start_date": _iso(rental.rental_start_date),
        "rental_end_date": _iso(rental.rental_end_date),
        "actual_return_date": _iso(rental.actual_return_date),
        "pickup_location_id": rental.pickup_location_id,
        "return_location_id": rental.return_location_id,
        "total_amount": rental.total_amount,
        "late_fee": rental.late_fee,
        "final_mileage": rental.final_mileage,
        "status": rental.status,
    }


def _serialize_payment(payment: Payment) -> dict:
    return {
        "id": payment.id,
        "rental_id": payment.rental_id,
        "amount": payment.amount,
        "payment_method": payment.payment_method,
        "status": payment.status,
        "transaction_id": payment.transaction_id,
        "notes": payment.notes,
        "payment_date": _iso(payment.payment_date),
    }


def _serialize_insurance(policy: Insurance) -> dict:
    return {
        "id": policy.id,
        "car_id": policy.car_id,
        "insurance_provider": policy.insurance_provider,
        "policy_number": policy.policy_number,
        "start_date": _iso(policy.start_date),
        "end_date": _iso(policy.end_date),
        "premium_amount": policy.premium_amount,
        "status": policy.status,
        "coverage_details": policy.coverage_details,
    }


def _serialize_maintenance(job: Maintenance) -> dict:
    return {
        "id": job.id,
        "car_id": job.car_id,
        "maintenance_type": job.maintenance_type,
        "maintenance_date": _iso(job.maintenance_date),
        "description": job.description,
        "cost": job.cost,
        "status": job.status,
        "completed_date": _iso(job.completed_date),
        "notes": job.notes,
    }


def _list_response(items, serializer) -> JsonResponse:
    return JsonResponse([serializer(item) for item in items], safe=False)


# -----------------------------------------------------------------------------
# Cars
# -----------------------------------------------------------------------------


@api_view("GET", "POST", public=True)
def car_collection(request, principal):
    if request.method == "GET":
        return _list_response(cars.list_cars(), _serialize_car)

    if principal is None:
        return _unauthorized()
    data = CarForm(_payload(request)).validated_data()
    car = cars.create_car(principal, **data)
    return JsonResponse(_serialize_car(car), status=201)


@api_view("GET", public=True)
def available_cars(request, principal):
    return _list_response(cars.list_available_cars(), _serialize_car)


@api_view("GET", public=True)
def available_cars_by_dates(request, principal):
    data = DateRangeForm(request.GET).validated_data()
    found = cars.list_available_cars_between(data["start_date"], data["end_date"])
    return _list_response(found, _serialize_car)


@api_view("GET", "PUT", "DELETE", public=True)
def car_detail(request, principal, car_id: int):
    if request.method == "GET":
        return JsonResponse(_serialize_car(cars.get_car(car_id)))

    if principal is None:
        return _unauthorized()
    if request.method == "DELETE":
        cars.soft_delete_car(car_id, principal)
        return HttpResponse(status=204)

    data = CarForm(_payload(request), partial=True).validated_data()
    car = cars.update_car(car_id, principal, **data)
    return JsonResponse(_serialize_car(car))


@api_view("PUT")
def car_availability(request, principal, car_id: int):
    data = AvailabilityForm(_payload(request)).validated_data()
    car = cars.update_availability(car_id, data["availability"], principal)
    return JsonResponse(_serialize_car(car))


# -----------------------------------------------------------------------------
# Customers
# -----------------------------------------------------------------------------


@api_view("POST")
def customer_collection(request, principal):
    data = CustomerForm(_payload(request)).validated_data()
    customer = customers.create_customer(principal, **data)
    return JsonResponse(_serialize_customer(customer), status=201)


# -----------------------------------------------------------------------------
# Reservations
# -----------------------------------------------------------------------------


@api_view("GET", "POST")
def reservation_collection(request, principal):
    if request.method == "GET":
        return _list_response(reservations.list_reservations(principal), _serialize_reservation)

    data = ReservationForm(_payload(request)).validated_data()
    if data["customer_id"] is None:
        if principal.customer_id is None:
            raise ValidationError("customer_id: This field is required.")
        data["customer_id"] = principal.customer_id
    reservation = reservations.create_reservation(principal, **data)
    return JsonResponse(_serialize_reservation(reservation), status=201)


@api_view("GET", "PATCH")
def reservation_detail(request, principal, reservation_id: int):
    if request.method == "GET":
        reservation = reservations.get_reservation(reservation_id, principal)
        return JsonResponse(_serialize_reservation(reservation))

    data = ReservationUpdateForm(_payload(request)).validated_data()
    reservation = reservations.update_reservation(reservation_id, principal, **data)
    return JsonResponse(_serialize_reservation(reservation))


@api_view("GET")
def customer_reservations(request, principal, customer_id: int):
    found = reservations.list_customer_reservations(customer_id, principal)
    return _list_response(found, _serialize_reservation)


@api_view("GET", public=True)
def reservation_availability(request, principal, car_id: int):
    data = DateRangeForm(request.GET).validated_data()
    available = reservations.check_availability(car_id, data["start_date"], data["end_date"])
    return JsonResponse({"car_id": car_id, "available": available})


@api_view("PATCH")
def confirm_reservation(request, principal, reservation_id: int):
    reservation = reservations.confirm_reservation(reservation_id, principal)
    return JsonResponse(_serialize_reservation(reservation))


@api_view("PATCH")
def cancel_reservation(request, principal, reservation_id: int):
    reservation = reservations.cancel_reservation(reservation_id, principal)
    return JsonResponse(_serialize_reservation(reservation))


@api_view("POST")
def convert_reservation(request, principal, reservation_id: int):
    handoff = reservations.convert_to_rental(reservation_id, principal)
    return JsonResponse(
        {
            "reservation_id": handoff.reservation_id,
            "car_id": handoff.car_id,
            "customer_id": handoff.customer_id,
            "pickup_date": _iso(handoff.pickup_date),
            "return_date": _iso(handoff.return_date),
            "pickup_location_id": handoff.pickup_location_id,
            "return_location_id": handoff.return_location_id,
            "advance_payment": handoff.advance_payment,
        }
    )


# -----------------------------------------------------------------------------
# Rentals
# -----------------------------------------------------------------------------


@api_view("GET")
def rental_collection(request, principal):
    return _list_response(rentals.list_rentals(principal), _serialize_rental)


@api_view("POST")
def rental_from_reservation(request, principal, reservation_id: int):
    rental = rentals.create_rental_from_reservation(reservation_id, principal)
    return JsonResponse(_serialize_rental(rental), status=201)


@api_view("POST")
def direct_rental(request, principal):
    data = DirectRentalForm(_payload(request)).validated_data()
    rental = rentals.create_direct_rental(principal, **data)
    return JsonResponse(_serialize_rental(rental), status=201)


@api_view("GET", "DELETE")
def rental_detail(request, principal, rental_id: int):
    if request.method == "DELETE":
        rentals.delete_rental(rental_id, principal)
        return HttpResponse(status=204)
    return JsonResponse(_serialize_rental(rentals.get_rental(rental_id, principal)))


@api_view("GET")
def customer_rentals(request, principal, customer_id: int):
    return _list_response(rentals.list_customer_rentals(customer_id, principal), _serialize_rental)


@api_view("PATCH")
def complete_rental(request, principal, rental_id: int):
    data = CompleteRentalForm(_payload(request)).validated_data()
    rental = rentals.complete_rental(
        rental_id,
        data["actual_return_date"],
        principal,
        final_mileage=data.get("final_mileage"),
    )
    return JsonResponse(_serialize_rental(rental))


# -----------------------------------------------------------------------------
# Payments
# -----------------------------------------------------------------------------


@api_view("GET", "POST")
def rental_payments(request, principal, rental_id: int):
    if request.method == "GET":
        return _list_response(payments.list_rental_payments(rental_id, principal), _serialize_payment)

    data = PaymentForm(_payload(request)).validated_data()
    payment = payments.process_payment(principal, rental_id=rental_id, **data)
    return JsonResponse(_serialize_payment(payment), status=201)


@api_view("PATCH")
def payment_status(request, principal, payment_id: int):
    data = PaymentStatusForm(_payload(request)).validated_data()
    payment = payments.update_payment_status(payment_id, data["status"], principal)
    return JsonResponse(_serialize_payment(payment))


@api_view("POST")
def refund_payment(request, principal, payment_id: int):
    data = RefundForm(_payload(request)).validated_data()
    payment = payments.refund_payment(payment_id, data["amount"], data["reason"], principal)
    return JsonResponse(_serialize_payment(payment))


# -----------------------------------------------------------------------------
# Insurance
# -----------------------------------------------------------------------------


@api_view("GET", "POST")
def insurance_collection(request, principal):
    if request.method == "GET":
        return _list_response(insurance.list_insurances(), _serialize_insurance)

    data = InsuranceForm(_payload(request)).validated_data()
    policy = insurance.create_insurance(principal, **data)
    return JsonResponse(_serialize_insurance(policy), status=201)


@api_view("GET")
def active_insurance(request, principal):
    return _list_response(insurance.list_active_insurances(), _serialize_insurance)


@api_view("GET")
def car_insurance(request, principal, car_id: int):
    return _list_response(insurance.list_car_insurances(car_id), _serialize_insurance)


@api_view("GET", "PATCH", "DELETE")
def insurance_detail(request, principal, insurance_id: int):
    if request.method == "GET":
        return JsonResponse(_serialize_insurance(insurance.get_insurance(insurance_id)))
    if request.method == "DELETE":
        insurance.delete_insurance(insurance_id, principal)
        return HttpResponse(status=204)

    data = InsuranceUpdateForm(_payload(request)).validated_data()
    policy = insurance.update_insurance(insurance_id, principal, **data)
    return JsonResponse(_serialize_insurance(policy))


@api_view("POST")
def renew_insurance(request, principal, insurance_id: int):
    data = RenewInsuranceForm(_payload(request)).validated_data()
    policy = insurance.renew_insurance(
        insurance_id,
        data["new_end_date"],
        principal,
        new_premium=data.get("new_premium"),
    )
    return JsonResponse(_serialize_insurance(policy))


# -----------------------------------------------------------------------------
# Maintenance
# -----------------------------------------------------------------------------


@api_view("GET", "POST")
def maintenance_collection(request, principal):
    if request.method == "GET":
        return _list_response(maintenance.list_maintenance(principal), _serialize_maintenance)

    data = MaintenanceForm(_payload(request)).validated_data()
    job = maintenance.schedule_maintenance(principal, **data)
    return JsonResponse(_serialize_maintenance(job), status=201)


@api_view("GET")
def car_maintenance(request, principal, car_id: int):
    return _list_response(maintenance.list_car_maintenance(car_id, principal), _serialize_maintenance)


@api_view("GET", "PATCH", "DELETE")
def maintenance_detail(request, principal, maintenance_id: int):
    if request.method == "GET":
        return JsonResponse(_serialize_maintenance(maintenance.get_maintenance(maintenance_id, principal)))
    if request.method == "DELETE":
        maintenance.delete_maintenance(maintenance_id, principal)
        return HttpResponse(status=204)

    data = MaintenanceUpdateForm(_payload(request)).validated_data()
    job = maintenance.update_maintenance(maintenance_id, principal, **data)
    return JsonResponse(_serialize_maintenance(job))


@api_view("PATCH")
def maintenance_status(request, principal, maintenance_id: int):
    data = MaintenanceStatusForm(_payload(request)).validated_data()
    job = maintenance.update_maintenance_status(maintenance_id, data["status"], principal)
    return JsonResponse(_serialize_maintenance(job))


@api_view("PATCH")
def complete_maintenance(request, principal, maintenance_id: int):
    data = CompleteMaintenanceForm(_payload(request)).validated_data()
    job = maintenance.complete_maintenance(maintenance_id, principal, **data)
    return JsonResponse(_serialize_maintenance(job))
