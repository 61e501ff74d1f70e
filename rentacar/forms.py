"""
Forms for the rental API.

The API accepts JSON bodies; these plain Django forms parse and validate
them before the data reaches the services. Cross-entity rules (overlaps,
availability, ownership) stay in ``rentacar.services``.
"""

from __future__ import annotations

from django import forms
from django.core.exceptions import NON_FIELD_ERRORS

from .exceptions import ValidationError
from .models import Car, Insurance, Maintenance, Payment


class APIForm(forms.Form):
    """Form whose errors surface as a ``ValidationError``."""

    partial = False

    def __init__(self, *args, partial: bool | None = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        if partial is not None:
            self.partial = partial
        if self.partial:
            for field in self.fields.values():
                field.required = False

    def validated_data(self) -> dict:
        if not self.is_valid():
            name, errors = next(iter(self.errors.items()))
            prefix = "" if name == NON_FIELD_ERRORS else f"{name}: "
            raise ValidationError(f"{prefix}{errors[0]}")
        if self.partial:
            return {name: value for name, value in self.cleaned_data.items() if name in self.data}
        return dict(self.cleaned_data)


class DateRangeForm(APIForm):
    start_date = forms.DateTimeField()
    end_date = forms.DateTimeField()


class CarForm(APIForm):
    car_model = forms.CharField(max_length=100)
    manufacturer = forms.CharField(max_length=100)
    year = forms.IntegerField()
    color = forms.CharField(max_length=50)
    car_type = forms.ChoiceField(choices=Car.TYPE_CHOICES)
    fuel_type = forms.ChoiceField(choices=Car.FUEL_CHOICES)
    rental_rate = forms.DecimalField(max_digits=10, decimal_places=2)
    license_plate = forms.CharField(max_length=20)
    current_location_id = forms.IntegerField(min_value=1, required=False)
    mileage = forms.IntegerField(min_value=0, required=False)
    transmission = forms.CharField(max_length=50, required=False)
    seats = forms.IntegerField(min_value=1, required=False)

    def validated_data(self) -> dict:
        data = super().validated_data()
        if not self.partial:
            # Optional columns fall back to the model defaults.
            data = {name: value for name, value in data.items() if value not in (None, "")}
        return data


class AvailabilityForm(APIForm):
    availability = forms.ChoiceField(choices=Car.AVAILABILITY_CHOICES)


class CustomerForm(APIForm):
    first_name = forms.CharField(max_length=100)
    last_name = forms.CharField(max_length=100)
    phone_number = forms.CharField(max_length=20)
    address = forms.CharField(max_length=255, required=False)
    driver_license = forms.CharField(max_length=20, required=False)


class ReservationForm(APIForm):
    car_id = forms.IntegerField(min_value=1)
    # Customers may omit it; the view fills in their own id.
    customer_id = forms.IntegerField(min_value=1, required=False)
    pickup_date = forms.DateTimeField()
    return_date = forms.DateTimeField()
    pickup_location_id = forms.IntegerField(min_value=1)
    return_location_id = forms.IntegerField(min_value=1)
    advance_payment = forms.DecimalField(max_digits=10, decimal_places=2, required=False)


class ReservationUpdateForm(APIForm):
    partial = True

    pickup_location_id = forms.IntegerField(min_value=1)
    return_location_id = forms.IntegerField(min_value=1)
    advance_payment = forms.DecimalField(max_digits=10, decimal_places=2)


class DirectRentalForm(APIForm):
    car_id = forms.IntegerField(min_value=1)
    customer_id = forms.IntegerField(min_value=1)
    rental_start_date = forms.DateTimeField()
    rental_end_date = forms.DateTimeField()
    pickup_location_id = forms.IntegerField(min_value=1)
    return_location_id = forms.IntegerField(min_value=1)


class CompleteRentalForm(APIForm):
    actual_return_date = forms.DateTimeField()
    final_mileage = forms.IntegerField(min_value=0, required=False)


class PaymentForm(APIForm):
    amount = forms.DecimalField(max_digits=10, decimal_places=2)
    payment_method = forms.ChoiceField(choices=Payment.METHOD_CHOICES, required=False)
    transaction_id = forms.CharField(max_length=100, required=False)

    def clean_payment_method(self):
        return self.cleaned_data.get("payment_method") or "cash"


class PaymentStatusForm(APIForm):
    status = forms.ChoiceField(choices=Payment.STATUS_CHOICES)


class RefundForm(APIForm):
    amount = forms.DecimalField(max_digits=10, decimal_places=2)
    reason = forms.CharField(max_length=255)


class InsuranceForm(APIForm):
    car_id = forms.IntegerField(min_value=1)
    insurance_provider = forms.CharField(max_length=255)
    policy_number = forms.CharField(max_length=50)
    start_date = forms.DateTimeField()
    end_date = forms.DateTimeField()
    premium_amount = forms.DecimalField(max_digits=10, decimal_places=2)
    coverage_details = forms.CharField(required=False)


class InsuranceUpdateForm(APIForm):
    partial = True

    insurance_provider = forms.CharField(max_length=255)
    start_date = forms.DateTimeField()
    end_date = forms.DateTimeField()
    premium_amount = forms.DecimalField(max_digits=10, decimal_places=2)
    coverage_details = forms.CharField()
    status = forms.ChoiceField(choices=Insurance.STATUS_CHOICES)


class RenewInsuranceForm(APIForm):
    new_end_date = forms.DateTimeField()
    new_premium = forms.DecimalField(max_digits=10, decimal_places=2, required=False)


class MaintenanceForm(APIForm):
    car_id = forms.IntegerField(min_value=1)
    maintenance_type = forms.ChoiceField(choices=Maintenance.TYPE_CHOICES)
    maintenance_date = forms.DateTimeField()
    cost = forms.DecimalField(max_digits=10, decimal_places=2)
    description = forms.CharField(max_length=255)
    notes = forms.CharField(required=False)


class MaintenanceUpdateForm(APIForm):
    partial = True

    maintenance_type = forms.ChoiceField(choices=Maintenance.TYPE_CHOICES)
    maintenance_date = forms.DateTimeField()
    cost = forms.DecimalField(max_digits=10, decimal_places=2)
    description = forms.CharField(max_length=255)
    notes = forms.CharField()


class MaintenanceStatusForm(APIForm):
    status = forms.ChoiceField(choices=Maintenance.STATUS_CHOICES)


class CompleteMaintenanceForm(APIForm):
    partial = True

    actual_cost = forms.DecimalField(max_digits=10, decimal_places=2)
    notes = forms.CharField()
