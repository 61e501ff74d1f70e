"""
Django admin for the rental system.

Admin edits bypass the service layer, so derived columns (rental totals,
late fees) are read-only here.
"""

from __future__ import annotations

from django.contrib import admin

from .models import Car, Customer, Insurance, Location, Maintenance, Payment, Rental, Reservation


class ReservationInline(admin.TabularInline):
    model = Reservation
    extra = 0
    fk_name = "car"
    fields = ("customer", "pickup_date", "return_date", "status", "advance_payment")


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    fields = ("amount", "payment_method", "status", "transaction_id", "payment_date")


@admin.register(Location)
class LocationAdmin(admin.ModelAdmin):
    list_display = ("name", "address", "contact_number", "is_active")
    search_fields = ("name", "address")
    list_filter = ("is_active",)


@admin.register(Car)
class CarAdmin(admin.ModelAdmin):
    list_display = ("manufacturer", "car_model", "year", "license_plate", "availability", "rental_rate", "updated_at")
    search_fields = ("manufacturer", "car_model", "license_plate")
    list_filter = ("availability", "car_type", "fuel_type", "is_active")
    inlines = (ReservationInline,)


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("first_name", "last_name", "phone_number", "driver_license", "updated_at")
    search_fields = ("first_name", "last_name", "phone_number", "driver_license")


@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
    list_display = ("customer", "car", "pickup_date", "return_date", "status", "updated_at")
    list_filter = ("status", "pickup_date")
    search_fields = ("customer__first_name", "customer__last_name", "car__license_plate")


@admin.register(Rental)
class RentalAdmin(admin.ModelAdmin):
    list_display = ("customer", "car", "rental_start_date", "rental_end_date", "status", "total_amount", "late_fee")
    list_filter = ("status", "rental_start_date")
    search_fields = ("customer__first_name", "customer__last_name", "car__license_plate")
    readonly_fields = ("total_amount", "late_fee")
    inlines = (PaymentInline,)


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("rental", "amount", "payment_method", "status", "payment_date")
    list_filter = ("status", "payment_method")
    search_fields = ("transaction_id",)


@admin.register(Insurance)
class InsuranceAdmin(admin.ModelAdmin):
    list_display = ("policy_number", "car", "insurance_provider", "start_date", "end_date", "status")
    list_filter = ("status", "insurance_provider")
    search_fields = ("policy_number", "insurance_provider", "car__license_plate")


@admin.register(Maintenance)
class MaintenanceAdmin(admin.ModelAdmin):
    list_display = ("car", "maintenance_type", "maintenance_date", "status", "cost", "completed_date")
    list_filter = ("status", "maintenance_type")
    search_fields = ("car__license_plate", "description")
    readonly_fields = ("completed_date",)
