from __future__ import annotations

from django.urls import path
from . import views

app_name = "rentacar"

urlpatterns = [
    path("cars/", views.car_collection, name="car_list"),
    path("cars/available/", views.available_cars, name="car_available"),
    path("cars/available-by-dates/", views.available_cars_by_dates, name="car_available_by_dates"),
    path("cars/<int:car_id>/", views.car_detail, name="car_detail"),
    path("cars/<int:car_id>/availability/", views.car_availability, name="car_availability"),

    path("customers/", views.customer_collection, name="customer_list"),

    path("reservations/", views.reservation_collection, name="reservation_list"),
    path("reservations/<int:reservation_id>/", views.reservation_detail, name="reservation_detail"),
    path("reservations/customer/<int:customer_id>/", views.customer_reservations, name="customer_reservations"),
    path(
        "reservations/availability/<int:car_id>/",
        views.reservation_availability,
        name="reservation_availability",
    ),
    path("reservations/<int:reservation_id>/confirm/", views.confirm_reservation, name="reservation_confirm"),
    path("reservations/<int:reservation_id>/cancel/", views.cancel_reservation, name="reservation_cancel"),
    path(
        "reservations/<int:reservation_id>/convert-to-rental/",
        views.convert_reservation,
        name="reservation_convert",
    ),

    path("rentals/", views.rental_collection, name="rental_list"),
    path(
        "rentals/from-reservation/<int:reservation_id>/",
        views.rental_from_reservation,
        name="rental_from_reservation",
    ),
    path("rentals/direct/", views.direct_rental, name="rental_direct"),
    path("rentals/<int:rental_id>/", views.rental_detail, name="rental_detail"),
    path("rentals/customer/<int:customer_id>/", views.customer_rentals, name="customer_rentals"),
    path("rentals/<int:rental_id>/complete/", views.complete_rental, name="rental_complete"),
    path("rentals/<int:rental_id>/payments/", views.rental_payments, name="rental_payments"),

    path("payments/<int:payment_id>/status/", views.payment_status, name="payment_status"),
    path("payments/<int:payment_id>/refund/", views.refund_payment, name="payment_refund"),

    path("insurance/", views.insurance_collection, name="insurance_list"),
    path("insurance/active/", views.active_insurance, name="insurance_active"),
    path("insurance/car/<int:car_id>/", views.car_insurance, name="car_insurance"),
    path("insurance/<int:insurance_id>/", views.insurance_detail, name="insurance_detail"),
    path("insurance/<int:insurance_id>/renew/", views.renew_insurance, name="insurance_renew"),

    path("maintenance/", views.maintenance_collection, name="maintenance_list"),
    path("maintenance/car/<int:car_id>/", views.car_maintenance, name="car_maintenance"),
    path("maintenance/<int:maintenance_id>/", views.maintenance_detail, name="maintenance_detail"),
    path("maintenance/<int:maintenance_id>/status/", views.maintenance_status, name="maintenance_status"),
    path(
        "maintenance/<int:maintenance_id>/complete/",
        views.complete_maintenance,
        name="maintenance_complete",
    ),
]
