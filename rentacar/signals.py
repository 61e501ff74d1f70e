from __future__ import annotations

from django.contrib.auth.models import Group, Permission
from django.db.models.signals import post_migrate
from django.dispatch import receiver

from .models import Car, Customer, Insurance, Location, Maintenance, Payment, Rental, Reservation
from .permissions import ADMIN, CUSTOMER, EMPLOYEE, MANAGER

MANAGED_MODELS = (Location, Customer, Car, Reservation, Rental, Payment, Insurance, Maintenance)

# Customers act only through the API and hold no admin permissions.
ROLE_ACTIONS = {
    CUSTOMER: (),
    EMPLOYEE: ("view", "add", "change"),
    MANAGER: ("view", "add", "change"),
    ADMIN: ("view", "add", "change", "delete"),
}


def _codenames(actions) -> list[str]:
    return [f"{action}_{model._meta.model_name}" for model in MANAGED_MODELS for action in actions]


@receiver(post_migrate)
def create_rentacar_role_groups(sender, **kwargs) -> None:
    if sender.name != "rentacar":
        return

    for role_name, actions in ROLE_ACTIONS.items():
        group, _ = Group.objects.get_or_create(name=role_name)
        group.permissions.set(
            Permission.objects.filter(
                content_type__app_label="rentacar",
                codename__in=_codenames(actions),
            )
        )
