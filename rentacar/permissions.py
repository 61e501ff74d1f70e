"""
Role based access rules.

Services receive a :class:`Principal` and call :func:`authorize` once per
operation instead of branching on the role inline.
"""

from __future__ import annotations

from dataclasses import dataclass

from .exceptions import ForbiddenError

CUSTOMER = "customer"
EMPLOYEE = "employee"
MANAGER = "manager"
ADMIN = "admin"

ROLES = (CUSTOMER, EMPLOYEE, MANAGER, ADMIN)
STAFF_ROLES = frozenset({EMPLOYEE, MANAGER, ADMIN})

# Checked in order, so a user in several groups gets the strongest role.
_GROUP_PRECEDENCE = (ADMIN, MANAGER, EMPLOYEE)


@dataclass(frozen=True)
class Principal:
    user_id: int
    role: str
    customer_id: int | None = None

    @property
    def is_staff(self) -> bool:
        return can_act_as_staff(self.role)


def can_act_as_staff(role: str) -> bool:
    return role in STAFF_ROLES


def is_owner(principal: Principal, customer_id: int | None) -> bool:
    return principal.customer_id is not None and principal.customer_id == customer_id


def authorize(
    principal: Principal,
    *,
    owner_id: int | None = None,
    roles: frozenset[str] | tuple[str, ...] = STAFF_ROLES,
    allow_owner: bool = False,
    message: str | None = None,
) -> None:
    """Raise ForbiddenError unless the principal holds one of ``roles``
    or, when ``allow_owner`` is set, owns the resource."""
    if principal.role in roles:
        return
    if allow_owner and is_owner(principal, owner_id):
        return
    raise ForbiddenError(message)


def principal_from_user(user) -> Principal:
    """Build the principal for an authenticated Django user."""
    if user.is_superuser:
        role = ADMIN
    else:
        names = set(user.groups.values_list("name", flat=True))
        role = next((name for name in _GROUP_PRECEDENCE if name in names), CUSTOMER)

    customer = getattr(user, "customer", None)
    return Principal(
        user_id=user.pk,
        role=role,
        customer_id=customer.pk if customer is not None else None,
    )
