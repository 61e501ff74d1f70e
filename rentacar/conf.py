from __future__ import annotations

from typing import Any

from django.conf import settings

# Overridable through the RENTACAR dict in the Django settings module.
DEFAULTS: dict[str, Any] = {
    "LATE_FEE_PER_DAY": "50.00",
    "MIN_ADVANCE_HOURS": 1,
    "MAX_RENTAL_DAYS": 30,
    "CANCELLATION_WINDOW_HOURS": 24,
    "LOCK_TIMEOUT_MS": 5000,
}


def get_setting(name: str) -> Any:
    overrides = getattr(settings, "RENTACAR", {})
    return overrides.get(name, DEFAULTS[name])
