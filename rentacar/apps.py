from __future__ import annotations

from django.apps import AppConfig


class RentacarConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "rentacar"
    verbose_name = "Car rental"

    def ready(self) -> None:
        from . import signals  # noqa: F401
