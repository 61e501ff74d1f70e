from __future__ import annotations

from ..exceptions import NotFoundError
from ..models import Location


def get_location(location_id: int) -> Location:
    """Active location by id, ``NotFoundError`` otherwise."""
    location = Location.objects.filter(pk=location_id, is_active=True).first()
    if location is None:
        raise NotFoundError(f"Location with id {location_id} not found.")
    return location
