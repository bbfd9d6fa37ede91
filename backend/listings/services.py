from __future__ import annotations

from dataclasses import dataclass

from core.exceptions import NotFoundError
from listings.models import StorageLocation


@dataclass(frozen=True)
class LocationRef:
    id: int
    owner_id: int


def get_location(location_id, *, for_update: bool = False) -> LocationRef:
    """
    Resolve a storage location to its id and owning lender.

    With ``for_update`` the row stays locked until the surrounding transaction
    ends, which serializes booking writes for that location.
    """
    queryset = StorageLocation.objects.filter(pk=location_id)
    if for_update:
        queryset = queryset.select_for_update()
    row = queryset.values("id", "owner_id").first()
    if row is None:
        raise NotFoundError(f"Storage location {location_id} not found.")
    return LocationRef(id=row["id"], owner_id=row["owner_id"])
