"""
Store Resolver
==============

Ranks the active stores by great-circle distance from the customer.

* Inactive stores never take part, even when they are geometrically closest.
* Ties keep the order in which the stores were configured (``sorted`` is
  stable), so the same input always yields the same nearest store.

Complexity: O(S log S) for S configured stores.
"""

from __future__ import annotations

from typing import Iterable

from .distance import haversine_km
from .entities import RankedStore, StoreLocation


def rank_stores(
    user_lat: float, user_lon: float, stores: Iterable[StoreLocation]
) -> list[RankedStore]:
    """Return active stores nearest-first.  Empty when none is active."""
    ranked = [
        RankedStore(
            store=store,
            distance_km=haversine_km(
                user_lat, user_lon, store.latitude, store.longitude
            ),
        )
        for store in stores
        if store.is_active
    ]
    return sorted(ranked, key=lambda r: r.distance_km)
