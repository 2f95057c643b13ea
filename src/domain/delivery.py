"""
Delivery Charge Calculator
==========================

1. **Rank**      -- active stores nearest-first from the customer.
2. **Partition** -- cart products the nearest store stocks vs. the rest.
3. **Route**     -- nearest store alone when it stocks everything,
   otherwise a relay through the second-nearest store, which needs the
   customer's consent because the charge goes up.

Relay distance
--------------
  total_km = d(customer, nearest) + d(nearest, second)

The courier picks up at the second store and hands over at the nearest
one, so the direct customer-to-second-store distance is never used.

Two-store ceiling
-----------------
At most ``MAX_STORES_PER_ORDER`` stores take part.  The second-nearest
store is used as-is; whether it actually stocks the missing products is
not checked.

Failures come back as a ``DeliveryOutcome`` with a ``DeliveryFailure``
reason rather than an exception.  The function is pure: identical inputs
(including the consent decision) give identical outcomes.

Complexity: O(S log S + N x R) for S stores, N cart lines, R inventory
records per product.
"""

from __future__ import annotations

from typing import Callable, Iterable, Optional, Union

from .availability import partition_by_store
from .distance import haversine_km
from .entities import (
    CartLineItem,
    DeliveryOutcome,
    DeliveryResult,
    DeliverySettings,
    StoreLocation,
)
from .enums import DeliveryFailure
from .pricing import DeliveryPricing
from .stores import rank_stores

MAX_STORES_PER_ORDER = 2

# Pre-supplied decision, or a callback shown the two-store proposal.
MultiStoreConsent = Union[bool, Callable[[DeliveryResult], bool]]


def calculate_delivery_charge(
    user_lat: Optional[float],
    user_lon: Optional[float],
    stores: Iterable[StoreLocation],
    cart_items: Iterable[CartLineItem],
    settings: DeliverySettings,
    allow_multi_store: MultiStoreConsent = False,
) -> DeliveryOutcome:
    if user_lat is None or user_lon is None:
        return DeliveryOutcome(failure=DeliveryFailure.MISSING_COORDINATES)

    ranked = rank_stores(user_lat, user_lon, stores)
    if not ranked:
        return DeliveryOutcome(failure=DeliveryFailure.NO_DELIVERABLE_STORE)

    pricing = DeliveryPricing.from_settings(settings)
    nearest = ranked[0]
    partition = partition_by_store(cart_items, nearest.name)

    if not partition.unservable:
        total_km = nearest.distance_km
        return DeliveryOutcome(
            result=DeliveryResult(
                stores=(nearest.name,),
                total_km=total_km,
                charge=pricing.charge(total_km),
            )
        )

    unservable = tuple(partition.unservable)
    if len(ranked) < MAX_STORES_PER_ORDER:
        return DeliveryOutcome(
            failure=DeliveryFailure.UNRESOLVABLE_ALLOCATION,
            unservable=unservable,
        )

    second = ranked[1]
    relay_km = haversine_km(
        nearest.store.latitude,
        nearest.store.longitude,
        second.store.latitude,
        second.store.longitude,
    )
    total_km = nearest.distance_km + relay_km
    proposal = DeliveryResult(
        stores=(nearest.name, second.name),
        total_km=total_km,
        charge=pricing.charge(total_km),
    )

    if not _consents(allow_multi_store, proposal):
        return DeliveryOutcome(
            failure=DeliveryFailure.UNCONFIRMED_MULTI_STORE,
            proposal=proposal,
            unservable=unservable,
        )
    return DeliveryOutcome(result=proposal, unservable=unservable)


def _consents(allow: MultiStoreConsent, proposal: DeliveryResult) -> bool:
    if callable(allow):
        return bool(allow(proposal))
    return bool(allow)
