"""
Domain entities for checkout delivery.

Patterns used
-------------
- Frozen value objects for everything the delivery calculator reads, so a
  quote can be recomputed from the same inputs and compared bit-for-bit.
- **State Pattern** on ``OrderSubmission``: enforces valid lifecycle
  transitions (PENDING -> PLACED | FAILED, FAILED -> PENDING on retry).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .enums import DeliveryFailure, SubmissionStatus, SUBMISSION_TRANSITIONS


class InvalidStateTransition(Exception):
    """Raised when a submission status change violates the state machine."""


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class StoreLocation:
    name: str
    latitude: float
    longitude: float
    is_active: bool = True


@dataclass(frozen=True)
class RankedStore:
    store: StoreLocation
    distance_km: float

    @property
    def name(self) -> str:
        return self.store.name


@dataclass(frozen=True)
class DeliverySettings:
    """Delivery pricing configuration, fetched once per checkout session.

    ``free_delivery_threshold`` is carried through for display only; the
    calculator never waives the charge.
    """

    price_per_km: float = 0.0
    base_charge: float = 0.0
    free_delivery_threshold: float = 0.0
    store_locations: tuple[StoreLocation, ...] = ()


@dataclass(frozen=True)
class VariantStock:
    variant_index: int
    quantity: int


@dataclass(frozen=True)
class InventoryRecord:
    location: str
    stock: tuple[VariantStock, ...] = ()


@dataclass(frozen=True)
class CartProduct:
    id: str
    name: str
    inventory: tuple[InventoryRecord, ...] = ()
    offer_price: Optional[float] = None
    original_price: Optional[float] = None
    images: tuple[str, ...] = ()


@dataclass(frozen=True)
class CartLineItem:
    product: CartProduct
    qty: int = 1
    variant_index: int = 0


@dataclass(frozen=True)
class ShippingDetails:
    """Contact and address lines entered on the checkout form."""

    full_name: str
    phone: str
    address_line1: str
    city: str
    address_line2: str = ""
    postal_code: str = ""
    country: str = ""

    @property
    def street_address(self) -> str:
        parts = [self.address_line1]
        if self.address_line2:
            parts.append(self.address_line2)
        return ", ".join(parts)


@dataclass(frozen=True)
class GeocodedAddress:
    latitude: float
    longitude: float
    city: str = ""
    postal_code: str = ""
    label: str = ""


# ── Calculator results ────────────────────────────────────────────────


@dataclass
class StorePartition:
    servable: list[str] = field(default_factory=list)
    unservable: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class DeliveryResult:
    """Stores involved (nearest first), route length and charge."""

    stores: tuple[str, ...]
    total_km: float
    charge: float

    @property
    def nearest_store(self) -> str:
        return self.stores[0]


@dataclass(frozen=True)
class DeliveryOutcome:
    """Either a ``result`` or a ``failure`` reason, never both.

    ``proposal`` is set when a two-store route was computed but not
    confirmed, so the caller can show the higher charge before asking
    again.  ``unservable`` lists the products the nearest store lacks.
    """

    result: Optional[DeliveryResult] = None
    failure: Optional[DeliveryFailure] = None
    proposal: Optional[DeliveryResult] = None
    unservable: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.result is not None


# ── Checkout session state ────────────────────────────────────────────


@dataclass(frozen=True)
class CheckoutQuote:
    coordinate: Coordinate
    items: tuple[CartLineItem, ...]
    result: DeliveryResult


@dataclass
class CheckoutSession:
    id: str
    settings: DeliverySettings
    quote: Optional[CheckoutQuote] = None


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class OrderSubmission:
    id: Optional[int] = None
    session_id: str = ""
    idempotency_key: Optional[str] = None
    status: SubmissionStatus = SubmissionStatus.PENDING
    nearest_store: Optional[str] = None
    shipping_price: Optional[float] = None
    total_price: Optional[float] = None
    order_id: Optional[str] = None
    created_at: Optional[datetime] = None

    def transition_to(self, new_status: SubmissionStatus) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        check_transition(self.status, new_status)
        self.status = new_status


def check_transition(
    current: SubmissionStatus, new_status: SubmissionStatus
) -> None:
    allowed = SUBMISSION_TRANSITIONS.get(current, set())
    if new_status not in allowed:
        raise InvalidStateTransition(
            f"Cannot transition from {current.value} to {new_status.value}"
        )


def normalize_location(name: str) -> str:
    return name.strip().lower()
