"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from src.domain.entities import (
    CartLineItem,
    CartProduct,
    DeliveryResult,
    DeliverySettings,
    InventoryRecord,
    ShippingDetails,
    VariantStock,
)
from src.domain.enums import SubmissionStatus


# ── Requests ──────────────────────────────────────────────────────────


class VariantStockIn(BaseModel):
    variant_index: int = Field(0, alias="variantIndex", ge=0)
    quantity: int = Field(0, ge=0)

    model_config = {"populate_by_name": True}


class InventoryRecordIn(BaseModel):
    location: str = Field(
        ..., validation_alias=AliasChoices("location", "locationName")
    )
    stock: list[VariantStockIn] = []


class CartProductIn(BaseModel):
    id: str = Field(..., alias="_id")
    name: str
    inventory: list[InventoryRecordIn] = []
    offer_price: Optional[float] = Field(None, alias="offerPrice", ge=0)
    original_price: Optional[float] = Field(None, alias="originalPrice", ge=0)
    images: list[str] = []

    model_config = {"populate_by_name": True}


class CartLineItemIn(BaseModel):
    product: CartProductIn
    qty: int = Field(1, ge=1)
    selected_variant_index: int = Field(0, alias="selectedVariantIndex", ge=0)

    model_config = {"populate_by_name": True}

    def to_domain(self) -> CartLineItem:
        p = self.product
        return CartLineItem(
            product=CartProduct(
                id=p.id,
                name=p.name,
                inventory=tuple(
                    InventoryRecord(
                        location=rec.location,
                        stock=tuple(
                            VariantStock(s.variant_index, s.quantity)
                            for s in rec.stock
                        ),
                    )
                    for rec in p.inventory
                ),
                offer_price=p.offer_price,
                original_price=p.original_price,
                images=tuple(p.images),
            ),
            qty=self.qty,
            variant_index=self.selected_variant_index,
        )


class QuoteRequest(BaseModel):
    """Coordinates from device geolocation, or a typed address to geocode."""

    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    address: Optional[str] = Field(None, max_length=500)
    items: list[CartLineItemIn] = []
    allow_multi_store: bool = Field(
        False,
        description="Customer accepted delivery from two stores at a higher charge.",
    )


class OrderCreateRequest(BaseModel):
    full_name: str = Field(..., max_length=120)
    phone: str = Field(..., max_length=32)
    address_line1: str = Field(..., max_length=255)
    address_line2: str = Field("", max_length=255)
    city: str = Field(..., max_length=120)
    postal_code: str = Field("", max_length=20)
    country: Optional[str] = Field(None, max_length=64)
    idempotency_key: Optional[str] = Field(
        None,
        max_length=64,
        description="Client-generated UUID to prevent double orders on retries.",
    )

    @field_validator("full_name", "phone", "address_line1", "city")
    @classmethod
    def _required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    def to_domain(self) -> ShippingDetails:
        return ShippingDetails(
            full_name=self.full_name,
            phone=self.phone,
            address_line1=self.address_line1.strip(),
            address_line2=self.address_line2.strip(),
            city=self.city,
            postal_code=self.postal_code.strip(),
            country=(self.country or "").strip(),
        )


# ── Responses ─────────────────────────────────────────────────────────


class StoreLocationResponse(BaseModel):
    name: str
    latitude: float
    longitude: float
    is_active: bool


class DeliveryResultResponse(BaseModel):
    stores: list[str]
    total_km: float
    charge: float

    @classmethod
    def from_domain(cls, result: DeliveryResult) -> "DeliveryResultResponse":
        return cls(
            stores=list(result.stores),
            total_km=result.total_km,
            charge=result.charge,
        )


class QuoteResponse(BaseModel):
    delivery: DeliveryResultResponse
    latitude: float
    longitude: float
    items_total: float
    order_total: float
    unservable: list[str] = []


class SessionResponse(BaseModel):
    id: str
    price_per_km: float
    base_charge: float
    free_delivery_threshold: float
    stores: list[StoreLocationResponse]
    quote: Optional[DeliveryResultResponse] = None

    @classmethod
    def build(
        cls,
        session_id: str,
        settings: DeliverySettings,
        quote: Optional[DeliveryResult] = None,
    ) -> "SessionResponse":
        return cls(
            id=session_id,
            price_per_km=settings.price_per_km,
            base_charge=settings.base_charge,
            free_delivery_threshold=settings.free_delivery_threshold,
            stores=[
                StoreLocationResponse(
                    name=s.name,
                    latitude=s.latitude,
                    longitude=s.longitude,
                    is_active=s.is_active,
                )
                for s in settings.store_locations
            ],
            quote=DeliveryResultResponse.from_domain(quote) if quote else None,
        )


class OrderSubmissionResponse(BaseModel):
    id: int
    session_id: str
    idempotency_key: Optional[str] = None
    status: SubmissionStatus
    nearest_store: Optional[str] = None
    shipping_price: Optional[float] = None
    total_price: Optional[float] = None
    order_id: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CoordinateResponse(BaseModel):
    latitude: float
    longitude: float


class AddressResponse(BaseModel):
    latitude: float
    longitude: float
    city: str
    postal_code: str
    label: str

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
