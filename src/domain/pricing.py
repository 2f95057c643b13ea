"""
Delivery & Order Pricing
========================

Formula
-------
Delivery charge = Base_Charge + Total_KM x Price_Per_KM
Order total     = sum(line_price x qty) + Delivery charge

* ``line_price`` is the offer price when the product has one, else the
  original price, else 0.
* No free-delivery waiver is applied here; the threshold travels with the
  settings but the backend owns that decision.

Complexity: O(1) per charge, O(N) per order total.
"""

from __future__ import annotations

from typing import Iterable

from .entities import CartLineItem, CartProduct, DeliverySettings


class DeliveryPricing:
    """Charge calculation shared by the single- and two-store paths."""

    def __init__(self, base_charge: float = 0.0, price_per_km: float = 0.0):
        self.base_charge = base_charge
        self.price_per_km = price_per_km

    @classmethod
    def from_settings(cls, settings: DeliverySettings) -> "DeliveryPricing":
        return cls(settings.base_charge, settings.price_per_km)

    def charge(self, total_km: float) -> float:
        return self.base_charge + total_km * self.price_per_km


def line_price(product: CartProduct) -> float:
    if product.offer_price is not None:
        return product.offer_price
    if product.original_price is not None:
        return product.original_price
    return 0.0


def items_total(cart_items: Iterable[CartLineItem]) -> float:
    return sum(
        (line_price(item.product) * item.qty for item in cart_items), 0.0
    )


def order_total(cart_items: Iterable[CartLineItem], charge: float) -> float:
    return items_total(cart_items) + charge
