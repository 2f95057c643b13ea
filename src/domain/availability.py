"""
Product-Store Availability Mapper
=================================

Splits a cart into the products a store can serve and the ones it cannot.

A product is *servable* at a store when its inventory carries any record
for that store's location.  The check is presence-only: a record whose
variant quantities are all zero still counts.  Location names compare
case-insensitively.
"""

from __future__ import annotations

from typing import Iterable

from .entities import CartLineItem, StorePartition, normalize_location


def stocks_location(item: CartLineItem, store_name: str) -> bool:
    key = normalize_location(store_name)
    return any(
        normalize_location(record.location) == key
        for record in item.product.inventory
    )


def partition_by_store(
    cart_items: Iterable[CartLineItem], store_name: str
) -> StorePartition:
    partition = StorePartition()
    for item in cart_items:
        if stocks_location(item, store_name):
            partition.servable.append(item.product.name)
        else:
            partition.unservable.append(item.product.name)
    return partition
