"""
Storefront REST API client
==========================

GET  /user/delivery-settings       -- per-km price, base charge, store list
GET  /user/geocode?q=              -- address -> coordinates
GET  /user/reverse-geocode?lat=&lon= -- coordinates -> address
POST /user/checkout                -- place the order

The customer's bearer token is forwarded on every call; this service
holds no credentials of its own.  Transport and HTTP errors are logged
and re-raised as ``UpstreamError``.  Nothing here retries.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from src.config import settings
from src.domain.entities import (
    Coordinate,
    DeliverySettings,
    GeocodedAddress,
    StoreLocation,
)

logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    """A call to the storefront backend failed or returned garbage."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StorefrontClient:
    """Async client for the storefront backend's ``/user`` endpoints."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        http: httpx.AsyncClient | None = None,
    ):
        self.http = http or httpx.AsyncClient(
            base_url=(base_url or settings.storefront_api_url).rstrip("/"),
            timeout=timeout or settings.storefront_api_timeout_seconds,
            headers={"Content-Type": "application/json"},
        )

    async def aclose(self) -> None:
        await self.http.aclose()

    # ── Endpoints ─────────────────────────────────────────────────────

    async def get_delivery_settings(
        self, token: str | None = None
    ) -> DeliverySettings:
        data = await self._request("GET", "/user/delivery-settings", token=token)
        try:
            stores = tuple(
                StoreLocation(
                    name=str(s["name"]),
                    latitude=float(s["latitude"]),
                    longitude=float(s["longitude"]),
                    is_active=bool(s.get("isActive", False)),
                )
                for s in data.get("storeLocations") or []
            )
            return DeliverySettings(
                price_per_km=float(data.get("pricePerKm") or 0),
                base_charge=float(data.get("baseCharge") or 0),
                free_delivery_threshold=float(
                    data.get("freeDeliveryThreshold") or 0
                ),
                store_locations=stores,
            )
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise UpstreamError(f"Malformed delivery settings: {exc}") from exc

    async def geocode(self, query: str, token: str | None = None) -> Coordinate:
        data = await self._request(
            "GET", "/user/geocode", params={"q": query}, token=token
        )
        try:
            return Coordinate(
                latitude=float(data["latitude"]),
                longitude=float(data["longitude"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise UpstreamError(f"Could not geocode address: {query!r}") from exc

    async def reverse_geocode(
        self, lat: float, lon: float, token: str | None = None
    ) -> GeocodedAddress:
        data = await self._request(
            "GET",
            "/user/reverse-geocode",
            params={"lat": lat, "lon": lon},
            token=token,
        )
        if not isinstance(data, dict):
            raise UpstreamError("Malformed reverse-geocode response")
        label = (
            data.get("displayName")
            or data.get("formattedAddress")
            or data.get("address")
            or ""
        )
        return GeocodedAddress(
            latitude=lat,
            longitude=lon,
            city=data.get("city") or "",
            postal_code=data.get("postalCode") or "",
            label=str(label),
        )

    async def place_order(
        self, payload: dict[str, Any], token: str | None = None
    ) -> dict[str, Any]:
        data = await self._request("POST", "/user/checkout", json=payload, token=token)
        return data if isinstance(data, dict) else {}

    # ── Internals ─────────────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        *,
        token: str | None = None,
        **kwargs: Any,
    ) -> Any:
        headers = {"Authorization": f"Bearer {token}"} if token else None
        try:
            resp = await self.http.request(method, path, headers=headers, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Storefront API error response: status=%d url=%s body=%s",
                exc.response.status_code,
                exc.request.url,
                exc.response.text[:500],
            )
            raise UpstreamError(
                f"{method} {path} failed with {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.RequestError as exc:
            logger.error(
                "Storefront API no response: url=%s error=%s", exc.request.url, exc
            )
            raise UpstreamError(f"{method} {path} got no response") from exc

        try:
            return resp.json()
        except ValueError as exc:
            logger.error("Storefront API returned non-JSON body for %s", path)
            raise UpstreamError(f"{method} {path} returned non-JSON body") from exc
