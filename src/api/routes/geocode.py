"""
Address helpers for the checkout form
=====================================

GET /api/v1/geocode?q=...              -- typed address -> coordinates
GET /api/v1/geocode/reverse?lat=&lon=  -- map pin -> city / postal code
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from src.api.dependencies import get_bearer_token, get_storefront_client
from src.api.middleware import limiter
from src.api.schemas import AddressResponse, CoordinateResponse, ErrorResponse
from src.config import settings
from src.infrastructure.storefront_client import StorefrontClient

router = APIRouter(prefix="/geocode", tags=["geocode"])


@router.get(
    "",
    response_model=CoordinateResponse,
    summary="Geocode an address",
    responses={502: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def geocode(
    request: Request,
    q: str = Query(..., min_length=3, max_length=500),
    client: StorefrontClient = Depends(get_storefront_client),
    token: Optional[str] = Depends(get_bearer_token),
):
    coordinate = await client.geocode(q, token)
    return CoordinateResponse(
        latitude=coordinate.latitude, longitude=coordinate.longitude
    )


@router.get(
    "/reverse",
    response_model=AddressResponse,
    summary="Reverse-geocode a map location",
    responses={502: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def reverse_geocode(
    request: Request,
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    client: StorefrontClient = Depends(get_storefront_client),
    token: Optional[str] = Depends(get_bearer_token),
):
    return await client.reverse_geocode(lat, lon, token)
