"""
Admin / observability endpoints
===============================

GET /api/v1/admin/order-submissions -- recent order placements, newest first
GET /api/v1/admin/health            -- simple health check
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db
from src.api.middleware import limiter
from src.api.schemas import HealthResponse, OrderSubmissionResponse
from src.config import settings
from src.domain.enums import SubmissionStatus
from src.infrastructure.repositories import OrderSubmissionRepository

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/order-submissions",
    response_model=list[OrderSubmissionResponse],
    summary="List recent order submissions",
)
@limiter.limit(settings.rate_limit)
async def list_order_submissions(
    request: Request,
    status: Optional[SubmissionStatus] = None,
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    repo = OrderSubmissionRepository(db)
    submissions = await repo.list_recent(status=status, limit=limit)
    return [repo.to_entity(s) for s in submissions]


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
