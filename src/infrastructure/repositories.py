"""
Repository Pattern -- abstracts DB access so checkout logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import OrderSubmissionModel
from src.domain.entities import DeliveryResult, OrderSubmission, check_transition
from src.domain.enums import SubmissionStatus


class OrderSubmissionRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        *,
        session_id: str,
        result: DeliveryResult,
        total_price: float,
        idempotency_key: str | None = None,
    ) -> OrderSubmissionModel:
        submission = OrderSubmissionModel(
            session_id=session_id,
            idempotency_key=idempotency_key,
            status=SubmissionStatus.PENDING,
        )
        self._apply_quote(submission, result, total_price)
        self.session.add(submission)
        await self.session.flush()
        return submission

    async def get_by_id(self, submission_id: int) -> Optional[OrderSubmissionModel]:
        return await self.session.get(OrderSubmissionModel, submission_id)

    async def get_by_idempotency_key(
        self, session_id: str, key: str
    ) -> Optional[OrderSubmissionModel]:
        """Keys are scoped to the checkout session that sent them."""
        result = await self.session.execute(
            select(OrderSubmissionModel).where(
                OrderSubmissionModel.session_id == session_id,
                OrderSubmissionModel.idempotency_key == key,
            )
        )
        return result.scalar_one_or_none()

    async def list_recent(
        self, status: SubmissionStatus | None = None, limit: int = 50
    ) -> list[OrderSubmissionModel]:
        query = (
            select(OrderSubmissionModel)
            .order_by(OrderSubmissionModel.id.desc())
            .limit(limit)
        )
        if status:
            query = query.where(OrderSubmissionModel.status == status)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def retry(
        self,
        submission: OrderSubmissionModel,
        result: DeliveryResult,
        total_price: float,
    ) -> OrderSubmissionModel:
        """Re-arm a FAILED submission with the quote of the new attempt."""
        await self.transition(submission, SubmissionStatus.PENDING)
        self._apply_quote(submission, result, total_price)
        submission.error = None
        await self.session.flush()
        return submission

    async def transition(
        self,
        submission: OrderSubmissionModel,
        new_status: SubmissionStatus,
        *,
        order_id: str | None = None,
        error: str | None = None,
    ) -> OrderSubmissionModel:
        check_transition(SubmissionStatus(submission.status), new_status)
        submission.status = new_status
        if order_id is not None:
            submission.order_id = order_id
        if error is not None:
            submission.error = error[:500]
        await self.session.flush()
        return submission

    @staticmethod
    def _apply_quote(
        submission: OrderSubmissionModel,
        result: DeliveryResult,
        total_price: float,
    ) -> None:
        submission.nearest_store = result.nearest_store
        submission.stores = ",".join(result.stores)
        submission.distance_km = result.total_km
        submission.shipping_price = result.charge
        submission.total_price = total_price

    @staticmethod
    def to_entity(model: OrderSubmissionModel) -> OrderSubmission:
        return OrderSubmission(
            id=model.id,
            session_id=model.session_id,
            idempotency_key=model.idempotency_key,
            status=SubmissionStatus(model.status),
            nearest_store=model.nearest_store,
            shipping_price=model.shipping_price,
            total_price=model.total_price,
            order_id=model.order_id,
            created_at=model.created_at,
        )
