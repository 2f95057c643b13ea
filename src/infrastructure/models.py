"""
SQLAlchemy ORM models.

Tables
------
* ``order_submissions`` -- one row per order placement attempt forwarded to
  the storefront backend, keyed by checkout session and the client's
  idempotency key so a retried request never places the same order twice.

Indexes
-------
* **Unique B-Tree** on ``(session_id, idempotency_key)``: a key only
  replays within the checkout session that first used it.
* **B-Tree** on ``session_id`` and ``status`` for the admin listing.
"""

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)

from .database import Base
from src.domain.enums import SubmissionStatus


class OrderSubmissionModel(Base):
    __tablename__ = "order_submissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(64), nullable=False)
    idempotency_key = Column(String(64), nullable=True)
    status = Column(
        Enum(SubmissionStatus), default=SubmissionStatus.PENDING, nullable=False
    )

    # Snapshot of the quote the order was placed with
    nearest_store = Column(Text, nullable=False)
    stores = Column(Text, nullable=False)  # comma-joined, nearest first
    distance_km = Column(Float, nullable=False)
    shipping_price = Column(Float, nullable=False)
    total_price = Column(Float, nullable=False)

    order_id = Column(String(64), nullable=True)  # backend order _id
    error = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "session_id", "idempotency_key", name="uq_submissions_session_key"
        ),
        Index("idx_submissions_session", "session_id"),
        Index("idx_submissions_status", "status"),
    )
    # Timestamps are read back in API responses; no lazy refresh under asyncio
    __mapper_args__ = {"eager_defaults": True}
