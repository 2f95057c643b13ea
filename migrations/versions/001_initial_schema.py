"""Order submission ledger.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── order_submissions ─────────────────────────────────────────────
    op.create_table(
        "order_submissions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("session_id", sa.String(64), nullable=False),
        sa.Column("idempotency_key", sa.String(64), nullable=True),
        sa.Column(
            "status",
            sa.Enum("PENDING", "PLACED", "FAILED", name="submissionstatus"),
            nullable=False,
            server_default="PENDING",
        ),
        sa.Column("nearest_store", sa.Text, nullable=False),
        sa.Column("stores", sa.Text, nullable=False),
        sa.Column("distance_km", sa.Float, nullable=False),
        sa.Column("shipping_price", sa.Float, nullable=False),
        sa.Column("total_price", sa.Float, nullable=False),
        sa.Column("order_id", sa.String(64), nullable=True),
        sa.Column("error", sa.String(500), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint(
            "session_id", "idempotency_key", name="uq_submissions_session_key"
        ),
    )
    op.create_index(
        "idx_submissions_session", "order_submissions", ["session_id"]
    )
    op.create_index("idx_submissions_status", "order_submissions", ["status"])


def downgrade() -> None:
    op.drop_table("order_submissions")
    op.execute("DROP TYPE IF EXISTS submissionstatus")
