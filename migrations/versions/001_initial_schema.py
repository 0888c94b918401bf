"""Initial schema: driver directory and delivery requests.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

VEHICLE_CLASSES = ("motorcycle", "car", "truck")
DELIVERY_STATUSES = (
    "pending",
    "accepted",
    "picked_up",
    "in_transit",
    "delivered",
    "cancelled",
)


def upgrade() -> None:
    vehicle_class = sa.Enum(*VEHICLE_CLASSES, name="vehicle_class")

    # ── drivers ───────────────────────────────────────────────────────
    op.create_table(
        "drivers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False, server_default=""),
        sa.Column("vehicle_class", vehicle_class, nullable=False),
        sa.Column("vehicle_plate", sa.String(20), nullable=False, server_default=""),
        sa.Column("current_lat", sa.Float, nullable=True),
        sa.Column("current_lng", sa.Float, nullable=True),
        sa.Column(
            "is_available", sa.Boolean, nullable=False, server_default=sa.true()
        ),
        sa.Column("rating", sa.Float, nullable=False, server_default="5.0"),
        sa.Column(
            "total_deliveries", sa.Integer, nullable=False, server_default="0"
        ),
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
    )
    op.create_index("idx_drivers_available", "drivers", ["is_available"])

    # ── delivery_requests ─────────────────────────────────────────────
    op.create_table(
        "delivery_requests",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("customer_id", sa.Integer, nullable=True),
        sa.Column("pickup_lat", sa.Float, nullable=False),
        sa.Column("pickup_lng", sa.Float, nullable=False),
        sa.Column("dropoff_lat", sa.Float, nullable=False),
        sa.Column("dropoff_lng", sa.Float, nullable=False),
        sa.Column("pickup_address", sa.String(255), nullable=True),
        sa.Column("dropoff_address", sa.String(255), nullable=True),
        sa.Column("pickup_cell", sa.String(20), nullable=True),
        sa.Column("package_weight_kg", sa.Float, nullable=False),
        sa.Column("package_description", sa.String(255), nullable=True),
        sa.Column(
            "vehicle_class",
            postgresql.ENUM(*VEHICLE_CLASSES, name="vehicle_class", create_type=False),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum(*DELIVERY_STATUSES, name="delivery_status"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column(
            "assigned_driver_id",
            sa.Integer,
            sa.ForeignKey("drivers.id"),
            nullable=True,
        ),
        sa.Column("distance_km", sa.Float, nullable=False),
        sa.Column("price", sa.Float, nullable=False),
        sa.Column("estimated_minutes", sa.Integer, nullable=False),
        sa.Column("idempotency_key", sa.String(64), unique=True, nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
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
        # A driver is referenced exactly while the job is assigned.
        sa.CheckConstraint(
            "(assigned_driver_id IS NOT NULL) = "
            "(status IN ('accepted', 'picked_up', 'in_transit', 'delivered'))",
            name="ck_delivery_requests_assignment",
        ),
    )
    op.create_index("idx_delivery_requests_status", "delivery_requests", ["status"])
    op.create_index(
        "idx_delivery_requests_driver", "delivery_requests", ["assigned_driver_id"]
    )
    op.create_index(
        "idx_delivery_requests_customer", "delivery_requests", ["customer_id"]
    )
    op.create_index("idx_delivery_requests_cell", "delivery_requests", ["pickup_cell"])
    op.create_index(
        "idx_delivery_requests_idempotency", "delivery_requests", ["idempotency_key"]
    )


def downgrade() -> None:
    op.drop_table("delivery_requests")
    op.drop_table("drivers")
    op.execute("DROP TYPE IF EXISTS delivery_status")
    op.execute("DROP TYPE IF EXISTS vehicle_class")
