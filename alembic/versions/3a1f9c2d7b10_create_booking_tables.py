"""Create listings, reservations, blocked date ranges and notifications

Revision ID: 3a1f9c2d7b10
Revises:
Create Date: 2026-10-18 09:12:31.402117

"""

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op  # type: ignore[attr-defined]

# revision identifiers, used by Alembic.
revision = "3a1f9c2d7b10"
down_revision = None
branch_labels = None
depends_on = None

LISTING_STATUSES = ("draft", "published", "inactive", "suspended", "under_review")
CANCELLATION_POLICIES = ("flexible", "moderate", "strict", "super_strict")
RESERVATION_STATUSES = ("pending", "confirmed", "cancelled", "completed", "rejected")
CANCELLATION_ACTORS = ("guest", "host", "admin")


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "listings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("host_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("city", sa.String(length=100), nullable=True),
        sa.Column("country", sa.String(length=100), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("price_per_night", sa.Numeric(10, 2), nullable=False),
        sa.Column("cleaning_fee", sa.Numeric(10, 2), nullable=True),
        sa.Column("service_fee", sa.Numeric(10, 2), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("max_guests", sa.Integer(), nullable=False),
        sa.Column("minimum_nights", sa.Integer(), nullable=True),
        sa.Column("maximum_nights", sa.Integer(), nullable=True),
        sa.Column(
            "cancellation_policy",
            sa.Enum(*CANCELLATION_POLICIES, name="cancellation_policy", native_enum=False, length=20),
            nullable=True,
        ),
        sa.Column("instant_booking", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*LISTING_STATUSES, name="listing_status", native_enum=False, length=20),
            nullable=False,
        ),
        sa.Column("calendar_version", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_listings_host_id", "listings", ["host_id"])
    op.create_index("ix_listings_city", "listings", ["city"])
    op.create_index("ix_listings_status", "listings", ["status"])

    op.create_table(
        "reservations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "listing_id",
            sa.Integer(),
            sa.ForeignKey("listings.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("guest_id", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("guest_count", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*RESERVATION_STATUSES, name="reservation_status", native_enum=False, length=20),
            nullable=False,
        ),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("refund_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("cancellation_reason", sa.String(length=500), nullable=True),
        sa.Column(
            "cancelled_by",
            sa.Enum(*CANCELLATION_ACTORS, name="cancellation_actor", native_enum=False, length=10),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("start_date < end_date", name="ck_reservations_date_order"),
    )
    op.create_index("ix_reservations_listing_id", "reservations", ["listing_id"])
    op.create_index("ix_reservations_guest_id", "reservations", ["guest_id"])
    op.create_index("ix_reservations_status", "reservations", ["status"])
    op.create_index(
        "ix_reservations_listing_dates", "reservations", ["listing_id", "start_date", "end_date"]
    )

    op.create_table(
        "blocked_date_ranges",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "listing_id",
            sa.Integer(),
            sa.ForeignKey("listings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("start_date < end_date", name="ck_blocked_date_ranges_date_order"),
    )
    op.create_index("ix_blocked_date_ranges_listing_id", "blocked_date_ranges", ["listing_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("recipient_id", sa.Integer(), nullable=False),
        sa.Column(
            "reservation_id",
            sa.Integer(),
            sa.ForeignKey("reservations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("kind", sa.String(length=50), nullable=False),
        sa.Column(
            "payload",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_notifications_recipient_id", "notifications", ["recipient_id"])
    op.create_index("ix_notifications_reservation_id", "notifications", ["reservation_id"])

    # Backstop for the listing lock: PostgreSQL refuses two blocking
    # reservations with overlapping [start_date, end_date) on one listing.
    if op.get_bind().dialect.name == "postgresql":
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        op.execute(
            """
            ALTER TABLE reservations
            ADD CONSTRAINT ex_reservations_no_overlap
            EXCLUDE USING gist (
                listing_id WITH =,
                daterange(start_date, end_date, '[)') WITH &&
            )
            WHERE (status IN ('pending', 'confirmed', 'completed'))
            """
        )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("notifications")
    op.drop_table("blocked_date_ranges")
    op.drop_table("reservations")
    op.drop_table("listings")
