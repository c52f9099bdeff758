"""Initial schema

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Creates every table: users and verification tokens, KYC
       submissions, bookings with chat and reviews, subscriptions and
       earnings, posts, direct messages, profile views and the webhook ledger.

Status columns are VARCHAR, not native enums; allowed values are enforced
in the application. Money columns are integer cents.

Rollback: downgrade() drops all tables in reverse dependency order.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(*names: str, nullable: bool = False):
    return [sa.Column(name, sa.DateTime(timezone=True), nullable=nullable) for name in names]


def _user_fk(name: str, index: bool = False, ondelete: str = "CASCADE") -> sa.Column:
    return sa.Column(
        name, sa.Uuid(), sa.ForeignKey("users.id", ondelete=ondelete), nullable=False, index=index
    )


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("email_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="FAN"),
        sa.Column("is_creator", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", sa.String(20), nullable=False, server_default="ACTIVE"),
        sa.Column("kyc_status", sa.String(20), nullable=False, server_default="NOT_STARTED"),
        sa.Column("kyc_rejection_reason", sa.Text(), nullable=True),
        sa.Column("kyc_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("display_name", sa.String(100), nullable=True),
        sa.Column("profile_image", sa.String(1024), nullable=True),
        sa.Column("video_intro_url", sa.String(1024), nullable=True),
        sa.Column("hourly_rate_cents", sa.Integer(), nullable=True),
        sa.Column("min_hours", sa.Integer(), nullable=False, server_default="2"),
        sa.Column("average_rating", sa.Float(), nullable=True),
        sa.Column("stripe_customer_id", sa.String(255), nullable=True),
        sa.Column("stripe_connect_id", sa.String(255), nullable=True),
        *_timestamps("created_at", "updated_at"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "verification_tokens",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _user_fk("user_id", index=True),
        sa.Column("token", sa.String(128), nullable=False, unique=True),
        *_timestamps("expires_at", "created_at"),
    )

    # ── KYC ───────────────────────────────────────────────────────────────
    op.create_table(
        "kyc_submissions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("date_of_birth", sa.Date(), nullable=False),
        sa.Column("id_type", sa.String(30), nullable=False),
        sa.Column("government_id_number", sa.String(100), nullable=False),
        sa.Column("government_id_key", sa.String(512), nullable=False),
        sa.Column("government_id_url", sa.String(1024), nullable=False),
        sa.Column("liveliness_key", sa.String(512), nullable=False),
        sa.Column("liveliness_url", sa.String(1024), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps("submitted_at", "updated_at"),
    )

    # ── Bookings ──────────────────────────────────────────────────────────
    op.create_table(
        "bookings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _user_fk("client_id", index=True),
        _user_fk("creator_id"),
        *_timestamps("start_time", "end_time"),
        sa.Column("duration_hours", sa.Float(), nullable=False),
        sa.Column("meeting_location", sa.String(500), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("hourly_rate_cents", sa.Integer(), nullable=False),
        sa.Column("total_price_cents", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("payment_intent_id", sa.String(255), nullable=True),
        sa.Column("payment_captured_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps("created_at", "updated_at"),
        sa.CheckConstraint("end_time > start_time", name="ck_bookings_time_order"),
    )
    op.create_index("ix_bookings_creator_start", "bookings", ["creator_id", "start_time"])

    op.create_table(
        "booking_messages",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "booking_id",
            sa.Uuid(),
            sa.ForeignKey("bookings.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        _user_fk("sender_id"),
        _user_fk("recipient_id"),
        sa.Column("message", sa.Text(), nullable=False),
        *_timestamps("created_at"),
    )

    op.create_table(
        "reviews",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "booking_id", sa.Uuid(), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False
        ),
        _user_fk("reviewer_id"),
        _user_fk("reviewed_user_id", index=True),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        *_timestamps("created_at"),
        sa.UniqueConstraint("booking_id", "reviewer_id", name="uq_reviews_booking_reviewer"),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating_range"),
    )

    # ── Subscriptions & earnings ──────────────────────────────────────────
    op.create_table(
        "subscriptions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _user_fk("subscriber_id", index=True),
        _user_fk("creator_id", index=True),
        sa.Column("tier", sa.String(20), nullable=False),
        sa.Column("price_cents", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="ACTIVE"),
        sa.Column("stripe_subscription_id", sa.String(255), nullable=True, unique=True),
        *_timestamps("started_at"),
        *_timestamps("renews_at", "cancelled_at", nullable=True),
        *_timestamps("created_at", "updated_at"),
    )
    op.create_index(
        "ix_subscriptions_pair_status", "subscriptions", ["subscriber_id", "creator_id", "status"]
    )

    op.create_table(
        "earnings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _user_fk("creator_id", index=True),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column(
            "booking_id", sa.Uuid(), sa.ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column(
            "subscription_id",
            sa.Uuid(),
            sa.ForeignKey("subscriptions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("stripe_invoice_id", sa.String(255), nullable=True),
        sa.Column("stripe_transfer_id", sa.String(255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps("created_at"),
    )

    # ── Content ───────────────────────────────────────────────────────────
    op.create_table(
        "posts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _user_fk("creator_id"),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("image_url", sa.String(1024), nullable=True),
        sa.Column("video_url", sa.String(1024), nullable=True),
        sa.Column("is_subscriber_only", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("likes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("comments", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps("created_at"),
    )
    op.create_index("ix_posts_creator_created", "posts", ["creator_id", "created_at"])

    op.create_table(
        "messages",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _user_fk("sender_id", index=True),
        _user_fk("recipient_id", index=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_paid_message", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("cost_credits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps("created_at"),
    )

    op.create_table(
        "profile_views",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _user_fk("viewer_id"),
        _user_fk("viewed_user_id", index=True),
        *_timestamps("created_at"),
        sa.UniqueConstraint("viewer_id", "viewed_user_id", name="uq_profile_views_pair"),
    )

    # ── Stripe webhook ledger ─────────────────────────────────────────────
    op.create_table(
        "webhook_events",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("event_id", sa.String(255), nullable=False, unique=True),
        sa.Column("event_type", sa.String(100), nullable=False, index=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="received"),
        sa.Column("processing_error", sa.Text(), nullable=True),
        *_timestamps("received_at"),
        *_timestamps("processed_at", nullable=True),
    )


def downgrade() -> None:
    for table in (
        "webhook_events",
        "profile_views",
        "messages",
        "posts",
        "earnings",
        "subscriptions",
        "reviews",
        "booking_messages",
        "bookings",
        "kyc_submissions",
        "verification_tokens",
        "users",
    ):
        op.drop_table(table)
