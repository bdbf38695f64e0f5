"""Initial schema — users, providers, catalogue, quotes, bookings.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from __future__ import annotations

from typing import Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, tuple[str, ...], None] = None
depends_on: Union[str, tuple[str, ...], None] = None


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    # ── Standalone tables (no FKs) ─────────────────────────────────────

    op.create_table(
        "users",
        sa.Column("first_name", sa.String(100)),
        sa.Column("last_name", sa.String(100)),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(20)),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    op.create_table(
        "categories",
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text()),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_categories"),
        sa.UniqueConstraint("name", name="uq_categories_name"),
    )

    # ── Tables with FKs ────────────────────────────────────────────────

    op.create_table(
        "service_providers",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", name="fk_service_providers_user_id_users")),
        sa.Column("business_name", sa.String(255), nullable=False),
        sa.Column("contact_name", sa.String(200)),
        sa.Column("email", sa.String(255)),
        sa.Column("phone", sa.String(20)),
        sa.Column("description", sa.Text()),
        sa.Column("rating", sa.Numeric(3, 2)),
        sa.Column("review_count", sa.Integer(), nullable=False),
        sa.Column("is_verified", sa.Boolean(), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_service_providers"),
    )
    op.create_index("ix_service_providers_user_id", "service_providers", ["user_id"])

    op.create_table(
        "services",
        sa.Column("category_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("categories.id", name="fk_services_category_id_categories")),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_services"),
    )
    op.create_index("ix_services_category_id", "services", ["category_id"])

    op.create_table(
        "quotes",
        sa.Column("quote_number", sa.String(30), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.String(2000), nullable=False),
        sa.Column("customer_user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", name="fk_quotes_customer_user_id_users"), nullable=False),
        sa.Column("provider_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("service_providers.id", name="fk_quotes_provider_id_service_providers"), nullable=False),
        sa.Column("customer_contact", postgresql.JSONB(astext_type=sa.Text()), nullable=False, comment="Contact snapshot at creation"),
        sa.Column("provider_snapshot", postgresql.JSONB(astext_type=sa.Text()), nullable=False, comment="business_name + contact_info at creation"),
        sa.Column("service_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("services.id", name="fk_quotes_service_id_services"), nullable=False),
        sa.Column("category_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("categories.id", name="fk_quotes_category_id_categories")),
        sa.Column("service_details", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("service_location", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("pricing", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("final_total", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
        sa.Column("timeline", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("terms", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("status", sa.String(30), nullable=False),
        sa.Column("workflow", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("customer_response", postgresql.JSONB(astext_type=sa.Text())),
        sa.Column("communications", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("attachments", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("analytics", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("competitive", postgresql.JSONB(astext_type=sa.Text())),
        sa.Column("internal_notes", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("related_booking_id", postgresql.UUID(as_uuid=True)),
        sa.Column("original_quote_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("quotes.id", name="fk_quotes_original_quote_id_quotes")),
        sa.Column("version_id", sa.Integer(), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_quotes"),
        sa.UniqueConstraint("quote_number", name="uq_quotes_quote_number"),
    )
    op.create_index("ix_quotes_service_id", "quotes", ["service_id"])
    op.create_index("ix_quotes_customer_status", "quotes", ["customer_user_id", "status"])
    op.create_index("ix_quotes_provider_status", "quotes", ["provider_id", "status"])
    op.create_index("ix_quotes_status_valid_until", "quotes", ["status", "valid_until"])
    op.create_index("ix_quotes_created_at", "quotes", ["created_at"])

    op.create_table(
        "bookings",
        sa.Column("quote_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("quotes.id", name="fk_bookings_quote_id_quotes")),
        sa.Column("customer_user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", name="fk_bookings_customer_user_id_users"), nullable=False),
        sa.Column("provider_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("service_providers.id", name="fk_bookings_provider_id_service_providers"), nullable=False),
        sa.Column("service_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("services.id", name="fk_bookings_service_id_services"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("scheduled_start", sa.DateTime(timezone=True)),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id", name="pk_bookings"),
        sa.UniqueConstraint("quote_id", name="uq_bookings_quote_id"),
    )
    op.create_index("ix_bookings_customer_user_id", "bookings", ["customer_user_id"])
    op.create_index("ix_bookings_provider_id", "bookings", ["provider_id"])

    # quotes ↔ bookings reference each other; add this FK once both exist
    op.create_foreign_key(
        "fk_quotes_related_booking_id_bookings",
        "quotes",
        "bookings",
        ["related_booking_id"],
        ["id"],
    )


def downgrade() -> None:
    op.drop_constraint("fk_quotes_related_booking_id_bookings", "quotes", type_="foreignkey")
    op.drop_table("bookings")
    op.drop_table("quotes")
    op.drop_table("services")
    op.drop_table("service_providers")
    op.drop_table("categories")
    op.drop_table("users")
