"""Initial schema: accounts, RBAC, causes, sponsorships, claims, partners,
distribution, waitlist, OTP and settings.

Revision ID: a1c4e7b20f10
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a1c4e7b20f10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("name", sa.String(255), nullable=False, server_default=""),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.UniqueConstraint("email"),
    )
    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(64), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("key"),
    )
    op.create_table(
        "permissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(128), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("key"),
    )
    op.create_table(
        "user_roles",
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("role_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("user_id", "role_id"),
    )
    op.create_table(
        "role_permissions",
        sa.Column("role_id", sa.Integer(), nullable=False),
        sa.Column("permission_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["permission_id"], ["permissions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("role_id", "permission_id"),
    )
    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("request_id", sa.String(64), nullable=True),
        sa.Column("client_ip", sa.String(64), nullable=True),
        sa.Column("actor_user_id", sa.Integer(), nullable=True),
        sa.Column("actor_user_email", sa.String(320), nullable=True),
        sa.Column("action", sa.String(128), nullable=False),
        sa.Column("entity_type", sa.String(128), nullable=True),
        sa.Column("entity_id", sa.String(128), nullable=True),
        sa.Column("reason", sa.String(512), nullable=True),
        sa.Column("metadata_json", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["actor_user_id"], ["users.id"], ondelete="SET NULL"),
    )

    op.create_table(
        "causes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", sa.String(128), nullable=False),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("target_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("current_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("is_online", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("image_url", sa.String(1024), nullable=False, server_default=""),
        sa.Column("admin_image_url", sa.String(1024), nullable=False, server_default=""),
        sa.Column("tote_preview_image_url", sa.String(1024), nullable=False, server_default=""),
        sa.Column("images", sa.JSON(), nullable=False),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("distribution_start_date", sa.Date(), nullable=True),
        sa.Column("distribution_end_date", sa.Date(), nullable=True),
        sa.Column("content", sa.JSON(), nullable=False),
        sa.Column("creator_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["creator_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_causes_status", "causes", ["status"])
    op.create_index("idx_causes_category", "causes", ["category"])
    op.create_index("idx_causes_creator", "causes", ["creator_id"])

    op.create_table(
        "sponsorships",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("cause_id", sa.Integer(), nullable=False),
        sa.Column("sponsor_id", sa.Integer(), nullable=True),
        sa.Column("organization_name", sa.String(255), nullable=False),
        sa.Column("contact_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("phone", sa.String(32), nullable=False),
        sa.Column("tote_quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("logo_url", sa.String(1024), nullable=False, server_default=""),
        sa.Column("mockup_url", sa.String(1024), nullable=True),
        sa.Column("logo_position", sa.JSON(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False, server_default=""),
        sa.Column("distribution_type", sa.String(16), nullable=False, server_default="physical"),
        sa.Column("selected_cities", sa.JSON(), nullable=False),
        sa.Column("distribution_start_date", sa.Date(), nullable=True),
        sa.Column("distribution_end_date", sa.Date(), nullable=True),
        sa.Column("distribution_locations", sa.JSON(), nullable=False),
        sa.Column("demographics", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("approved_by_id", sa.Integer(), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("is_online", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("ended_at", sa.DateTime(), nullable=True),
        sa.Column("ended_by_id", sa.Integer(), nullable=True),
        sa.Column("payment_id", sa.String(64), nullable=True),
        sa.Column("payment_order_id", sa.String(64), nullable=True),
        sa.Column("payment_status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("payment_amount", sa.Float(), nullable=True),
        sa.Column("payment_currency", sa.String(8), nullable=False, server_default="INR"),
        sa.Column("payment_date", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["cause_id"], ["causes.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sponsor_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["approved_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["ended_by_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_sponsorships_cause", "sponsorships", ["cause_id"])
    op.create_index("idx_sponsorships_sponsor", "sponsorships", ["sponsor_id"])
    op.create_index("idx_sponsorships_status", "sponsorships", ["status"])
    op.create_index("idx_sponsorships_email", "sponsorships", ["email"])
    op.create_index("idx_sponsorships_created_at", "sponsorships", ["created_at"])

    op.create_table(
        "api_partners",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("business_name", sa.String(255), nullable=False),
        sa.Column("business_email", sa.String(320), nullable=False),
        sa.Column("contact_name", sa.String(255), nullable=False, server_default=""),
        sa.Column("api_key", sa.String(64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("last_used_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("business_name"),
        sa.UniqueConstraint("api_key"),
    )

    op.create_table(
        "claims",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("cause_id", sa.Integer(), nullable=False),
        sa.Column("cause_title", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("phone", sa.String(32), nullable=False),
        sa.Column("purpose", sa.Text(), nullable=False, server_default=""),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("city", sa.String(128), nullable=False),
        sa.Column("state", sa.String(128), nullable=False),
        sa.Column("zip_code", sa.String(16), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("source", sa.String(32), nullable=False, server_default="direct"),
        sa.Column("referrer_url", sa.String(1024), nullable=True),
        sa.Column("qr_code_scanned", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("shipping_date", sa.DateTime(), nullable=True),
        sa.Column("delivery_date", sa.DateTime(), nullable=True),
        sa.Column("tracking_number", sa.String(128), nullable=True),
        sa.Column("carrier", sa.String(128), nullable=True),
        sa.Column("estimated_delivery", sa.DateTime(), nullable=True),
        sa.Column("partner_id", sa.Integer(), nullable=True),
        sa.Column("partner_business_name", sa.String(255), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["cause_id"], ["causes.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["partner_id"], ["api_partners.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("cause_id", "email", name="uq_claims_cause_email"),
    )
    op.create_index("idx_claims_status", "claims", ["status"])
    op.create_index("idx_claims_email", "claims", ["email"])
    op.create_index("idx_claims_created_at", "claims", ["created_at"])

    op.create_table(
        "countries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("code", sa.String(8), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.UniqueConstraint("name"),
        sa.UniqueConstraint("code"),
    )
    op.create_table(
        "cities",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("state", sa.String(128), nullable=False, server_default=""),
        sa.Column("country_id", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["country_id"], ["countries.id"], ondelete="RESTRICT"),
    )
    op.create_index("idx_cities_country", "cities", ["country_id"])
    op.create_table(
        "distribution_categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("icon", sa.String(64), nullable=False, server_default=""),
        sa.Column("color", sa.String(32), nullable=False, server_default=""),
        sa.Column("default_tote_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.UniqueConstraint("name"),
    )
    op.create_table(
        "distribution_points",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.String(512), nullable=False, server_default=""),
        sa.Column("city_id", sa.Integer(), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("default_tote_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["city_id"], ["cities.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["category_id"], ["distribution_categories.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_distribution_points_city_category", "distribution_points", ["city_id", "category_id"])

    op.create_table(
        "waitlist_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("cause_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("phone", sa.String(32), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("notify_email", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("notify_sms", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="waiting"),
        sa.Column("magic_link_token", sa.String(128), nullable=True),
        sa.Column("magic_link_sent_at", sa.DateTime(), nullable=True),
        sa.Column("magic_link_expires", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["cause_id"], ["causes.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("cause_id", "email", name="uq_waitlist_cause_email"),
    )
    op.create_index("idx_waitlist_cause_position", "waitlist_entries", ["cause_id", "position"])
    op.create_index("idx_waitlist_status", "waitlist_entries", ["status"])
    op.create_index("idx_waitlist_token", "waitlist_entries", ["magic_link_token"])

    op.create_table(
        "otp_verifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("otp_hash", sa.String(64), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("idx_otp_email_created", "otp_verifications", ["email", "created_at"])

    op.create_table(
        "system_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("site_name", sa.String(255), nullable=False),
        sa.Column("site_description", sa.Text(), nullable=False),
        sa.Column("support_email", sa.String(320), nullable=False),
        sa.Column("max_campaigns_per_user", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("auto_approval_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("email_notifications_enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("maintenance_mode", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("require_approval_for_claims", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("max_claims_per_campaign", sa.Integer(), nullable=False, server_default="1000"),
        sa.Column("shipping_fee", sa.Float(), nullable=False, server_default="0"),
        sa.Column("privacy_policy_url", sa.String(1024), nullable=False),
        sa.Column("terms_of_service_url", sa.String(1024), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("updated_by_user_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["updated_by_user_id"], ["users.id"], ondelete="SET NULL"),
    )


def downgrade() -> None:
    op.drop_table("system_settings")
    op.drop_index("idx_otp_email_created", table_name="otp_verifications")
    op.drop_table("otp_verifications")
    op.drop_index("idx_waitlist_token", table_name="waitlist_entries")
    op.drop_index("idx_waitlist_status", table_name="waitlist_entries")
    op.drop_index("idx_waitlist_cause_position", table_name="waitlist_entries")
    op.drop_table("waitlist_entries")
    op.drop_index("idx_distribution_points_city_category", table_name="distribution_points")
    op.drop_table("distribution_points")
    op.drop_table("distribution_categories")
    op.drop_index("idx_cities_country", table_name="cities")
    op.drop_table("cities")
    op.drop_table("countries")
    op.drop_index("idx_claims_created_at", table_name="claims")
    op.drop_index("idx_claims_email", table_name="claims")
    op.drop_index("idx_claims_status", table_name="claims")
    op.drop_table("claims")
    op.drop_table("api_partners")
    for name in (
        "idx_sponsorships_created_at",
        "idx_sponsorships_email",
        "idx_sponsorships_status",
        "idx_sponsorships_sponsor",
        "idx_sponsorships_cause",
    ):
        op.drop_index(name, table_name="sponsorships")
    op.drop_table("sponsorships")
    op.drop_index("idx_causes_creator", table_name="causes")
    op.drop_index("idx_causes_category", table_name="causes")
    op.drop_index("idx_causes_status", table_name="causes")
    op.drop_table("causes")
    op.drop_table("audit_events")
    op.drop_table("role_permissions")
    op.drop_table("user_roles")
    op.drop_table("permissions")
    op.drop_table("roles")
    op.drop_table("users")
