"""initial marketplace schema

Revision ID: a0b1c2d3e4f5
Revises:
Create Date: 2026-10-01

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "a0b1c2d3e4f5"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=False),
        nullable=False,
        server_default=sa.func.current_timestamp(),
    )


def _updated_at() -> sa.Column:
    return sa.Column(
        "updated_at",
        sa.DateTime(timezone=False),
        nullable=False,
        server_default=sa.func.current_timestamp(),
    )


def upgrade() -> None:
    bind = op.get_bind()
    insp = inspect(bind)
    existing_tables = set(insp.get_table_names())

    def _create(name: str, *cols, indexes: tuple = ()) -> None:
        if name in existing_tables:
            return
        op.create_table(name, *cols)
        for idx_name, idx_cols in indexes:
            op.create_index(idx_name, name, idx_cols)
        existing_tables.add(name)

    # Identity / RBAC
    _create(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("onboarding_status", sa.String(length=32), nullable=False, server_default="ACCOUNT_CREATED"),
        sa.Column("features", JSONType, nullable=True),
        sa.Column("last_login", sa.DateTime(timezone=False), nullable=True),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    _create(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("key", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        _created_at(),
        sa.UniqueConstraint("key", name="uq_roles_key"),
    )
    _create(
        "permissions",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("key", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        _created_at(),
        sa.UniqueConstraint("key", name="uq_permissions_key"),
    )
    _create(
        "user_roles",
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("role_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("user_id", "role_id"),
    )
    _create(
        "role_permissions",
        sa.Column("role_id", sa.Integer(), nullable=False),
        sa.Column("permission_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["permission_id"], ["permissions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("role_id", "permission_id"),
    )
    _create(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _created_at(),
        sa.Column("request_id", sa.String(length=64), nullable=True),
        sa.Column("actor_user_id", sa.Integer(), nullable=True),
        sa.Column("actor_user_email", sa.String(length=320), nullable=True),
        sa.Column("client_ip", sa.String(length=64), nullable=True),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("entity_type", sa.String(length=128), nullable=True),
        sa.Column("entity_id", sa.String(length=128), nullable=True),
        sa.Column("reason", sa.String(length=512), nullable=True),
        sa.Column("metadata_json", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["actor_user_id"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("request_id", "id", name="uq_audit_request_id_id"),
    )

    # Reference data
    _create(
        "chapters",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=True),
        sa.Column("chartered", sa.Integer(), nullable=True),
        sa.Column("province", sa.String(length=128), nullable=True),
        sa.Column("city", sa.String(length=128), nullable=True),
        sa.Column("state", sa.String(length=64), nullable=True),
        sa.Column("contact_email", sa.String(length=320), nullable=True),
        sa.Column("stripe_account_id", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint("name", name="uq_chapters_name"),
        indexes=(("idx_chapters_type", ["type"]), ("idx_chapters_state", ["state"])),
    )
    _create(
        "product_categories",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        _created_at(),
        sa.UniqueConstraint("name", name="uq_product_categories_name"),
    )
    _create(
        "event_types",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("key", sa.String(length=64), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sa.UniqueConstraint("key", name="uq_event_types_key"),
    )
    _create(
        "platform_settings",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("key", sa.String(length=128), nullable=False),
        sa.Column("value", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        _updated_at(),
        sa.UniqueConstraint("key", name="uq_platform_settings_key"),
    )

    # Members and roles on the marketplace
    _create(
        "fraternity_members",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("membership_number", sa.String(length=64), nullable=True),
        sa.Column("initiated_chapter_id", sa.Integer(), nullable=True),
        sa.Column("initiated_season", sa.String(length=16), nullable=True),
        sa.Column("initiated_year", sa.Integer(), nullable=True),
        sa.Column("ship_name", sa.String(length=255), nullable=True),
        sa.Column("line_name", sa.String(length=255), nullable=True),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("industry", sa.String(length=128), nullable=True),
        sa.Column("profession", sa.String(length=128), nullable=True),
        sa.Column("job_title", sa.String(length=255), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("headshot_url", sa.String(length=1024), nullable=True),
        sa.Column("social_links", JSONType, nullable=True),
        sa.Column("verification_status", sa.String(length=32), nullable=False, server_default="PENDING"),
        sa.Column("verification_date", sa.DateTime(timezone=False), nullable=True),
        sa.Column("verification_notes", sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(["initiated_chapter_id"], ["chapters.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("email", name="uq_fraternity_members_email"),
        sa.UniqueConstraint("membership_number", name="uq_fraternity_members_membership_number"),
        indexes=(
            ("idx_members_verification_status", ["verification_status"]),
            ("idx_members_initiated_chapter", ["initiated_chapter_id"]),
        ),
    )
    _create(
        "sellers",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("sponsoring_chapter_id", sa.Integer(), nullable=True),
        sa.Column("business_name", sa.String(length=255), nullable=True),
        sa.Column("business_email", sa.String(length=320), nullable=True),
        sa.Column("kappa_vendor_id", sa.String(length=128), nullable=True),
        sa.Column("merchandise_type", sa.String(length=16), nullable=True),
        sa.Column("website", sa.String(length=512), nullable=True),
        sa.Column("slug", sa.String(length=128), nullable=True),
        sa.Column("headshot_url", sa.String(length=1024), nullable=True),
        sa.Column("store_logo_url", sa.String(length=1024), nullable=True),
        sa.Column("social_links", JSONType, nullable=True),
        sa.Column("stripe_account_id", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="PENDING"),
        sa.Column("invitation_token", sa.String(length=128), nullable=True),
        sa.Column("verification_status", sa.String(length=32), nullable=True),
        sa.Column("verification_notes", sa.Text(), nullable=True),
        sa.Column("business_address_line1", sa.String(length=255), nullable=True),
        sa.Column("business_address_line2", sa.String(length=255), nullable=True),
        sa.Column("business_city", sa.String(length=128), nullable=True),
        sa.Column("business_state", sa.String(length=64), nullable=True),
        sa.Column("business_postal_code", sa.String(length=16), nullable=True),
        sa.Column("business_country", sa.String(length=2), nullable=True, server_default="US"),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["sponsoring_chapter_id"], ["chapters.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("slug", name="uq_sellers_slug"),
        sa.UniqueConstraint("invitation_token", name="uq_sellers_invitation_token"),
        indexes=(("idx_sellers_status", ["status"]), ("idx_sellers_email", ["email"])),
    )
    _create(
        "promoters",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("sponsoring_chapter_id", sa.Integer(), nullable=True),
        sa.Column("headshot_url", sa.String(length=1024), nullable=True),
        sa.Column("social_links", JSONType, nullable=True),
        sa.Column("stripe_account_id", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="PENDING"),
        sa.Column("verification_status", sa.String(length=32), nullable=True),
        sa.Column("verification_notes", sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["sponsoring_chapter_id"], ["chapters.id"], ondelete="SET NULL"),
        indexes=(("idx_promoters_status", ["status"]), ("idx_promoters_email", ["email"])),
    )
    _create(
        "stewards",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("sponsoring_chapter_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="PENDING"),
        sa.Column("verification_status", sa.String(length=32), nullable=True),
        sa.Column("verification_notes", sa.Text(), nullable=True),
        sa.Column("stripe_account_id", sa.String(length=255), nullable=True),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sponsoring_chapter_id"], ["chapters.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("user_id", name="uq_stewards_user_id"),
        indexes=(("idx_stewards_status", ["status"]),),
    )

    # Catalog and orders
    _create(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("seller_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price_cents", sa.Integer(), nullable=False),
        sa.Column("image_url", sa.String(length=1024), nullable=True),
        sa.Column("category_id", sa.Integer(), nullable=True),
        sa.Column("is_kappa_branded", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="ACTIVE"),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(["seller_id"], ["sellers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["category_id"], ["product_categories.id"], ondelete="SET NULL"),
        sa.CheckConstraint("price_cents >= 1", name="ck_products_price_positive"),
        indexes=(("idx_products_seller", ["seller_id"]), ("idx_products_status", ["status"])),
    )
    _create(
        "product_images",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("image_url", sa.String(length=1024), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        _created_at(),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="CASCADE"),
        indexes=(("idx_product_images_product", ["product_id"]),),
    )
    _create(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("buyer_email", sa.String(length=320), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("shipping_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("stripe_session_id", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="PENDING"),
        sa.Column("chapter_id", sa.Integer(), nullable=True),
        sa.Column("shipping_street", sa.String(length=255), nullable=True),
        sa.Column("shipping_city", sa.String(length=128), nullable=True),
        sa.Column("shipping_state", sa.String(length=64), nullable=True),
        sa.Column("shipping_zip", sa.String(length=16), nullable=True),
        sa.Column("shipping_country", sa.String(length=2), nullable=False, server_default="US"),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["chapter_id"], ["chapters.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("stripe_session_id", name="uq_orders_stripe_session_id"),
        indexes=(
            ("idx_orders_buyer_email", ["buyer_email"]),
            ("idx_orders_status", ["status"]),
            ("idx_orders_chapter", ["chapter_id"]),
        ),
    )

    # Steward marketplace
    _create(
        "steward_listings",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("steward_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(length=1024), nullable=True),
        sa.Column("shipping_cost_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("chapter_donation_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sponsoring_chapter_id", sa.Integer(), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="ACTIVE"),
        sa.Column("claimed_by_fraternity_member_id", sa.Integer(), nullable=True),
        sa.Column("claimed_at", sa.DateTime(timezone=False), nullable=True),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(["steward_id"], ["stewards.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sponsoring_chapter_id"], ["chapters.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["category_id"], ["product_categories.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["claimed_by_fraternity_member_id"], ["fraternity_members.id"], ondelete="SET NULL"),
        sa.CheckConstraint("shipping_cost_cents >= 0", name="ck_steward_listings_shipping_nonneg"),
        sa.CheckConstraint("chapter_donation_cents >= 0", name="ck_steward_listings_donation_nonneg"),
        indexes=(
            ("idx_steward_listings_steward", ["steward_id"]),
            ("idx_steward_listings_status", ["status"]),
        ),
    )
    _create(
        "steward_claims",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("listing_id", sa.Integer(), nullable=False),
        sa.Column("claimant_fraternity_member_id", sa.Integer(), nullable=False),
        sa.Column("stripe_session_id", sa.String(length=255), nullable=False),
        sa.Column("total_amount_cents", sa.Integer(), nullable=False),
        sa.Column("shipping_cents", sa.Integer(), nullable=False),
        sa.Column("platform_fee_cents", sa.Integer(), nullable=False),
        sa.Column("chapter_donation_cents", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="PENDING"),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(["listing_id"], ["steward_listings.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["claimant_fraternity_member_id"], ["fraternity_members.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("stripe_session_id", name="uq_steward_claims_stripe_session_id"),
        indexes=(
            ("idx_steward_claims_listing", ["listing_id"]),
            ("idx_steward_claims_status", ["status"]),
        ),
    )

    # Events
    _create(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("promoter_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("event_date", sa.DateTime(timezone=False), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("city", sa.String(length=128), nullable=True),
        sa.Column("state", sa.String(length=64), nullable=True),
        sa.Column("image_url", sa.String(length=1024), nullable=True),
        sa.Column("sponsored_chapter_id", sa.Integer(), nullable=True),
        sa.Column("event_type_id", sa.Integer(), nullable=True),
        sa.Column("all_day", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("event_link", sa.String(length=1024), nullable=True),
        sa.Column("is_featured", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("ticket_price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("dress_codes", JSONType, nullable=True),
        sa.Column("dress_code_notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="ACTIVE"),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(["promoter_id"], ["promoters.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sponsored_chapter_id"], ["chapters.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["event_type_id"], ["event_types.id"], ondelete="SET NULL"),
        indexes=(
            ("idx_events_promoter", ["promoter_id"]),
            ("idx_events_status", ["status"]),
            ("idx_events_event_date", ["event_date"]),
        ),
    )
    _create(
        "saved_events",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_email", sa.String(length=320), nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_email", "event_id", name="uq_saved_events_user_event"),
        indexes=(("idx_saved_events_user_email", ["user_email"]),),
    )

    # Per-user data
    _create(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_email", sa.String(length=320), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("related_product_id", sa.Integer(), nullable=True),
        sa.Column("related_order_id", sa.Integer(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("read_at", sa.DateTime(timezone=False), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["related_product_id"], ["products.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["related_order_id"], ["orders.id"], ondelete="SET NULL"),
        indexes=(
            ("idx_notifications_user_email", ["user_email"]),
            ("idx_notifications_user_unread", ["user_email", "is_read"]),
        ),
    )
    _create(
        "favorites",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_email", sa.String(length=320), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_email", "product_id", name="uq_favorites_user_product"),
        indexes=(("idx_favorites_user_email", ["user_email"]),),
    )
    _create(
        "user_addresses",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("label", sa.String(length=64), nullable=True),
        sa.Column("street", sa.String(length=255), nullable=False),
        sa.Column("city", sa.String(length=128), nullable=False),
        sa.Column("state", sa.String(length=64), nullable=False),
        sa.Column("zip", sa.String(length=16), nullable=False),
        sa.Column("country", sa.String(length=2), nullable=False, server_default="US"),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        indexes=(("idx_user_addresses_user", ["user_id"]),),
    )


def downgrade() -> None:
    for table in (
        "user_addresses",
        "favorites",
        "notifications",
        "saved_events",
        "events",
        "steward_claims",
        "steward_listings",
        "orders",
        "product_images",
        "products",
        "stewards",
        "promoters",
        "sellers",
        "fraternity_members",
        "platform_settings",
        "event_types",
        "product_categories",
        "chapters",
        "audit_events",
        "role_permissions",
        "user_roles",
        "permissions",
        "roles",
        "users",
    ):
        op.drop_table(table)
