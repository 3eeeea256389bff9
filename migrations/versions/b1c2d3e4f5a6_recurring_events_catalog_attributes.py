"""recurring events, affiliated chapters, listing images, category attributes, industries/professions

Revision ID: b1c2d3e4f5a6
Revises: a0b1c2d3e4f5
Create Date: 2026-10-18

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "b1c2d3e4f5a6"
down_revision: Union[str, Sequence[str], None] = "a0b1c2d3e4f5"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")

NEW_TABLES = (
    "professions",
    "industries",
    "product_attribute_values",
    "category_attribute_definitions",
    "steward_listing_images",
    "event_affiliated_chapters",
)
EVENT_COLUMNS = ("is_recurring", "recurrence_rule", "recurrence_end_date")


def _timestamp(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=False), nullable=False, server_default=sa.func.current_timestamp())


def _add_column_if_missing(table: str, col: sa.Column) -> None:
    """Add a column only if the table exists and the column is missing."""
    insp = inspect(op.get_bind())
    if not insp.has_table(table):
        return
    cols = {c["name"] for c in insp.get_columns(table)}
    if col.name not in cols:
        with op.batch_alter_table(table) as batch_op:
            batch_op.add_column(col)


def upgrade() -> None:
    insp = inspect(op.get_bind())
    existing_tables = set(insp.get_table_names())

    def _create(name: str, *cols, indexes: tuple = ()) -> None:
        if name in existing_tables:
            return
        op.create_table(name, *cols)
        for idx_name, idx_cols in indexes:
            op.create_index(idx_name, name, idx_cols)
        existing_tables.add(name)

    # Recurring events: event_date is the first occurrence
    _add_column_if_missing("events", sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.false()))
    _add_column_if_missing("events", sa.Column("recurrence_rule", sa.String(length=512), nullable=True))
    _add_column_if_missing("events", sa.Column("recurrence_end_date", sa.DateTime(timezone=False), nullable=True))

    _create(
        "event_affiliated_chapters",
        sa.Column("event_id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("chapter_id", sa.Integer(), primary_key=True, nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["chapter_id"], ["chapters.id"], ondelete="CASCADE"),
        indexes=(("idx_event_affiliated_chapters_chapter", ["chapter_id"]),),
    )
    _create(
        "steward_listing_images",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("steward_listing_id", sa.Integer(), nullable=False),
        sa.Column("image_url", sa.String(length=1024), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["steward_listing_id"], ["steward_listings.id"], ondelete="CASCADE"),
        indexes=(("idx_steward_listing_images_listing", ["steward_listing_id"]),),
    )
    _create(
        "category_attribute_definitions",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("attribute_name", sa.String(length=100), nullable=False),
        sa.Column("attribute_type", sa.String(length=16), nullable=False),
        sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("options", JSONType, nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["category_id"], ["product_categories.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("category_id", "attribute_name", name="uq_category_attribute_name"),
        sa.CheckConstraint(
            "attribute_type IN ('TEXT', 'SELECT', 'NUMBER', 'BOOLEAN')",
            name="ck_category_attribute_definitions_type",
        ),
        indexes=(("idx_category_attribute_definitions_category", ["category_id"]),),
    )
    _create(
        "product_attribute_values",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("attribute_definition_id", sa.Integer(), nullable=False),
        sa.Column("value_text", sa.Text(), nullable=True),
        sa.Column("value_number", sa.Numeric(12, 2), nullable=True),
        sa.Column("value_boolean", sa.Boolean(), nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["attribute_definition_id"], ["category_attribute_definitions.id"], ondelete="CASCADE"
        ),
        sa.UniqueConstraint("product_id", "attribute_definition_id", name="uq_product_attribute_value"),
        indexes=(("idx_product_attribute_values_product", ["product_id"]),),
    )

    # Pick-lists for member profiles
    for table in ("industries", "professions"):
        _create(
            table,
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            _timestamp("created_at"),
            _timestamp("updated_at"),
            sa.UniqueConstraint("name", name=f"uq_{table}_name"),
        )


def downgrade() -> None:
    insp = inspect(op.get_bind())
    for table in NEW_TABLES:
        if insp.has_table(table):
            op.drop_table(table)
    cols = {c["name"] for c in insp.get_columns("events")}
    with op.batch_alter_table("events") as batch_op:
        for name in EVENT_COLUMNS:
            if name in cols:
                batch_op.drop_column(name)
