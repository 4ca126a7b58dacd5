"""initial

Revision ID: 0001_initial
Revises: 
Create Date: 2026-10-12 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("full_name", sa.String(length=200), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "modules",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(length=50), nullable=False, unique=True),
        sa.Column("name", sa.String(length=100), nullable=False),
    )
    op.create_table(
        "user_module_access",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("modules.id", ondelete="CASCADE"), nullable=False),
        sa.UniqueConstraint("user_id", "module_id", name="uq_user_module_access"),
    )
    op.create_table(
        "items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sku", sa.String(length=100), nullable=False, unique=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("item_type", sa.Enum("component", "assembly", name="item_type"), nullable=False),
        sa.Column("managed_unit", sa.Enum("g", "pcs", name="managed_unit"), nullable=False, server_default="pcs"),
        sa.Column("pack_qty", sa.Numeric(18, 6), nullable=True),
        sa.Column("reorder_point", sa.Numeric(18, 6), nullable=True),
        sa.Column("stock_managed", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("pack_qty IS NULL OR pack_qty > 0", name="ck_items_pack_qty_positive"),
        sa.CheckConstraint("reorder_point IS NULL OR reorder_point >= 0", name="ck_items_reorder_point_non_negative"),
    )
    op.create_table(
        "components",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("items.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column(
            "component_type",
            sa.Enum("material", "part", "consumable", name="component_type"),
            nullable=False,
            server_default="material",
        ),
        sa.Column("manufacturer", sa.String(length=200), nullable=True),
        sa.Column("color", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "assemblies",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("items.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("manufacturer", sa.String(length=200), nullable=True),
        sa.Column("total_weight", sa.Numeric(18, 6), nullable=True),
        sa.Column("pack_size", sa.String(length=100), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("assemblies")
    op.drop_table("components")
    op.drop_table("items")
    op.drop_table("user_module_access")
    op.drop_table("modules")
    op.drop_table("users")
    sa.Enum(name="component_type").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="managed_unit").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="item_type").drop(op.get_bind(), checkfirst=True)
