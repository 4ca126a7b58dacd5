"""bom revisions

Revision ID: 0002_bom_revisions
Revises: 0001_initial
Create Date: 2026-10-13 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

revision = "0002_bom_revisions"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "bom_revisions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("assembly_item_id", sa.Integer(), sa.ForeignKey("items.id", ondelete="CASCADE"), nullable=False),
        sa.Column("rev_no", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("assembly_item_id", "rev_no", name="uq_bom_revision_assembly_rev"),
        sa.CheckConstraint("rev_no > 0", name="ck_bom_revisions_rev_no_positive"),
    )
    op.create_index("ix_bom_revisions_assembly_item_id", "bom_revisions", ["assembly_item_id"])

    op.create_table(
        "bom_lines",
        sa.Column(
            "revision_id",
            sa.Integer(),
            sa.ForeignKey("bom_revisions.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("component_item_id", sa.Integer(), sa.ForeignKey("items.id"), primary_key=True),
        sa.Column("qty_per_unit", sa.Numeric(18, 6), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.CheckConstraint("qty_per_unit > 0", name="ck_bom_lines_qty_per_unit_positive"),
    )
    op.create_index("ix_bom_lines_component_item_id", "bom_lines", ["component_item_id"])


def downgrade() -> None:
    op.drop_index("ix_bom_lines_component_item_id", table_name="bom_lines")
    op.drop_table("bom_lines")
    op.drop_index("ix_bom_revisions_assembly_item_id", table_name="bom_revisions")
    op.drop_table("bom_revisions")
