"""stock ledger

Revision ID: 0003_stock_ledger
Revises: 0002_bom_revisions
Create Date: 2026-10-14 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

revision = "0003_stock_ledger"
down_revision = "0002_bom_revisions"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "stock_transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("items.id"), nullable=False),
        sa.Column("qty", sa.Numeric(18, 6), nullable=False),
        sa.Column(
            "transaction_type",
            sa.Enum("IN", "OUT", "ADJUST", name="stock_transaction_type"),
            nullable=False,
        ),
        sa.Column("direction", sa.Enum("IN", "OUT", name="stock_direction"), nullable=False),
        sa.Column("posting_group", sa.String(length=36), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("qty > 0", name="ck_stock_transactions_qty_positive"),
        sa.CheckConstraint(
            "transaction_type = 'ADJUST' "
            "OR (transaction_type = 'IN' AND direction = 'IN') "
            "OR (transaction_type = 'OUT' AND direction = 'OUT')",
            name="ck_stock_transactions_direction_matches_type",
        ),
    )
    op.create_index("ix_stock_transactions_item_created", "stock_transactions", ["item_id", "created_at"])
    op.create_index("ix_stock_transactions_posting_group", "stock_transactions", ["posting_group"])


def downgrade() -> None:
    op.drop_index("ix_stock_transactions_posting_group", table_name="stock_transactions")
    op.drop_index("ix_stock_transactions_item_created", table_name="stock_transactions")
    op.drop_table("stock_transactions")
    sa.Enum(name="stock_direction").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="stock_transaction_type").drop(op.get_bind(), checkfirst=True)
