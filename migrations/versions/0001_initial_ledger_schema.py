"""initial ledger schema

Revision ID: 0001_initial_ledger_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial_ledger_schema"
down_revision = None
branch_labels = None
depends_on = None

WEIGHT = sa.Numeric(14, 2)
MONEY = sa.Numeric(14, 2)


def upgrade() -> None:
    op.create_table(
        "admins",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("admin_cognito_id", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone_number", sa.String(length=50), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_admins_admin_cognito_id", "admins", ["admin_cognito_id"], unique=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_cognito_id", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("phone_number", sa.String(length=50), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_users_user_cognito_id", "users", ["user_cognito_id"], unique=True)

    op.create_table(
        "stocks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("sale_code", sa.String(length=50), nullable=False),
        sa.Column("broker", sa.String(length=10), nullable=False),
        sa.Column("lot_no", sa.String(length=100), nullable=False),
        sa.Column("mark", sa.String(length=255), nullable=False),
        sa.Column("grade", sa.String(length=10), nullable=False),
        sa.Column("invoice_no", sa.String(length=100), nullable=True),
        sa.Column("bags", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("weight", WEIGHT, nullable=False, server_default="0"),
        sa.Column("purchase_value", MONEY, nullable=False, server_default="0"),
        sa.Column("total_purchase_value", MONEY, nullable=False, server_default="0"),
        sa.Column("aging_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("penalty", MONEY, nullable=False, server_default="0"),
        sa.Column("bgt_commission", MONEY, nullable=False, server_default="0"),
        sa.Column("maersk_fee", MONEY, nullable=False, server_default="0"),
        sa.Column("commission", MONEY, nullable=False, server_default="0"),
        sa.Column("net_price", MONEY, nullable=False, server_default="0"),
        sa.Column("total", MONEY, nullable=False, server_default="0"),
        sa.Column("batch_number", sa.String(length=100), nullable=True),
        sa.Column("low_stock_threshold", WEIGHT, nullable=True),
        sa.Column("admin_cognito_id", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_stocks_lot_no", "stocks", ["lot_no"], unique=True)
    op.create_index("ix_stocks_batch_number", "stocks", ["batch_number"], unique=False)
    op.create_index("ix_stocks_admin_cognito_id", "stocks", ["admin_cognito_id"], unique=False)

    op.create_table(
        "stock_assignments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("stocks_id", sa.Integer(), sa.ForeignKey("stocks.id"), nullable=False),
        sa.Column("user_cognito_id", sa.String(length=128), sa.ForeignKey("users.user_cognito_id"), nullable=False),
        sa.Column("assigned_weight", WEIGHT, nullable=False),
        sa.Column("assigned_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("stocks_id", "user_cognito_id", name="uq_stock_assignment_stock_user"),
    )
    op.create_index("ix_stock_assignments_stocks_id", "stock_assignments", ["stocks_id"], unique=False)
    op.create_index(
        "ix_stock_assignments_user_cognito_id", "stock_assignments", ["user_cognito_id"], unique=False
    )

    op.create_table(
        "favorites",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_cognito_id", sa.String(length=128), nullable=False),
        sa.Column("stocks_id", sa.Integer(), sa.ForeignKey("stocks.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_cognito_id", "stocks_id", name="uq_favorite_user_stock"),
    )
    op.create_index("ix_favorites_user_cognito_id", "favorites", ["user_cognito_id"], unique=False)
    op.create_index("ix_favorites_stocks_id", "favorites", ["stocks_id"], unique=False)

    op.create_table(
        "shipments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_cognito_id", sa.String(length=128), sa.ForeignKey("users.user_cognito_id"), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="Pending"),
        sa.Column("consignee", sa.String(length=255), nullable=False),
        sa.Column("vessel", sa.String(length=20), nullable=False),
        sa.Column("shipmark", sa.String(length=255), nullable=False),
        sa.Column("packaging_instructions", sa.String(length=50), nullable=False),
        sa.Column("additional_instructions", sa.Text(), nullable=True),
        sa.Column("shipment_date", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_shipments_user_cognito_id", "shipments", ["user_cognito_id"], unique=False)

    op.create_table(
        "shipment_items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "shipment_id",
            sa.Integer(),
            sa.ForeignKey("shipments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("stocks_id", sa.Integer(), sa.ForeignKey("stocks.id"), nullable=False),
        sa.Column("assigned_weight", WEIGHT, nullable=False),
    )
    op.create_index("ix_shipment_items_shipment_id", "shipment_items", ["shipment_id"], unique=False)
    op.create_index("ix_shipment_items_stocks_id", "shipment_items", ["stocks_id"], unique=False)

    op.create_table(
        "stock_history",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("stocks_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("user_cognito_id", sa.String(length=128), nullable=True),
        sa.Column("admin_cognito_id", sa.String(length=128), nullable=True),
        sa.Column("shipment_id", sa.Integer(), nullable=True),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("details", sa.JSON(), nullable=False),
    )
    op.create_index("ix_stock_history_stock_timestamp", "stock_history", ["stocks_id", "timestamp"], unique=False)
    op.create_index("ix_stock_history_user_cognito_id", "stock_history", ["user_cognito_id"], unique=False)
    op.create_index("ix_stock_history_admin_cognito_id", "stock_history", ["admin_cognito_id"], unique=False)
    op.create_index("ix_stock_history_shipment_id", "stock_history", ["shipment_id"], unique=False)
    op.create_index("ix_stock_history_timestamp", "stock_history", ["timestamp"], unique=False)

    op.create_table(
        "shipment_history",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("shipment_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("user_cognito_id", sa.String(length=128), nullable=True),
        sa.Column("admin_cognito_id", sa.String(length=128), nullable=True),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("details", sa.JSON(), nullable=False),
    )
    op.create_index(
        "ix_shipment_history_shipment_timestamp", "shipment_history", ["shipment_id", "timestamp"], unique=False
    )
    op.create_index("ix_shipment_history_user_cognito_id", "shipment_history", ["user_cognito_id"], unique=False)
    op.create_index("ix_shipment_history_admin_cognito_id", "shipment_history", ["admin_cognito_id"], unique=False)
    op.create_index("ix_shipment_history_timestamp", "shipment_history", ["timestamp"], unique=False)


def downgrade() -> None:
    op.drop_table("shipment_history")
    op.drop_table("stock_history")
    op.drop_table("shipment_items")
    op.drop_table("shipments")
    op.drop_table("favorites")
    op.drop_table("stock_assignments")
    op.drop_table("stocks")
    op.drop_table("users")
    op.drop_table("admins")
