"""Initial schema: organizations, catalog, stock ledger, bills, credit notes

Revision ID: 0001_initial_core_schema
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_initial_core_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "organizations",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(32), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("organizations", schema=None) as batch_op:
        batch_op.create_index("ix_organizations_code", ["code"], unique=True)
        batch_op.create_index("ix_organizations_is_active", ["is_active"], unique=False)

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(120), nullable=False),
        sa.Column("brand", sa.String(120), nullable=True),
        sa.Column("barcode", sa.String(64), nullable=True),
        sa.Column("qr_code", sa.String(255), nullable=True),
        sa.Column("unit", sa.String(32), nullable=False, server_default="piece"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("mrp", sa.Numeric(10, 2), nullable=False),
        sa.Column("cost", sa.Numeric(10, 2), nullable=False),
        sa.Column("quantity_in_stock", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("min_stock_level", sa.Integer(), nullable=False, server_default=sa.text("5")),
        sa.Column("manufacturing_date", sa.Date(), nullable=True),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint("quantity_in_stock >= 0", name="ck_products_stock_non_negative"),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "barcode", name="uq_products_org_barcode"),
        sa.UniqueConstraint("org_id", "qr_code", name="uq_products_org_qr_code"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.create_index("ix_products_org_id", ["org_id"], unique=False)
        batch_op.create_index("ix_products_org_name", ["org_id", "name"], unique=False)
        batch_op.create_index("ix_products_org_status", ["org_id", "status"], unique=False)
        batch_op.create_index("ix_products_expiry_date", ["expiry_date"], unique=False)

    op.create_table(
        "inventory_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.String(36), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("transaction_type", sa.String(16), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("quantity_delta", sa.Integer(), nullable=False),
        sa.Column("reference_type", sa.String(32), nullable=False),
        sa.Column("reference_id", sa.String(64), nullable=True),
        sa.Column("notes", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_invtx_quantity_positive"),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("inventory_transactions", schema=None) as batch_op:
        batch_op.create_index("ix_inventory_transactions_org_id", ["org_id"], unique=False)
        batch_op.create_index("ix_inventory_transactions_product_id", ["product_id"], unique=False)
        batch_op.create_index("ix_inventory_transactions_transaction_type", ["transaction_type"], unique=False)
        batch_op.create_index("ix_inventory_transactions_created_at", ["created_at"], unique=False)
        batch_op.create_index("ix_invtx_org_product_created", ["org_id", "product_id", "created_at"], unique=False)
        batch_op.create_index("ix_invtx_org_reference", ["org_id", "reference_type", "reference_id"], unique=False)

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "email", name="uq_customers_org_email"),
        sa.UniqueConstraint("org_id", "phone", name="uq_customers_org_phone"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("customers", schema=None) as batch_op:
        batch_op.create_index("ix_customers_org_id", ["org_id"], unique=False)

    op.create_table(
        "bills",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.String(36), nullable=False),
        sa.Column("bill_number", sa.String(64), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("discount_amount", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("tax_amount", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("final_amount", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("payment_method", sa.String(32), nullable=False, server_default="cash"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("finalized_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finalized_by", sa.String(64), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "bill_number", name="uq_bills_org_bill_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("bills", schema=None) as batch_op:
        batch_op.create_index("ix_bills_org_id", ["org_id"], unique=False)
        batch_op.create_index("ix_bills_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_bills_org_finalized", ["org_id", "finalized_at"], unique=False)
        batch_op.create_index("ix_bills_org_created", ["org_id", "created_at"], unique=False)

    op.create_table(
        "bill_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("bill_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("total_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_bill_items_quantity_positive"),
        sa.ForeignKeyConstraint(["bill_id"], ["bills.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("bill_items", schema=None) as batch_op:
        batch_op.create_index("ix_bill_items_bill_id", ["bill_id"], unique=False)
        batch_op.create_index("ix_bill_items_product_id", ["product_id"], unique=False)

    op.create_table(
        "credit_notes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.String(36), nullable=False),
        sa.Column("bill_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("reason", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint("amount > 0", name="ck_credit_notes_amount_positive"),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["bill_id"], ["bills.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("credit_notes", schema=None) as batch_op:
        batch_op.create_index("ix_credit_notes_org_id", ["org_id"], unique=False)
        batch_op.create_index("ix_credit_notes_bill_id", ["bill_id"], unique=False)
        batch_op.create_index("ix_credit_notes_org_bill_created", ["org_id", "bill_id", "created_at"], unique=False)

    op.create_table(
        "bill_sequences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.String(36), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", name="uq_bill_sequences_org"),
        sqlite_autoincrement=True,
    )


def downgrade():
    op.drop_table("bill_sequences")
    with op.batch_alter_table("credit_notes", schema=None) as batch_op:
        batch_op.drop_index("ix_credit_notes_org_bill_created")
        batch_op.drop_index("ix_credit_notes_bill_id")
        batch_op.drop_index("ix_credit_notes_org_id")
    op.drop_table("credit_notes")
    with op.batch_alter_table("bill_items", schema=None) as batch_op:
        batch_op.drop_index("ix_bill_items_product_id")
        batch_op.drop_index("ix_bill_items_bill_id")
    op.drop_table("bill_items")
    with op.batch_alter_table("bills", schema=None) as batch_op:
        batch_op.drop_index("ix_bills_org_created")
        batch_op.drop_index("ix_bills_org_finalized")
        batch_op.drop_index("ix_bills_customer_id")
        batch_op.drop_index("ix_bills_org_id")
    op.drop_table("bills")
    with op.batch_alter_table("customers", schema=None) as batch_op:
        batch_op.drop_index("ix_customers_org_id")
    op.drop_table("customers")
    with op.batch_alter_table("inventory_transactions", schema=None) as batch_op:
        batch_op.drop_index("ix_invtx_org_reference")
        batch_op.drop_index("ix_invtx_org_product_created")
        batch_op.drop_index("ix_inventory_transactions_created_at")
        batch_op.drop_index("ix_inventory_transactions_transaction_type")
        batch_op.drop_index("ix_inventory_transactions_product_id")
        batch_op.drop_index("ix_inventory_transactions_org_id")
    op.drop_table("inventory_transactions")
    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.drop_index("ix_products_expiry_date")
        batch_op.drop_index("ix_products_org_status")
        batch_op.drop_index("ix_products_org_name")
        batch_op.drop_index("ix_products_org_id")
    op.drop_table("products")
    with op.batch_alter_table("organizations", schema=None) as batch_op:
        batch_op.drop_index("ix_organizations_is_active")
        batch_op.drop_index("ix_organizations_code")
    op.drop_table("organizations")
