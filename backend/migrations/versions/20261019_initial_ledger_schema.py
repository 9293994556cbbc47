"""Initial ledger schema: stock ledger, purchasing, sales, accounts, register entries

Revision ID: 20261019_initial_ledger
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_initial_ledger"
down_revision = None
branch_labels = None
depends_on = None


def _money(name, nullable=False, default=True):
    kwargs = {"server_default": sa.text("0")} if default and not nullable else {}
    return sa.Column(name, sa.Numeric(18, 2), nullable=nullable, **kwargs)


def upgrade():
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("barcode", sa.String(64), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _money("purchase_price"),
        _money("sale_price"),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.create_index("ix_products_owner_id", ["owner_id"], unique=False)
        batch_op.create_index("ix_products_owner_name", ["owner_id", "name"], unique=False)
        batch_op.create_index("ix_products_owner_barcode", ["owner_id", "barcode"], unique=False)

    op.create_table(
        "stock_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("quantity_change", sa.Integer(), nullable=False),
        sa.Column("direction", sa.String(8), nullable=False),
        sa.Column("reason", sa.String(255), nullable=False),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("stock_transactions", schema=None) as batch_op:
        batch_op.create_index("ix_stock_transactions_owner_id", ["owner_id"], unique=False)
        batch_op.create_index("ix_stock_transactions_product_id", ["product_id"], unique=False)
        batch_op.create_index("ix_stock_transactions_occurred_at", ["occurred_at"], unique=False)
        batch_op.create_index("ix_stock_transactions_product_occurred", ["product_id", "occurred_at"], unique=False)

    op.create_table(
        "companies",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("companies", schema=None) as batch_op:
        batch_op.create_index("ix_companies_owner_id", ["owner_id"], unique=False)
        batch_op.create_index("ix_companies_owner_name", ["owner_id", "name"], unique=False)

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        _money("balance"),
        _money("open_account_limit", nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("customers", schema=None) as batch_op:
        batch_op.create_index("ix_customers_owner_id", ["owner_id"], unique=False)
        batch_op.create_index("ix_customers_owner_name", ["owner_id", "name"], unique=False)

    op.create_table(
        "purchase_invoices",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("invoice_number", sa.String(64), nullable=False),
        sa.Column("invoice_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("payment_method", sa.String(64), nullable=True),
        sa.Column("settlement_bucket", sa.String(16), nullable=True),
        _money("total_amount"),
        _money("total_discount"),
        _money("total_tax"),
        _money("grand_total"),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("purchase_invoices", schema=None) as batch_op:
        batch_op.create_index("ix_purchase_invoices_owner_id", ["owner_id"], unique=False)
        batch_op.create_index("ix_purchase_invoices_owner_date", ["owner_id", "invoice_date"], unique=False)
        batch_op.create_index("ix_purchase_invoices_company_date", ["company_id", "invoice_date"], unique=False)

    op.create_table(
        "purchase_invoice_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("invoice_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=True),
        sa.Column("barcode", sa.String(64), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        _money("unit_price", default=False),
        sa.Column("discount_rate_1", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("discount_rate_2", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("tax_rate", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        _money("line_total", default=False),
        _money("discount_amount", default=False),
        _money("tax_amount", default=False),
        sa.ForeignKeyConstraint(["invoice_id"], ["purchase_invoices.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("purchase_invoice_lines", schema=None) as batch_op:
        batch_op.create_index("ix_purchase_invoice_lines_invoice_id", ["invoice_id"], unique=False)
        batch_op.create_index("ix_purchase_invoice_lines_product_id", ["product_id"], unique=False)

    op.create_table(
        "company_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        _money("amount", default=False),
        sa.Column("transaction_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("payment_method", sa.String(64), nullable=True),
        sa.Column("settlement_bucket", sa.String(16), nullable=True),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("company_transactions", schema=None) as batch_op:
        batch_op.create_index("ix_company_transactions_owner_id", ["owner_id"], unique=False)
        batch_op.create_index("ix_company_transactions_company_date", ["company_id", "transaction_date"], unique=False)

    op.create_table(
        "sales",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("sale_code", sa.String(64), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_split", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("payment_method", sa.String(64), nullable=True),
        sa.Column("settlement_bucket", sa.String(16), nullable=True),
        _money("sub_total"),
        sa.Column("discount_type", sa.String(16), nullable=True),
        _money("discount_value", nullable=True),
        _money("discount_amount"),
        _money("miscellaneous_total"),
        _money("total_amount"),
        sa.Column("total_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sales", schema=None) as batch_op:
        batch_op.create_index("ix_sales_owner_id", ["owner_id"], unique=False)
        batch_op.create_index("ix_sales_completed_at", ["completed_at"], unique=False)
        batch_op.create_index("ix_sales_owner_completed", ["owner_id", "is_completed", "completed_at"], unique=False)
        batch_op.create_index("ix_sales_customer", ["customer_id"], unique=False)

    op.create_table(
        "sale_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sale_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        _money("unit_price", default=False),
        _money("discount"),
        _money("line_total", default=False),
        _money("unit_cost", nullable=True),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sale_lines", schema=None) as batch_op:
        batch_op.create_index("ix_sale_lines_sale_id", ["sale_id"], unique=False)
        batch_op.create_index("ix_sale_lines_product_id", ["product_id"], unique=False)

    op.create_table(
        "sale_miscellaneous",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sale_id", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(255), nullable=False),
        _money("amount", default=False),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sale_miscellaneous", schema=None) as batch_op:
        batch_op.create_index("ix_sale_miscellaneous_sale_id", ["sale_id"], unique=False)

    op.create_table(
        "debts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        _money("amount", default=False),
        sa.Column("debt_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("note", sa.String(255), nullable=True),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("debts", schema=None) as batch_op:
        batch_op.create_index("ix_debts_owner_id", ["owner_id"], unique=False)
        batch_op.create_index("ix_debts_customer_date", ["customer_id", "debt_date"], unique=False)

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("sale_id", sa.Integer(), nullable=True),
        _money("amount", default=False),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("payment_method", sa.String(64), nullable=False),
        sa.Column("settlement_bucket", sa.String(16), nullable=False),
        sa.Column("note", sa.String(255), nullable=True),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("payments", schema=None) as batch_op:
        batch_op.create_index("ix_payments_owner_id", ["owner_id"], unique=False)
        batch_op.create_index("ix_payments_sale_id", ["sale_id"], unique=False)
        batch_op.create_index("ix_payments_customer_date", ["customer_id", "payment_date"], unique=False)
        batch_op.create_index("ix_payments_owner_date", ["owner_id", "payment_date"], unique=False)

    for table in ("incomes", "expenses"):
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("owner_id", sa.String(64), nullable=False),
            _money("amount", default=False),
            sa.Column("description", sa.String(255), nullable=True),
            sa.Column("category", sa.String(64), nullable=True),
            sa.Column("payment_method", sa.String(64), nullable=False),
            sa.Column("settlement_bucket", sa.String(16), nullable=False),
            sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sqlite_autoincrement=True,
        )
        with op.batch_alter_table(table, schema=None) as batch_op:
            batch_op.create_index(f"ix_{table}_owner_id", ["owner_id"], unique=False)
            batch_op.create_index(f"ix_{table}_occurred_at", ["occurred_at"], unique=False)


def downgrade():
    for table in (
        "expenses",
        "incomes",
        "payments",
        "debts",
        "sale_miscellaneous",
        "sale_lines",
        "sales",
        "company_transactions",
        "purchase_invoice_lines",
        "purchase_invoices",
        "customers",
        "companies",
        "stock_transactions",
        "products",
    ):
        op.drop_table(table)
