from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _money(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.Numeric(12, 2), nullable=nullable, server_default=None if nullable else "0")


def upgrade() -> None:
    op.create_table(
        "stores",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False, index=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("slug", name="uq_store_slug"),
    )
    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("store_id", sa.Integer(), nullable=False, index=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("nickname", sa.String(255), nullable=True),
        sa.Column("cpf", sa.String(20), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True, index=True),
        sa.Column("notes", sa.String(500), nullable=True),
        _money("credit_limit", nullable=True),
        sa.Column("due_day", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], ondelete="CASCADE"),
    )
    op.create_table(
        "consignment_suppliers",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("store_id", sa.Integer(), nullable=False, index=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("contact", sa.String(255), nullable=True),
        sa.Column("pix_key", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], ondelete="CASCADE"),
    )
    op.create_table(
        "consignment_products",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("store_id", sa.Integer(), nullable=False, index=True),
        sa.Column("supplier_id", sa.Integer(), nullable=False, index=True),
        sa.Column("name", sa.String(255), nullable=False),
        _money("cost_price"),
        _money("sale_price"),
        sa.Column("current_stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sold_qty", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["supplier_id"], ["consignment_suppliers.id"], ondelete="CASCADE"),
    )
    op.create_table(
        "closing_records",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("store_id", sa.Integer(), nullable=False, index=True),
        sa.Column("business_day", sa.Date(), nullable=False, index=True),
        _money("declared_gross_sales"),
        _money("opening_balance"),
        _money("extra_cash_received"),
        _money("credit_total"),
        _money("debit_total"),
        _money("card_pix_total"),
        _money("direct_pix_total"),
        _money("physical_cash_counted"),
        sa.Column("denomination_counts", sa.JSON(), nullable=True),
        _money("total_expenses"),
        _money("total_store_credit_issued"),
        _money("expected_total"),
        _money("counted_total"),
        _money("discrepancy"),
        _money("safe_deposit"),
        _money("next_opening_balance"),
        sa.Column("retroactive", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("closed_by", sa.String(255), nullable=False),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("store_id", "business_day", name="uq_closing_store_day"),
    )
    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("store_id", sa.Integer(), nullable=False, index=True),
        sa.Column("business_day", sa.Date(), nullable=False, index=True),
        sa.Column("category", sa.String(40), nullable=False, index=True),
        sa.Column("description", sa.String(500), nullable=False, server_default=""),
        _money("amount"),
        sa.Column("linked_customer_id", sa.Integer(), nullable=True, index=True),
        sa.Column("linked_supplier_id", sa.Integer(), nullable=True, index=True),
        sa.Column("closed", sa.Boolean(), nullable=False, server_default=sa.false(), index=True),
        sa.Column("closing_record_id", sa.Integer(), nullable=True, index=True),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["linked_customer_id"], ["customers.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["linked_supplier_id"], ["consignment_suppliers.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["closing_record_id"], ["closing_records.id"]),
    )
    op.create_table(
        "customer_debts",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("store_id", sa.Integer(), nullable=False, index=True),
        sa.Column("customer_id", sa.Integer(), nullable=False, index=True),
        sa.Column("ledger_entry_id", sa.Integer(), nullable=True, index=True),
        sa.Column("purchase_date", sa.Date(), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        _money("total_value"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending", index=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["ledger_entry_id"], ["ledger_entries.id"], ondelete="SET NULL"),
    )
    op.create_table(
        "delivery_platform_sales",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("store_id", sa.Integer(), nullable=False, index=True),
        sa.Column("ledger_entry_id", sa.Integer(), nullable=True, index=True),
        sa.Column("sale_date", sa.Date(), nullable=False, index=True),
        sa.Column("due_date", sa.Date(), nullable=False, index=True),
        sa.Column("gross_value", sa.Numeric(12, 2), nullable=False),
        sa.Column("fee_percent", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("net_value", sa.Numeric(12, 2), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending", index=True),
        sa.Column("reconciled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reconciled_by", sa.String(255), nullable=True),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["ledger_entry_id"], ["ledger_entries.id"], ondelete="SET NULL"),
    )
    op.create_table(
        "safe_entries",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("store_id", sa.Integer(), nullable=False, index=True),
        sa.Column("entry_date", sa.Date(), nullable=False, index=True),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column("kind", sa.String(10), nullable=False),
        sa.Column("value", sa.Numeric(12, 2), nullable=False),
        sa.Column("closing_record_id", sa.Integer(), nullable=True, index=True),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["closing_record_id"], ["closing_records.id"]),
    )
    op.create_table(
        "close_sessions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("store_id", sa.Integer(), nullable=False, index=True),
        sa.Column("business_day", sa.Date(), nullable=False, index=True),
        sa.Column("state", sa.String(20), nullable=False, server_default="sales"),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("snapshot_entry_ids", sa.JSON(), nullable=True),
        sa.Column("closing_record_id", sa.Integer(), nullable=True),
        sa.Column("operator", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["closing_record_id"], ["closing_records.id"]),
    )


def downgrade() -> None:
    op.drop_table("close_sessions")
    op.drop_table("safe_entries")
    op.drop_table("delivery_platform_sales")
    op.drop_table("customer_debts")
    op.drop_table("ledger_entries")
    op.drop_table("closing_records")
    op.drop_table("consignment_products")
    op.drop_table("consignment_suppliers")
    op.drop_table("customers")
    op.drop_table("stores")
