"""initial schema

Revision ID: 001
Revises: 
Create Date: 2026-10-18 09:00:00
"""

from alembic import op
import sqlalchemy as sa

revision = "001"
down_revision = None
branch_labels = None
depends_on = None

account_type = sa.Enum("checking", "savings", "credit_card", "loan", "investment", name="accounttype")
normal_balance = sa.Enum("debit", "credit", name="normalbalance")
category_type = sa.Enum("income", "cost_of_goods", "expense", "other_income", "other_expense", name="categorytype")
rule_match_type = sa.Enum("exact", "pattern", name="rulematchtype")
rule_created_by = sa.Enum("user", "auto", name="rulecreatedby")
import_status = sa.Enum("queued", "running", "succeeded", "failed", "canceled", name="importstatus")
amount_strategy = sa.Enum("signed", "inflow_outflow", name="amountstrategy")
review_status = sa.Enum("needs_review", "approved", name="reviewstatus")
reconciliation_status = sa.Enum("unreconciled", "cleared", "reconciled", name="reconciliationstatus")
bank_status = sa.Enum("pending", "posted", name="bankstatus")
statement_status = sa.Enum("pending", "in_progress", "reconciled", name="statementstatus")
match_method = sa.Enum("manual", "hash", "extracted", "extracted_created", name="matchmethod")
review_action_type = sa.Enum("approve", "reclass", name="reviewactiontype")


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("account_type", account_type, nullable=False),
        sa.Column("institution", sa.String(100), nullable=True),
        sa.Column("normal_balance", normal_balance, nullable=False),
        sa.Column("opening_balance_cents", sa.BigInteger(), nullable=False),
        sa.Column("opening_balance_date", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("category_type", category_type, nullable=False),
        sa.Column("parent_id", sa.String(36), sa.ForeignKey("categories.id"), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "categorization_rules",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("match_type", rule_match_type, nullable=False),
        sa.Column("payee_pattern", sa.String(255), nullable=False, index=True),
        sa.Column("description_pattern", sa.Text(), nullable=True),
        sa.Column("category_id", sa.String(36), sa.ForeignKey("categories.id"), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("times_applied", sa.Integer(), nullable=False),
        sa.Column("times_correct", sa.Integer(), nullable=False),
        sa.Column("times_wrong", sa.Integer(), nullable=False),
        sa.Column("last_used", sa.DateTime(), nullable=True),
        sa.Column("created_by", rule_created_by, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "import_batches",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("account_id", sa.String(36), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("filename", sa.String(255), nullable=False),
        sa.Column("file_path", sa.String(500), nullable=True),
        sa.Column("file_hash", sa.String(64), nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=False),
        sa.Column("column_mapping", sa.JSON(), nullable=True),
        sa.Column("amount_strategy", amount_strategy, nullable=False),
        sa.Column("date_format", sa.String(3), nullable=True),
        sa.Column("status_map", sa.JSON(), nullable=True),
        sa.Column("flip_signs", sa.Boolean(), nullable=False),
        sa.Column("source_system", sa.String(50), nullable=False),
        sa.Column("canonical_rows", sa.JSON(), nullable=True),
        sa.Column("status", import_status, nullable=False),
        sa.Column("total_rows", sa.Integer(), nullable=False),
        sa.Column("processed_rows", sa.Integer(), nullable=False),
        sa.Column("inserted_rows", sa.Integer(), nullable=False),
        sa.Column("skipped_rows", sa.Integer(), nullable=False),
        sa.Column("error_rows", sa.Integer(), nullable=False),
        sa.Column("issues", sa.JSON(), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("finished_at", sa.DateTime(), nullable=True),
        sa.Column("canceled_at", sa.DateTime(), nullable=True),
    )
    op.create_index("idx_import_account_file_hash", "import_batches", ["account_id", "file_hash"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("account_id", sa.String(36), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False, index=True),
        sa.Column("payee", sa.String(255), nullable=False),
        sa.Column("payee_original", sa.String(255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("memo", sa.Text(), nullable=True),
        sa.Column("reference", sa.String(100), nullable=True),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("category_id", sa.String(36), sa.ForeignKey("categories.id"), nullable=True),
        sa.Column("ai_suggested_category_id", sa.String(36), sa.ForeignKey("categories.id"), nullable=True),
        sa.Column("ai_confidence", sa.Float(), nullable=False),
        sa.Column("matched_rule_id", sa.String(36), sa.ForeignKey("categorization_rules.id"), nullable=True),
        sa.Column("review_status", review_status, nullable=False),
        sa.Column("reconciliation_status", reconciliation_status, nullable=False),
        sa.Column("bank_status", bank_status, nullable=True),
        sa.Column("reconciled_at", sa.DateTime(), nullable=True),
        sa.Column("is_transfer", sa.Boolean(), nullable=False),
        sa.Column("transfer_group_id", sa.String(36), nullable=True, index=True),
        sa.Column("transfer_to_account_id", sa.String(36), sa.ForeignKey("accounts.id"), nullable=True),
        sa.Column("source", sa.String(50), nullable=False),
        sa.Column("source_id", sa.String(100), nullable=True),
        sa.Column("source_hash", sa.String(64), nullable=True),
        sa.Column("import_id", sa.String(36), sa.ForeignKey("import_batches.id"), nullable=True),
        sa.Column("import_row_number", sa.Integer(), nullable=True),
        sa.Column("import_row_hash", sa.String(64), nullable=True),
        sa.Column("raw_data", sa.JSON(), nullable=True),
        sa.Column("is_split", sa.Boolean(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("account_id", "source_hash", name="uq_transaction_account_source_hash"),
        sa.UniqueConstraint("import_id", "import_row_hash", name="uq_transaction_import_row_hash"),
    )
    op.create_index("idx_transaction_date_account", "transactions", ["date", "account_id"])
    op.create_index("idx_transaction_category", "transactions", ["category_id"])

    op.create_table(
        "transaction_splits",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("transaction_id", sa.String(36), sa.ForeignKey("transactions.id"), nullable=False, index=True),
        sa.Column("account_id", sa.String(36), sa.ForeignKey("accounts.id"), nullable=True),
        sa.Column("category_id", sa.String(36), sa.ForeignKey("categories.id"), nullable=True),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("memo", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "bank_statements",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("account_id", sa.String(36), sa.ForeignKey("accounts.id"), nullable=False, index=True),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("beginning_balance_cents", sa.BigInteger(), nullable=True),
        sa.Column("ending_balance_cents", sa.BigInteger(), nullable=False),
        sa.Column("status", statement_status, nullable=False),
        sa.Column("extracted_data", sa.JSON(), nullable=True),
        sa.Column("unmatched_transactions", sa.JSON(), nullable=True),
        sa.Column("reconciled_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "statement_transactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("statement_id", sa.String(36), sa.ForeignKey("bank_statements.id"), nullable=False, index=True),
        sa.Column("transaction_id", sa.String(36), sa.ForeignKey("transactions.id"), nullable=False),
        sa.Column("match_method", match_method, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("statement_id", "transaction_id", name="uq_statement_transaction"),
    )

    op.create_table(
        "review_actions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("transaction_id", sa.String(36), sa.ForeignKey("transactions.id"), nullable=False, index=True),
        sa.Column("action", review_action_type, nullable=False),
        sa.Column("before_json", sa.JSON(), nullable=True),
        sa.Column("after_json", sa.JSON(), nullable=True),
        sa.Column("actor", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("review_actions")
    op.drop_table("statement_transactions")
    op.drop_table("bank_statements")
    op.drop_table("transaction_splits")
    op.drop_index("idx_transaction_category", table_name="transactions")
    op.drop_index("idx_transaction_date_account", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("idx_import_account_file_hash", table_name="import_batches")
    op.drop_table("import_batches")
    op.drop_table("categorization_rules")
    op.drop_table("categories")
    op.drop_table("accounts")
