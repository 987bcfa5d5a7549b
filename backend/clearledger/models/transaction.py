"""
Transaction database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, Boolean, DateTime, Date, BigInteger, Integer, Float, Text, Enum, JSON,
    ForeignKey, Index, UniqueConstraint,
)
from sqlalchemy.orm import relationship
import enum
from clearledger.database import Base
from clearledger.money import from_cents


class ReviewStatus(str, enum.Enum):
    needs_review = "needs_review"
    approved = "approved"


class ReconciliationStatus(str, enum.Enum):
    unreconciled = "unreconciled"
    cleared = "cleared"
    reconciled = "reconciled"


class BankStatus(str, enum.Enum):
    pending = "pending"
    posted = "posted"


class Transaction(Base):
    """Transaction model. Amounts are asset-centric cents: money out is negative."""

    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    account_id = Column(String(36), ForeignKey("accounts.id"), nullable=False)
    date = Column(Date, nullable=False, index=True)
    payee = Column(String(255), nullable=False)  # normalized / display form
    payee_original = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    memo = Column(Text, nullable=True)
    reference = Column(String(100), nullable=True)
    amount_cents = Column(BigInteger, nullable=False)

    category_id = Column(String(36), ForeignKey("categories.id"), nullable=True)
    ai_suggested_category_id = Column(String(36), ForeignKey("categories.id"), nullable=True)
    ai_confidence = Column(Float, default=0.0, nullable=False)
    matched_rule_id = Column(String(36), ForeignKey("categorization_rules.id"), nullable=True)

    review_status = Column(Enum(ReviewStatus), default=ReviewStatus.needs_review, nullable=False)
    reconciliation_status = Column(
        Enum(ReconciliationStatus), default=ReconciliationStatus.unreconciled, nullable=False
    )
    bank_status = Column(Enum(BankStatus), nullable=True)
    reconciled_at = Column(DateTime, nullable=True)

    is_transfer = Column(Boolean, default=False, nullable=False)
    transfer_group_id = Column(String(36), nullable=True, index=True)
    transfer_to_account_id = Column(String(36), ForeignKey("accounts.id"), nullable=True)

    source = Column(String(50), default="manual", nullable=False)
    source_id = Column(String(100), nullable=True)
    source_hash = Column(String(64), nullable=True)  # idempotency key, unique per account

    import_id = Column(String(36), ForeignKey("import_batches.id"), nullable=True)
    import_row_number = Column(Integer, nullable=True)
    import_row_hash = Column(String(64), nullable=True)
    raw_data = Column(JSON, nullable=True)

    is_split = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    account = relationship("Account", back_populates="transactions", foreign_keys=[account_id])
    category = relationship("Category", back_populates="transactions", foreign_keys=[category_id])
    splits = relationship("TransactionSplit", back_populates="transaction", cascade="all, delete-orphan")
    import_batch = relationship("ImportBatch", back_populates="transactions")

    # Indexes for common queries
    __table_args__ = (
        UniqueConstraint("account_id", "source_hash", name="uq_transaction_account_source_hash"),
        UniqueConstraint("import_id", "import_row_hash", name="uq_transaction_import_row_hash"),
        Index("idx_transaction_date_account", "date", "account_id"),
        Index("idx_transaction_category", "category_id"),
    )

    @property
    def amount(self):
        return from_cents(self.amount_cents)
