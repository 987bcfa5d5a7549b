"""
Bank statement database models.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, BigInteger, Date, DateTime, Enum, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
import enum
from clearledger.database import Base
from clearledger.money import from_cents


class StatementStatus(str, enum.Enum):
    pending = "pending"
    in_progress = "in_progress"
    reconciled = "reconciled"


class MatchMethod(str, enum.Enum):
    manual = "manual"
    hash = "hash"
    extracted = "extracted"
    extracted_created = "extracted_created"


class BankStatement(Base):
    """Externally issued period statement. Balances are stored as printed."""

    __tablename__ = "bank_statements"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    account_id = Column(String(36), ForeignKey("accounts.id"), nullable=False, index=True)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    beginning_balance_cents = Column(BigInteger, nullable=True)
    ending_balance_cents = Column(BigInteger, nullable=False)
    status = Column(Enum(StatementStatus), nullable=False, default=StatementStatus.pending)
    extracted_data = Column(JSON, nullable=True)
    unmatched_transactions = Column(JSON, nullable=True)
    reconciled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    account = relationship("Account", back_populates="statements")
    cleared = relationship("StatementTransaction", back_populates="statement", cascade="all, delete-orphan")

    @property
    def beginning_balance(self):
        return from_cents(self.beginning_balance_cents)

    @property
    def ending_balance(self):
        return from_cents(self.ending_balance_cents)


class StatementTransaction(Base):
    """A transaction cleared against a statement."""

    __tablename__ = "statement_transactions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    statement_id = Column(String(36), ForeignKey("bank_statements.id"), nullable=False, index=True)
    transaction_id = Column(String(36), ForeignKey("transactions.id"), nullable=False)
    match_method = Column(Enum(MatchMethod), nullable=False, default=MatchMethod.manual)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    statement = relationship("BankStatement", back_populates="cleared")

    __table_args__ = (
        UniqueConstraint("statement_id", "transaction_id", name="uq_statement_transaction"),
    )
