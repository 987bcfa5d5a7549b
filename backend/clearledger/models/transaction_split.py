"""
Transaction split database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, BigInteger, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from clearledger.database import Base
from clearledger.money import from_cents


class TransactionSplit(Base):
    """One leg of a balanced multi-leg posting. Legs of a transaction sum to zero."""

    __tablename__ = "transaction_splits"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    transaction_id = Column(String(36), ForeignKey("transactions.id"), nullable=False, index=True)
    account_id = Column(String(36), ForeignKey("accounts.id"), nullable=True)
    category_id = Column(String(36), ForeignKey("categories.id"), nullable=True)
    amount_cents = Column(BigInteger, nullable=False)
    memo = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    transaction = relationship("Transaction", back_populates="splits")

    @property
    def amount(self):
        return from_cents(self.amount_cents)
