"""
Account database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Date, Enum, BigInteger
from sqlalchemy.orm import relationship
import enum
from clearledger.database import Base
from clearledger.money import from_cents


class AccountType(str, enum.Enum):
    """Account type enumeration."""
    checking = "checking"
    savings = "savings"
    credit_card = "credit_card"
    loan = "loan"
    investment = "investment"


class NormalBalance(str, enum.Enum):
    """Which side of the ledger increases the account."""
    debit = "debit"
    credit = "credit"


LIABILITY_TYPES = frozenset({AccountType.credit_card, AccountType.loan})


def normal_balance_for(account_type: AccountType) -> NormalBalance:
    if account_type in LIABILITY_TYPES:
        return NormalBalance.credit
    return NormalBalance.debit


class Account(Base):
    """Account model."""

    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    account_type = Column(Enum(AccountType), nullable=False)
    institution = Column(String(100), nullable=True)
    normal_balance = Column(Enum(NormalBalance), nullable=False, default=NormalBalance.debit)
    # As printed by the institution: liabilities are positive amounts owed
    opening_balance_cents = Column(BigInteger, default=0, nullable=False)
    opening_balance_date = Column(Date, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    transactions = relationship("Transaction", back_populates="account", foreign_keys="Transaction.account_id")
    statements = relationship("BankStatement", back_populates="account")

    @property
    def is_liability(self) -> bool:
        return self.normal_balance == NormalBalance.credit or self.account_type in LIABILITY_TYPES

    @property
    def statement_sign(self) -> int:
        """Multiplier converting between statement convention and ledger convention."""
        return -1 if self.is_liability else 1

    @property
    def opening_balance(self):
        return from_cents(self.opening_balance_cents)
