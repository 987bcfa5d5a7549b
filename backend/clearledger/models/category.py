"""
Category database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
import enum
from clearledger.database import Base


class CategoryType(str, enum.Enum):
    """Profit-and-loss section a category reports under."""
    income = "income"
    cost_of_goods = "cost_of_goods"
    expense = "expense"
    other_income = "other_income"
    other_expense = "other_expense"


class Category(Base):
    """Category model, two levels deep (parent/child)."""

    __tablename__ = "categories"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False, unique=True)
    category_type = Column(Enum(CategoryType), nullable=False, default=CategoryType.expense)
    parent_id = Column(String(36), ForeignKey("categories.id"), nullable=True)
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    parent = relationship("Category", remote_side=[id], backref="children")
    transactions = relationship("Transaction", back_populates="category", foreign_keys="Transaction.category_id")
    rules = relationship("CategorizationRule", back_populates="category")
