"""
Categorization rule database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Enum, Float, Integer, Text, ForeignKey
from sqlalchemy.orm import relationship
import enum
from clearledger.database import Base


class RuleMatchType(str, enum.Enum):
    """How ``payee_pattern`` is compared against a payee."""
    exact = "exact"
    pattern = "pattern"


class RuleCreatedBy(str, enum.Enum):
    user = "user"
    auto = "auto"


class CategorizationRule(Base):
    """Learned or user-defined payee -> category rule."""

    __tablename__ = "categorization_rules"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    match_type = Column(Enum(RuleMatchType), nullable=False, default=RuleMatchType.exact)
    payee_pattern = Column(String(255), nullable=False, index=True)
    description_pattern = Column(Text, nullable=True)
    category_id = Column(String(36), ForeignKey("categories.id"), nullable=False)
    confidence = Column(Float, nullable=False, default=0.95)
    times_applied = Column(Integer, nullable=False, default=0)
    times_correct = Column(Integer, nullable=False, default=0)
    times_wrong = Column(Integer, nullable=False, default=0)
    last_used = Column(DateTime, nullable=True)
    created_by = Column(Enum(RuleCreatedBy), nullable=False, default=RuleCreatedBy.user)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    category = relationship("Category", back_populates="rules")
