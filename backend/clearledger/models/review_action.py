"""
Review action database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Enum, JSON, ForeignKey
import enum
from clearledger.database import Base


class ReviewActionType(str, enum.Enum):
    approve = "approve"
    reclass = "reclass"


class ReviewAction(Base):
    """Audit row written whenever a transaction is approved or reclassified."""

    __tablename__ = "review_actions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    transaction_id = Column(String(36), ForeignKey("transactions.id"), nullable=False, index=True)
    action = Column(Enum(ReviewActionType), nullable=False)
    before_json = Column(JSON, nullable=True)
    after_json = Column(JSON, nullable=True)
    actor = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
