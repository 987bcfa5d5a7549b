"""
Import batch database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, BigInteger, Boolean, DateTime, Enum, Text, JSON, ForeignKey, Index
from sqlalchemy.orm import relationship
import enum
from clearledger.database import Base


class ImportStatus(str, enum.Enum):
    """Import status enumeration."""
    queued = "queued"
    running = "running"
    succeeded = "succeeded"
    failed = "failed"
    canceled = "canceled"


ACTIVE_IMPORT_STATUSES = (ImportStatus.queued, ImportStatus.running)


class AmountStrategy(str, enum.Enum):
    signed = "signed"
    inflow_outflow = "inflow_outflow"


class ImportBatch(Base):
    """One ingestion run over one uploaded file (or one extracted statement)."""

    __tablename__ = "import_batches"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    account_id = Column(String(36), ForeignKey("accounts.id"), nullable=False)
    filename = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=True)
    file_hash = Column(String(64), nullable=False)
    file_size = Column(BigInteger, nullable=False, default=0)

    column_mapping = Column(JSON, nullable=True)
    amount_strategy = Column(Enum(AmountStrategy), nullable=False, default=AmountStrategy.signed)
    date_format = Column(String(3), nullable=True)  # ymd | mdy | dmy
    status_map = Column(JSON, nullable=True)
    flip_signs = Column(Boolean, nullable=False, default=False)
    source_system = Column(String(50), nullable=False, default="manual")
    canonical_rows = Column(JSON, nullable=True)  # pre-transformed rows, e.g. from a statement

    status = Column(Enum(ImportStatus), nullable=False, default=ImportStatus.queued)
    total_rows = Column(Integer, default=0, nullable=False)
    processed_rows = Column(Integer, default=0, nullable=False)
    inserted_rows = Column(Integer, default=0, nullable=False)
    skipped_rows = Column(Integer, default=0, nullable=False)
    error_rows = Column(Integer, default=0, nullable=False)
    issues = Column(JSON, nullable=True)  # bounded sample of row-level messages
    last_error = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    started_at = Column(DateTime, nullable=True)
    finished_at = Column(DateTime, nullable=True)
    canceled_at = Column(DateTime, nullable=True)

    # Relationships
    transactions = relationship("Transaction", back_populates="import_batch")

    __table_args__ = (
        Index("idx_import_account_file_hash", "account_id", "file_hash"),
    )
