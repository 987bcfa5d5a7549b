"""
Transaction schemas.
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime
from decimal import Decimal

from clearledger.models.transaction import ReviewStatus, ReconciliationStatus, BankStatus


class SplitResponse(BaseModel):
    id: str
    account_id: Optional[str] = None
    category_id: Optional[str] = None
    amount: Decimal
    memo: Optional[str] = None

    class Config:
        from_attributes = True


class TransactionResponse(BaseModel):
    id: str
    account_id: str
    date: date
    payee: str
    payee_original: Optional[str]
    description: Optional[str]
    memo: Optional[str]
    reference: Optional[str]
    amount: Decimal
    category_id: Optional[str]
    ai_suggested_category_id: Optional[str]
    ai_confidence: float
    matched_rule_id: Optional[str]
    review_status: ReviewStatus
    reconciliation_status: ReconciliationStatus
    bank_status: Optional[BankStatus]
    is_transfer: bool
    transfer_group_id: Optional[str]
    transfer_to_account_id: Optional[str]
    source: str
    import_id: Optional[str]
    is_split: bool
    splits: List[SplitResponse] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TransactionListResponse(BaseModel):
    items: list[TransactionResponse]
    total: int
    page: int
    pages: int


class ApproveRequest(BaseModel):
    """Approve a transaction, optionally assigning a category first."""
    category_id: Optional[str] = None
    actor: Optional[str] = None


class BulkApproveRequest(BaseModel):
    transaction_ids: List[str] = Field(..., min_length=1)
    actor: Optional[str] = None


class BulkApproveResponse(BaseModel):
    approved: int
    skipped: List[str] = []


class CategorizePreviewRequest(BaseModel):
    payee: str = Field(..., min_length=1)
    description: Optional[str] = None
    amount: Decimal = Decimal("0")
    reference: Optional[str] = None


class CategorizePreviewResponse(BaseModel):
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    confidence: float = 0.0
    rule_id: Optional[str] = None
    source: str = "none"
