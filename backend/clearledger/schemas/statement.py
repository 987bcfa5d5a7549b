"""
Bank statement and reconciliation schemas.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import date, datetime
from decimal import Decimal

from clearledger.models.bank_statement import StatementStatus
from clearledger.models.transaction import ReconciliationStatus
from clearledger.schemas.import_batch import ExtractedTransaction


class StatementCreate(BaseModel):
    account_id: str
    period_start: date
    period_end: date
    ending_balance: Decimal = Field(..., description="As printed; amount owed is positive for cards")
    beginning_balance: Optional[Decimal] = None


class StatementResponse(BaseModel):
    id: str
    account_id: str
    period_start: date
    period_end: date
    beginning_balance: Optional[Decimal]
    ending_balance: Decimal
    status: StatementStatus
    reconciled_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class StatementLine(BaseModel):
    id: str
    date: date
    payee: str
    description: Optional[str]
    amount: Decimal
    reconciliation_status: ReconciliationStatus
    is_cleared: bool


class StatementSummaryResponse(BaseModel):
    statement: StatementResponse
    is_liability: bool
    beginning_balance: Decimal
    statement_beginning_balance: Optional[Decimal] = None
    beginning_balance_mismatch: bool = False
    cleared_deposits: Decimal
    cleared_withdrawals: Decimal
    computed_ending_balance: Decimal
    statement_ending_balance: Decimal
    difference: Decimal
    is_reconcilable: bool
    cleared_count: int
    uncleared_count: int
    transactions: List[StatementLine]
    unmatched_statement_transactions: List[Dict[str, Any]] = []


class ClearRequest(BaseModel):
    transaction_ids: List[str] = Field(..., min_length=1)
    cleared: bool = True


class ClearResponse(BaseModel):
    changed: int


class AutoMatchResponse(BaseModel):
    matched: int


class MatchExtractedRequest(BaseModel):
    transactions: List[ExtractedTransaction]
    create_missing: bool = False


class MatchExtractedResponse(BaseModel):
    matched_count: int
    created_count: int
    unmatched: List[ExtractedTransaction]


class ReconcileResponse(BaseModel):
    ok: bool
    difference: Decimal
    reconciled_count: int = 0
    message: Optional[str] = None


class ExtractionSummary(BaseModel):
    """Statement summary box, as printed."""
    payments_credits: Optional[Decimal] = None
    new_charges: Optional[Decimal] = None
    fees: Optional[Decimal] = None
    interest: Optional[Decimal] = None


class StatementExtraction(BaseModel):
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    beginning_balance: Optional[Decimal] = None
    ending_balance: Optional[Decimal] = None
    summary: Optional[ExtractionSummary] = None
    transactions: List[ExtractedTransaction] = []


class ValidationCheck(BaseModel):
    name: str
    severity: str  # pass | warn | fail
    message: str


class ValidationReport(BaseModel):
    overall: str
    checks: List[ValidationCheck]


class RemovedLine(BaseModel):
    line: Dict[str, Any]
    reason: str


class FixedLine(BaseModel):
    description: str
    field: str
    old_value: Optional[str]
    new_value: Optional[str]


class SanitizationReport(BaseModel):
    removed: List[RemovedLine] = []
    fixed: List[FixedLine] = []


class ExtractionResponse(BaseModel):
    """Cleaned extraction in ledger sign convention plus the advisory reports."""
    account_id: str
    extraction: StatementExtraction
    validation: ValidationReport
    sanitization: SanitizationReport
    statement_id: Optional[str] = None
