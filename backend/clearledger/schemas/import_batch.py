"""
Import batch schemas.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Literal
from datetime import date, datetime
from decimal import Decimal

from clearledger.models.import_batch import ImportStatus, AmountStrategy


class ColumnMapping(BaseModel):
    """Maps canonical fields to source header names."""
    date: Optional[str] = Field(None, description="Header holding the transaction date")
    amount: Optional[str] = Field(None, description="Header holding a signed amount")
    inflow: Optional[str] = Field(None, description="Header holding money in")
    outflow: Optional[str] = Field(None, description="Header holding money out")
    payee: Optional[str] = None
    description: Optional[str] = None
    memo: Optional[str] = None
    reference: Optional[str] = None
    category: Optional[str] = None
    status: Optional[str] = None


class RowError(BaseModel):
    """A rejected input row."""
    row_number: int
    field: str
    message: str


class RowIssue(BaseModel):
    """A non-fatal problem on an accepted row."""
    row_number: int
    field: str
    severity: str = "warning"
    message: str


class CanonicalRecord(BaseModel):
    """A transaction normalized from any source format."""
    row_number: int
    date: date
    payee: str
    description: Optional[str] = None
    memo: Optional[str] = None
    reference: Optional[str] = None
    amount_cents: int
    category_id: Optional[str] = None
    bank_status: Optional[str] = None
    reconciliation_status: Optional[str] = None
    review_status: Optional[str] = None
    transfer_group_id: Optional[str] = None
    transfer_to_account_id: Optional[str] = None
    source_system: str = "manual"
    row_hash: str
    raw_data: Dict[str, Any] = {}


class TransformResult(BaseModel):
    records: List[CanonicalRecord] = []
    errors: List[RowError] = []
    issues: List[RowIssue] = []


class MappingDetectionResponse(BaseModel):
    headers: List[str]
    mapping: ColumnMapping
    amount_strategy: AmountStrategy
    date_format: Optional[str] = None
    header_fingerprint: str
    preview_rows: List[Dict[str, str]] = []
    problems: List[str] = []


class ImportBatchResponse(BaseModel):
    id: str
    account_id: str
    filename: str
    file_hash: str
    file_size: int
    amount_strategy: AmountStrategy
    source_system: str
    status: ImportStatus
    total_rows: int
    processed_rows: int
    inserted_rows: int
    skipped_rows: int
    error_rows: int
    issues: Optional[List[Dict[str, Any]]] = None
    last_error: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ImportSubmitResponse(BaseModel):
    batch: ImportBatchResponse
    existing: bool = False


class ExtractedTransaction(BaseModel):
    """One noisy line from an externally parsed statement, in ledger sign convention."""
    date: date
    description: str = ""
    amount: Decimal
    card: Optional[str] = None
    type: Optional[str] = None


LedgerAccountKind = Literal["account", "category"]


class LedgerAccountTarget(BaseModel):
    """Where a ledger-export account name lands: a bank account or a category."""
    kind: LedgerAccountKind
    id: str


class LedgerAccountClassification(BaseModel):
    """A guess at what a ledger-export account name refers to."""
    name: str
    kind: LedgerAccountKind
    confidence: float
    target_id: Optional[str] = None
    suggested_type: Optional[str] = None
    is_deleted: bool = False


class LedgerTransformStats(BaseModel):
    expenses: int = 0
    income: int = 0
    transfers: int = 0
    journal_entries: int = 0


class LedgerAnalysisResponse(BaseModel):
    total_rows: int
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    classifications: List[LedgerAccountClassification] = []


class LedgerImportResponse(BaseModel):
    batches: List[ImportBatchResponse] = []
    stats: LedgerTransformStats
    errors: List[RowError] = []
