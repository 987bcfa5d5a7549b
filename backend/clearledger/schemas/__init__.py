"""
Pydantic schemas package.
"""

from clearledger.schemas.account import (
    AccountBase,
    AccountCreate,
    AccountUpdate,
    AccountResponse,
    AccountList,
)
from clearledger.schemas.category import (
    CategoryBase,
    CategoryCreate,
    CategoryUpdate,
    CategoryResponse,
    CategoryList,
)
from clearledger.schemas.import_batch import (
    ColumnMapping,
    CanonicalRecord,
    ExtractedTransaction,
    ImportBatchResponse,
    ImportSubmitResponse,
    MappingDetectionResponse,
)
from clearledger.schemas.rule import RuleCreate, RuleResponse, RuleList
from clearledger.schemas.statement import (
    StatementCreate,
    StatementResponse,
    StatementSummaryResponse,
    ReconcileResponse,
    ExtractionResponse,
)
from clearledger.schemas.transaction import (
    TransactionResponse,
    TransactionListResponse,
    ApproveRequest,
    BulkApproveRequest,
    BulkApproveResponse,
    CategorizePreviewRequest,
    CategorizePreviewResponse,
)

__all__ = [
    "AccountBase",
    "AccountCreate",
    "AccountUpdate",
    "AccountResponse",
    "AccountList",
    "CategoryBase",
    "CategoryCreate",
    "CategoryUpdate",
    "CategoryResponse",
    "CategoryList",
    "ColumnMapping",
    "CanonicalRecord",
    "ExtractedTransaction",
    "ImportBatchResponse",
    "ImportSubmitResponse",
    "MappingDetectionResponse",
    "RuleCreate",
    "RuleResponse",
    "RuleList",
    "StatementCreate",
    "StatementResponse",
    "StatementSummaryResponse",
    "ReconcileResponse",
    "ExtractionResponse",
    "TransactionResponse",
    "TransactionListResponse",
    "ApproveRequest",
    "BulkApproveRequest",
    "BulkApproveResponse",
    "CategorizePreviewRequest",
    "CategorizePreviewResponse",
]
