"""
Statement and reconciliation API endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.orm import Session

from clearledger.dependencies import get_db, get_extractor
from clearledger.models import Account
from clearledger.money import from_cents, to_cents
from clearledger.schemas.statement import (
    AutoMatchResponse,
    ClearRequest,
    ClearResponse,
    ExtractionResponse,
    MatchExtractedRequest,
    MatchExtractedResponse,
    ReconcileResponse,
    StatementCreate,
    StatementLine,
    StatementResponse,
    StatementSummaryResponse,
)
from clearledger.services import reconciliation_service
from clearledger.services.errors import NotFoundError, StateConflictError
from clearledger.services.extraction_service import ExtractionError, ExtractionProvider, extract_statement

router = APIRouter(prefix="/statements", tags=["statements"])


def _translate(e: Exception) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, StateConflictError):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


def _summary_response(summary: reconciliation_service.ReconciliationSummary) -> StatementSummaryResponse:
    return StatementSummaryResponse(
        statement=StatementResponse.model_validate(summary.statement),
        is_liability=summary.is_liability,
        beginning_balance=from_cents(summary.beginning_balance_cents),
        statement_beginning_balance=from_cents(summary.statement_beginning_balance_cents),
        beginning_balance_mismatch=summary.beginning_balance_mismatch,
        cleared_deposits=from_cents(summary.cleared_deposits_cents),
        cleared_withdrawals=from_cents(summary.cleared_withdrawals_cents),
        computed_ending_balance=from_cents(summary.computed_ending_balance_cents),
        statement_ending_balance=from_cents(summary.statement_ending_balance_cents),
        difference=from_cents(summary.difference_cents),
        is_reconcilable=summary.is_reconcilable,
        cleared_count=summary.cleared_count,
        uncleared_count=summary.uncleared_count,
        transactions=[
            StatementLine(
                id=line.transaction.id,
                date=line.transaction.date,
                payee=line.transaction.payee,
                description=line.transaction.description,
                amount=line.transaction.amount,
                reconciliation_status=line.transaction.reconciliation_status,
                is_cleared=line.is_cleared,
            )
            for line in summary.lines
        ],
        unmatched_statement_transactions=summary.unmatched_statement_transactions,
    )


@router.get("", response_model=list[StatementResponse])
def list_statements(
    account_id: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """List statements, newest period first"""
    return reconciliation_service.list_statements(db, account_id)


@router.post("", response_model=StatementResponse, status_code=201)
def create_statement(
    statement: StatementCreate,
    db: Session = Depends(get_db)
):
    """Record a statement with its printed balances"""
    try:
        return reconciliation_service.create_statement(
            db,
            statement.account_id,
            statement.period_start,
            statement.period_end,
            to_cents(statement.ending_balance),
            to_cents(statement.beginning_balance) if statement.beginning_balance is not None else None,
        )
    except ValueError as e:
        raise _translate(e)


@router.post("/extract", response_model=ExtractionResponse)
async def extract(
    file: UploadFile = File(...),
    account_id: str = Form(...),
    create_statement: bool = Form(False),
    db: Session = Depends(get_db),
    extractor: Optional[ExtractionProvider] = Depends(get_extractor),
):
    """
    Extract transactions from a statement document.

    Returns the cleaned lines in ledger sign convention with the validation
    and sanitization reports. With ``create_statement`` the statement is
    recorded and the lines are matched against the ledger.
    """
    if extractor is None:
        raise HTTPException(status_code=503, detail="Statement extraction is not configured")
    account = db.query(Account).filter(Account.id == account_id).first()
    if not account:
        raise HTTPException(status_code=404, detail="Account not found")

    content = await file.read()
    try:
        extraction, validation, sanitization = await extract_statement(
            content, file.filename or "statement", account, extractor
        )
    except ExtractionError as e:
        raise HTTPException(status_code=422, detail=str(e))

    statement_id = None
    if create_statement:
        if not (extraction.period_start and extraction.period_end and extraction.ending_balance is not None):
            raise HTTPException(status_code=422, detail="Extraction is missing the statement period or balance")
        statement = reconciliation_service.create_statement(
            db,
            account.id,
            extraction.period_start,
            extraction.period_end,
            to_cents(extraction.ending_balance),
            to_cents(extraction.beginning_balance) if extraction.beginning_balance is not None else None,
            extracted_data=extraction.model_dump(mode="json"),
        )
        reconciliation_service.match_extracted(db, statement.id, extraction.transactions)
        statement_id = statement.id

    return ExtractionResponse(
        account_id=account.id,
        extraction=extraction,
        validation=validation,
        sanitization=sanitization,
        statement_id=statement_id,
    )


@router.get("/{statement_id}", response_model=StatementSummaryResponse)
def get_statement_summary(
    statement_id: str,
    db: Session = Depends(get_db)
):
    """Statement with its reconciliation arithmetic and candidate lines"""
    try:
        return _summary_response(reconciliation_service.compute_summary(db, statement_id))
    except NotFoundError as e:
        raise _translate(e)


@router.post("/{statement_id}/clear", response_model=ClearResponse)
def clear_transactions(
    statement_id: str,
    request: ClearRequest,
    db: Session = Depends(get_db)
):
    """Clear or unclear transactions against the statement"""
    try:
        changed = reconciliation_service.set_cleared(
            db, statement_id, request.transaction_ids, request.cleared
        )
    except ValueError as e:
        raise _translate(e)
    return ClearResponse(changed=changed)


@router.post("/{statement_id}/auto-match", response_model=AutoMatchResponse)
def auto_match(
    statement_id: str,
    db: Session = Depends(get_db)
):
    """Clear transactions whose source hash ties them to this statement"""
    try:
        return AutoMatchResponse(matched=reconciliation_service.auto_match(db, statement_id))
    except ValueError as e:
        raise _translate(e)


@router.post("/{statement_id}/match-extracted", response_model=MatchExtractedResponse)
def match_extracted(
    statement_id: str,
    request: MatchExtractedRequest,
    db: Session = Depends(get_db)
):
    """Fuzzy-match extracted statement lines to ledger transactions"""
    try:
        result = reconciliation_service.match_extracted(
            db, statement_id, request.transactions, request.create_missing
        )
    except ValueError as e:
        raise _translate(e)
    return MatchExtractedResponse(
        matched_count=result.matched_count,
        created_count=result.created_count,
        unmatched=result.unmatched,
    )


@router.post("/{statement_id}/reconcile", response_model=ReconcileResponse)
def reconcile(
    statement_id: str,
    db: Session = Depends(get_db)
):
    """Lock the statement when cleared transactions explain the ending balance"""
    try:
        result = reconciliation_service.reconcile(db, statement_id)
    except ValueError as e:
        raise _translate(e)
    if not result.ok:
        raise HTTPException(
            status_code=400,
            detail={"message": result.message, "difference": str(from_cents(result.difference_cents))},
        )
    return ReconcileResponse(
        ok=True,
        difference=from_cents(result.difference_cents),
        reconciled_count=result.reconciled_count,
        message=result.message,
    )


@router.post("/{statement_id}/unreconcile", response_model=StatementResponse)
def unreconcile(
    statement_id: str,
    db: Session = Depends(get_db)
):
    """Reopen a reconciled statement"""
    try:
        return reconciliation_service.unreconcile(db, statement_id)
    except ValueError as e:
        raise _translate(e)
