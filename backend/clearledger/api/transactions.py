"""
Transaction API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from sqlalchemy import or_
from typing import Optional
from datetime import date

from clearledger.dependencies import get_db, get_suggester
from clearledger.models import Category, Transaction, ReviewStatus, ReconciliationStatus
from clearledger.money import to_cents
from clearledger.schemas.transaction import (
    TransactionResponse,
    TransactionListResponse,
    ApproveRequest,
    BulkApproveRequest,
    BulkApproveResponse,
    CategorizePreviewRequest,
    CategorizePreviewResponse,
)
from clearledger.services import transaction_service
from clearledger.services.categorization_service import CategorizationEngine
from clearledger.services.errors import NotFoundError
from clearledger.services.suggester import CategorySuggester

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.get("", response_model=TransactionListResponse)
def list_transactions(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100),
    account_id: Optional[str] = None,
    category_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    review_status: Optional[ReviewStatus] = None,
    reconciliation_status: Optional[ReconciliationStatus] = None,
    import_id: Optional[str] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """List transactions with filtering and pagination"""
    query = db.query(Transaction).filter(Transaction.deleted_at.is_(None))

    if account_id:
        query = query.filter(Transaction.account_id == account_id)
    if category_id:
        query = query.filter(Transaction.category_id == category_id)
    if start_date:
        query = query.filter(Transaction.date >= start_date)
    if end_date:
        query = query.filter(Transaction.date <= end_date)
    if review_status:
        query = query.filter(Transaction.review_status == review_status)
    if reconciliation_status:
        query = query.filter(Transaction.reconciliation_status == reconciliation_status)
    if import_id:
        query = query.filter(Transaction.import_id == import_id)
    if search:
        search_term = f"%{search}%"
        query = query.filter(
            or_(
                Transaction.payee.ilike(search_term),
                Transaction.description.ilike(search_term)
            )
        )

    total = query.count()

    query = query.order_by(Transaction.date.desc(), Transaction.created_at.desc())
    query = query.offset((page - 1) * per_page).limit(per_page)

    transactions = query.all()
    pages = (total + per_page - 1) // per_page

    return TransactionListResponse(
        items=[TransactionResponse.model_validate(t) for t in transactions],
        total=total,
        page=page,
        pages=pages
    )


@router.post("/categorize", response_model=CategorizePreviewResponse)
async def categorize_preview(
    request: CategorizePreviewRequest,
    db: Session = Depends(get_db),
    suggester: Optional[CategorySuggester] = Depends(get_suggester),
):
    """Show how a payee would be categorized, without touching rule usage"""
    engine = CategorizationEngine(db, suggester=suggester, record_usage=False)
    result = await engine.categorize(
        request.payee, request.description, to_cents(request.amount), request.reference
    )
    category = db.get(Category, result.category_id) if result.category_id else None
    return CategorizePreviewResponse(
        category_id=result.category_id,
        category_name=category.name if category else None,
        confidence=result.confidence,
        rule_id=result.rule_id,
        source=result.source,
    )


@router.post("/bulk-approve", response_model=BulkApproveResponse)
def bulk_approve(
    request: BulkApproveRequest,
    db: Session = Depends(get_db)
):
    """Approve transactions with their current or suggested category"""
    approved, skipped = transaction_service.bulk_approve(db, request.transaction_ids, request.actor)
    return BulkApproveResponse(approved=approved, skipped=skipped)


@router.get("/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: str,
    db: Session = Depends(get_db)
):
    """Get a single transaction"""
    try:
        transaction = transaction_service.get_transaction(db, transaction_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return TransactionResponse.model_validate(transaction)


@router.post("/{transaction_id}/approve", response_model=TransactionResponse)
def approve_transaction(
    transaction_id: str,
    request: ApproveRequest,
    db: Session = Depends(get_db)
):
    """Approve a transaction and learn a rule from its category"""
    try:
        transaction = transaction_service.approve_transaction(
            db, transaction_id, request.category_id, request.actor
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return TransactionResponse.model_validate(transaction)


@router.delete("/{transaction_id}", status_code=204)
def delete_transaction(
    transaction_id: str,
    db: Session = Depends(get_db)
):
    """Soft delete a transaction"""
    try:
        transaction_service.soft_delete_transaction(db, transaction_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return None
