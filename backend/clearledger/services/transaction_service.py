"""
Transaction review: approval, reclassification and soft delete.

Every approval with a category feeds ``create_rule_from_approval`` so the next
import of the same payee is categorized by rule.
"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from clearledger.models.category import Category
from clearledger.models.review_action import ReviewAction, ReviewActionType
from clearledger.models.transaction import ReviewStatus, Transaction
from clearledger.services.categorization_service import create_rule_from_approval
from clearledger.services.errors import NotFoundError

logger = logging.getLogger(__name__)


def _snapshot(txn: Transaction) -> dict:
    return {
        "category_id": txn.category_id,
        "review_status": txn.review_status.value if txn.review_status else None,
    }


def get_transaction(db: Session, transaction_id: str) -> Transaction:
    txn = (
        db.query(Transaction)
        .filter(Transaction.id == transaction_id, Transaction.deleted_at.is_(None))
        .first()
    )
    if not txn:
        raise NotFoundError("Transaction not found")
    return txn


def _approve(
    db: Session,
    txn: Transaction,
    category_id: Optional[str],
    actor: Optional[str],
) -> Transaction:
    before = _snapshot(txn)
    proposed = txn.category_id or txn.ai_suggested_category_id
    chosen = category_id or proposed
    reclassified = chosen is not None and chosen != proposed
    txn.category_id = chosen
    txn.review_status = ReviewStatus.approved
    txn.updated_at = datetime.utcnow()

    db.add(ReviewAction(
        transaction_id=txn.id,
        action=ReviewActionType.reclass if reclassified else ReviewActionType.approve,
        before_json=before,
        after_json=_snapshot(txn),
        actor=actor,
    ))

    if txn.category_id:
        create_rule_from_approval(db, txn.payee, txn.description, txn.category_id)
    return txn


def approve_transaction(
    db: Session,
    transaction_id: str,
    category_id: Optional[str] = None,
    actor: Optional[str] = None,
) -> Transaction:
    """
    Approve one transaction. Without an explicit category the current one is
    kept, or the suggested one accepted when there is none.
    """
    txn = get_transaction(db, transaction_id)
    if category_id is not None and db.get(Category, category_id) is None:
        raise NotFoundError("Category not found")

    _approve(db, txn, category_id, actor)
    db.commit()
    db.refresh(txn)
    return txn


def bulk_approve(
    db: Session,
    transaction_ids: Sequence[str],
    actor: Optional[str] = None,
) -> Tuple[int, List[str]]:
    """
    Approve each transaction with its current category, or the suggested one
    when it has none. Transactions with neither are skipped.
    """
    approved = 0
    skipped: List[str] = []
    for transaction_id in transaction_ids:
        txn = (
            db.query(Transaction)
            .filter(Transaction.id == transaction_id, Transaction.deleted_at.is_(None))
            .first()
        )
        if not txn:
            skipped.append(transaction_id)
            continue
        if not (txn.category_id or txn.ai_suggested_category_id):
            skipped.append(transaction_id)
            continue
        _approve(db, txn, None, actor)
        approved += 1

    db.commit()
    logger.info(f"Bulk approved {approved} transaction(s), skipped {len(skipped)}")
    return approved, skipped


def soft_delete_transaction(db: Session, transaction_id: str) -> None:
    txn = get_transaction(db, transaction_id)
    txn.deleted_at = datetime.utcnow()
    db.commit()
