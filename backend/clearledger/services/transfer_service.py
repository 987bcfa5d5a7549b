"""
Transfer pairing: links same-day, exactly opposite amounts across accounts.
"""

import logging
import uuid
from datetime import date
from typing import List, Set, Tuple

from sqlalchemy.orm import Session

from clearledger.models.transaction import Transaction

logger = logging.getLogger(__name__)


def pair_transfers(db: Session, account_id: str, txn_date: date) -> List[Tuple[str, str]]:
    """
    Pair untagged transactions on ``account_id`` dated ``txn_date`` with their
    mirror on another account. First available candidate wins.

    Returns (source_id, paired_id) tuples. Already-grouped legs are excluded,
    so running this again for the same date pairs nothing new.
    """
    sources = (
        db.query(Transaction)
        .filter(
            Transaction.account_id == account_id,
            Transaction.date == txn_date,
            Transaction.transfer_group_id.is_(None),
            Transaction.deleted_at.is_(None),
            Transaction.amount_cents != 0,
        )
        .order_by(Transaction.created_at, Transaction.id)
        .all()
    )
    if not sources:
        return []

    candidates = (
        db.query(Transaction)
        .filter(
            Transaction.account_id != account_id,
            Transaction.date == txn_date,
            Transaction.transfer_group_id.is_(None),
            Transaction.deleted_at.is_(None),
        )
        .order_by(Transaction.created_at, Transaction.id)
        .all()
    )
    if not candidates:
        return []

    used: Set[str] = set()
    paired: List[Tuple[str, str]] = []

    for source in sources:
        match = next(
            (c for c in candidates if c.id not in used and c.amount_cents == -source.amount_cents),
            None,
        )
        if match is None:
            continue

        used.add(match.id)
        group_id = str(uuid.uuid4())

        source.is_transfer = True
        source.transfer_group_id = group_id
        source.transfer_to_account_id = match.account_id

        match.is_transfer = True
        match.transfer_group_id = group_id
        match.transfer_to_account_id = source.account_id

        paired.append((source.id, match.id))

    if paired:
        db.commit()
        logger.info(f"Paired {len(paired)} transfer(s) for account {account_id} on {txn_date}")
    return paired
