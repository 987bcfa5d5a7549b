"""
Statement reconciliation.

Balances are computed in ledger convention (money in positive). Liability
statements print what is owed as a positive number, so their printed
balances are multiplied by ``Account.statement_sign`` before any comparison.
All arithmetic is integer cents; a statement reconciles only at a zero
difference.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence, Set

from sqlalchemy import func
from sqlalchemy.orm import Session

from clearledger.models.account import Account, AccountType
from clearledger.models.bank_statement import (
    BankStatement,
    MatchMethod,
    StatementStatus,
    StatementTransaction,
)
from clearledger.models.transaction import ReconciliationStatus, ReviewStatus, Transaction
from clearledger.money import from_cents, to_cents
from clearledger.schemas.import_batch import ExtractedTransaction
from clearledger.services.deduplication_service import generate_statement_source_hash
from clearledger.services.errors import NotFoundError, StateConflictError, StatementLockedError

logger = logging.getLogger(__name__)

DATE_SCORE_WEIGHT = 0.6
DESCRIPTION_SCORE_WEIGHT = 0.4
BANK_DATE_TOLERANCE_DAYS = 1
CARD_DATE_TOLERANCE_DAYS = 3

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


@dataclass
class SummaryLine:
    transaction: Transaction
    is_cleared: bool


@dataclass
class ReconciliationSummary:
    statement: BankStatement
    is_liability: bool
    beginning_balance_cents: int
    statement_ending_balance_cents: int
    cleared_deposits_cents: int
    cleared_withdrawals_cents: int
    computed_ending_balance_cents: int
    difference_cents: int
    cleared_count: int
    uncleared_count: int
    lines: List[SummaryLine]
    unmatched_statement_transactions: List[Dict[str, Any]]
    # printed beginning balance in ledger sign, when the statement carries one
    statement_beginning_balance_cents: Optional[int] = None

    @property
    def is_reconcilable(self) -> bool:
        return self.difference_cents == 0

    @property
    def beginning_balance_mismatch(self) -> bool:
        return (
            self.statement_beginning_balance_cents is not None
            and self.statement_beginning_balance_cents != self.beginning_balance_cents
        )


@dataclass
class MatchResult:
    matched_count: int = 0
    created_count: int = 0
    unmatched: List[ExtractedTransaction] = field(default_factory=list)


@dataclass
class ReconcileResult:
    ok: bool
    difference_cents: int
    reconciled_count: int = 0
    message: Optional[str] = None


def get_statement(db: Session, statement_id: str) -> BankStatement:
    statement = db.query(BankStatement).filter(BankStatement.id == statement_id).first()
    if not statement:
        raise NotFoundError(f"Statement {statement_id} not found")
    return statement


def list_statements(db: Session, account_id: Optional[str] = None) -> List[BankStatement]:
    query = db.query(BankStatement)
    if account_id:
        query = query.filter(BankStatement.account_id == account_id)
    return query.order_by(BankStatement.period_end.desc()).all()


def create_statement(
    db: Session,
    account_id: str,
    period_start: date,
    period_end: date,
    ending_balance_cents: int,
    beginning_balance_cents: Optional[int] = None,
    extracted_data: Optional[Dict[str, Any]] = None,
) -> BankStatement:
    """Record a statement. Balances are given as printed by the institution."""
    account = db.query(Account).filter(Account.id == account_id).first()
    if not account:
        raise NotFoundError(f"Account {account_id} not found")
    if period_end < period_start:
        raise ValueError("Statement period ends before it starts")

    statement = BankStatement(
        account_id=account_id,
        period_start=period_start,
        period_end=period_end,
        beginning_balance_cents=beginning_balance_cents,
        ending_balance_cents=ending_balance_cents,
        extracted_data=extracted_data,
        status=StatementStatus.pending,
    )
    db.add(statement)
    db.commit()
    db.refresh(statement)
    return statement


def _ensure_unlocked(statement: BankStatement) -> None:
    if statement.status == StatementStatus.reconciled:
        raise StatementLockedError(
            f"Statement {statement.id} is reconciled; un-reconcile it before making changes"
        )


def _mark_in_progress(statement: BankStatement) -> None:
    if statement.status == StatementStatus.pending:
        statement.status = StatementStatus.in_progress


def _cleared_ids(db: Session, statement_id: str) -> Set[str]:
    rows = (
        db.query(StatementTransaction.transaction_id)
        .filter(StatementTransaction.statement_id == statement_id)
        .all()
    )
    return {transaction_id for (transaction_id,) in rows}


def _claimed_elsewhere(db: Session, statement_id: str) -> Set[str]:
    rows = (
        db.query(StatementTransaction.transaction_id)
        .filter(StatementTransaction.statement_id != statement_id)
        .all()
    )
    return {transaction_id for (transaction_id,) in rows}


def _period_transactions(db: Session, statement: BankStatement) -> List[Transaction]:
    return (
        db.query(Transaction)
        .filter(
            Transaction.account_id == statement.account_id,
            Transaction.date >= statement.period_start,
            Transaction.date <= statement.period_end,
            Transaction.deleted_at.is_(None),
        )
        .order_by(Transaction.date, Transaction.created_at, Transaction.id)
        .all()
    )


def get_beginning_balance(db: Session, account: Account, period_start: date) -> int:
    """
    Ledger-convention balance at the start of ``period_start``.

    The latest reconciled statement ending before the period wins. Otherwise
    the account's opening balance plus every transaction dated before the
    period (and on or after the opening date, when one is set).
    """
    previous = (
        db.query(BankStatement)
        .filter(
            BankStatement.account_id == account.id,
            BankStatement.status == StatementStatus.reconciled,
            BankStatement.period_end < period_start,
        )
        .order_by(BankStatement.period_end.desc())
        .first()
    )
    if previous:
        return previous.ending_balance_cents * account.statement_sign

    query = db.query(func.coalesce(func.sum(Transaction.amount_cents), 0)).filter(
        Transaction.account_id == account.id,
        Transaction.date < period_start,
        Transaction.deleted_at.is_(None),
    )
    if account.opening_balance_date:
        query = query.filter(Transaction.date >= account.opening_balance_date)
    prior_total = int(query.scalar() or 0)

    return (account.opening_balance_cents or 0) * account.statement_sign + prior_total


def compute_summary(db: Session, statement_id: str) -> ReconciliationSummary:
    statement = get_statement(db, statement_id)
    account = statement.account
    sign = account.statement_sign

    beginning = get_beginning_balance(db, account, statement.period_start)
    statement_ending = statement.ending_balance_cents * sign
    statement_beginning = (
        statement.beginning_balance_cents * sign
        if statement.beginning_balance_cents is not None else None
    )

    cleared_ids = _cleared_ids(db, statement_id)
    transactions = _period_transactions(db, statement)
    in_period = {t.id for t in transactions}
    missing = cleared_ids - in_period
    if missing:
        # cleared lines posted outside the printed period still count
        transactions += (
            db.query(Transaction)
            .filter(Transaction.id.in_(missing), Transaction.deleted_at.is_(None))
            .order_by(Transaction.date, Transaction.created_at, Transaction.id)
            .all()
        )

    deposits = 0
    withdrawals = 0
    lines = []
    for txn in transactions:
        is_cleared = txn.id in cleared_ids
        lines.append(SummaryLine(txn, is_cleared))
        if not is_cleared:
            continue
        if txn.amount_cents >= 0:
            deposits += txn.amount_cents
        else:
            withdrawals += -txn.amount_cents

    computed_ending = beginning + deposits - withdrawals
    cleared_count = sum(1 for line in lines if line.is_cleared)

    return ReconciliationSummary(
        statement=statement,
        is_liability=account.is_liability,
        beginning_balance_cents=beginning,
        statement_ending_balance_cents=statement_ending,
        cleared_deposits_cents=deposits,
        cleared_withdrawals_cents=withdrawals,
        computed_ending_balance_cents=computed_ending,
        difference_cents=statement_ending - computed_ending,
        cleared_count=cleared_count,
        uncleared_count=len(lines) - cleared_count,
        lines=lines,
        unmatched_statement_transactions=list(statement.unmatched_transactions or []),
        statement_beginning_balance_cents=statement_beginning,
    )


def _link(db: Session, statement_id: str, txn: Transaction, method: MatchMethod) -> None:
    db.add(StatementTransaction(statement_id=statement_id, transaction_id=txn.id, match_method=method))
    if txn.reconciliation_status == ReconciliationStatus.unreconciled:
        txn.reconciliation_status = ReconciliationStatus.cleared


def set_cleared(db: Session, statement_id: str, transaction_ids: Sequence[str], cleared: bool = True) -> int:
    """Clear or unclear transactions against a statement. Returns how many changed."""
    statement = get_statement(db, statement_id)
    _ensure_unlocked(statement)

    ids = list(dict.fromkeys(transaction_ids))
    transactions = (
        db.query(Transaction)
        .filter(
            Transaction.id.in_(ids),
            Transaction.account_id == statement.account_id,
            Transaction.deleted_at.is_(None),
        )
        .all()
    )
    found = {t.id for t in transactions}
    unknown = [i for i in ids if i not in found]
    if unknown:
        raise NotFoundError(f"Transactions not found on this account: {', '.join(unknown)}")

    already = _cleared_ids(db, statement_id)
    changed = 0
    if cleared:
        elsewhere = _claimed_elsewhere(db, statement_id)
        for txn in transactions:
            if txn.id in already:
                continue
            if txn.id in elsewhere:
                raise StateConflictError(f"Transaction {txn.id} is already cleared on another statement")
            _link(db, statement_id, txn, MatchMethod.manual)
            changed += 1
    else:
        for txn in transactions:
            if txn.id not in already:
                continue
            db.query(StatementTransaction).filter(
                StatementTransaction.statement_id == statement_id,
                StatementTransaction.transaction_id == txn.id,
            ).delete(synchronize_session=False)
            if txn.reconciliation_status == ReconciliationStatus.cleared:
                txn.reconciliation_status = ReconciliationStatus.unreconciled
            changed += 1

    _mark_in_progress(statement)
    db.commit()
    return changed


def auto_match(db: Session, statement_id: str) -> int:
    """Clear every in-period transaction that came from a hashed source and is not yet cleared."""
    statement = get_statement(db, statement_id)
    _ensure_unlocked(statement)

    taken = _cleared_ids(db, statement_id) | _claimed_elsewhere(db, statement_id)
    matched = 0
    for txn in _period_transactions(db, statement):
        if txn.source_hash is None or txn.id in taken:
            continue
        _link(db, statement_id, txn, MatchMethod.hash)
        matched += 1

    if matched:
        _mark_in_progress(statement)
    db.commit()
    logger.info(f"Auto-matched {matched} transaction(s) to statement {statement_id}")
    return matched


def _normalize_for_match(value: str) -> str:
    return _NON_ALNUM_RE.sub("", value.lower())


def _longest_common_substring(a: str, b: str) -> int:
    best = 0
    previous = [0] * (len(b) + 1)
    for i in range(1, len(a) + 1):
        current = [0] * (len(b) + 1)
        for j in range(1, len(b) + 1):
            if a[i - 1] == b[j - 1]:
                current[j] = previous[j - 1] + 1
                if current[j] > best:
                    best = current[j]
        previous = current
    return best


def string_similarity(a: str, b: str) -> float:
    """1.0 when equal, 0.8 when one contains the other, else longest common substring ratio."""
    na = _normalize_for_match(a or "")
    nb = _normalize_for_match(b or "")
    if na == nb:
        return 1.0
    if not na or not nb:
        return 0.0
    if na in nb or nb in na:
        return 0.8
    return _longest_common_substring(na, nb) / max(len(na), len(nb))


def date_tolerance_days(account: Account) -> int:
    if account.account_type == AccountType.credit_card:
        return CARD_DATE_TOLERANCE_DAYS
    return BANK_DATE_TOLERANCE_DAYS


def score_candidate(day_diff: int, tolerance: int, description_similarity: float) -> float:
    date_score = 1 - (day_diff / (tolerance + 1))
    return DATE_SCORE_WEIGHT * date_score + DESCRIPTION_SCORE_WEIGHT * description_similarity


def match_extracted(
    db: Session,
    statement_id: str,
    extracted: Sequence[ExtractedTransaction],
    create_missing: bool = False,
) -> MatchResult:
    """
    Match noisy statement lines to ledger rows.

    Amounts must match to the cent and dates must fall inside the account's
    tolerance window. Each extracted line, in order, claims its best scoring
    unclaimed candidate; ties go to the earliest ledger row. Extracted
    amounts are expected in ledger convention.
    """
    statement = get_statement(db, statement_id)
    _ensure_unlocked(statement)
    account = statement.account
    tolerance = date_tolerance_days(account)

    ledger = _period_transactions(db, statement)
    claimed = _cleared_ids(db, statement_id) | _claimed_elsewhere(db, statement_id)
    result = MatchResult()
    unmatched: List[ExtractedTransaction] = []

    for ext in extracted:
        ext_cents = to_cents(ext.amount)
        ext_desc = ext.description or ""
        candidates = []
        for txn in ledger:
            if txn.id in claimed or txn.amount_cents != ext_cents:
                continue
            day_diff = abs((txn.date - ext.date).days)
            if day_diff > tolerance:
                continue
            similarity = string_similarity(ext_desc, txn.payee or txn.description or "")
            candidates.append((score_candidate(day_diff, tolerance, similarity), txn))

        if not candidates:
            unmatched.append(ext)
            continue

        # stable sort keeps ledger order among equal scores
        candidates.sort(key=lambda c: c[0], reverse=True)
        best = candidates[0][1]
        claimed.add(best.id)
        _link(db, statement_id, best, MatchMethod.extracted)
        result.matched_count += 1

    if create_missing and unmatched:
        remaining = []
        seen_hashes: Set[str] = set()
        for ext in unmatched:
            amount_cents = to_cents(ext.amount)
            source_hash = generate_statement_source_hash(statement_id, ext.date, ext.description, amount_cents)
            exists = (
                db.query(Transaction.id)
                .filter(Transaction.account_id == account.id, Transaction.source_hash == source_hash)
                .first()
            )
            if source_hash in seen_hashes or exists:
                remaining.append(ext)
                continue
            seen_hashes.add(source_hash)
            txn = Transaction(
                account_id=account.id,
                date=ext.date,
                payee=ext.description.strip() or "Unknown",
                payee_original=ext.description,
                description=f"Card: {ext.card}" if ext.card else None,
                amount_cents=amount_cents,
                review_status=ReviewStatus.needs_review,
                source="pdf_statement",
                source_hash=source_hash,
            )
            db.add(txn)
            db.flush()
            _link(db, statement_id, txn, MatchMethod.extracted_created)
            result.created_count += 1
        unmatched = remaining

    result.unmatched = unmatched
    statement.unmatched_transactions = [ext.model_dump(mode="json") for ext in unmatched]
    _mark_in_progress(statement)
    db.commit()
    logger.info(
        f"Statement {statement_id}: {result.matched_count} matched, "
        f"{result.created_count} created, {len(unmatched)} unmatched"
    )
    return result


def reconcile(db: Session, statement_id: str) -> ReconcileResult:
    """Lock the statement when the difference is zero; otherwise refuse with the difference."""
    summary = compute_summary(db, statement_id)
    statement = summary.statement
    _ensure_unlocked(statement)

    if not summary.is_reconcilable:
        return ReconcileResult(
            ok=False,
            difference_cents=summary.difference_cents,
            message=f"Cannot reconcile: difference is {from_cents(summary.difference_cents)}",
        )

    now = datetime.utcnow()
    cleared = [line.transaction for line in summary.lines if line.is_cleared]
    for txn in cleared:
        txn.reconciliation_status = ReconciliationStatus.reconciled
        txn.reconciled_at = now

    statement.status = StatementStatus.reconciled
    statement.reconciled_at = now
    db.commit()
    logger.info(f"Statement {statement_id} reconciled with {len(cleared)} transaction(s)")
    return ReconcileResult(ok=True, difference_cents=0, reconciled_count=len(cleared))


def unreconcile(db: Session, statement_id: str) -> BankStatement:
    """Reopen a reconciled statement; its transactions drop back to cleared."""
    statement = get_statement(db, statement_id)
    if statement.status != StatementStatus.reconciled:
        raise StateConflictError(f"Statement {statement_id} is not reconciled")

    ids = _cleared_ids(db, statement_id)
    if ids:
        db.query(Transaction).filter(Transaction.id.in_(ids)).update(
            {
                Transaction.reconciliation_status: ReconciliationStatus.cleared,
                Transaction.reconciled_at: None,
            },
            synchronize_session=False,
        )

    statement.status = StatementStatus.in_progress
    statement.reconciled_at = None
    db.commit()
    db.refresh(statement)
    return statement
