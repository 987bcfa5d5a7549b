"""
Double-entry ledger exports (QuickBooks general ledger CSV).

Each export row moves money from a credit account to a debit account. Once
every account name is mapped to a bank account or a category, a row becomes
single-entry transactions:

    bank <- category    income on the bank account
    category <- bank    expense on the bank account
    bank <- bank        a transfer: one leg per account, sharing a group id
    category <- category  a journal entry with no bank movement, skipped

The records are queued as one canonical batch per bank account and run
through the normal import runner.
"""

import csv
import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from clearledger.models.account import Account
from clearledger.models.category import Category
from clearledger.models.import_batch import ImportBatch
from clearledger.models.transaction import ReviewStatus
from clearledger.money import AmountParseError, parse_amount
from clearledger.parsers import CSVParser
from clearledger.parsers.base import RawRow
from clearledger.schemas.import_batch import (
    CanonicalRecord,
    LedgerAccountClassification,
    LedgerAccountTarget,
    LedgerTransformStats,
    RowError,
)
from clearledger.services import import_service
from clearledger.services.deduplication_service import generate_row_hash
from clearledger.services.errors import MappingError, NotFoundError, RowTransformError
from clearledger.services.transform_service import parse_date

logger = logging.getLogger(__name__)

LEDGER_SOURCE_SYSTEM = "quickbooks"

LEDGER_HEADER_CANDIDATES = {
    "date": ["Date", "date", "Trans Date"],
    "num": ["Num", "num", "Number", "Trans #"],
    "name": ["Name", "name", "Payee"],
    "memo": ["Memo", "memo", "Description"],
    "debit_account": ["PrimaryDebitAccount", "Primary Debit Account", "Debit Account", "Debit"],
    "debit_amount": ["PrimaryDebitAmount", "Primary Debit Amount", "Debit Amount"],
    "credit_account": ["PrimaryCreditAccount", "Primary Credit Account", "Credit Account", "Credit"],
    "credit_amount": ["PrimaryCreditAmount", "Primary Credit Amount", "Credit Amount"],
    "notes": ["Ed_Notes", "Ed Notes", "Notes"],
}

# clearing accounts that behave like bank accounts
BANK_LIKE_ACCOUNTS = {"undeposited funds", "accounts receivable", "accounts payable", "a/r", "a/p"}

INSTITUTION_KEYWORDS = (
    "bank", "chase", "citi", "amex", "wells fargo", "bofa", "capital one",
    "us bank", "relay", "mercury", "brex", "ramp", "american express", "discover",
)

CATEGORY_KEYWORDS = (
    "expense", "income", "cost", "materials", "supplies", "labor",
    "insurance", "tax", "depreciation", "advertising", "utilities",
    "rent", "interest", "fee", "service", "revenue", "sales",
    "wages", "salary", "commission", "repair", "maintenance",
)

_DELETED_RE = re.compile(r"^(.+?)\s*\(deleted\)\s*$", re.IGNORECASE)
_ACCOUNT_NUMBER_RE = re.compile(r"\d{4}")


@dataclass
class LedgerRow:
    row_number: int
    date: str
    num: str = ""
    name: str = ""
    memo: str = ""
    debit_account: str = ""
    debit_amount: str = ""
    credit_account: str = ""
    credit_amount: str = ""
    notes: str = ""
    raw: Dict[str, str] = field(default_factory=dict)


@dataclass
class LedgerTransformResult:
    records_by_account: Dict[str, List[CanonicalRecord]] = field(default_factory=dict)
    stats: LedgerTransformStats = field(default_factory=LedgerTransformStats)
    errors: List[RowError] = field(default_factory=list)

    @property
    def record_count(self) -> int:
        return sum(len(records) for records in self.records_by_account.values())


def _pick(row: RawRow, candidates: Sequence[str]) -> str:
    for header in candidates:
        value = (row.get(header) or "").strip()
        if value:
            return value
    return ""


def read_ledger_rows(rows: Sequence[RawRow]) -> List[LedgerRow]:
    """
    Read export rows by header name. Rows whose date cell holds no digit
    (section headings, totals) are dropped.
    """
    ledger_rows = []
    for index, row in enumerate(rows):
        values = {name: _pick(row, candidates) for name, candidates in LEDGER_HEADER_CANDIDATES.items()}
        if not any(ch.isdigit() for ch in values["date"]):
            continue
        ledger_rows.append(LedgerRow(row_number=index + 1, raw=dict(row), **values))
    return ledger_rows


def parse_ledger_export(content: bytes) -> List[LedgerRow]:
    _, rows = CSVParser().parse(content)
    return read_ledger_rows(rows)


def _strip_deleted(name: str) -> Tuple[str, bool]:
    match = _DELETED_RE.match(name)
    if match:
        return match.group(1).strip(), True
    return name, False


def infer_category_type(name: str) -> str:
    lower = name.lower()
    if "income" in lower or "revenue" in lower or "sales" in lower:
        return "other_income" if "other" in lower else "income"
    if "job materials" in lower or "cost of" in lower or lower.startswith("cogs"):
        return "cost_of_goods"
    if "other expense" in lower or "interest expense" in lower:
        return "other_expense"
    return "expense"


def infer_account_type(name: str) -> str:
    lower = name.lower()
    if "credit" in lower or "amex" in lower or "card" in lower:
        return "credit_card"
    if "loan" in lower or "note payable" in lower:
        return "loan"
    if "saving" in lower:
        return "savings"
    return "checking"


def classify_ledger_accounts(
    rows: Sequence[LedgerRow],
    accounts: Sequence[Account],
    categories: Sequence[Category],
) -> List[LedgerAccountClassification]:
    """
    Guess whether each account name in the export is a bank account or a
    category. Names matching an existing account or category by name win
    outright; the rest fall through keyword heuristics and default to a
    category, which is what most general-ledger accounts are.
    """
    names = sorted({
        name for row in rows for name in (row.debit_account, row.credit_account) if name
    })
    accounts_by_name = {account.name.lower(): account for account in accounts}
    categories_by_name = {category.name.lower(): category for category in categories}

    results = []
    for raw_name in names:
        cleaned, is_deleted = _strip_deleted(raw_name)
        lower = cleaned.lower()
        has_institution = any(keyword in lower for keyword in INSTITUTION_KEYWORDS)

        def classified(kind, confidence, target_id=None, suggested_type=None):
            return LedgerAccountClassification(
                name=raw_name,
                kind=kind,
                confidence=confidence,
                target_id=target_id,
                suggested_type=suggested_type,
                is_deleted=is_deleted,
            )

        account = accounts_by_name.get(lower)
        category = categories_by_name.get(lower) or categories_by_name.get(lower.split(":")[-1].strip())
        if account is not None:
            results.append(classified("account", 1.0, account.id, account.account_type.value))
        elif category is not None:
            results.append(classified("category", 1.0, category.id, category.category_type.value))
        elif ":" in cleaned:
            # colon names are QuickBooks sub-accounts of a category
            results.append(classified("category", 0.95, suggested_type=infer_category_type(cleaned)))
        elif lower in BANK_LIKE_ACCOUNTS:
            results.append(classified("account", 0.9, suggested_type="checking"))
        elif _ACCOUNT_NUMBER_RE.search(cleaned):
            results.append(classified(
                "account", 0.95 if has_institution else 0.8, suggested_type=infer_account_type(cleaned)
            ))
        elif has_institution:
            results.append(classified("account", 0.7, suggested_type=infer_account_type(cleaned)))
        elif any(keyword in lower for keyword in CATEGORY_KEYWORDS):
            results.append(classified("category", 0.8, suggested_type=infer_category_type(cleaned)))
        else:
            results.append(classified("category", 0.5, suggested_type=infer_category_type(cleaned)))
    return results


def suggested_account_map(
    classifications: Sequence[LedgerAccountClassification],
) -> Dict[str, LedgerAccountTarget]:
    """The part of a classification that already points at existing records."""
    return {
        c.name: LedgerAccountTarget(kind=c.kind, id=c.target_id)
        for c in classifications
        if c.target_id
    }


def _leg_amount(value: str) -> int:
    if not value:
        return 0
    return abs(parse_amount(value))


def _record(
    row: LedgerRow,
    txn_date: date,
    amount_cents: int,
    category_id: Optional[str] = None,
    transfer_group_id: Optional[str] = None,
    transfer_to_account_id: Optional[str] = None,
) -> CanonicalRecord:
    description = row.memo or row.num or row.name or None
    payee = row.name or description
    if not payee:
        raise RowTransformError("payee", "Payee or memo is required.")
    reference = row.num or None
    return CanonicalRecord(
        row_number=row.row_number,
        date=txn_date,
        payee=payee,
        description=description,
        memo=row.notes or None,
        reference=reference,
        amount_cents=amount_cents,
        category_id=category_id,
        review_status=ReviewStatus.approved.value,
        transfer_group_id=transfer_group_id,
        transfer_to_account_id=transfer_to_account_id,
        source_system=LEDGER_SOURCE_SYSTEM,
        row_hash=generate_row_hash(
            row.row_number, txn_date, payee, description, amount_cents, reference, None, LEDGER_SOURCE_SYSTEM
        ),
        raw_data=row.raw,
    )


def transform_ledger_rows(
    rows: Sequence[LedgerRow],
    account_map: Dict[str, LedgerAccountTarget],
    date_format: Optional[str] = None,
) -> LedgerTransformResult:
    """Split double-entry rows into single-entry records grouped by bank account."""
    result = LedgerTransformResult()

    def add(account_id: str, record: CanonicalRecord) -> None:
        result.records_by_account.setdefault(account_id, []).append(record)

    def reject(row: LedgerRow, field_name: str, message: str) -> None:
        result.errors.append(RowError(row_number=row.row_number, field=field_name, message=message))

    for row in rows:
        if not row.debit_account and not row.credit_account:
            reject(row, "account", "No debit or credit account.")
            continue

        debit = account_map.get(row.debit_account) if row.debit_account else None
        credit = account_map.get(row.credit_account) if row.credit_account else None
        if row.debit_account and debit is None:
            reject(row, "debit_account", f'Unmapped debit account "{row.debit_account}".')
            continue
        if row.credit_account and credit is None:
            reject(row, "credit_account", f'Unmapped credit account "{row.credit_account}".')
            continue

        try:
            txn_date = parse_date(row.date, date_format)
            debit_cents = _leg_amount(row.debit_amount)
            credit_cents = _leg_amount(row.credit_amount)
            debit_is_bank = debit is not None and debit.kind == "account"
            credit_is_bank = credit is not None and credit.kind == "account"

            if debit_is_bank and credit_is_bank and debit.id != credit.id:
                amount = debit_cents or credit_cents
                group_id = str(uuid.uuid4())
                incoming = _record(row, txn_date, amount, None, group_id, credit.id)
                outgoing = _record(row, txn_date, -amount, None, group_id, debit.id)
                add(debit.id, incoming)
                add(credit.id, outgoing)
                result.stats.transfers += 1
            elif debit_is_bank and not credit_is_bank:
                add(debit.id, _record(row, txn_date, debit_cents, credit.id if credit else None))
                result.stats.income += 1
            elif credit_is_bank and not debit_is_bank:
                add(credit.id, _record(row, txn_date, -credit_cents, debit.id if debit else None))
                result.stats.expenses += 1
            else:
                result.stats.journal_entries += 1
        except RowTransformError as e:
            reject(row, e.field, e.message)
        except AmountParseError as e:
            reject(row, "amount", str(e))

    return result


def _check_targets(db: Session, account_map: Dict[str, LedgerAccountTarget]) -> None:
    account_ids = {t.id for t in account_map.values() if t.kind == "account"}
    category_ids = {t.id for t in account_map.values() if t.kind == "category"}
    found_accounts = {a for (a,) in db.query(Account.id).filter(Account.id.in_(account_ids)).all()}
    found_categories = {c for (c,) in db.query(Category.id).filter(Category.id.in_(category_ids)).all()}
    missing = sorted((account_ids - found_accounts) | (category_ids - found_categories))
    if missing:
        raise NotFoundError(f"Mapped records not found: {', '.join(missing)}")


def submit_ledger_import(
    db: Session,
    filename: str,
    content: bytes,
    account_map: Dict[str, LedgerAccountTarget],
    date_format: Optional[str] = None,
) -> Tuple[List[Tuple[ImportBatch, bool]], LedgerTransformResult]:
    """
    Transform a ledger export and queue one batch per bank account.

    Returns the (batch, existing) pairs and the transform result, whose
    row errors cover rows that never reached a batch.
    """
    _check_targets(db, account_map)
    try:
        rows = parse_ledger_export(content)
    except (UnicodeDecodeError, csv.Error, ValueError) as e:
        raise MappingError(f"Could not read {filename}: {e}") from e

    result = transform_ledger_rows(rows, account_map, date_format)
    batches = [
        import_service.queue_canonical_batch(db, account_id, records, filename, LEDGER_SOURCE_SYSTEM)
        for account_id, records in result.records_by_account.items()
    ]
    logger.info(
        f"Ledger export {filename}: {result.record_count} transactions for "
        f"{len(batches)} accounts, {len(result.errors)} rejected rows, {result.stats.model_dump()}"
    )
    return batches, result
