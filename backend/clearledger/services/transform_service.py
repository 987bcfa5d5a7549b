"""
Canonical transformer: raw header-keyed rows -> canonical transaction records.

Rows that cannot be read are rejected with a field-tagged error and the rest
of the batch carries on.
"""

import re
import uuid
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from clearledger.models.import_batch import AmountStrategy
from clearledger.money import AmountParseError, parse_amount, to_cents
from clearledger.parsers.base import RawRow
from clearledger.schemas.import_batch import (
    CanonicalRecord,
    ColumnMapping,
    ExtractedTransaction,
    RowError,
    RowIssue,
    TransformResult,
)
from clearledger.services.deduplication_service import generate_row_hash
from clearledger.services.errors import RowTransformError

_SLASH_DATE_RE = re.compile(r"^(\d{1,2})[/.-](\d{1,2})[/.-](\d{2,4})$")

# Formats tried after ISO parsing and before slash-style day/month guessing
_TEXT_DATE_FORMATS = ("%Y/%m/%d", "%b %d, %Y", "%B %d, %Y", "%d %b %Y", "%d %B %Y", "%b %d %Y")

FALLBACK_STATUS_MAP = {
    "pending": "pending",
    "posted": "posted",
    "complete": "posted",
    "completed": "posted",
    "settled": "posted",
    "cleared": "cleared",
    "reconciled": "reconciled",
    "unreconciled": "unreconciled",
}

BANK_STATUSES = {"pending", "posted"}
RECONCILIATION_STATUSES = {"unreconciled", "cleared", "reconciled"}


def normalize_value(value: Optional[Any]) -> Optional[str]:
    if value is None:
        return None
    trimmed = str(value).strip()
    return trimmed or None


def parse_date(value: str, date_format: Optional[str] = None) -> date:
    """
    Parse a date cell.

    ISO-style values are accepted first. Slash dates are read as month/day/year
    unless ``date_format`` is ``"dmy"``.
    """
    raw = value.strip()
    try:
        return datetime.fromisoformat(raw).date()
    except ValueError:
        pass

    for fmt in _TEXT_DATE_FORMATS:
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue

    match = _SLASH_DATE_RE.match(raw)
    if match:
        first, second, year = (int(part) for part in match.groups())
        if year < 100:
            year += 2000
        month, day = (second, first) if date_format == "dmy" else (first, second)
        try:
            return date(year, month, day)
        except ValueError:
            pass

    raise RowTransformError("date", f"Unable to parse date: {value}")


def resolve_status_value(
    raw_value: Optional[str],
    status_map: Optional[Dict[str, str]] = None
) -> Tuple[Optional[str], Optional[str]]:
    """Return (status, issue_message). ``ignore`` in the user map drops the value."""
    if not raw_value:
        return None, None
    key = raw_value.strip().lower()
    if status_map and key in status_map:
        mapped = status_map[key]
        if not mapped or mapped == "ignore":
            return None, None
        return mapped, None

    fallback = FALLBACK_STATUS_MAP.get(key)
    if fallback:
        return fallback, None

    return "posted", f'Status "{raw_value}" is not recognized; defaulted to "posted".'


def _read(row: RawRow, header: Optional[str]) -> Optional[str]:
    if not header:
        return None
    return normalize_value(row.get(header))


def _looks_like_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
        return True
    except ValueError:
        return False


def _read_amount(row: RawRow, mapping: ColumnMapping, strategy: AmountStrategy) -> int:
    if strategy == AmountStrategy.signed:
        raw = _read(row, mapping.amount)
        if raw is None:
            raise RowTransformError("amount", "Amount value is missing.")
        try:
            return parse_amount(raw)
        except AmountParseError as e:
            raise RowTransformError("amount", str(e)) from e

    inflow_raw = _read(row, mapping.inflow)
    outflow_raw = _read(row, mapping.outflow)
    if inflow_raw is None and outflow_raw is None:
        raise RowTransformError("inflow", "Inflow and outflow values are both missing.")
    try:
        inflow = parse_amount(inflow_raw) if inflow_raw else 0
    except AmountParseError as e:
        raise RowTransformError("inflow", str(e)) from e
    try:
        outflow = parse_amount(outflow_raw) if outflow_raw else 0
    except AmountParseError as e:
        raise RowTransformError("outflow", str(e)) from e
    # outflow columns are sometimes exported already negative
    return inflow - abs(outflow)


def transform_rows(
    rows: Iterable[RawRow],
    mapping: ColumnMapping,
    amount_strategy: AmountStrategy,
    source_system: str = "manual",
    date_format: Optional[str] = None,
    status_map: Optional[Dict[str, str]] = None,
    flip_signs: bool = False,
    category_ids: Optional[Set[str]] = None,
    row_offset: int = 0,
) -> TransformResult:
    """
    Convert raw rows under ``mapping`` into canonical records plus row errors/issues.

    Row numbers are 1-based and start after ``row_offset`` so chunks of one
    file keep their position in the file.
    """
    result = TransformResult()

    for index, row in enumerate(rows):
        row_number = row_offset + index + 1
        try:
            record, issues = _transform_row(
                row, row_number, mapping, amount_strategy, source_system,
                date_format, status_map, flip_signs, category_ids,
            )
        except RowTransformError as e:
            result.errors.append(RowError(row_number=row_number, field=e.field, message=e.message))
            continue
        result.records.append(record)
        result.issues.extend(issues)

    return result


def _transform_row(
    row: RawRow,
    row_number: int,
    mapping: ColumnMapping,
    amount_strategy: AmountStrategy,
    source_system: str,
    date_format: Optional[str],
    status_map: Optional[Dict[str, str]],
    flip_signs: bool,
    category_ids: Optional[Set[str]],
) -> Tuple[CanonicalRecord, List[RowIssue]]:
    issues: List[RowIssue] = []

    date_raw = _read(row, mapping.date)
    if date_raw is None:
        raise RowTransformError("date", "Date value is missing.")
    txn_date = parse_date(date_raw, date_format)

    amount_cents = _read_amount(row, mapping, amount_strategy)
    if flip_signs:
        amount_cents = -amount_cents

    payee = _read(row, mapping.payee)
    description = _read(row, mapping.description)
    memo = _read(row, mapping.memo)
    reference = _read(row, mapping.reference)
    if payee is None and description is None:
        raise RowTransformError("payee", "Payee or description is required.")

    resolved_description = description or memo or reference or payee
    resolved_payee = payee or resolved_description

    category_id = None
    raw_category = _read(row, mapping.category)
    if raw_category:
        known = raw_category in category_ids if category_ids is not None else _looks_like_uuid(raw_category)
        if known:
            category_id = raw_category
        else:
            issues.append(RowIssue(
                row_number=row_number,
                field="category",
                message=f'Category value "{raw_category}" is not a valid internal category ID.',
            ))

    status_value, status_issue = resolve_status_value(_read(row, mapping.status), status_map)
    if status_issue:
        issues.append(RowIssue(row_number=row_number, field="status", message=status_issue))
    bank_status = status_value if status_value in BANK_STATUSES else None
    reconciliation_status = status_value if status_value in RECONCILIATION_STATUSES else None

    row_hash = generate_row_hash(
        row_number=row_number,
        txn_date=txn_date,
        payee=resolved_payee,
        description=resolved_description,
        amount_cents=amount_cents,
        reference=reference,
        status=bank_status,
        source_system=source_system,
    )

    record = CanonicalRecord(
        row_number=row_number,
        date=txn_date,
        payee=resolved_payee,
        description=resolved_description,
        memo=memo,
        reference=reference,
        amount_cents=amount_cents,
        category_id=category_id,
        bank_status=bank_status,
        reconciliation_status=reconciliation_status,
        source_system=source_system,
        row_hash=row_hash,
        raw_data=dict(row),
    )
    return record, issues


def records_from_extracted(
    extracted: Iterable[ExtractedTransaction],
    source_system: str = "pdf_statement",
) -> List[CanonicalRecord]:
    """Bridge extracted statement lines (already in ledger sign) into canonical records."""
    records = []
    for index, txn in enumerate(extracted):
        row_number = index + 1
        amount_cents = to_cents(txn.amount)
        payee = txn.description.strip() or "Unknown"
        description = f"Card: {txn.card}" if txn.card else None
        records.append(CanonicalRecord(
            row_number=row_number,
            date=txn.date,
            payee=payee,
            description=description,
            memo=txn.type,
            amount_cents=amount_cents,
            source_system=source_system,
            row_hash=generate_row_hash(
                row_number, txn.date, payee, description, amount_cents, None, None, source_system
            ),
            raw_data={
                "date": txn.date.isoformat(),
                "description": txn.description,
                "amount": str(txn.amount),
                "card": txn.card or "",
                "type": txn.type or "",
            },
        ))
    return records
