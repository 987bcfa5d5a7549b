"""
Column mapping detection and validation for tabular imports.
"""

import hashlib
import json
import re
from typing import Dict, List, Optional, Sequence, Tuple

from clearledger.models.import_batch import AmountStrategy
from clearledger.parsers.base import RawRow
from clearledger.schemas.import_batch import ColumnMapping

FIELD_CANDIDATES: Dict[str, List[str]] = {
    "date": ["date", "transaction_date", "posting_date", "posted_date", "trans_date"],
    "amount": ["amount", "transaction_amount", "amt", "net_amount"],
    "inflow": ["credit", "inflow", "deposit", "paid_in", "money_in"],
    "outflow": ["debit", "outflow", "withdrawal", "paid_out", "money_out"],
    "payee": ["payee", "merchant", "name", "vendor", "counterparty"],
    "description": ["description", "details", "transaction_description"],
    "memo": ["memo", "notes", "note"],
    "reference": ["reference", "ref", "reference_number", "check_number", "check_or_slip", "check_no"],
    "category": ["category", "type"],
    "status": ["status", "state"],
}

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{1,2}-\d{1,2}$")
_SLASH_DATE_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/\d{2,4}$")


def normalize_header(value: str) -> str:
    collapsed = re.sub(r"\s+", " ", value.strip().lower())
    no_punctuation = re.sub(r"[^a-z0-9 ]", "", collapsed)
    return re.sub(r"\s+", "_", no_punctuation)


def compute_header_fingerprint(headers: Sequence[str]) -> str:
    """SHA256 over the normalized header list, used to recognise a repeat export layout."""
    payload = json.dumps([normalize_header(h) for h in headers], separators=(",", ":"))
    return hashlib.sha256(payload.encode()).hexdigest()


def _pick_header(lookup: List[Tuple[str, str]], candidates: List[str]) -> Optional[str]:
    for candidate in candidates:
        for original, normalized in lookup:
            if (
                normalized == candidate
                or normalized.startswith(f"{candidate}_")
                or candidate in normalized
            ):
                return original
    return None


def detect_mapping_from_headers(headers: Sequence[str]) -> Tuple[ColumnMapping, AmountStrategy]:
    """Guess a column mapping and amount strategy from header names."""
    lookup = [(h, normalize_header(h)) for h in headers]
    picked = {field: _pick_header(lookup, candidates) for field, candidates in FIELD_CANDIDATES.items()}
    mapping = ColumnMapping(**picked)

    if mapping.inflow and mapping.outflow and not mapping.amount:
        strategy = AmountStrategy.inflow_outflow
    else:
        strategy = AmountStrategy.signed
    return mapping, strategy


def validate_mapping(mapping: ColumnMapping, amount_strategy: AmountStrategy) -> List[str]:
    """Return a list of problems; an empty list means the mapping can drive an import."""
    problems = []
    if not mapping.date:
        problems.append("Map a date column to continue.")

    if amount_strategy == AmountStrategy.signed:
        if not mapping.amount:
            problems.append("Map a signed amount column or switch to inflow/outflow.")
    elif not mapping.inflow or not mapping.outflow:
        problems.append("Map both inflow and outflow columns to continue.")

    return problems


def detect_date_format(value: str) -> Optional[str]:
    trimmed = value.strip()
    if _ISO_DATE_RE.match(trimmed):
        return "ymd"
    match = _SLASH_DATE_RE.match(trimmed)
    if match:
        first, second = int(match.group(1)), int(match.group(2))
        if first > 12 and second <= 12:
            return "dmy"
        return "mdy"
    return None


def detect_date_format_from_rows(
    rows: Sequence[RawRow],
    date_column: Optional[str],
    sample_size: int = 25
) -> Optional[str]:
    """Return the first recognisable date format hint among the sampled rows."""
    if not date_column:
        return None
    for row in rows[:sample_size]:
        value = row.get(date_column)
        if not value:
            continue
        hint = detect_date_format(value)
        if hint:
            return hint
    return None
