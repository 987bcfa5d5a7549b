"""
Content hashes used as idempotency keys.
"""

import hashlib
import json
from datetime import date
from typing import Any, Dict, Optional


def _digest(payload: Dict[str, Any]) -> str:
    normalized = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(normalized.encode()).hexdigest()


def _norm(value: Optional[str]) -> str:
    return (value or "").strip()


def generate_row_hash(
    row_number: int,
    txn_date: date,
    payee: str,
    description: Optional[str],
    amount_cents: int,
    reference: Optional[str],
    status: Optional[str],
    source_system: Optional[str],
) -> str:
    """
    Generate the SHA256 row hash for one accepted import row.
    Scoped to a single import batch.
    """
    return _digest({
        "row_number": row_number,
        "date": txn_date.isoformat(),
        "payee": _norm(payee).lower(),
        "description": _norm(description),
        "amount": amount_cents,
        "reference": _norm(reference),
        "status": status or "",
        "source_system": source_system or "manual",
    })


def generate_source_hash(
    account_id: str,
    txn_date: date,
    payee: str,
    description: Optional[str],
    amount_cents: int,
    reference: Optional[str],
    source: str,
) -> str:
    """
    Generate the SHA256 source hash for a transaction.
    Unique per account across every import.
    """
    return _digest({
        "account_id": str(account_id),
        "date": txn_date.isoformat(),
        "payee": _norm(payee).lower(),
        "description": _norm(description).lower(),
        "amount": amount_cents,
        "reference": _norm(reference),
        "source": source,
    })


def generate_statement_source_hash(
    statement_id: str,
    txn_date: date,
    description: str,
    amount_cents: int,
) -> str:
    """Synthetic source hash for a transaction created from a statement line."""
    return _digest({
        "statement_id": statement_id,
        "date": txn_date.isoformat(),
        "description": _norm(description).lower(),
        "amount": amount_cents,
    })


def generate_file_hash(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()
