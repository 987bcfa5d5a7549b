"""
Import service: batch submission and the chunked import runner.

A batch moves queued -> running -> succeeded | failed | canceled. The
queued -> running step is a conditional update so only one worker ever runs
a batch. Rows are written with INSERT ... ON CONFLICT DO NOTHING, which makes
re-running the same file a no-op.
"""

import json
import logging
import shutil
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clearledger.config import Settings, settings as default_settings
from clearledger.database import SessionLocal
from clearledger.models.account import Account
from clearledger.models.category import Category
from clearledger.models.import_batch import (
    ACTIVE_IMPORT_STATUSES,
    AmountStrategy,
    ImportBatch,
    ImportStatus,
)
from clearledger.models.transaction import (
    BankStatus,
    ReconciliationStatus,
    ReviewStatus,
    Transaction,
)
from clearledger.models.transaction_split import TransactionSplit
from clearledger.parsers import get_parser
from clearledger.parsers.base import RawRow
from clearledger.schemas.import_batch import (
    CanonicalRecord,
    ColumnMapping,
    ExtractedTransaction,
    RowError,
    RowIssue,
)
from clearledger.services.categorization_service import (
    CategorizationEngine,
    CategorizationInput,
    CategorizationResult,
    collapse_whitespace,
    summarize_sources,
)
from clearledger.services.deduplication_service import generate_file_hash, generate_source_hash
from clearledger.services.errors import (
    StateConflictError,
    UnsupportedStoreError,
    MappingError,
    NotFoundError,
    SplitImbalanceError,
)
from clearledger.services.mapping_service import detect_date_format_from_rows, validate_mapping
from clearledger.services.split_service import SplitCandidate, build_split_candidates
from clearledger.services.suggester import CategorySuggester
from clearledger.services.transfer_service import pair_transfers
from clearledger.services.transform_service import records_from_extracted, transform_rows

logger = logging.getLogger(__name__)

_TERMINAL_STATUSES = (ImportStatus.succeeded, ImportStatus.failed, ImportStatus.canceled)


def save_upload(file_content: bytes, filename: str, batch_id: str, config: Optional[Settings] = None) -> Path:
    """Save an uploaded file into the inbox and return its path"""
    config = config or default_settings
    inbox_path = Path(config.import_inbox_path)
    inbox_path.mkdir(parents=True, exist_ok=True)

    safe_filename = f"{batch_id}_{Path(filename).name}"
    file_path = inbox_path / safe_filename

    with open(file_path, 'wb') as f:
        f.write(file_content)

    return file_path


def _archive_file(batch: ImportBatch, succeeded: bool, config: Settings) -> None:
    if not batch.file_path:
        return
    source = Path(batch.file_path)
    if not source.exists():
        return

    target_dir = Path(config.import_processed_path if succeeded else config.import_failed_path)
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / source.name
    try:
        shutil.move(str(source), str(target))
    except OSError as e:
        logger.warning(f"Could not move import file {source}: {e}")
        return
    batch.file_path = str(target)


def _find_active_batch(db: Session, account_id: str, file_hash: str) -> Optional[ImportBatch]:
    return (
        db.query(ImportBatch)
        .filter(
            ImportBatch.account_id == account_id,
            ImportBatch.file_hash == file_hash,
            ImportBatch.status.in_(ACTIVE_IMPORT_STATUSES),
        )
        .order_by(ImportBatch.created_at.desc())
        .first()
    )


def _require_account(db: Session, account_id: str) -> Account:
    account = db.query(Account).filter(Account.id == account_id).first()
    if not account:
        raise NotFoundError(f"Account {account_id} not found")
    return account


def submit_import(
    db: Session,
    account_id: str,
    filename: str,
    content: bytes,
    column_mapping: ColumnMapping,
    amount_strategy: AmountStrategy = AmountStrategy.signed,
    date_format: Optional[str] = None,
    status_map: Optional[Dict[str, str]] = None,
    flip_signs: bool = False,
    source_system: str = "manual",
    config: Optional[Settings] = None,
) -> Tuple[ImportBatch, bool]:
    """
    Queue a file for import.

    Returns (batch, existing). When a batch for the same account and file
    content is still queued or running, that batch is returned instead of
    creating a second run.
    """
    _require_account(db, account_id)

    file_hash = generate_file_hash(content)
    active = _find_active_batch(db, account_id, file_hash)
    if active:
        logger.info(f"Import of {filename} already in flight as batch {active.id}")
        return active, True

    batch_id = str(uuid.uuid4())
    file_path = save_upload(content, filename, batch_id, config)

    batch = ImportBatch(
        id=batch_id,
        account_id=account_id,
        filename=filename,
        file_path=str(file_path),
        file_hash=file_hash,
        file_size=len(content),
        column_mapping=column_mapping.model_dump(),
        amount_strategy=amount_strategy,
        date_format=date_format,
        status_map={k.strip().lower(): v for k, v in (status_map or {}).items()},
        flip_signs=flip_signs,
        source_system=source_system,
        status=ImportStatus.queued,
    )
    db.add(batch)
    db.commit()
    db.refresh(batch)
    return batch, False


def submit_extracted_import(
    db: Session,
    account_id: str,
    transactions: Sequence[ExtractedTransaction],
    filename: str = "statement.pdf",
) -> Tuple[ImportBatch, bool]:
    """Queue already-extracted statement transactions as a canonical batch."""
    _require_account(db, account_id)
    return queue_canonical_batch(
        db, account_id, records_from_extracted(transactions), filename, "pdf_statement"
    )


def queue_canonical_batch(
    db: Session,
    account_id: str,
    records: Sequence[CanonicalRecord],
    filename: str,
    source_system: str,
) -> Tuple[ImportBatch, bool]:
    """Queue records that skip the transform step. Returns (batch, existing)."""
    canonical_rows = [record.model_dump(mode="json") for record in records]
    payload = json.dumps(canonical_rows, sort_keys=True).encode()
    file_hash = generate_file_hash(payload)

    active = _find_active_batch(db, account_id, file_hash)
    if active:
        return active, True

    batch = ImportBatch(
        account_id=account_id,
        filename=filename,
        file_path=None,
        file_hash=file_hash,
        file_size=len(payload),
        amount_strategy=AmountStrategy.signed,
        source_system=source_system,
        canonical_rows=canonical_rows,
        total_rows=len(canonical_rows),
        status=ImportStatus.queued,
    )
    db.add(batch)
    db.commit()
    db.refresh(batch)
    return batch, False


def get_import(db: Session, batch_id: str) -> ImportBatch:
    batch = db.query(ImportBatch).filter(ImportBatch.id == batch_id).first()
    if not batch:
        raise NotFoundError(f"Import {batch_id} not found")
    return batch


def list_imports(db: Session, account_id: Optional[str] = None, limit: int = 50) -> List[ImportBatch]:
    query = db.query(ImportBatch)
    if account_id:
        query = query.filter(ImportBatch.account_id == account_id)
    return query.order_by(ImportBatch.created_at.desc()).limit(limit).all()


def cancel_import(db: Session, batch_id: str) -> ImportBatch:
    """Cancel a queued or running batch. A running batch stops at its next chunk boundary."""
    batch = get_import(db, batch_id)
    now = datetime.utcnow()
    updated = (
        db.query(ImportBatch)
        .filter(ImportBatch.id == batch_id, ImportBatch.status.in_(ACTIVE_IMPORT_STATUSES))
        .update(
            {
                ImportBatch.status: ImportStatus.canceled,
                ImportBatch.canceled_at: now,
                ImportBatch.finished_at: now,
            },
            synchronize_session=False,
        )
    )
    db.commit()
    db.refresh(batch)
    if not updated:
        raise StateConflictError(f"Import {batch_id} is {batch.status.value} and cannot be canceled")
    logger.info(f"Import {batch_id} canceled")
    return batch


def claim_batch(db: Session, batch_id: str) -> bool:
    """Atomically move a batch from queued to running. False means someone else has it."""
    updated = (
        db.query(ImportBatch)
        .filter(ImportBatch.id == batch_id, ImportBatch.status == ImportStatus.queued)
        .update(
            {ImportBatch.status: ImportStatus.running, ImportBatch.started_at: datetime.utcnow()},
            synchronize_session=False,
        )
    )
    db.commit()
    return updated == 1


def _current_status(db: Session, batch_id: str) -> Optional[ImportStatus]:
    return db.query(ImportBatch.status).filter(ImportBatch.id == batch_id).scalar()


def _stopped_by_cancel(db: Session, batch: ImportBatch, config: Settings) -> bool:
    if _current_status(db, batch.id) != ImportStatus.canceled:
        return False
    db.refresh(batch)
    _archive_file(batch, succeeded=False, config=config)
    db.commit()
    logger.info(f"Import {batch.id} canceled after {batch.processed_rows} rows")
    return True


def _fail_batch(db: Session, batch: ImportBatch, message: str, config: Settings) -> None:
    logger.error(f"Import {batch.id} failed: {message}")
    batch.status = ImportStatus.failed
    batch.last_error = message
    batch.finished_at = datetime.utcnow()
    _archive_file(batch, succeeded=False, config=config)
    db.commit()


def _load_source(
    db: Session,
    batch: ImportBatch,
    account: Optional[Account],
) -> Tuple[Optional[List[RawRow]], Optional[List[CanonicalRecord]], ColumnMapping]:
    """Read everything needed before row processing. Raises on batch-fatal problems."""
    _require_idempotent_insert(db)
    if account is None:
        raise NotFoundError(f"Account {batch.account_id} not found")
    if not account.is_active:
        raise MappingError(f"Account {account.name} is inactive")

    mapping = ColumnMapping.model_validate(batch.column_mapping or {})

    if batch.canonical_rows is not None:
        records = [CanonicalRecord.model_validate(row) for row in batch.canonical_rows]
        return None, records, mapping

    problems = validate_mapping(mapping, batch.amount_strategy)
    if problems:
        raise MappingError(" ".join(problems))

    parser = get_parser(batch.filename)
    if not parser:
        raise MappingError(f"No parser available for file type: {Path(batch.filename).suffix}")

    if not batch.file_path:
        raise MappingError("Import file is missing")
    with open(batch.file_path, 'rb') as f:
        content = f.read()

    try:
        headers, rows = parser.parse(content)
    except Exception as e:
        raise MappingError(f"Could not read {batch.filename}: {e}") from e
    mapped = {v for v in mapping.model_dump().values() if v}
    missing = sorted(mapped - set(headers))
    if missing:
        raise MappingError(f"Mapped columns not found in file: {', '.join(missing)}")

    return rows, None, mapping


def _record_issues(
    batch: ImportBatch,
    errors: Sequence[RowError],
    issues: Sequence[RowIssue],
    sample_size: int
) -> None:
    existing = list(batch.issues or [])
    room = sample_size - len(existing)
    if room <= 0:
        return
    new_items: List[Dict[str, Any]] = [
        {"row_number": e.row_number, "field": e.field, "severity": "error", "message": e.message}
        for e in errors
    ]
    new_items += [issue.model_dump() for issue in issues]
    new_items.sort(key=lambda item: item["row_number"])
    # reassign so the JSON column is flagged dirty
    batch.issues = existing + new_items[:room]


_INSERT_DIALECTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


def _require_idempotent_insert(db: Session) -> None:
    dialect = db.get_bind().dialect.name
    if dialect not in _INSERT_DIALECTS:
        raise UnsupportedStoreError(f"Idempotent insert is not supported on {dialect}")


def _insert_statement(db: Session):
    stmt = _INSERT_DIALECTS[db.get_bind().dialect.name](Transaction.__table__)
    table = Transaction.__table__
    return stmt.on_conflict_do_nothing().returning(table.c.id, table.c.import_row_hash)


def _insert_rows(
    db: Session,
    rows: List[Dict[str, Any]],
    errors: List[RowError],
) -> Tuple[Set[str], int]:
    """
    Insert-if-absent. Returns (inserted row hashes, failed row count).

    A rejected bulk write falls back to one row at a time so a single bad
    row cannot sink the chunk.
    """
    if not rows:
        return set(), 0

    try:
        result = db.execute(_insert_statement(db), rows).all()
        db.commit()
        return {row_hash for _, row_hash in result}, 0
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Bulk insert failed, retrying {len(rows)} rows individually: {e}")

    inserted: Set[str] = set()
    failed = 0
    for row in rows:
        try:
            result = db.execute(_insert_statement(db), [row]).all()
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            failed += 1
            errors.append(RowError(
                row_number=row["import_row_number"],
                field="persistence",
                message=str(getattr(e, "orig", None) or e),
            ))
            continue
        inserted.update(row_hash for _, row_hash in result)
    return inserted, failed


def _transaction_values(
    batch: ImportBatch,
    record: CanonicalRecord,
    categorization: CategorizationResult,
    splits: List[SplitCandidate],
    now: datetime,
) -> Dict[str, Any]:
    payee = collapse_whitespace(record.payee)
    source = record.source_system or batch.source_system
    return {
        "id": str(uuid.uuid4()),
        "account_id": batch.account_id,
        "date": record.date,
        "payee": payee,
        "payee_original": record.payee,
        "description": record.description,
        "memo": record.memo,
        "reference": record.reference,
        "amount_cents": record.amount_cents,
        "category_id": record.category_id,
        "ai_suggested_category_id": categorization.category_id,
        "ai_confidence": categorization.confidence,
        "matched_rule_id": categorization.rule_id,
        "review_status": ReviewStatus(record.review_status or ReviewStatus.needs_review.value),
        "reconciliation_status": ReconciliationStatus(
            record.reconciliation_status or ReconciliationStatus.unreconciled.value
        ),
        "bank_status": BankStatus(record.bank_status or BankStatus.posted.value),
        "reconciled_at": None,
        "is_transfer": record.transfer_group_id is not None,
        "transfer_group_id": record.transfer_group_id,
        "transfer_to_account_id": record.transfer_to_account_id,
        "source": source,
        "source_id": record.reference,
        "source_hash": generate_source_hash(
            batch.account_id, record.date, payee, record.description,
            record.amount_cents, record.reference, source,
        ),
        "import_id": batch.id,
        "import_row_number": record.row_number,
        "import_row_hash": record.row_hash,
        "raw_data": record.raw_data,
        "is_split": bool(splits),
        "deleted_at": None,
        "created_at": now,
        "updated_at": now,
    }


async def _process_chunk(
    db: Session,
    batch: ImportBatch,
    records: List[CanonicalRecord],
    errors: List[RowError],
    issues: List[RowIssue],
    raw_count: int,
    accounts: List[Account],
    suggester: Optional[CategorySuggester],
    config: Settings,
) -> Set:
    """Categorize, split, and persist one chunk. Returns the dates that received new rows."""
    engine = CategorizationEngine(db, suggester, config)
    results = await engine.categorize_many([
        CategorizationInput(collapse_whitespace(r.payee), r.description, r.amount_cents, r.reference)
        for r in records
    ])
    # usage counters are durable before any row write is attempted
    db.commit()

    now = datetime.utcnow()
    rows: List[Dict[str, Any]] = []
    splits_by_hash: Dict[str, List[SplitCandidate]] = {}
    dates_by_hash = {}
    for record, categorization in zip(records, results):
        try:
            splits = build_split_candidates(
                record.amount_cents,
                batch.account_id,
                collapse_whitespace(record.payee),
                accounts,
                raw_data={k: str(v) for k, v in (record.raw_data or {}).items()},
            )
        except SplitImbalanceError as e:
            errors.append(RowError(row_number=record.row_number, field="splits", message=str(e)))
            continue
        rows.append(_transaction_values(batch, record, categorization, splits, now))
        splits_by_hash[record.row_hash] = splits
        dates_by_hash[record.row_hash] = record.date

    inserted_hashes, failed = _insert_rows(db, rows, errors)

    if inserted_hashes:
        id_by_hash = {row["import_row_hash"]: row["id"] for row in rows}
        for row_hash in inserted_hashes:
            for split in splits_by_hash.get(row_hash, []):
                db.add(TransactionSplit(
                    transaction_id=id_by_hash[row_hash],
                    account_id=split.account_id,
                    category_id=split.category_id,
                    amount_cents=split.amount_cents,
                    memo=split.memo,
                ))

    batch.processed_rows += raw_count
    batch.inserted_rows += len(inserted_hashes)
    batch.skipped_rows += len(rows) - len(inserted_hashes) - failed
    batch.error_rows += len(errors)
    _record_issues(batch, errors, issues, config.import_issue_sample_size)
    db.commit()

    logger.info(
        f"Import {batch.id}: chunk of {raw_count} rows, {len(inserted_hashes)} inserted, "
        f"{len(rows) - len(inserted_hashes) - failed} skipped, {len(errors)} errors, "
        f"categorized {summarize_sources(results)}"
    )
    return {dates_by_hash[h] for h in inserted_hashes}


async def run_import(
    db: Session,
    batch_id: str,
    suggester: Optional[CategorySuggester] = None,
    config: Optional[Settings] = None,
) -> ImportBatch:
    """
    Run one queued batch to completion.

    Chunks run strictly in order. The batch status is re-read before every
    chunk, so a cancel takes effect at the next boundary.
    """
    config = config or default_settings
    batch = get_import(db, batch_id)

    if not claim_batch(db, batch_id):
        db.refresh(batch)
        logger.info(f"Import {batch_id} is {batch.status.value}; not running it")
        return batch
    db.refresh(batch)
    logger.info(f"Import {batch_id} started for {batch.filename}")

    account = db.query(Account).filter(Account.id == batch.account_id).first()
    try:
        raw_rows, canonical, mapping = _load_source(db, batch, account)
    except (MappingError, NotFoundError, UnsupportedStoreError, OSError, ValueError) as e:
        _fail_batch(db, batch, str(e), config)
        return batch

    date_format = batch.date_format
    if raw_rows is not None and not date_format:
        date_format = detect_date_format_from_rows(raw_rows, mapping.date)

    total = len(raw_rows) if raw_rows is not None else len(canonical)
    batch.total_rows = total
    db.commit()

    category_ids = {category_id for (category_id,) in db.query(Category.id).all()}
    accounts = db.query(Account).all()
    touched_dates: Set = set()
    chunk_size = max(1, config.import_chunk_size)

    for start in range(0, total, chunk_size):
        if _stopped_by_cancel(db, batch, config):
            return batch

        if raw_rows is not None:
            chunk = raw_rows[start:start + chunk_size]
            transformed = transform_rows(
                chunk,
                mapping,
                batch.amount_strategy,
                source_system=batch.source_system,
                date_format=date_format,
                status_map=batch.status_map,
                flip_signs=batch.flip_signs,
                category_ids=category_ids,
                row_offset=start,
            )
            records, errors, issues = transformed.records, transformed.errors, transformed.issues
            raw_count = len(chunk)
        else:
            records = canonical[start:start + chunk_size]
            errors, issues = [], []
            raw_count = len(records)

        touched_dates |= await _process_chunk(
            db, batch, records, list(errors), list(issues), raw_count, accounts, suggester, config
        )

    # a cancel during the last chunk still skips pairing
    if _stopped_by_cancel(db, batch, config):
        return batch

    for txn_date in sorted(touched_dates):
        try:
            pair_transfers(db, batch.account_id, txn_date)
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning(f"Transfer pairing failed for {batch.account_id} on {txn_date}: {e}")

    finished = (
        db.query(ImportBatch)
        .filter(ImportBatch.id == batch_id, ImportBatch.status == ImportStatus.running)
        .update(
            {ImportBatch.status: ImportStatus.succeeded, ImportBatch.finished_at: datetime.utcnow()},
            synchronize_session=False,
        )
    )
    db.commit()
    db.refresh(batch)
    if finished:
        _archive_file(batch, succeeded=True, config=config)
        db.commit()
        logger.info(
            f"Import {batch_id} succeeded: {batch.inserted_rows} inserted, "
            f"{batch.skipped_rows} skipped, {batch.error_rows} errors"
        )
    return batch


async def run_import_in_background(
    batch_id: str,
    suggester: Optional[CategorySuggester] = None,
    session_factory: Callable[[], Session] = SessionLocal,
) -> None:
    """Entry point for FastAPI background tasks; owns its own session."""
    db = session_factory()
    try:
        await run_import(db, batch_id, suggester)
    except Exception:
        logger.exception(f"Import {batch_id} crashed")
        db.rollback()
        batch = db.query(ImportBatch).filter(ImportBatch.id == batch_id).first()
        if batch and batch.status not in _TERMINAL_STATUSES:
            _fail_batch(db, batch, "Import crashed unexpectedly", default_settings)
    finally:
        db.close()
