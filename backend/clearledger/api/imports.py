"""
Import API endpoints.
"""

import json
from pathlib import Path
from typing import Callable, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, UploadFile
from pydantic import ValidationError
from sqlalchemy.orm import Session

from clearledger.dependencies import get_db, get_session_factory, get_suggester
from clearledger.models.account import Account
from clearledger.models.category import Category
from clearledger.models.import_batch import AmountStrategy
from clearledger.parsers import get_parser
from clearledger.schemas.import_batch import (
    ColumnMapping,
    ImportBatchResponse,
    ImportSubmitResponse,
    LedgerAccountTarget,
    LedgerAnalysisResponse,
    LedgerImportResponse,
    MappingDetectionResponse,
)
from clearledger.services import import_service, ledger_export_service
from clearledger.services.errors import MappingError, NotFoundError, RowTransformError, StateConflictError
from clearledger.services.mapping_service import (
    compute_header_fingerprint,
    detect_date_format_from_rows,
    detect_mapping_from_headers,
    validate_mapping,
)
from clearledger.services.suggester import CategorySuggester
from clearledger.services.transform_service import parse_date

router = APIRouter(prefix="/imports", tags=["imports"])

ALLOWED_EXTENSIONS = ['.csv', '.ofx', '.qfx']


def _check_extension(filename: Optional[str]) -> None:
    if not filename:
        raise HTTPException(status_code=400, detail="No filename provided")
    ext = Path(filename).suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail=f"File type not supported. Allowed: {', '.join(ALLOWED_EXTENSIONS)}"
        )


def _parse_json_form(value: Optional[str], name: str) -> Optional[dict]:
    if not value:
        return None
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail=f"{name} must be a JSON object")
    if not isinstance(parsed, dict):
        raise HTTPException(status_code=400, detail=f"{name} must be a JSON object")
    return parsed


@router.post("/detect", response_model=MappingDetectionResponse)
async def detect_mapping(file: UploadFile = File(...)):
    """Preview a file and guess its column mapping"""
    _check_extension(file.filename)
    content = await file.read()
    try:
        headers, rows = get_parser(file.filename).parse(content)
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Could not read file: {e}")

    mapping, strategy = detect_mapping_from_headers(headers)
    return MappingDetectionResponse(
        headers=headers,
        mapping=mapping,
        amount_strategy=strategy,
        date_format=detect_date_format_from_rows(rows, mapping.date),
        header_fingerprint=compute_header_fingerprint(headers),
        preview_rows=rows[:5],
        problems=validate_mapping(mapping, strategy),
    )


@router.post("", response_model=ImportSubmitResponse, status_code=202)
async def submit_import(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    account_id: str = Form(...),
    column_mapping: Optional[str] = Form(None),
    amount_strategy: Optional[AmountStrategy] = Form(None),
    date_format: Optional[str] = Form(None),
    status_map: Optional[str] = Form(None),
    flip_signs: bool = Form(False),
    source_system: str = Form("manual"),
    db: Session = Depends(get_db),
    suggester: Optional[CategorySuggester] = Depends(get_suggester),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
):
    """
    Queue an upload for import and run it in the background.

    Without an explicit column mapping the mapping is detected from the
    file headers. Re-submitting a file that is still being imported returns
    the in-flight batch.
    """
    _check_extension(file.filename)
    content = await file.read()

    mapping_data = _parse_json_form(column_mapping, "column_mapping")
    if mapping_data is None:
        try:
            headers, _ = get_parser(file.filename).parse(content)
        except Exception as e:
            raise HTTPException(status_code=400, detail=f"Could not read file: {e}")
        mapping, detected_strategy = detect_mapping_from_headers(headers)
    else:
        try:
            mapping = ColumnMapping.model_validate(mapping_data)
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        detected_strategy = AmountStrategy.signed
    strategy = amount_strategy or detected_strategy

    problems = validate_mapping(mapping, strategy)
    if problems:
        raise HTTPException(status_code=400, detail=" ".join(problems))

    statuses: Dict[str, str] = _parse_json_form(status_map, "status_map") or {}

    try:
        batch, existing = import_service.submit_import(
            db,
            account_id,
            file.filename,
            content,
            mapping,
            amount_strategy=strategy,
            date_format=date_format,
            status_map=statuses,
            flip_signs=flip_signs,
            source_system=source_system,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if not existing:
        background_tasks.add_task(
            import_service.run_import_in_background, batch.id, suggester, session_factory
        )
    return ImportSubmitResponse(batch=ImportBatchResponse.model_validate(batch), existing=existing)


def _check_ledger_export(filename: Optional[str]) -> None:
    if not filename or Path(filename).suffix.lower() != '.csv':
        raise HTTPException(status_code=400, detail="Ledger exports must be CSV files")


@router.post("/ledger/analyze", response_model=LedgerAnalysisResponse)
async def analyze_ledger_export(
    file: UploadFile = File(...),
    db: Session = Depends(get_db)
):
    """Classify the account names of a double-entry ledger export"""
    _check_ledger_export(file.filename)
    content = await file.read()
    try:
        rows = ledger_export_service.parse_ledger_export(content)
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Could not read file: {e}")

    classifications = ledger_export_service.classify_ledger_accounts(
        rows, db.query(Account).all(), db.query(Category).all()
    )
    dates = []
    for row in rows:
        try:
            dates.append(parse_date(row.date))
        except RowTransformError:
            continue
    return LedgerAnalysisResponse(
        total_rows=len(rows),
        start_date=min(dates) if dates else None,
        end_date=max(dates) if dates else None,
        classifications=classifications,
    )


@router.post("/ledger", response_model=LedgerImportResponse, status_code=202)
async def submit_ledger_import(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    account_map: str = Form(...),
    date_format: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    suggester: Optional[CategorySuggester] = Depends(get_suggester),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
):
    """
    Import a double-entry ledger export.

    ``account_map`` maps every account name in the export to
    ``{"kind": "account" | "category", "id": ...}``. One batch is queued
    per bank account; rows that cannot be mapped are returned as errors.
    """
    _check_ledger_export(file.filename)
    content = await file.read()
    try:
        targets = {
            name: LedgerAccountTarget.model_validate(target)
            for name, target in (_parse_json_form(account_map, "account_map") or {}).items()
        }
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        batches, result = ledger_export_service.submit_ledger_import(
            db, file.filename, content, targets, date_format
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except MappingError as e:
        raise HTTPException(status_code=400, detail=str(e))

    for batch, existing in batches:
        if not existing:
            background_tasks.add_task(
                import_service.run_import_in_background, batch.id, suggester, session_factory
            )
    return LedgerImportResponse(
        batches=[ImportBatchResponse.model_validate(batch) for batch, _ in batches],
        stats=result.stats,
        errors=result.errors,
    )


@router.get("", response_model=list[ImportBatchResponse])
def get_import_history(
    account_id: Optional[str] = None,
    limit: int = 50,
    db: Session = Depends(get_db)
):
    """Get import history"""
    batches = import_service.list_imports(db, account_id, limit)
    return [ImportBatchResponse.model_validate(batch) for batch in batches]


@router.get("/{batch_id}", response_model=ImportBatchResponse)
def get_import_status(
    batch_id: str,
    db: Session = Depends(get_db)
):
    """Get status and counters of an import"""
    try:
        return ImportBatchResponse.model_validate(import_service.get_import(db, batch_id))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{batch_id}/cancel", response_model=ImportBatchResponse)
def cancel_import(
    batch_id: str,
    db: Session = Depends(get_db)
):
    """Cancel a queued or running import"""
    try:
        batch = import_service.cancel_import(db, batch_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StateConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return ImportBatchResponse.model_validate(batch)
