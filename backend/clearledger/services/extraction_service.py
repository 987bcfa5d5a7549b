"""
Statement extraction: document text -> LLM -> sanitize -> validate -> ledger sign.

Extraction output is noisy. The sanitizer fixes what can be fixed
deterministically, the validator reports what it could not, and nothing here
ever rejects data on the user's behalf.
"""

import io
import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

import pdfplumber
from pydantic import ValidationError

from clearledger.ai.client import AIClient
from clearledger.ai.prompts import STATEMENT_EXTRACTION_SYSTEM, STATEMENT_EXTRACTION_USER
from clearledger.config import Settings, settings as default_settings
from clearledger.models.account import Account
from clearledger.money import format_cents, to_cents
from clearledger.schemas.import_batch import ExtractedTransaction
from clearledger.schemas.statement import (
    ExtractionSummary,
    FixedLine,
    RemovedLine,
    SanitizationReport,
    StatementExtraction,
    ValidationCheck,
    ValidationReport,
)

logger = logging.getLogger(__name__)

PASS, WARN, FAIL = "pass", "warn", "fail"

SUMMARY_PASS_CENTS = 200
SUMMARY_FAIL_CENTS = 5000
OUT_OF_RANGE_FAIL_COUNT = 5


class ExtractionError(ValueError):
    """The document could not be read or the provider returned nothing usable."""


class ExtractionProvider(Protocol):
    async def extract(self, text: str, account_type: str) -> Optional[Dict[str, Any]]:
        ...


def extract_document_text(content: bytes, filename: str) -> str:
    """Plain text of an uploaded statement. PDFs go through pdfplumber."""
    if filename.lower().endswith(".pdf") or content[:5] == b"%PDF-":
        pages = []
        try:
            with pdfplumber.open(io.BytesIO(content)) as pdf:
                for page in pdf.pages:
                    text = page.extract_text()
                    if text and text.strip():
                        pages.append(text)
        except Exception as e:
            raise ExtractionError(f"Error reading PDF file: {e}") from e
        if not pages:
            logger.warning(f"No text extracted from {filename}; it may need OCR")
        return "\n\n".join(pages)

    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ExtractionError(f"{filename} is neither a PDF nor UTF-8 text") from e


class LLMStatementExtractor:
    """Extraction provider backed by the configured LLM."""

    def __init__(self, client: AIClient, max_tokens: int = 4000):
        self.client = client
        self.max_tokens = max_tokens

    async def extract(self, text: str, account_type: str) -> Optional[Dict[str, Any]]:
        user_prompt = STATEMENT_EXTRACTION_USER.format(account_type=account_type, statement_text=text)
        try:
            return await self.client.complete_json(
                system_prompt=STATEMENT_EXTRACTION_SYSTEM,
                user_prompt=user_prompt,
                temperature=0.0,
                max_tokens=self.max_tokens
            )
        except Exception as e:
            logger.error(f"Statement extraction failed: {e}")
            return None


def build_extractor(config: Settings) -> Optional[ExtractionProvider]:
    if not config.ai_extract_statements:
        return None
    client = AIClient(config)
    if not client.has_credentials:
        return None
    return LLMStatementExtractor(client)


def parse_extraction(payload: Dict[str, Any]) -> Tuple[StatementExtraction, List[RemovedLine]]:
    """Validate the provider payload line by line; unreadable lines are dropped and reported."""
    removed: List[RemovedLine] = []
    transactions: List[ExtractedTransaction] = []
    for raw in payload.get("transactions") or []:
        if not isinstance(raw, dict):
            removed.append(RemovedLine(line={"value": str(raw)}, reason="Unreadable line"))
            continue
        cleaned = {k: v for k, v in raw.items() if v is not None}
        if "description" in cleaned:
            cleaned["description"] = str(cleaned["description"])
        if "card" in cleaned:
            cleaned["card"] = str(cleaned["card"])
        try:
            transactions.append(ExtractedTransaction.model_validate(cleaned))
        except ValidationError:
            removed.append(RemovedLine(line=raw, reason="Unreadable line"))

    header = {k: payload.get(k) for k in ("period_start", "period_end", "beginning_balance", "ending_balance")}
    summary = payload.get("summary")
    try:
        extraction = StatementExtraction(
            **{k: v for k, v in header.items() if v is not None},
            summary=ExtractionSummary.model_validate(summary) if isinstance(summary, dict) else None,
            transactions=transactions,
        )
    except ValidationError as e:
        raise ExtractionError(f"Extraction header is unreadable: {e}") from e
    return extraction, removed


def _is_interest(txn: ExtractedTransaction) -> bool:
    return txn.type == "interest" or "interest charge" in (txn.description or "").lower()


def _collapse(value: str) -> str:
    return "".join(value.split())


def _line(txn: ExtractedTransaction) -> Dict[str, Any]:
    return txn.model_dump(mode="json")


def sanitize_extracted_transactions(
    transactions: Sequence[ExtractedTransaction],
    period_start: Optional[date] = None,
    period_end: Optional[date] = None,
    grace_days: int = 5,
    valid_identity_tags: Optional[Iterable[str]] = None,
) -> Tuple[List[ExtractedTransaction], SanitizationReport]:
    """
    Deterministic clean-up of extracted statement lines.

    1. Card/identity tags outside the whitelist are fuzzy-fixed or dropped.
    2. Dates in the wrong year are moved to the closing year.
    3. Repeated interest charges collapse to the latest one.
    4. Lines outside the period (plus grace) are dropped.
    5. Exact repeats of date, amount and description are dropped.
    """
    report = SanitizationReport()
    cleaned = [txn.model_copy() for txn in transactions]

    tags = {t.strip().upper() for t in valid_identity_tags} if valid_identity_tags else None
    if tags:
        kept = []
        for txn in cleaned:
            if not (txn.card or "").strip():
                kept.append(txn)
                continue
            normalized = txn.card.strip().upper()
            if normalized in tags:
                kept.append(txn)
                continue
            fix = next(
                (t for t in sorted(tags) if _collapse(t) in _collapse(normalized) or _collapse(normalized) in _collapse(t)),
                None,
            )
            if fix:
                report.fixed.append(FixedLine(
                    description=txn.description, field="card", old_value=txn.card, new_value=fix
                ))
                txn.card = fix
                kept.append(txn)
            else:
                report.removed.append(RemovedLine(line=_line(txn), reason=f'Unknown card: "{txn.card}"'))
        cleaned = kept

    if period_end:
        valid_years = {period_end.year}
        if period_end.month <= 2:
            valid_years.add(period_end.year - 1)
        kept = []
        for txn in cleaned:
            if txn.date.year in valid_years:
                kept.append(txn)
                continue
            try:
                corrected = txn.date.replace(year=period_end.year)
            except ValueError:
                report.removed.append(RemovedLine(line=_line(txn), reason=f"Wrong year: {txn.date}"))
                continue
            report.fixed.append(FixedLine(
                description=txn.description, field="date",
                old_value=txn.date.isoformat(), new_value=corrected.isoformat(),
            ))
            txn.date = corrected
            kept.append(txn)
        cleaned = kept

    interest = [txn for txn in cleaned if _is_interest(txn)]
    if len(interest) > 1:
        latest = max(interest, key=lambda t: t.date)
        duplicates = {id(t) for t in interest if t is not latest}
        for txn in interest:
            if id(txn) in duplicates:
                report.removed.append(RemovedLine(line=_line(txn), reason="Duplicate interest charge"))
        cleaned = [txn for txn in cleaned if id(txn) not in duplicates]

    if period_end:
        grace = timedelta(days=grace_days)
        window_start = (period_start or period_end - timedelta(days=40)) - grace
        window_end = period_end + grace
        kept = []
        for txn in cleaned:
            if window_start <= txn.date <= window_end:
                kept.append(txn)
            else:
                report.removed.append(RemovedLine(
                    line=_line(txn), reason=f"Date {txn.date} outside statement period"
                ))
        cleaned = kept

    seen = set()
    kept = []
    for txn in cleaned:
        key = (txn.date, to_cents(txn.amount), (txn.description or "")[:30].lower())
        if key in seen:
            report.removed.append(RemovedLine(line=_line(txn), reason="Exact duplicate"))
            continue
        seen.add(key)
        kept.append(txn)

    return kept, report


def _check(name: str, severity: str, message: str) -> ValidationCheck:
    return ValidationCheck(name=name, severity=severity, message=message)


def validate_extraction(
    extraction: StatementExtraction,
    is_credit_card: bool = False,
    grace_days: int = 5,
    large_amount_threshold_cents: int = 1_000_000,
) -> ValidationReport:
    """Advisory checks over an as-printed extraction. Never rejects anything."""
    checks: List[ValidationCheck] = []
    txns = extraction.transactions
    txn_sum = sum(to_cents(t.amount) for t in txns)

    if extraction.beginning_balance is not None and extraction.ending_balance is not None and txns:
        beginning = to_cents(extraction.beginning_balance)
        ending = to_cents(extraction.ending_balance)
        expected = beginning + txn_sum
        # 0.5% of the ending balance plus one dollar
        tolerance = abs(ending) * 5 // 1000 + 100
        diff = abs(expected - ending)
        arithmetic = f"{format_cents(beginning)} + {format_cents(txn_sum)} = {format_cents(expected)}"
        if diff <= tolerance:
            checks.append(_check("balance_reconciliation", PASS,
                                 f"Balance reconciles: {arithmetic} (ending: {format_cents(ending)})"))
        elif diff <= tolerance * 3:
            checks.append(_check("balance_reconciliation", WARN,
                                 f"Balance close but off by {format_cents(diff)}: {arithmetic}, "
                                 f"expected {format_cents(ending)}"))
        else:
            checks.append(_check("balance_reconciliation", FAIL,
                                 f"Balance mismatch of {format_cents(diff)}: {arithmetic}, "
                                 f"expected {format_cents(ending)}"))

    summary = extraction.summary
    if summary and txns and any(v is not None for v in summary.model_dump().values()):
        expected_sum = (
            -to_cents(summary.payments_credits or 0)
            + to_cents(summary.new_charges or 0)
            + to_cents(summary.interest or 0)
            + to_cents(summary.fees or 0)
        )
        diff = abs(txn_sum - expected_sum)
        if diff <= SUMMARY_PASS_CENTS:
            checks.append(_check("summary_crosscheck", PASS,
                                 f"Transaction sum ({format_cents(txn_sum)}) matches statement summary "
                                 f"({format_cents(expected_sum)})"))
        else:
            checks.append(_check("summary_crosscheck", FAIL if diff > SUMMARY_FAIL_CENTS else WARN,
                                 f"Transaction sum ({format_cents(txn_sum)}) differs from statement summary "
                                 f"({format_cents(expected_sum)}) by {format_cents(diff)}"))

    if extraction.period_start and extraction.period_end and txns:
        grace = timedelta(days=grace_days)
        out_of_range = [
            t for t in txns
            if t.date < extraction.period_start - grace or t.date > extraction.period_end + grace
        ]
        if not out_of_range:
            checks.append(_check("date_range", PASS, "All transactions within statement period"))
        else:
            checks.append(_check("date_range", FAIL if len(out_of_range) > OUT_OF_RANGE_FAIL_COUNT else WARN,
                                 f"{len(out_of_range)} transaction(s) outside statement period "
                                 f"({extraction.period_start} to {extraction.period_end})"))

    keys = [(t.date, to_cents(t.amount), (t.description or "")[:20].lower()) for t in txns]
    duplicate_count = len(keys) - len(set(keys))
    if duplicate_count == 0:
        checks.append(_check("duplicates", PASS, "No duplicate transactions detected"))
    else:
        checks.append(_check("duplicates", WARN,
                             f"{duplicate_count} possible duplicate transaction(s) "
                             f"(same date + amount + description)"))

    interest_count = sum(1 for t in txns if _is_interest(t))
    if interest_count > 1:
        checks.append(_check("duplicate_interest", WARN,
                             f"{interest_count} interest charges found, expected at most 1"))
    elif interest_count == 1:
        checks.append(_check("duplicate_interest", PASS, "1 interest charge"))

    if extraction.period_start and extraction.period_end:
        days = (extraction.period_end - extraction.period_start).days
        expected_min = max(10, days * 0.3) if is_credit_card else max(3, days * 0.1)
        if len(txns) < expected_min:
            checks.append(_check("transaction_count", WARN,
                                 f"Only {len(txns)} transactions for a {days}-day period "
                                 f"(expected at least {round(expected_min)})"))
        else:
            checks.append(_check("transaction_count", PASS,
                                 f"{len(txns)} transactions for {days}-day period"))

    large = [t for t in txns if abs(to_cents(t.amount)) > large_amount_threshold_cents]
    if large:
        checks.append(_check("large_amounts", WARN,
                             f"{len(large)} transaction(s) over {format_cents(large_amount_threshold_cents)}, "
                             f"verify these are correct"))
    else:
        checks.append(_check("large_amounts", PASS, "No unusually large transactions"))

    severities = {c.severity for c in checks}
    overall = FAIL if FAIL in severities else WARN if WARN in severities else PASS
    return ValidationReport(overall=overall, checks=checks)


def normalize_statement_amount(amount: Decimal, account: Account) -> Decimal:
    """Printed amount -> ledger convention. Liability statements print charges as positive."""
    return amount * account.statement_sign


def normalize_statement_balance(balance: Optional[Decimal], account: Account) -> Optional[Decimal]:
    if balance is None:
        return None
    return balance * account.statement_sign


def to_ledger_convention(extraction: StatementExtraction, account: Account) -> StatementExtraction:
    """Flip transaction amounts for liability accounts. Balances stay as printed."""
    return extraction.model_copy(update={
        "transactions": [
            t.model_copy(update={"amount": normalize_statement_amount(t.amount, account)})
            for t in extraction.transactions
        ]
    })


async def extract_statement(
    content: bytes,
    filename: str,
    account: Account,
    provider: ExtractionProvider,
    config: Optional[Settings] = None,
) -> Tuple[StatementExtraction, ValidationReport, SanitizationReport]:
    """
    Run the full extraction pipeline for one document.

    The returned extraction has ledger-signed transaction amounts and
    as-printed balances, ready for a statement and ``match_extracted``.
    """
    config = config or default_settings
    text = extract_document_text(content, filename)
    if not text.strip():
        raise ExtractionError(f"No text could be read from {filename}")

    payload = await provider.extract(text, account.account_type.value)
    if not payload:
        raise ExtractionError("The extraction provider returned no data")

    extraction, unreadable = parse_extraction(payload)
    cleaned, sanitization = sanitize_extracted_transactions(
        extraction.transactions,
        period_start=extraction.period_start,
        period_end=extraction.period_end,
        grace_days=config.statement_date_grace_days,
        valid_identity_tags=config.statement_valid_identity_tags,
    )
    sanitization.removed = unreadable + sanitization.removed
    extraction = extraction.model_copy(update={"transactions": cleaned})

    validation = validate_extraction(
        extraction,
        is_credit_card=account.account_type.value == "credit_card",
        grace_days=config.statement_date_grace_days,
        large_amount_threshold_cents=config.large_amount_threshold_cents,
    )
    logger.info(
        f"Extracted {len(cleaned)} line(s) from {filename}: {len(sanitization.removed)} removed, "
        f"{len(sanitization.fixed)} fixed, validation {validation.overall}"
    )
    return to_ledger_convention(extraction, account), validation, sanitization
