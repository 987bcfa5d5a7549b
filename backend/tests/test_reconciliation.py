"""Tests for statement reconciliation and extracted-line matching."""

import pytest
from datetime import date
from decimal import Decimal

from clearledger.models.bank_statement import MatchMethod, StatementStatus, StatementTransaction
from clearledger.models.transaction import ReconciliationStatus, Transaction
from clearledger.schemas.import_batch import ExtractedTransaction
from clearledger.services import reconciliation_service
from clearledger.services.errors import StateConflictError, StatementLockedError
from clearledger.services.reconciliation_service import score_candidate, string_similarity


@pytest.fixture
def funded_account(account_factory):
    return account_factory(
        "Operating", opening_balance_cents=100000, opening_balance_date=date(2024, 1, 1)
    )


@pytest.fixture
def january(db_session, funded_account, transaction_factory):
    """Opening 1000.00, one 250.00 deposit and one 75.00 withdrawal in January."""
    deposit = transaction_factory(funded_account, date(2024, 1, 5), 25000, "Client Payment")
    withdrawal = transaction_factory(funded_account, date(2024, 1, 9), -7500, "Office Depot")
    statement = reconciliation_service.create_statement(
        db_session, funded_account.id, date(2024, 1, 1), date(2024, 1, 31), 117500, 100000
    )
    return statement, deposit, withdrawal


class TestSummary:
    """Test the reconciliation arithmetic."""

    def test_nothing_cleared(self, db_session, january):
        statement, _, _ = january
        summary = reconciliation_service.compute_summary(db_session, statement.id)

        assert summary.beginning_balance_cents == 100000
        assert summary.computed_ending_balance_cents == 100000
        assert summary.difference_cents == 17500
        assert summary.uncleared_count == 2
        assert not summary.beginning_balance_mismatch

    def test_all_cleared_balances(self, db_session, january):
        statement, deposit, withdrawal = january
        reconciliation_service.set_cleared(db_session, statement.id, [deposit.id, withdrawal.id])
        summary = reconciliation_service.compute_summary(db_session, statement.id)

        assert summary.cleared_deposits_cents == 25000
        assert summary.cleared_withdrawals_cents == 7500
        assert summary.computed_ending_balance_cents == 117500
        assert summary.is_reconcilable

    def test_printed_beginning_balance_is_advisory(self, db_session, funded_account):
        statement = reconciliation_service.create_statement(
            db_session, funded_account.id, date(2024, 1, 1), date(2024, 1, 31), 100000, 99000
        )
        summary = reconciliation_service.compute_summary(db_session, statement.id)
        assert summary.beginning_balance_cents == 100000
        assert summary.beginning_balance_mismatch
        assert summary.is_reconcilable

    def test_credit_card_balances_flip_sign(self, db_session, sample_credit_card, transaction_factory):
        transaction_factory(sample_credit_card, date(2024, 2, 3), -50000, "Airline")
        transaction_factory(sample_credit_card, date(2024, 2, 20), 20000, "Payment Thank You")
        # printed as 300.00 owed
        statement = reconciliation_service.create_statement(
            db_session, sample_credit_card.id, date(2024, 2, 1), date(2024, 2, 29), 30000
        )
        reconciliation_service.set_cleared(
            db_session, statement.id, [t.id for t in db_session.query(Transaction).all()]
        )
        summary = reconciliation_service.compute_summary(db_session, statement.id)

        assert summary.is_liability
        assert summary.statement_ending_balance_cents == -30000
        assert summary.computed_ending_balance_cents == -30000
        assert summary.is_reconcilable

    def test_next_period_starts_from_reconciled_statement(self, db_session, funded_account, january):
        statement, deposit, withdrawal = january
        reconciliation_service.set_cleared(db_session, statement.id, [deposit.id, withdrawal.id])
        assert reconciliation_service.reconcile(db_session, statement.id).ok

        february = reconciliation_service.create_statement(
            db_session, funded_account.id, date(2024, 2, 1), date(2024, 2, 29), 117500
        )
        summary = reconciliation_service.compute_summary(db_session, february.id)
        assert summary.beginning_balance_cents == 117500

    def test_period_end_before_start_rejected(self, db_session, funded_account):
        with pytest.raises(ValueError):
            reconciliation_service.create_statement(
                db_session, funded_account.id, date(2024, 2, 1), date(2024, 1, 1), 0
            )


class TestReconcile:
    """Test locking and reopening statements."""

    def test_reconcile_locks_and_marks_transactions(self, db_session, january):
        statement, deposit, withdrawal = january
        reconciliation_service.set_cleared(db_session, statement.id, [deposit.id, withdrawal.id])

        result = reconciliation_service.reconcile(db_session, statement.id)

        assert result.ok
        assert result.reconciled_count == 2
        db_session.refresh(statement)
        db_session.refresh(deposit)
        assert statement.status == StatementStatus.reconciled
        assert deposit.reconciliation_status == ReconciliationStatus.reconciled
        assert deposit.reconciled_at is not None

    def test_one_cent_off_is_refused(self, db_session, funded_account, transaction_factory):
        deposit = transaction_factory(funded_account, date(2024, 1, 5), 25000, "Client Payment")
        statement = reconciliation_service.create_statement(
            db_session, funded_account.id, date(2024, 1, 1), date(2024, 1, 31), 125001
        )
        reconciliation_service.set_cleared(db_session, statement.id, [deposit.id])

        result = reconciliation_service.reconcile(db_session, statement.id)

        assert not result.ok
        assert result.difference_cents == 1
        assert "0.01" in result.message
        db_session.refresh(statement)
        assert statement.status == StatementStatus.in_progress

    def test_reconciled_statement_is_locked(self, db_session, january):
        statement, deposit, withdrawal = january
        reconciliation_service.set_cleared(db_session, statement.id, [deposit.id, withdrawal.id])
        reconciliation_service.reconcile(db_session, statement.id)

        with pytest.raises(StatementLockedError):
            reconciliation_service.set_cleared(db_session, statement.id, [deposit.id], cleared=False)
        with pytest.raises(StatementLockedError):
            reconciliation_service.auto_match(db_session, statement.id)

    def test_unreconcile_reopens(self, db_session, january):
        statement, deposit, withdrawal = january
        reconciliation_service.set_cleared(db_session, statement.id, [deposit.id, withdrawal.id])
        reconciliation_service.reconcile(db_session, statement.id)

        reopened = reconciliation_service.unreconcile(db_session, statement.id)

        assert reopened.status == StatementStatus.in_progress
        db_session.refresh(deposit)
        assert deposit.reconciliation_status == ReconciliationStatus.cleared
        assert deposit.reconciled_at is None

    def test_unreconcile_open_statement_conflicts(self, db_session, january):
        statement, _, _ = january
        with pytest.raises(StateConflictError):
            reconciliation_service.unreconcile(db_session, statement.id)


class TestClearing:
    """Test clearing transactions against statements."""

    def test_clear_and_unclear(self, db_session, january):
        statement, deposit, _ = january
        assert reconciliation_service.set_cleared(db_session, statement.id, [deposit.id]) == 1
        assert reconciliation_service.set_cleared(db_session, statement.id, [deposit.id]) == 0
        db_session.refresh(deposit)
        assert deposit.reconciliation_status == ReconciliationStatus.cleared

        assert reconciliation_service.set_cleared(db_session, statement.id, [deposit.id], cleared=False) == 1
        db_session.refresh(deposit)
        assert deposit.reconciliation_status == ReconciliationStatus.unreconciled

    def test_transaction_cleared_on_another_statement(self, db_session, funded_account, january):
        statement, deposit, _ = january
        reconciliation_service.set_cleared(db_session, statement.id, [deposit.id])
        other = reconciliation_service.create_statement(
            db_session, funded_account.id, date(2024, 1, 1), date(2024, 1, 31), 117500
        )
        with pytest.raises(StateConflictError):
            reconciliation_service.set_cleared(db_session, other.id, [deposit.id])

    def test_auto_match_uses_source_hash(self, db_session, funded_account, transaction_factory):
        hashed = transaction_factory(funded_account, date(2024, 1, 5), 1000, "Imported", source_hash="a" * 64)
        transaction_factory(funded_account, date(2024, 1, 6), 2000, "Manual entry")
        transaction_factory(funded_account, date(2024, 2, 6), 3000, "Next month", source_hash="b" * 64)
        statement = reconciliation_service.create_statement(
            db_session, funded_account.id, date(2024, 1, 1), date(2024, 1, 31), 101000
        )

        assert reconciliation_service.auto_match(db_session, statement.id) == 1
        link = db_session.query(StatementTransaction).one()
        assert link.transaction_id == hashed.id
        assert link.match_method == MatchMethod.hash
        assert reconciliation_service.auto_match(db_session, statement.id) == 0


class TestMatching:
    """Test fuzzy matching of extracted statement lines."""

    def test_string_similarity(self):
        assert string_similarity("Amazon", "AMAZON") == 1.0
        assert string_similarity("AMAZON MKTPLACE", "Amazon") == 0.8
        assert string_similarity("abcdef", "xxcdxx") == pytest.approx(2 / 6)
        assert string_similarity("", "Amazon") == 0.0

    def test_score_candidate(self):
        assert score_candidate(0, 1, 1.0) == pytest.approx(1.0)
        assert score_candidate(1, 1, 0.0) == pytest.approx(0.3)

    def test_best_candidate_wins(self, db_session, funded_account, transaction_factory):
        shell = transaction_factory(funded_account, date(2024, 1, 10), -4000, "Shell")
        chevron = transaction_factory(funded_account, date(2024, 1, 11), -4000, "Chevron")
        statement = reconciliation_service.create_statement(
            db_session, funded_account.id, date(2024, 1, 1), date(2024, 1, 31), 92000
        )
        lines = [
            ExtractedTransaction(date=date(2024, 1, 11), description="CHEVRON 123", amount=Decimal("-40.00")),
            ExtractedTransaction(date=date(2024, 1, 10), description="SHELL OIL", amount=Decimal("-40.00")),
            ExtractedTransaction(date=date(2024, 1, 12), description="UNKNOWN", amount=Decimal("-1.23")),
        ]

        result = reconciliation_service.match_extracted(db_session, statement.id, lines)

        assert result.matched_count == 2
        assert [u.description for u in result.unmatched] == ["UNKNOWN"]
        links = {
            link.transaction_id
            for link in db_session.query(StatementTransaction).filter(
                StatementTransaction.match_method == MatchMethod.extracted
            )
        }
        assert links == {shell.id, chevron.id}
        db_session.refresh(statement)
        assert statement.unmatched_transactions[0]["description"] == "UNKNOWN"

    def test_outside_date_tolerance_is_unmatched(self, db_session, funded_account, transaction_factory):
        transaction_factory(funded_account, date(2024, 1, 10), -4000, "Shell")
        statement = reconciliation_service.create_statement(
            db_session, funded_account.id, date(2024, 1, 1), date(2024, 1, 31), 96000
        )
        lines = [ExtractedTransaction(date=date(2024, 1, 13), description="SHELL", amount=Decimal("-40.00"))]

        result = reconciliation_service.match_extracted(db_session, statement.id, lines)
        assert result.matched_count == 0

    def test_card_prefers_same_day_description_match(self, db_session, sample_credit_card, transaction_factory):
        far = transaction_factory(sample_credit_card, date(2024, 3, 3), -4000, "Chevron")
        near = transaction_factory(sample_credit_card, date(2024, 3, 5), -4000, "Shell Oil")
        statement = reconciliation_service.create_statement(
            db_session, sample_credit_card.id, date(2024, 3, 1), date(2024, 3, 31), 8000
        )
        lines = [ExtractedTransaction(date=date(2024, 3, 5), description="SHELL OIL", amount=Decimal("-40.00"))]

        result = reconciliation_service.match_extracted(db_session, statement.id, lines)

        assert result.matched_count == 1
        link = db_session.query(StatementTransaction).filter(
            StatementTransaction.match_method == MatchMethod.extracted
        ).one()
        assert link.transaction_id == near.id
        assert link.transaction_id != far.id

    def test_earlier_line_claims_only_candidate(self, db_session, funded_account, transaction_factory):
        """Lines are matched in order, so a later and closer line finds the candidate taken."""
        shell = transaction_factory(funded_account, date(2024, 1, 10), -4000, "Shell")
        statement = reconciliation_service.create_statement(
            db_session, funded_account.id, date(2024, 1, 1), date(2024, 1, 31), 96000
        )
        lines = [
            ExtractedTransaction(date=date(2024, 1, 11), description="GAS STATION", amount=Decimal("-40.00")),
            ExtractedTransaction(date=date(2024, 1, 10), description="SHELL", amount=Decimal("-40.00")),
        ]

        result = reconciliation_service.match_extracted(db_session, statement.id, lines)

        assert result.matched_count == 1
        assert [u.description for u in result.unmatched] == ["SHELL"]
        link = db_session.query(StatementTransaction).one()
        assert link.transaction_id == shell.id

    def test_create_missing(self, db_session, funded_account):
        statement = reconciliation_service.create_statement(
            db_session, funded_account.id, date(2024, 1, 1), date(2024, 1, 31), 99000
        )
        lines = [ExtractedTransaction(date=date(2024, 1, 15), description="BANK FEE", amount=Decimal("-10.00"))]

        result = reconciliation_service.match_extracted(db_session, statement.id, lines, create_missing=True)

        assert result.created_count == 1
        assert result.unmatched == []
        created = db_session.query(Transaction).one()
        assert created.amount_cents == -1000
        assert created.source == "pdf_statement"
        assert reconciliation_service.compute_summary(db_session, statement.id).is_reconcilable
