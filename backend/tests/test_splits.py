"""Tests for balanced split generation."""

import pytest

from clearledger.services.errors import SplitImbalanceError
from clearledger.services.split_service import (
    SplitCandidate,
    assert_balanced_splits,
    build_split_candidates,
)


class TestAssertBalanced:
    """Test the zero-sum check."""

    def test_balanced(self):
        assert_balanced_splits([SplitCandidate("a", None, 100), SplitCandidate("b", None, -100)])

    def test_unbalanced(self):
        with pytest.raises(SplitImbalanceError):
            assert_balanced_splits([SplitCandidate("a", None, 100), SplitCandidate("b", None, -99)])

    def test_zero_leg(self):
        with pytest.raises(SplitImbalanceError):
            assert_balanced_splits([SplitCandidate("a", None, 0), SplitCandidate("b", None, 0)])


class TestBuildSplits:
    """Test split legs implied by a transaction."""

    def test_plain_purchase_has_no_splits(self, db_session, sample_account):
        assert build_split_candidates(-2500, sample_account.id, "Staples", [sample_account]) == []

    def test_zero_amount_has_no_splits(self, db_session, sample_account):
        assert build_split_candidates(0, sample_account.id, "Transfer", [sample_account], transfer_to_account_id="x") == []

    def test_transfer(self, db_session, sample_account):
        splits = build_split_candidates(-10000, sample_account.id, "Transfer", [], transfer_to_account_id="savings-1")
        assert [(s.account_id, s.amount_cents) for s in splits] == [
            (sample_account.id, -10000),
            ("savings-1", 10000),
        ]

    def test_credit_card_payment(self, db_session, sample_account, sample_credit_card):
        splits = build_split_candidates(
            -50000, sample_account.id, "Payment to Visa", [sample_account, sample_credit_card]
        )
        assert [(s.account_id, s.amount_cents) for s in splits] == [
            (sample_account.id, -50000),
            (sample_credit_card.id, 50000),
        ]
        assert sum(s.amount_cents for s in splits) == 0

    def test_loan_payment_with_principal_and_interest(self, db_session, sample_account, sample_loan):
        loan = sample_loan
        splits = build_split_candidates(
            -60000,
            sample_account.id,
            "Truck Loan Payment",
            [sample_account, loan],
            raw_data={"Principal": "500.00", "Interest": "100.00"},
        )
        assert [(s.memo, s.amount_cents) for s in splits] == [
            ("Loan payment", -60000),
            ("Principal", 50000),
            ("Interest", 10000),
        ]
        assert splits[1].account_id == loan.id

    def test_loan_payment_without_breakdown(self, db_session, sample_account, sample_loan):
        loan = sample_loan
        splits = build_split_candidates(
            -60000,
            sample_account.id,
            "Truck Loan Payment",
            [sample_account, loan],
            raw_data={"Principal": "500.00", "Interest": "99.00"},
        )
        assert [(s.memo, s.amount_cents) for s in splits] == [
            ("Loan payment", -60000),
            ("Principal", 60000),
        ]
