"""Tests for transfer pairing."""

from datetime import date

from clearledger.models.account import AccountType
from clearledger.services.transfer_service import pair_transfers

DAY = date(2024, 2, 1)


class TestPairTransfers:
    """Test same-day opposite-amount pairing."""

    def test_pairs_mirror_amounts(self, db_session, account_factory, transaction_factory):
        checking = account_factory("Checking")
        savings = account_factory("Savings", AccountType.savings)
        out_leg = transaction_factory(checking, DAY, -25000, "Transfer to savings")
        in_leg = transaction_factory(savings, DAY, 25000, "Transfer from checking")

        paired = pair_transfers(db_session, checking.id, DAY)

        assert paired == [(out_leg.id, in_leg.id)]
        db_session.refresh(out_leg)
        db_session.refresh(in_leg)
        assert out_leg.transfer_group_id == in_leg.transfer_group_id
        assert out_leg.is_transfer and in_leg.is_transfer
        assert out_leg.transfer_to_account_id == savings.id
        assert in_leg.transfer_to_account_id == checking.id

    def test_running_twice_pairs_nothing_new(self, db_session, account_factory, transaction_factory):
        checking = account_factory("Checking")
        savings = account_factory("Savings", AccountType.savings)
        transaction_factory(checking, DAY, -25000)
        transaction_factory(savings, DAY, 25000)

        assert len(pair_transfers(db_session, checking.id, DAY)) == 1
        assert pair_transfers(db_session, checking.id, DAY) == []
        assert pair_transfers(db_session, savings.id, DAY) == []

    def test_requires_exact_opposite_and_same_day(self, db_session, account_factory, transaction_factory):
        checking = account_factory("Checking")
        savings = account_factory("Savings", AccountType.savings)
        transaction_factory(checking, DAY, -25000)
        transaction_factory(savings, DAY, 24999)
        transaction_factory(savings, date(2024, 2, 2), 25000)

        assert pair_transfers(db_session, checking.id, DAY) == []

    def test_same_account_never_pairs(self, db_session, account_factory, transaction_factory):
        checking = account_factory("Checking")
        transaction_factory(checking, DAY, -25000)
        transaction_factory(checking, DAY, 25000)

        assert pair_transfers(db_session, checking.id, DAY) == []

    def test_each_candidate_used_once(self, db_session, account_factory, transaction_factory):
        checking = account_factory("Checking")
        savings = account_factory("Savings", AccountType.savings)
        transaction_factory(checking, DAY, -1000, "first")
        transaction_factory(checking, DAY, -1000, "second")
        only = transaction_factory(savings, DAY, 1000)

        paired = pair_transfers(db_session, checking.id, DAY)

        assert len(paired) == 1
        assert paired[0][1] == only.id

    def test_deleted_rows_ignored(self, db_session, account_factory, transaction_factory):
        from datetime import datetime

        checking = account_factory("Checking")
        savings = account_factory("Savings", AccountType.savings)
        transaction_factory(checking, DAY, -1000)
        transaction_factory(savings, DAY, 1000, deleted_at=datetime(2024, 2, 3))

        assert pair_transfers(db_session, checking.id, DAY) == []
