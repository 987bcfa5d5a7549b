"""Tests for transaction review: approval, reclassification and soft delete."""

import pytest
import uuid
from datetime import date

from clearledger.models.categorization_rule import CategorizationRule, RuleMatchType
from clearledger.models.category import Category, CategoryType
from clearledger.models.review_action import ReviewAction, ReviewActionType
from clearledger.models.transaction import ReviewStatus
from clearledger.services import transaction_service
from clearledger.services.errors import NotFoundError


@pytest.fixture
def travel_category(db_session):
    category = Category(id=str(uuid.uuid4()), name="Travel", category_type=CategoryType.expense)
    db_session.add(category)
    db_session.commit()
    return category


class TestApprove:
    """Test approving single transactions."""

    def test_accepts_suggested_category(self, db_session, sample_transaction, sample_category):
        txn = transaction_service.approve_transaction(db_session, sample_transaction.id, actor="pat")

        assert txn.review_status == ReviewStatus.approved
        assert txn.category_id == sample_category.id

        action = db_session.query(ReviewAction).one()
        assert action.action == ReviewActionType.approve
        assert action.actor == "pat"
        assert action.before_json == {"category_id": None, "review_status": "needs_review"}
        assert action.after_json == {"category_id": sample_category.id, "review_status": "approved"}

    def test_other_category_is_a_reclass(self, db_session, sample_transaction, travel_category):
        txn = transaction_service.approve_transaction(
            db_session, sample_transaction.id, category_id=travel_category.id
        )

        assert txn.category_id == travel_category.id
        assert db_session.query(ReviewAction).one().action == ReviewActionType.reclass

    def test_approval_learns_exact_rule(self, db_session, sample_transaction, sample_category):
        transaction_service.approve_transaction(db_session, sample_transaction.id)

        rule = db_session.query(CategorizationRule).one()
        assert rule.match_type == RuleMatchType.exact
        assert rule.payee_pattern == "Staples"
        assert rule.category_id == sample_category.id
        assert rule.description_pattern is None

    def test_unknown_category(self, db_session, sample_transaction):
        with pytest.raises(NotFoundError):
            transaction_service.approve_transaction(db_session, sample_transaction.id, category_id="missing")

    def test_unknown_transaction(self, db_session):
        with pytest.raises(NotFoundError):
            transaction_service.approve_transaction(db_session, "missing")


class TestBulkApprove:
    """Test bulk approval."""

    def test_skips_uncategorized_and_unknown(self, db_session, sample_account, sample_transaction, transaction_factory):
        bare = transaction_factory(sample_account, date(2024, 1, 20), -999, "Mystery")

        approved, skipped = transaction_service.bulk_approve(
            db_session, [sample_transaction.id, bare.id, "missing"], actor="pat"
        )

        assert approved == 1
        assert skipped == [bare.id, "missing"]
        db_session.refresh(bare)
        assert bare.review_status == ReviewStatus.needs_review

    def test_repeat_approval_reuses_rule(self, db_session, sample_account, sample_category, transaction_factory):
        first = transaction_factory(
            sample_account, date(2024, 1, 1), -100, "Staples", category_id=sample_category.id
        )
        second = transaction_factory(
            sample_account, date(2024, 1, 2), -200, "staples", category_id=sample_category.id
        )

        transaction_service.bulk_approve(db_session, [first.id, second.id])

        rule = db_session.query(CategorizationRule).one()
        assert rule.times_applied == 2
        assert db_session.query(ReviewAction).count() == 2


class TestSoftDelete:
    """Test soft deletion."""

    def test_deleted_transaction_disappears(self, db_session, sample_transaction):
        transaction_service.soft_delete_transaction(db_session, sample_transaction.id)

        db_session.refresh(sample_transaction)
        assert sample_transaction.deleted_at is not None
        with pytest.raises(NotFoundError):
            transaction_service.get_transaction(db_session, sample_transaction.id)
