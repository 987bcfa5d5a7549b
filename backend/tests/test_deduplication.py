"""Tests for idempotency hashes."""

from datetime import date

from clearledger.services.deduplication_service import (
    generate_file_hash,
    generate_row_hash,
    generate_source_hash,
    generate_statement_source_hash,
)


def _source_hash(**overrides):
    values = dict(
        account_id="account-123",
        txn_date=date(2024, 1, 15),
        payee="Amazon",
        description="AMAZON PURCHASE",
        amount_cents=-5000,
        reference=None,
        source="manual",
    )
    values.update(overrides)
    return generate_source_hash(**values)


class TestSourceHash:
    """Test the per-account source hash."""

    def test_same_inputs_same_hash(self):
        """Identical inputs should produce identical hashes."""
        assert _source_hash() == _source_hash()

    def test_payee_case_and_whitespace_ignored(self):
        """Cosmetic payee differences should not defeat deduplication."""
        assert _source_hash(payee="  AMAZON ") == _source_hash()

    def test_different_amount_different_hash(self):
        assert _source_hash(amount_cents=-5001) != _source_hash()

    def test_different_account_different_hash(self):
        assert _source_hash(account_id="account-456") != _source_hash()

    def test_different_date_different_hash(self):
        assert _source_hash(txn_date=date(2024, 1, 16)) != _source_hash()


class TestRowHash:
    """Test the per-batch row hash."""

    def test_row_number_is_part_of_the_hash(self):
        args = (date(2024, 1, 15), "Amazon", None, -5000, None, None, "manual")
        assert generate_row_hash(1, *args) != generate_row_hash(2, *args)
        assert generate_row_hash(1, *args) == generate_row_hash(1, *args)


class TestOtherHashes:
    """Test file and statement hashes."""

    def test_file_hash_is_content_based(self):
        assert generate_file_hash(b"a,b\n1,2\n") == generate_file_hash(b"a,b\n1,2\n")
        assert generate_file_hash(b"a,b\n1,2\n") != generate_file_hash(b"a,b\n1,3\n")

    def test_statement_hash_scoped_to_statement(self):
        one = generate_statement_source_hash("stmt-1", date(2024, 1, 15), "Coffee", -450)
        two = generate_statement_source_hash("stmt-2", date(2024, 1, 15), "Coffee", -450)
        assert one != two
