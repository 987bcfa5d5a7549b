"""Tests for statement and reconciliation API endpoints."""

import pytest
from datetime import date

from clearledger.dependencies import get_extractor
from clearledger.main import app


class FakeExtractor:
    async def extract(self, text, account_type):
        return {
            "period_start": "2024-03-01",
            "period_end": "2024-03-31",
            "beginning_balance": "0.00",
            "ending_balance": "40.00",
            "transactions": [{"date": "2024-03-05", "description": "SHELL OIL", "amount": "40.00"}],
        }


@pytest.fixture
def statement(client, account_factory, transaction_factory):
    account = account_factory("Operating", opening_balance_cents=100000, opening_balance_date=date(2024, 1, 1))
    deposit = transaction_factory(account, date(2024, 1, 5), 25000, "Client Payment")
    withdrawal = transaction_factory(account, date(2024, 1, 9), -7500, "Office Depot")
    response = client.post("/api/v1/statements", json={
        "account_id": account.id,
        "period_start": "2024-01-01",
        "period_end": "2024-01-31",
        "ending_balance": "1175.00",
    })
    assert response.status_code == 201
    return response.json(), deposit, withdrawal


class TestStatementsAPI:
    """Test the reconciliation workflow over HTTP."""

    def test_summary(self, client, statement):
        data, _, _ = statement
        response = client.get(f"/api/v1/statements/{data['id']}")
        assert response.status_code == 200
        summary = response.json()
        assert summary["beginning_balance"] == "1000.00"
        assert summary["difference"] == "175.00"
        assert summary["is_reconcilable"] is False
        assert len(summary["transactions"]) == 2

    def test_reconcile_refused_with_difference(self, client, statement):
        data, deposit, _ = statement
        client.post(f"/api/v1/statements/{data['id']}/clear", json={"transaction_ids": [deposit.id]})

        response = client.post(f"/api/v1/statements/{data['id']}/reconcile")
        assert response.status_code == 400
        assert response.json()["detail"]["difference"] == "-75.00"

    def test_clear_and_reconcile(self, client, statement):
        data, deposit, withdrawal = statement
        response = client.post(
            f"/api/v1/statements/{data['id']}/clear",
            json={"transaction_ids": [deposit.id, withdrawal.id]},
        )
        assert response.json() == {"changed": 2}

        response = client.post(f"/api/v1/statements/{data['id']}/reconcile")
        assert response.status_code == 200
        assert response.json()["reconciled_count"] == 2

        response = client.post(
            f"/api/v1/statements/{data['id']}/clear",
            json={"transaction_ids": [deposit.id], "cleared": False},
        )
        assert response.status_code == 400

        response = client.post(f"/api/v1/statements/{data['id']}/unreconcile")
        assert response.status_code == 200
        assert response.json()["status"] == "in_progress"

    def test_unreconcile_open_statement(self, client, statement):
        data, _, _ = statement
        assert client.post(f"/api/v1/statements/{data['id']}/unreconcile").status_code == 409

    def test_clear_unknown_transaction(self, client, statement):
        data, _, _ = statement
        response = client.post(f"/api/v1/statements/{data['id']}/clear", json={"transaction_ids": ["missing"]})
        assert response.status_code == 404

    def test_match_extracted(self, client, statement):
        data, deposit, _ = statement
        response = client.post(f"/api/v1/statements/{data['id']}/match-extracted", json={
            "transactions": [
                {"date": "2024-01-05", "description": "CLIENT PAYMENT", "amount": "250.00"},
                {"date": "2024-01-20", "description": "MYSTERY", "amount": "-1.00"},
            ],
        })
        assert response.status_code == 200
        result = response.json()
        assert result["matched_count"] == 1
        assert result["created_count"] == 0
        assert [u["description"] for u in result["unmatched"]] == ["MYSTERY"]

    def test_list_statements(self, client, statement):
        data, _, _ = statement
        response = client.get("/api/v1/statements")
        assert [s["id"] for s in response.json()] == [data["id"]]

    def test_missing_statement(self, client):
        assert client.get("/api/v1/statements/missing").status_code == 404


class TestExtractAPI:
    """Test the statement extraction endpoint."""

    def test_not_configured(self, client, sample_account):
        response = client.post(
            "/api/v1/statements/extract",
            files={"file": ("statement.txt", b"STATEMENT", "text/plain")},
            data={"account_id": sample_account.id},
        )
        assert response.status_code == 503

    def test_extract_and_create_statement(self, client, sample_credit_card, transaction_factory):
        charge = transaction_factory(sample_credit_card, date(2024, 3, 5), -4000, "Shell")
        app.dependency_overrides[get_extractor] = lambda: FakeExtractor()

        response = client.post(
            "/api/v1/statements/extract",
            files={"file": ("statement.txt", b"VISA STATEMENT", "text/plain")},
            data={"account_id": sample_credit_card.id, "create_statement": "true"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["extraction"]["transactions"][0]["amount"] == "-40.00"
        assert body["statement_id"]

        summary = client.get(f"/api/v1/statements/{body['statement_id']}").json()
        assert summary["is_reconcilable"] is True
        assert [line["id"] for line in summary["transactions"] if line["is_cleared"]] == [charge.id]
