"""Tests for transactions API endpoints."""

from datetime import date


class TestTransactionsAPI:
    """Test transaction listing and review endpoints."""

    def test_list_transactions_empty(self, client):
        """Should return empty list when no transactions."""
        response = client.get("/api/v1/transactions")
        assert response.status_code == 200
        data = response.json()
        assert data["items"] == []
        assert data["total"] == 0

    def test_list_transactions_with_data(self, client, sample_transaction):
        """Should return transactions with decimal amounts."""
        response = client.get("/api/v1/transactions")
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["amount"] == "-50.00"
        assert data["items"][0]["review_status"] == "needs_review"

    def test_filters(self, client, sample_account, sample_transaction, transaction_factory):
        transaction_factory(sample_account, date(2024, 2, 1), 10000, "Client Payment")

        def total(**params):
            return client.get("/api/v1/transactions", params=params).json()["total"]

        assert total(search="staples") == 1
        assert total(start_date="2024-02-01") == 1
        assert total(end_date="2024-01-31") == 1
        assert total(review_status="approved") == 0
        assert total(account_id=sample_account.id) == 2

    def test_get_transaction(self, client, sample_transaction):
        response = client.get(f"/api/v1/transactions/{sample_transaction.id}")
        assert response.status_code == 200
        assert response.json()["payee"] == "Staples"

    def test_get_missing_transaction(self, client):
        assert client.get("/api/v1/transactions/missing").status_code == 404

    def test_approve_accepts_suggestion(self, client, sample_transaction, sample_category):
        response = client.post(f"/api/v1/transactions/{sample_transaction.id}/approve", json={"actor": "pat"})
        assert response.status_code == 200
        data = response.json()
        assert data["review_status"] == "approved"
        assert data["category_id"] == sample_category.id

    def test_approve_unknown_category(self, client, sample_transaction):
        response = client.post(
            f"/api/v1/transactions/{sample_transaction.id}/approve", json={"category_id": "missing"}
        )
        assert response.status_code == 404

    def test_bulk_approve(self, client, sample_transaction):
        response = client.post("/api/v1/transactions/bulk-approve", json={
            "transaction_ids": [sample_transaction.id, "missing"]
        })
        assert response.status_code == 200
        assert response.json() == {"approved": 1, "skipped": ["missing"]}

    def test_bulk_approve_requires_ids(self, client):
        response = client.post("/api/v1/transactions/bulk-approve", json={"transaction_ids": []})
        assert response.status_code == 422

    def test_delete_transaction(self, client, sample_transaction):
        """Should soft delete and hide the transaction."""
        response = client.delete(f"/api/v1/transactions/{sample_transaction.id}")
        assert response.status_code == 204
        assert client.get("/api/v1/transactions").json()["total"] == 0
        assert client.get(f"/api/v1/transactions/{sample_transaction.id}").status_code == 404

    def test_categorize_preview_heuristic(self, client, heuristic_categories):
        response = client.post("/api/v1/transactions/categorize", json={
            "payee": "GUSTO",
            "description": "GUSTO NET PAY",
            "amount": "-2500.00",
        })
        assert response.status_code == 200
        data = response.json()
        assert data["category_name"] == "Wages"
        assert data["source"] == "heuristic"

    def test_categorize_preview_nothing_matches(self, client):
        response = client.post("/api/v1/transactions/categorize", json={"payee": "Unknown Vendor"})
        assert response.status_code == 200
        assert response.json()["source"] == "none"
