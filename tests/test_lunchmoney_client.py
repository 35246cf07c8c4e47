"""
Tests for the Lunch Money API client.

These tests use responses library to mock HTTP requests,
validating client behavior without making real API calls.
"""

import json
from decimal import Decimal

import pytest
import requests
import responses

from lunchmoney_sync.lunchmoney_client import (
    LunchMoneyAPIError,
    LunchMoneyClient,
    LunchMoneyConnectionError,
)


class TestLunchMoneyClient:
    """Test Lunch Money API client."""

    BASE_URL = "https://lm.test/v1"
    TOKEN = "lm-test-token"

    def client(self):
        return LunchMoneyClient(self.TOKEN, base_url=self.BASE_URL)

    @responses.activate
    def test_list_transactions(self):
        """Test listing transactions in a date range."""
        responses.add(
            responses.GET,
            f"{self.BASE_URL}/transactions",
            json={
                "transactions": [
                    {
                        "id": 101,
                        "date": "2024-03-05",
                        "amount": "-12345.0000",
                        "payee": "SUPERMERCADO LIDER",
                        "external_id": "mov_1",
                        "category_id": 5,
                        "category_name": "Groceries",
                    },
                    {
                        "id": 102,
                        "date": "2024-03-06",
                        "amount": "2500",
                        "payee": "Transfer",
                        "external_id": None,
                    },
                ],
                "has_more": False,
            },
            status=200,
        )

        txs = self.client().list_transactions("2024-03-03", "2024-03-10", asset_id=77)

        assert len(txs) == 2
        assert txs[0].amount == Decimal("-12345")
        assert txs[0].reference == "mov_1"
        assert txs[0].category_name == "Groceries"
        assert txs[1].reference is None

        url = responses.calls[0].request.url
        assert "start_date=2024-03-03" in url
        assert "end_date=2024-03-10" in url
        assert "debit_as_negative=true" in url
        assert "asset_id=77" in url

    @responses.activate
    def test_list_transactions_paginates(self):
        """Pages are fetched while has_more is true."""
        url = f"{self.BASE_URL}/transactions"
        responses.add(
            responses.GET,
            url,
            json={
                "transactions": [{"date": "2024-03-05", "amount": "-1", "payee": "A"}],
                "has_more": True,
            },
        )
        responses.add(
            responses.GET,
            url,
            json={
                "transactions": [{"date": "2024-03-06", "amount": "-2", "payee": "B"}],
                "has_more": False,
            },
        )

        txs = self.client().list_transactions("2024-03-01", "2024-03-10")

        assert [tx.payee for tx in txs] == ["A", "B"]
        assert len(responses.calls) == 2
        assert "page=2" in responses.calls[1].request.url

    @responses.activate
    def test_list_transactions_skips_invalid_amounts(self):
        responses.add(
            responses.GET,
            f"{self.BASE_URL}/transactions",
            json={
                "transactions": [
                    {"date": "2024-03-05", "amount": "n/a", "payee": "A"},
                    {"date": "2024-03-05", "amount": None, "payee": "B"},
                    {"date": "2024-03-05", "amount": "-3", "payee": "C"},
                ]
            },
        )

        txs = self.client().list_transactions("2024-03-01", "2024-03-10")
        assert [tx.payee for tx in txs] == ["C"]

    @responses.activate
    def test_list_transactions_server_error(self):
        responses.add(
            responses.GET,
            f"{self.BASE_URL}/transactions",
            json={"error": "Internal server error"},
            status=500,
        )

        with pytest.raises(LunchMoneyAPIError) as exc_info:
            self.client().list_transactions("2024-03-01", "2024-03-10")

        assert exc_info.value.status_code == 500
        assert exc_info.value.retryable
        assert "Internal server error" in str(exc_info.value)

    @responses.activate
    def test_connection_error(self):
        responses.add(
            responses.GET,
            f"{self.BASE_URL}/transactions",
            body=requests.exceptions.ConnectionError("refused"),
        )

        with pytest.raises(LunchMoneyConnectionError) as exc_info:
            self.client().list_transactions("2024-03-01", "2024-03-10")
        assert exc_info.value.retryable

    @responses.activate
    def test_list_transactions_for_learning(self):
        """Only categorized transactions with a payee are returned."""
        responses.add(
            responses.GET,
            f"{self.BASE_URL}/transactions",
            json={
                "transactions": [
                    {"payee": "UBER", "category_name": "Transport", "category_id": 4},
                    {"payee": "UBER", "category_name": None, "category_id": None},
                    {"payee": "", "category_name": "Food", "category_id": 2},
                ],
                "has_more": False,
            },
        )

        history = self.client().list_transactions_for_learning("2023-01-01")

        assert len(history) == 1
        assert history[0].payee == "UBER"
        assert history[0].category_name == "Transport"
        assert "per_page=1000" in responses.calls[0].request.url

    @responses.activate
    def test_list_categories(self):
        responses.add(
            responses.GET,
            f"{self.BASE_URL}/categories",
            json={
                "categories": [
                    {"id": 1, "name": "Coffee", "is_group": False},
                    {"id": 2, "name": "Food & Drink", "is_group": True},
                    {"id": None, "name": "Broken"},
                ]
            },
        )

        categories = self.client().list_categories()

        assert [(c.id, c.name) for c in categories] == [(1, "Coffee"), (2, "Food & Drink")]
        assert categories[1].is_group is True

    @responses.activate
    def test_list_categories_bare_list(self):
        responses.add(
            responses.GET,
            f"{self.BASE_URL}/categories",
            json=[{"id": 3, "name": "Transport"}],
        )

        assert self.client().list_categories()[0].name == "Transport"

    @responses.activate
    def test_insert_transactions(self):
        responses.add(
            responses.POST,
            f"{self.BASE_URL}/transactions",
            json={"ids": [501, 502]},
            status=200,
        )

        payloads = [
            {"date": "2024-03-05", "amount": "-12345.00", "payee": "LIDER", "currency": "clp"},
            {"date": "2024-03-06", "amount": "-3500.00", "payee": "UBER", "currency": "clp"},
        ]
        ids = self.client().insert_transactions(payloads)

        assert ids == [501, 502]
        body = json.loads(responses.calls[0].request.body)
        assert body["transactions"] == payloads
        assert body["debit_as_negative"] is True
        assert body["apply_rules"] is False
        assert body["skip_duplicates"] is False

    @responses.activate
    def test_insert_error_body(self):
        """Validation failures come back as 200 with an error body."""
        responses.add(
            responses.POST,
            f"{self.BASE_URL}/transactions",
            json={"error": ["Transaction 0: invalid date"]},
            status=200,
        )

        with pytest.raises(LunchMoneyAPIError) as exc_info:
            self.client().insert_transactions(
                [{"date": "bad", "amount": "1.00", "payee": "X", "currency": "clp"}]
            )

        assert exc_info.value.status_code == 400
        assert not exc_info.value.retryable
        assert "invalid date" in str(exc_info.value)

    def test_insert_batch_too_large(self):
        payloads = [{"date": "2024-03-05", "amount": "-1.00"}] * 51

        with pytest.raises(ValueError, match="exceeds the limit"):
            self.client().insert_transactions(payloads)
