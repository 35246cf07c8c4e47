"""Test fixtures and utilities."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest

from lunchmoney_sync.categorization import CategorizationEngine, CategoryResolver, MemoryStore
from lunchmoney_sync.config import Config, FintocConfig, LunchMoneyConfig, SyncConfig
from lunchmoney_sync.lunchmoney_client import LunchMoneyAPIError, LunchMoneyCategory
from lunchmoney_sync.schemas.transaction import HistoricalTransaction, Transaction
from lunchmoney_sync.sources import BaseSource

# Sample Banco de Chile card notification body
SAMPLE_BANCOCHILE_EMAIL = """
Estimado(a) cliente:

Te informamos que se ha realizado una compra por $12.345 con cargo a
Tarjeta de Crédito ****1234 en SUPERMERCADO LIDER el 05/03/2024 14:22.

Revisa Saldos y Movimientos en App Mi Banco o Banco en Línea.
"""

DEFAULT_CATEGORIES = [
    LunchMoneyCategory(id=1, name="Shopping"),
    LunchMoneyCategory(id=2, name="Food"),
    LunchMoneyCategory(id=3, name="Coffee"),
    LunchMoneyCategory(id=4, name="Transport"),
    LunchMoneyCategory(id=5, name="Groceries"),
]


class FakeLunchMoney:
    """In-memory stand-in for LunchMoneyClient.

    Inserted transactions become visible to later list_transactions calls.
    """

    def __init__(
        self,
        existing: list[Transaction] | None = None,
        categories: list[LunchMoneyCategory] | None = None,
        history: list[HistoricalTransaction] | None = None,
    ) -> None:
        self.existing = list(existing or [])
        self.categories = list(DEFAULT_CATEGORIES if categories is None else categories)
        self.history = list(history or [])
        self.inserted_batches: list[list[dict]] = []
        self.failing_batches: set[int] = set()
        self.list_error: Exception | None = None
        self.category_error: Exception | None = None
        self.category_calls = 0
        self.list_calls: list[tuple[str, str]] = []
        self._insert_calls = 0

    def list_transactions(self, start_date, end_date, asset_id=None):
        self.list_calls.append((start_date, end_date))
        if self.list_error:
            raise self.list_error
        return [tx for tx in self.existing if start_date <= tx.date <= end_date]

    def list_transactions_for_learning(self, start_date):
        return list(self.history)

    def list_categories(self):
        self.category_calls += 1
        if self.category_error:
            raise self.category_error
        return list(self.categories)

    def insert_transactions(self, payloads):
        index = self._insert_calls
        self._insert_calls += 1
        if index in self.failing_batches:
            raise LunchMoneyAPIError(status_code=500, message="Internal Server Error")

        self.inserted_batches.append(list(payloads))
        for payload in payloads:
            self.existing.append(
                Transaction(
                    date=payload["date"],
                    amount=Decimal(payload["amount"]),
                    payee=payload["payee"],
                    reference=payload.get("external_id"),
                    category_id=payload.get("category_id"),
                )
            )
        return list(range(len(payloads)))

    @property
    def inserted(self) -> list[dict]:
        return [payload for batch in self.inserted_batches for payload in batch]


class FakeSource(BaseSource):
    """Movement source returning a fixed list."""

    def __init__(self, movements: list[Transaction] | None = None, error: Exception | None = None):
        self.movements = list(movements or [])
        self.error = error
        self.windows: list = []

    @property
    def name(self) -> str:
        return "fake"

    def fetch_movements(self, start, end) -> list[Transaction]:
        self.windows.append((start, end))
        if self.error:
            raise self.error
        # Fresh copies, like a real source returning new objects per call
        return [
            Transaction(date=m.date, amount=m.amount, payee=m.payee, reference=m.reference)
            for m in self.movements
        ]


@pytest.fixture
def sample_bancochile_email() -> str:
    """Sample Banco de Chile notification body."""
    return SAMPLE_BANCOCHILE_EMAIL


@pytest.fixture
def memory_path(tmp_path) -> Path:
    """Temporary memory file path for testing."""
    return tmp_path / "categorization_memory.json"


@pytest.fixture
def memory_store(memory_path) -> MemoryStore:
    return MemoryStore(memory_path)


@pytest.fixture
def fake_client() -> FakeLunchMoney:
    return FakeLunchMoney()


@pytest.fixture
def engine(fake_client, memory_store) -> CategorizationEngine:
    """Engine with fresh caches over the fake client and a temp memory file."""
    return CategorizationEngine(CategoryResolver(fake_client), memory_store)


@pytest.fixture
def config(memory_path) -> Config:
    """Valid configuration for the fintoc source."""
    return Config(
        lunchmoney=LunchMoneyConfig(token="lm-test-token"),
        fintoc=FintocConfig(api_key="sk_test", link_id="acc_123"),
        sync=SyncConfig(days_to_sync=7, currency="CLP"),
        memory_path=memory_path,
    )
