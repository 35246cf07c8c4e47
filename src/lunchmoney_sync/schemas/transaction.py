"""
Canonical transaction models consumed by the core.

Amounts are always Decimal in major currency units (negative = expense).
Minor-unit conversion happens in the source-specific collaborators.
Dates are ISO strings (YYYY-MM-DD) without a time component.
"""

import datetime
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any


def to_decimal(value: Decimal | str | int | float) -> Decimal:
    """Coerce an amount to Decimal.

    Floats go through str() so 10.1 stays 10.1 instead of its binary expansion.

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, float):
        amount = Decimal(str(value))
    elif isinstance(value, (int, str)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise ValueError(f"Invalid amount: {value!r}") from e
    else:
        raise ValueError(f"amount must be Decimal, str, int or float, got: {type(value)}")

    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount


@dataclass
class Transaction:
    """A transaction in canonical form.

    Used both for existing target-system transactions and for movements
    coming from a source. `reference` is the source's external identifier.
    """

    date: str
    amount: Decimal
    payee: str = ""
    reference: str | None = None
    category_id: int | None = None
    category_name: str | None = None

    def __post_init__(self) -> None:
        self.amount = to_decimal(self.amount)
        self.date = (self.date or "")[:10]

    @property
    def formatted_amount(self) -> str:
        """Amount with exactly two decimal places."""
        return f"{self.amount:.2f}"

    def to_insert_payload(
        self,
        currency: str,
        asset_id: int | None = None,
    ) -> dict[str, Any]:
        """Build the insert payload for the target system.

        Raises:
            ValueError: If the date is not a valid ISO calendar date
        """
        try:
            datetime.date.fromisoformat(self.date)
        except ValueError as e:
            raise ValueError(f"Invalid transaction date: {self.date!r}") from e

        payload: dict[str, Any] = {
            "date": self.date,
            "amount": self.formatted_amount,
            "payee": self.payee,
            "currency": currency.lower(),
        }
        if self.category_id:
            payload["category_id"] = self.category_id
        if asset_id:
            payload["asset_id"] = int(asset_id)
        if self.reference:
            payload["external_id"] = self.reference
        return payload


@dataclass
class HistoricalTransaction:
    """A categorized historical transaction used to learn associations."""

    payee: str
    category_name: str | None
    date: str | None = None
    amount: Decimal | None = None
    category_id: int | None = None
