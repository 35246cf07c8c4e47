"""
Lunch Money API Client.

Provides:
- List transactions in a date range (paginated)
- List categorized history for learning
- List categories
- Insert transaction batches (POST /v1/transactions)

Treats Lunch Money errors as loud failures with actionable messages.
"""

from .client import (
    LunchMoneyAPIError,
    LunchMoneyCategory,
    LunchMoneyClient,
    LunchMoneyConnectionError,
    LunchMoneyError,
)

__all__ = [
    "LunchMoneyClient",
    "LunchMoneyError",
    "LunchMoneyAPIError",
    "LunchMoneyConnectionError",
    "LunchMoneyCategory",
]
