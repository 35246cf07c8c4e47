"""
Duplicate detection (CRITICAL).

This module defines THE identity functions for transactions.
Two complementary signals are used:

1. Simple key: "{date}-{amount:.2f}"
   - Coarse, independent of payee and reference
   - Guards against re-syncing unchanged data even if payee text changes

2. Fingerprint: SHA256(date|amount|payee|reference)
   - Distinguishes same-day same-amount transactions to different payees
   - Stable as long as payee and reference are stable

A candidate is a duplicate if EITHER signal is already known. Candidates
classified as new are added to the known sets immediately, so repeated
movements inside the same batch are suppressed too.
"""

import hashlib
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from .transaction import Transaction, to_decimal

logger = logging.getLogger(__name__)

# Separator between fingerprint components
FINGERPRINT_SEPARATOR = "|"

METHOD_FINGERPRINT = "fingerprint"
METHOD_SIMPLE = "simple"


def _normalize_amount(amount: Decimal | str | float) -> str:
    """Normalize amount to 2 decimal places for hashing."""
    return f"{to_decimal(amount):.2f}"


def _normalize_string(value: str | None) -> str:
    """Normalize a string for hashing (lowercase, strip whitespace)."""
    if not value:
        return ""
    return value.strip().lower()


def fingerprint(tx: Transaction) -> str:
    """
    Compute the identity fingerprint of a transaction.

    Hash components (in order):
    - date: YYYY-MM-DD
    - amount: Normalized to 2 decimal places
    - payee: Normalized (stripped, lowercase)
    - reference: Normalized, empty if absent

    Returns:
        64-character lowercase hex SHA256 hash
    """
    canonical = FINGERPRINT_SEPARATOR.join(
        [
            (tx.date or "").strip(),
            _normalize_amount(tx.amount),
            _normalize_string(tx.payee),
            _normalize_string(tx.reference),
        ]
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def simple_key(tx: Transaction) -> str:
    """Backward-compatible identity: date and amount rounded to 2 decimals."""
    return f"{tx.date}-{_normalize_amount(tx.amount)}"


@dataclass
class DuplicateInfo:
    """A skipped candidate and the signal that matched it."""

    transaction: Transaction
    method: str  # "fingerprint" or "simple"

    def to_dict(self) -> dict:
        return {
            "date": self.transaction.date,
            "amount": self.transaction.formatted_amount,
            "payee": self.transaction.payee,
            "method": self.method,
        }


@dataclass
class DedupeResult:
    """Partition of candidate movements into new and duplicate."""

    new: list[Transaction] = field(default_factory=list)
    duplicates: list[DuplicateInfo] = field(default_factory=list)


class DuplicateIndex:
    """Known simple keys and fingerprints for one sync window."""

    def __init__(self, existing: Iterable[Transaction] = ()) -> None:
        self.simple_keys: set[str] = set()
        self.fingerprints: set[str] = set()
        for tx in existing:
            self.add(tx)

    def add(self, tx: Transaction) -> None:
        self.simple_keys.add(simple_key(tx))
        self.fingerprints.add(fingerprint(tx))

    def match(self, tx: Transaction) -> str | None:
        """Return the matching method, or None if the transaction is unknown.

        Fingerprint takes precedence when both signals match.
        """
        if fingerprint(tx) in self.fingerprints:
            return METHOD_FINGERPRINT
        if simple_key(tx) in self.simple_keys:
            return METHOD_SIMPLE
        return None

    def __len__(self) -> int:
        return len(self.fingerprints)


def deduplicate(
    existing: Iterable[Transaction],
    candidates: Iterable[Transaction],
) -> DedupeResult:
    """
    Partition candidates into new and duplicate transactions.

    Args:
        existing: Transactions already in the target system for the sync window
        candidates: Movements from the source, in source order

    Returns:
        DedupeResult with new transactions in source order and skipped duplicates
    """
    index = DuplicateIndex(existing)
    result = DedupeResult()

    for tx in candidates:
        method = index.match(tx)
        if method is not None:
            result.duplicates.append(DuplicateInfo(transaction=tx, method=method))
            logger.info(
                "Duplicate skipped (%s): %s %s %s",
                method,
                tx.date,
                tx.formatted_amount,
                tx.payee,
            )
            continue

        result.new.append(tx)
        index.add(tx)

    return result
