"""
Movement sources.

Each source turns raw bank data into canonical Transactions:
- fintoc: Fintoc bank-aggregator API
- gmail: Banco de Chile notification emails
"""

from .base import BaseSource, sync_window
from .fintoc import FintocError, FintocSource
from .gmail import GmailError, GmailSource, parse_bancochile_email

__all__ = [
    "BaseSource",
    "FintocError",
    "FintocSource",
    "GmailError",
    "GmailSource",
    "parse_bancochile_email",
    "sync_window",
]
