"""
CLI runner module.

Provides commands:
- sync: Fetch, dedupe, categorize and insert movements
- show-memory / clear-memory / export-memory: Manage learned associations
- rebuild-memory: Learn associations from Lunch Money history
- init-config: Write a default config file
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
