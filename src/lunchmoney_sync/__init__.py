"""
Bank movements → Dedupe → Categorize → Lunch Money

Synchronizes transactions from a bank aggregator (Fintoc) or bank
notification emails into Lunch Money, skipping duplicates and assigning
categories from manual rules and learned payee associations.
"""

__version__ = "0.1.0"
