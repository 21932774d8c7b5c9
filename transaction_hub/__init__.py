"""
Transaction Hub - Source Package

Multi-modal transaction ingestion and reconciliation: SMS, receipt,
statement and manual entries become one canonical transaction, routed
to the ledger for its asset type, with the linked account balance
kept in step.

DESIGN PRINCIPLES:
1. One contract behind four unreliable inputs
2. Fail early, fail visibly
3. Persist first, then balance, then net worth - never out of order
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Transaction Hub Team"
