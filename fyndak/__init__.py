"""
Fyndak auction service

Bid ledger, auction closing and manual payment reconciliation
for the Fyndak marketplace.
"""

__version__ = "1.0.0"
