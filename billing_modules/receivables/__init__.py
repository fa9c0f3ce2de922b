"""
Receivables Module.

Handles job charges, customer invoices, payments, statements of account
and the outstanding-receivables report.

Charge aggregation, the invoice lifecycle, payment application, statements
and aging come from shared engines.
"""

from billing_modules.receivables.config import BillingConfig
from billing_modules.receivables.service import ReceivablesService

__all__ = [
    "BillingConfig",
    "ReceivablesService",
]
