"""
Billing Services -- transaction-owning entry points.

``BackOffice`` is the operations facade; ``ReceiptDispatcher`` drains the
receipt outbox; ``cli`` wraps both for the command line.
"""

from billing_services.back_office import BackOffice
from billing_services.receipt_dispatcher import DispatchSummary, ReceiptDispatcher

__all__ = [
    "BackOffice",
    "DispatchSummary",
    "ReceiptDispatcher",
]
