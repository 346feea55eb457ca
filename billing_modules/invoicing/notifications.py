"""
Receipt notification sinks.

The core never formats or delivers a receipt itself; it hands a
``ReceiptEvent`` to a ``ReceiptNotifier`` after the approval commits.
"""

from __future__ import annotations

import threading
from typing import Protocol

from billing_kernel.logging_config import get_logger
from billing_modules.invoicing.models import ReceiptEvent

logger = get_logger("modules.invoicing.notifications")


class ReceiptNotifier(Protocol):
    """Outbound sink for payment receipts.  Raise to signal failure."""

    def send_receipt(self, event: ReceiptEvent) -> None:
        ...


class RecordingNotifier:
    """
    In-memory notifier that keeps every delivered event.

    ``fail_times`` makes the next N deliveries raise, for exercising the
    retry path.
    """

    def __init__(self, fail_times: int = 0):
        self.sent: list[ReceiptEvent] = []
        self._fail_times = fail_times
        self._lock = threading.Lock()

    def send_receipt(self, event: ReceiptEvent) -> None:
        with self._lock:
            if self._fail_times > 0:
                self._fail_times -= 1
                raise ConnectionError("receipt sink unavailable")
            self.sent.append(event)


class LoggingNotifier:
    """Writes each receipt as a structured log line (used by the CLI)."""

    def send_receipt(self, event: ReceiptEvent) -> None:
        logger.info(
            "receipt_sent",
            extra={
                "receipt_event_id": str(event.id),
                "invoice_id": str(event.invoice_id),
                "client_email": event.client_email,
                "amount": event.amount,
            },
        )
