"""
BillingConfigurationSet schema.

Defines the human-authored, reviewable configuration for the billing back
office.  YAML files are parsed into these types by the loader; services
receive the relevant sub-policy at construction time.
"""

from __future__ import annotations

from dataclasses import dataclass, field

URGENCY_LEVELS = ("notice", "warning", "urgent")


# ---------------------------------------------------------------------------
# Tracking codes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TrackingPolicy:
    """How new tracking codes are synthesized."""

    prefix: str = "TRK"
    suffix_length: int = 5
    max_attempts: int = 8

    def __post_init__(self):
        if not self.prefix.isalnum() or self.prefix != self.prefix.upper():
            raise ValueError(
                f"tracking prefix must be upper-case alphanumeric, got {self.prefix!r}"
            )
        if not 4 <= self.suffix_length <= 12:
            raise ValueError(
                f"tracking suffix_length must be between 4 and 12, got {self.suffix_length}"
            )
        if self.max_attempts < 1:
            raise ValueError("tracking max_attempts must be at least 1")


# ---------------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InvoicePolicy:
    """Input rules for manually created invoices."""

    require_due_date: bool = True
    min_name_length: int = 2
    min_package_length: int = 2

    def __post_init__(self):
        if self.min_name_length < 1:
            raise ValueError("min_name_length must be at least 1")
        if self.min_package_length < 1:
            raise ValueError("min_package_length must be at least 1")


# ---------------------------------------------------------------------------
# Reminders
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReminderOffset:
    """Send a reminder ``days_before`` the due date with the given urgency."""

    days_before: int
    urgency: str

    def __post_init__(self):
        if self.days_before < 0:
            raise ValueError("days_before cannot be negative")
        if self.urgency not in URGENCY_LEVELS:
            raise ValueError(
                f"urgency must be one of {URGENCY_LEVELS}, got '{self.urgency}'"
            )


def _default_offsets() -> tuple[ReminderOffset, ...]:
    return (
        ReminderOffset(7, "notice"),
        ReminderOffset(3, "warning"),
        ReminderOffset(1, "urgent"),
    )


@dataclass(frozen=True)
class ReminderPolicy:
    """Which due-date distances trigger a payment reminder."""

    offsets: tuple[ReminderOffset, ...] = field(default_factory=_default_offsets)

    def __post_init__(self):
        days = [o.days_before for o in self.offsets]
        if len(days) != len(set(days)):
            raise ValueError("reminder offsets must have unique days_before values")

    def urgency_for(self, days_before: int) -> str | None:
        for offset in self.offsets:
            if offset.days_before == days_before:
                return offset.urgency
        return None


# ---------------------------------------------------------------------------
# Receipts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReceiptPolicy:
    """Delivery of receipt events from the outbox."""

    dispatch_on_approval: bool = True
    batch_size: int = 50
    max_attempts: int = 5

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError("receipt batch_size must be at least 1")
        if self.max_attempts < 1:
            raise ValueError("receipt max_attempts must be at least 1")


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BillingConfigurationSet:
    """Complete configuration for one deployment of the back office."""

    config_id: str
    version: int
    tracking: TrackingPolicy = field(default_factory=TrackingPolicy)
    invoices: InvoicePolicy = field(default_factory=InvoicePolicy)
    reminders: ReminderPolicy = field(default_factory=ReminderPolicy)
    receipts: ReceiptPolicy = field(default_factory=ReceiptPolicy)
    checksum: str = ""

    @classmethod
    def with_defaults(cls) -> "BillingConfigurationSet":
        """Built-in defaults, used when no YAML is supplied."""
        return cls(config_id="builtin-defaults", version=1)
