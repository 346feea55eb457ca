"""
Configuration Loader (``billing_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the typed
``billing_config.schema`` dataclasses.  The single public entry point for
runtime config is ``billing_config.get_active_config()``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``; their
  ``__post_init__`` checks run on load.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Out-of-range values  -> ``ValueError`` from the schema dataclasses.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from billing_config.schema import (
    BillingConfigurationSet,
    InvoicePolicy,
    ReceiptPolicy,
    ReminderOffset,
    ReminderPolicy,
    TrackingPolicy,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_tracking(data: dict[str, Any]) -> TrackingPolicy:
    """Parse a TrackingPolicy from a dict."""
    defaults = TrackingPolicy()
    return TrackingPolicy(
        prefix=str(data.get("prefix", defaults.prefix)),
        suffix_length=int(data.get("suffix_length", defaults.suffix_length)),
        max_attempts=int(data.get("max_attempts", defaults.max_attempts)),
    )


def parse_invoices(data: dict[str, Any]) -> InvoicePolicy:
    """Parse an InvoicePolicy from a dict."""
    defaults = InvoicePolicy()
    return InvoicePolicy(
        require_due_date=bool(data.get("require_due_date", defaults.require_due_date)),
        min_name_length=int(data.get("min_name_length", defaults.min_name_length)),
        min_package_length=int(
            data.get("min_package_length", defaults.min_package_length)
        ),
    )


def parse_reminders(data: dict[str, Any]) -> ReminderPolicy:
    """
    Parse a ReminderPolicy from a dict.

    ``offsets`` is a list of ``{days_before, urgency}`` mappings.  An absent
    key keeps the default schedule; an empty list disables reminders.
    """
    if "offsets" not in data:
        return ReminderPolicy()
    offsets = tuple(
        ReminderOffset(
            days_before=int(item["days_before"]),
            urgency=item["urgency"],
        )
        for item in data["offsets"] or ()
    )
    return ReminderPolicy(offsets=offsets)


def parse_receipts(data: dict[str, Any]) -> ReceiptPolicy:
    """Parse a ReceiptPolicy from a dict."""
    defaults = ReceiptPolicy()
    return ReceiptPolicy(
        dispatch_on_approval=bool(
            data.get("dispatch_on_approval", defaults.dispatch_on_approval)
        ),
        batch_size=int(data.get("batch_size", defaults.batch_size)),
        max_attempts=int(data.get("max_attempts", defaults.max_attempts)),
    )


def parse_configuration(data: dict[str, Any]) -> BillingConfigurationSet:
    """
    Parse a complete BillingConfigurationSet from a root dict.

    Raises:
        KeyError: if ``config_id`` or ``version`` is missing.
    """
    return BillingConfigurationSet(
        config_id=data["config_id"],
        version=int(data["version"]),
        tracking=parse_tracking(data.get("tracking") or {}),
        invoices=parse_invoices(data.get("invoices") or {}),
        reminders=parse_reminders(data.get("reminders") or {}),
        receipts=parse_receipts(data.get("receipts") or {}),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
