"""
billing_config -- single public entrypoint for back-office configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Services receive the parsed sub-policies
    (tracking, invoices, reminders, receipts) by injection and never read
    files themselves.

Failure modes:
    - ``FileNotFoundError`` -- the requested YAML file does not exist.
    - ``KeyError`` / ``ValueError`` -- schema validation failures.
"""

from __future__ import annotations

from pathlib import Path

from billing_config.loader import load_yaml_file, parse_configuration
from billing_config.schema import (
    BillingConfigurationSet,
    InvoicePolicy,
    ReceiptPolicy,
    ReminderOffset,
    ReminderPolicy,
    TrackingPolicy,
)
from billing_kernel.logging_config import get_logger

logger = get_logger("config")

_DEFAULT_CONFIG_FILE = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> BillingConfigurationSet:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: YAML file to load.  Defaults to the shipped
            ``billing_config/sets/default.yaml``.

    Returns:
        A validated, frozen ``BillingConfigurationSet``.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_FILE
    config = parse_configuration(load_yaml_file(path))

    logger.info(
        "billing_config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "config_path": str(path),
            "reminder_offsets": [o.days_before for o in config.reminders.offsets],
        },
    )
    return config


__all__ = [
    "BillingConfigurationSet",
    "InvoicePolicy",
    "ReceiptPolicy",
    "ReminderOffset",
    "ReminderPolicy",
    "TrackingPolicy",
    "get_active_config",
]
