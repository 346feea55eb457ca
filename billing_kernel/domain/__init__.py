"""
Pure domain layer.

Value objects and helpers with NO dependencies on the ORM, the database
or wall-clock time (the Clock is injected).
"""

from billing_kernel.domain.calendar import advance_one_month, days_until
from billing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from billing_kernel.domain.tracking_code import (
    TRACKING_ALPHABET,
    mask_client_name,
    normalize_tracking_code,
    synthesize_tracking_code,
)
from billing_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Clock",
    "DeterministicClock",
    "Guard",
    "SystemClock",
    "TRACKING_ALPHABET",
    "Transition",
    "Workflow",
    "advance_one_month",
    "days_until",
    "mask_client_name",
    "normalize_tracking_code",
    "synthesize_tracking_code",
]
