"""
Tracking code synthesis and public masking.

Responsibility:
    Build candidate tracking tokens and the privacy-masked client name shown
    on the public project tracker.  Uniqueness is NOT decided here: the
    allocator registers every candidate against the store and retries on
    collision.

Architecture position:
    Kernel > Domain.  The only I/O is the ``secrets`` random source, which
    callers may replace with a deterministic ``choose`` for tests.
"""

import secrets
from datetime import date
from typing import Callable, Sequence

# No 0/O or 1/I: codes are read aloud and typed in by clients.
TRACKING_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

DEFAULT_PREFIX = "TRK"
DEFAULT_SUFFIX_LENGTH = 5


def synthesize_tracking_code(
    issued_on: date,
    *,
    prefix: str = DEFAULT_PREFIX,
    suffix_length: int = DEFAULT_SUFFIX_LENGTH,
    choose: Callable[[Sequence[str]], str] = secrets.choice,
) -> str:
    """Return ``<PREFIX>-<YYMMDD>-<SUFFIX>`` for the given issue date."""
    suffix = "".join(choose(TRACKING_ALPHABET) for _ in range(suffix_length))
    return f"{prefix}-{issued_on:%y%m%d}-{suffix}"


def normalize_tracking_code(code: str) -> str:
    """Canonical form used for storage and lookup."""
    return code.strip().upper()


def mask_client_name(name: str) -> str:
    """
    Hide most of a client's name for the public tracker.

    Words longer than two characters keep their first two characters and the
    rest become ``*``; shorter words are shown as-is.

        >>> mask_client_name("Budi Santoso")
        'Bu** Sa*****'
    """
    masked = []
    for word in name.split():
        if len(word) > 2:
            masked.append(word[:2] + "*" * (len(word) - 2))
        else:
            masked.append(word)
    return " ".join(masked)
