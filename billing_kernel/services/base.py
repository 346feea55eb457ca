"""
BaseService -- abstract base for all billing services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every service.  Concrete services receive a SQLAlchemy ``Session`` and
    a ``Clock`` and persist through ``session.flush()`` -- never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  The operations
    facade (``billing_services.back_office``) owns the session and its
    commit/rollback; services only flush.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or roll back themselves, so a reconciliation that
    touches a submission, an invoice, a receipt event and a successor is
    one atomic unit.

Failure modes:
    - If a subclass calls ``session.commit()`` the atomicity of the
      approval pipeline is broken.
"""

from abc import ABC

from sqlalchemy.orm import Session

from billing_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for all billing services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
