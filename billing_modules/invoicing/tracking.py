"""
Tracking Code Allocator (``billing_modules.invoicing.tracking``).

Responsibility
--------------
Attach an engagement tracking code to a freshly persisted invoice, reusing
the client's existing code when there is one, and resolve a code back to
the public project view.

Architecture position
---------------------
**Modules layer** -- imperative shell.  Flushes within the caller's
transaction; never commits.

Invariants enforced
-------------------
* A code is attached only after the invoice row is flushed.
* Reuse is deterministic: the client's most recent coded invoice wins,
  ordered by created_at desc, due_date desc (NULLs last), tracking_code asc.
* Every synthesized code is registered in ``tracking_codes`` inside a
  SAVEPOINT.  A unique-constraint hit is a collision and is retried with a
  fresh token; it never overwrites.

Failure modes
-------------
* ``TrackingCodeExhaustedError`` after ``max_attempts`` collisions.
* ``TrackingCodeNotFoundError`` from ``lookup`` for an unknown code.
"""

from __future__ import annotations

import secrets
from typing import Callable, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from billing_config.schema import TrackingPolicy
from billing_kernel.db.base import as_utc
from billing_kernel.domain.clock import Clock
from billing_kernel.domain.tracking_code import (
    mask_client_name,
    normalize_tracking_code,
    synthesize_tracking_code,
)
from billing_kernel.exceptions import (
    TrackingCodeExhaustedError,
    TrackingCodeNotFoundError,
)
from billing_kernel.logging_config import get_logger
from billing_kernel.services.base import BaseService
from billing_modules.invoicing.models import ProjectStatus, ProjectTrackingView
from billing_modules.invoicing.orm import InvoiceModel, TrackingCodeModel

logger = get_logger("modules.invoicing.tracking")


class TrackingCodeAllocator(BaseService):
    """
    Assigns and resolves engagement tracking codes.

    Usage:
        allocator = TrackingCodeAllocator(session, clock, policy)
        session.add(invoice)
        session.flush()
        allocator.allocate(invoice)
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: TrackingPolicy | None = None,
        choose: Callable[[Sequence[str]], str] = secrets.choice,
    ):
        super().__init__(session, clock)
        self.policy = policy or TrackingPolicy()
        self._choose = choose

    def existing_code_for(
        self,
        client_key: str,
        exclude_invoice_id=None,
    ) -> str | None:
        """The client's most recent non-null tracking code, if any."""
        stmt = (
            select(InvoiceModel.tracking_code)
            .where(
                InvoiceModel.client_key == client_key,
                InvoiceModel.tracking_code.is_not(None),
            )
            .order_by(
                InvoiceModel.created_at.desc(),
                InvoiceModel.due_date.desc().nulls_last(),
                InvoiceModel.tracking_code.asc(),
            )
            .limit(1)
        )
        if exclude_invoice_id is not None:
            stmt = stmt.where(InvoiceModel.id != exclude_invoice_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def issue_new_code(self, client_key: str) -> str:
        """
        Synthesize and register a brand-new code.

        Raises:
            TrackingCodeExhaustedError: every candidate collided.
        """
        issued_on = self.clock.today()
        for attempt in range(1, self.policy.max_attempts + 1):
            candidate = synthesize_tracking_code(
                issued_on,
                prefix=self.policy.prefix,
                suffix_length=self.policy.suffix_length,
                choose=self._choose,
            )
            savepoint = self.session.begin_nested()
            try:
                self.session.add(
                    TrackingCodeModel(
                        code=candidate,
                        client_key=client_key,
                        issued_on=issued_on,
                        created_at=self.clock.now_utc(),
                    )
                )
                self.session.flush()
                savepoint.commit()
            except IntegrityError:
                savepoint.rollback()
                logger.warning(
                    "tracking_code_collision",
                    extra={
                        "candidate": candidate,
                        "attempt": attempt,
                        "max_attempts": self.policy.max_attempts,
                    },
                )
                continue
            logger.info(
                "tracking_code_issued",
                extra={"tracking_code": candidate, "attempt": attempt},
            )
            return candidate

        logger.error(
            "tracking_code_exhausted",
            extra={"client_key": client_key, "attempts": self.policy.max_attempts},
        )
        raise TrackingCodeExhaustedError(self.policy.max_attempts)

    def allocate(self, invoice: InvoiceModel) -> str:
        """
        Attach a tracking code to a flushed invoice and return it.

        An invoice that already carries a code keeps it.
        """
        if invoice.tracking_code is not None:
            return invoice.tracking_code

        code = self.existing_code_for(
            invoice.client_key, exclude_invoice_id=invoice.id,
        )
        reused = code is not None
        if code is None:
            code = self.issue_new_code(invoice.client_key)

        invoice.tracking_code = code
        self.session.flush()

        logger.info(
            "tracking_code_allocated",
            extra={
                "invoice_id": str(invoice.id),
                "tracking_code": code,
                "reused": reused,
            },
        )
        return code

    def lookup(self, code: str) -> ProjectTrackingView:
        """
        Resolve a tracking code to the public project view.

        The newest-updated invoice supplies name, package and project
        status; the engagement started with its earliest invoice.
        """
        normalized = normalize_tracking_code(code)
        rows = list(
            self.session.execute(
                select(InvoiceModel)
                .where(InvoiceModel.tracking_code == normalized)
                .order_by(InvoiceModel.updated_at.desc(), InvoiceModel.created_at.desc())
            ).scalars()
        )
        if not rows:
            logger.info("tracking_code_lookup_miss", extra={"tracking_code": normalized})
            raise TrackingCodeNotFoundError(normalized)

        latest = rows[0]
        return ProjectTrackingView(
            tracking_code=normalized,
            client_name_masked=mask_client_name(latest.client_name),
            package=latest.package,
            project_status=ProjectStatus(latest.project_status),
            started_at=min(as_utc(r.created_at) for r in rows),
            last_updated=max(as_utc(r.updated_at) for r in rows),
        )
