"""
Tests for the tracking code allocator.

Covers:
- New clients get a fresh ``TRK-YYMMDD-XXXXX`` code
- Returning clients (same normalized email) reuse their code
- Most-recent resolution when a client has several historical codes
- Collision retry and exhaustion
- Public lookup with masked client name
"""

import re
from datetime import date, timedelta
from decimal import Decimal
from itertools import cycle

import pytest

from billing_config.schema import TrackingPolicy
from billing_kernel.domain.tracking_code import TRACKING_ALPHABET
from billing_kernel.exceptions import (
    TrackingCodeExhaustedError,
    TrackingCodeImmutableError,
    TrackingCodeNotFoundError,
)
from billing_modules.invoicing.models import ProjectStatus
from billing_modules.invoicing.orm import InvoiceModel, TrackingCodeModel
from billing_modules.invoicing.service import InvoiceService

CODE_PATTERN = re.compile(r"^TRK-250101-[A-HJ-NP-Z2-9]{5}$")


def scripted_choose(chars):
    """A ``choose`` that returns the given characters in order, forever."""
    source = cycle(chars)
    return lambda alphabet: next(source)


def _create(service, email="ops@acme.test", due=date(2025, 1, 15), name="Acme Studio"):
    return service.create_invoice(
        client_name=name,
        client_email=email,
        package="Company profile website",
        setup_fee=Decimal("10000"),
        monthly_fee=Decimal("2000"),
        due_date=due,
    )


@pytest.fixture
def service(session, deterministic_clock):
    return InvoiceService(session, deterministic_clock)


class TestAllocation:

    def test_new_client_gets_fresh_code(self, service):
        invoice = _create(service)
        assert CODE_PATTERN.match(invoice.tracking_code)

    def test_code_is_registered(self, session, service):
        invoice = _create(service)
        registered = session.query(TrackingCodeModel).one()
        assert registered.code == invoice.tracking_code
        assert registered.client_key == "ops@acme.test"

    def test_returning_client_reuses_code(self, service):
        first = _create(service)
        second = _create(service, email="  OPS@Acme.test ", due=date(2025, 2, 15))

        assert second.tracking_code == first.tracking_code
        assert second.client_key == first.client_key

    def test_different_clients_get_different_codes(self, session, deterministic_clock):
        service = InvoiceService(
            session, deterministic_clock, choose=scripted_choose(TRACKING_ALPHABET),
        )
        a = _create(service, email="a@clients.test")
        b = _create(service, email="b@clients.test")

        assert a.tracking_code == "TRK-250101-ABCDE"
        assert b.tracking_code == "TRK-250101-FGHJK"

    def test_code_date_follows_clock(self, session, deterministic_clock):
        deterministic_clock.advance(int(timedelta(days=45).total_seconds()))
        invoice = _create(InvoiceService(session, deterministic_clock))
        assert invoice.tracking_code.startswith("TRK-250215-")

    def test_configured_prefix_and_length(self, session, deterministic_clock):
        service = InvoiceService(
            session,
            deterministic_clock,
            tracking_policy=TrackingPolicy(prefix="WEB", suffix_length=8),
        )
        invoice = _create(service)
        assert re.match(r"^WEB-250101-[A-HJ-NP-Z2-9]{8}$", invoice.tracking_code)


class TestMostRecentResolution:

    def test_latest_created_code_wins(self, session, service, deterministic_clock):
        first = _create(service)

        # A later engagement for the same client imported with its own code.
        deterministic_clock.advance(3600)
        legacy = InvoiceModel(
            client_name="Acme Studio",
            client_email="ops@acme.test",
            client_key="ops@acme.test",
            package="Shop rebuild",
            setup_fee=Decimal("0"),
            monthly_fee=Decimal("500"),
            due_date=date(2025, 3, 1),
            status="pending",
            project_status="planning",
            tracking_code="TRK-241201-LEGCY",
            created_at=deterministic_clock.now_utc(),
            updated_at=deterministic_clock.now_utc(),
        )
        session.add(legacy)
        session.flush()

        deterministic_clock.advance(3600)
        third = _create(service, due=date(2025, 4, 1))

        assert first.tracking_code != "TRK-241201-LEGCY"
        assert third.tracking_code == "TRK-241201-LEGCY"

    def test_tie_on_created_at_breaks_on_due_date(self, session, service, deterministic_clock):
        now = deterministic_clock.now_utc()
        for code, due in (("TRK-240101-AAAAA", date(2025, 1, 1)), ("TRK-240101-BBBBB", date(2025, 6, 1))):
            session.add(
                InvoiceModel(
                    client_name="Acme Studio",
                    client_email="ops@acme.test",
                    client_key="ops@acme.test",
                    package="Hosting",
                    setup_fee=Decimal("0"),
                    monthly_fee=Decimal("100"),
                    due_date=due,
                    status="paid",
                    project_status="completed",
                    tracking_code=code,
                    created_at=now,
                    updated_at=now,
                )
            )
        session.flush()

        assert service.tracking.existing_code_for("ops@acme.test") == "TRK-240101-BBBBB"


class TestCollisions:

    def test_collision_is_retried(self, session, deterministic_clock, captured_logs):
        # First client takes AAAAA; the second draws AAAAA again, then BBBBB.
        service = InvoiceService(
            session, deterministic_clock, choose=scripted_choose("A" * 10 + "B" * 5),
        )
        a = _create(service, email="a@clients.test")
        b = _create(service, email="b@clients.test")

        assert a.tracking_code == "TRK-250101-AAAAA"
        assert b.tracking_code == "TRK-250101-BBBBB"
        collisions = [r for r in captured_logs() if r["message"] == "tracking_code_collision"]
        assert len(collisions) == 1
        assert collisions[0]["candidate"] == "TRK-250101-AAAAA"

    def test_exhaustion_raises(self, session, deterministic_clock):
        service = InvoiceService(
            session,
            deterministic_clock,
            tracking_policy=TrackingPolicy(max_attempts=3),
            choose=scripted_choose("A"),
        )
        _create(service, email="a@clients.test")

        with pytest.raises(TrackingCodeExhaustedError) as exc_info:
            _create(service, email="b@clients.test")
        assert exc_info.value.attempts == 3


class TestImmutability:

    def test_edit_cannot_change_code(self, service):
        invoice = _create(service)
        with pytest.raises(TrackingCodeImmutableError):
            service.edit_invoice(invoice.id, tracking_code="TRK-250101-ZZZZZ")

    def test_edit_with_same_code_is_accepted(self, service):
        invoice = _create(service)
        edited = service.edit_invoice(
            invoice.id, tracking_code=invoice.tracking_code, package="Landing page",
        )
        assert edited.tracking_code == invoice.tracking_code
        assert edited.package == "Landing page"


class TestLookup:

    def test_public_view(self, service, deterministic_clock):
        first = _create(service, name="Budi Santoso")
        deterministic_clock.advance(86400)
        second = _create(service, name="Budi Santoso", due=date(2025, 2, 15))
        deterministic_clock.advance(86400)
        service.edit_invoice(second.id, project_status="designing")

        view = service.tracking.lookup(f"  {first.tracking_code.lower()} ")

        assert view.tracking_code == first.tracking_code
        assert view.client_name_masked == "Bu** Sa*****"
        assert view.package == "Company profile website"
        assert view.project_status is ProjectStatus.DESIGNING
        assert view.started_at == first.created_at
        assert view.last_updated == deterministic_clock.now_utc()

    def test_unknown_code(self, service):
        with pytest.raises(TrackingCodeNotFoundError):
            service.tracking.lookup("TRK-000000-NOPE2")

    def test_record_hides_email(self, service):
        invoice = _create(service)
        record = service.tracking.lookup(invoice.tracking_code).to_record()
        assert "ops@acme.test" not in record.values()
        assert record["client_name"] == "Ac** St****"
