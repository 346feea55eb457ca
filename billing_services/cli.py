"""
Back-office command line.

Thin argparse shell over ``BackOffice``.  Every command prints one JSON
document on stdout; typed billing errors print ``{"error": ..., "code": ...}``
and exit with status 1.

Usage:
    billing-kernel --database-url sqlite:///agency.db init-db
    billing-kernel create-invoice --client-name "Acme Studio" \\
        --client-email ops@acme.test --package "Company profile" \\
        --setup-fee 10000 --monthly-fee 2000 --due-date 2025-01-15
    billing-kernel submit-payment --invoice-id <uuid> --amount 12000 --proof s3://slips/1.png
    billing-kernel approve --submission-id <uuid>
    billing-kernel report --year 2025
    billing-kernel track TRK-250115-ABCDE

The database URL defaults to the DATABASE_URL environment variable.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from datetime import date
from pathlib import Path
from typing import Any, Sequence
from uuid import UUID

import yaml

from billing_config import get_active_config
from billing_kernel.db.engine import create_tables, init_engine_from_url
from billing_kernel.exceptions import BillingKernelError
from billing_kernel.logging_config import configure_logging
from billing_modules.invoicing.notifications import LoggingNotifier
from billing_modules.reporting.statements import render_report_to_dict
from billing_services.back_office import BackOffice

DEFAULT_DATABASE_URL = "sqlite:///billing.db"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="billing-kernel",
        description="Invoice and payment reconciliation back office.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--database-url",
        default=os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL),
        help="SQLAlchemy database URL (default: DATABASE_URL env or %(default)s).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Configuration YAML (default: the shipped default set).",
    )
    parser.add_argument(
        "--actor-id",
        type=UUID,
        default=None,
        help="Staff UUID recorded on writes.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create all tables.")

    create = commands.add_parser("create-invoice", help="Create a pending invoice.")
    create.add_argument("--client-name", required=True)
    create.add_argument("--client-email", required=True)
    create.add_argument("--package", required=True)
    create.add_argument("--setup-fee", required=True)
    create.add_argument("--monthly-fee", required=True)
    create.add_argument("--due-date", type=date.fromisoformat, default=None)
    create.add_argument("--project-status", default="pending")

    submit = commands.add_parser("submit-payment", help="Queue a proof of payment.")
    submit.add_argument("--invoice-id", type=UUID, required=True)
    submit.add_argument("--amount", required=True)
    submit.add_argument("--proof", required=True, help="Reference to the uploaded proof.")

    approve = commands.add_parser("approve", help="Approve a payment submission.")
    approve.add_argument("--submission-id", type=UUID, required=True)

    reject = commands.add_parser("reject", help="Reject a payment submission.")
    reject.add_argument("--submission-id", type=UUID, required=True)

    expense = commands.add_parser("record-expense", help="Record an agency expense.")
    expense.add_argument("--category", required=True)
    expense.add_argument("--description", required=True)
    expense.add_argument("--amount", required=True)
    expense.add_argument("--expense-date", type=date.fromisoformat, required=True)

    report = commands.add_parser("report", help="Yearly financial report.")
    report.add_argument("--year", type=int, required=True)

    track = commands.add_parser("track", help="Public project view for a tracking code.")
    track.add_argument("tracking_code")

    reminders = commands.add_parser("reminders", help="Payment reminders due today.")
    reminders.add_argument("--today", type=date.fromisoformat, default=None)

    commands.add_parser("dispatch-receipts", help="Retry undelivered receipts.")

    return parser


def _run(office: BackOffice, args: argparse.Namespace) -> Any:
    if args.command == "create-invoice":
        return office.create_invoice(
            client_name=args.client_name,
            client_email=args.client_email,
            package=args.package,
            setup_fee=args.setup_fee,
            monthly_fee=args.monthly_fee,
            due_date=args.due_date,
            project_status=args.project_status,
            actor_id=args.actor_id,
        ).to_record()
    if args.command == "submit-payment":
        return office.submit_payment(
            args.invoice_id, args.amount, args.proof, actor_id=args.actor_id,
        ).to_record()
    if args.command == "approve":
        return office.approve_submission(
            args.submission_id, reviewer_id=args.actor_id,
        ).to_record()
    if args.command == "reject":
        return office.reject_submission(
            args.submission_id, reviewer_id=args.actor_id,
        ).to_record()
    if args.command == "record-expense":
        return office.record_expense(
            args.category,
            args.description,
            args.amount,
            args.expense_date,
            actor_id=args.actor_id,
        ).to_record()
    if args.command == "report":
        return render_report_to_dict(office.compute_report(args.year))
    if args.command == "track":
        return office.lookup_tracking_code(args.tracking_code).to_record()
    if args.command == "reminders":
        return render_report_to_dict(office.due_reminders(args.today))
    if args.command == "dispatch-receipts":
        return render_report_to_dict(office.dispatch_pending_receipts())
    raise AssertionError(f"unhandled command {args.command}")


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging()

    try:
        config = get_active_config(args.config)
    except (OSError, KeyError, ValueError, yaml.YAMLError) as exc:
        print(f"ERROR: cannot load configuration: {exc}", file=sys.stderr)
        return 1

    init_engine_from_url(args.database_url)

    try:
        if args.command == "init-db":
            create_tables()
            output: Any = {"status": "ok"}
        else:
            office = BackOffice(config=config, notifier=LoggingNotifier())
            output = _run(office, args)
    except BillingKernelError as exc:
        print(json.dumps({"error": str(exc), "code": exc.code}))
        return 1

    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
