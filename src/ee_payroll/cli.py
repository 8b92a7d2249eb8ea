"""Payroll core command line interface.

Provides operational tools for:
- Tax previews for a gross salary
- Personal code validation
- Schema creation and absence type seeding
- TSD declaration export

Usage:
    python -m ee_payroll tax-preview --gross 2000 --basic-exemption
    python -m ee_payroll validate-code 38001010009
    python -m ee_payroll init-db
    python -m ee_payroll seed-absence-types --tenant-id X
    python -m ee_payroll export-tsd --tenant-id X --year 2025 --month 1 --format xml
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Callable
from uuid import UUID

from ee_payroll.calculators import TaxCalculator, validate_personal_code
from ee_payroll.config import get_settings
from ee_payroll.errors import PayrollError

logger = logging.getLogger(__name__)


def parse_decimal(s: str) -> Decimal:
    """Parse a decimal amount."""
    try:
        return Decimal(s)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a decimal amount: {s!r}") from None


def parse_uuid(s: str) -> UUID:
    """Parse UUID string."""
    return UUID(s)


class PayrollCli:
    """Payroll Command Line Interface."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m ee_payroll",
            description="Estonian payroll operational tools",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        # tax-preview command
        preview = subparsers.add_parser(
            "tax-preview",
            help="Show the tax breakdown for a monthly gross salary",
        )
        preview.add_argument(
            "--gross",
            type=parse_decimal,
            required=True,
            help="Monthly gross salary (EUR)",
        )
        preview.add_argument(
            "--basic-exemption",
            action="store_true",
            help="Apply the default monthly basic exemption",
        )
        preview.add_argument(
            "--pension-rate",
            type=parse_decimal,
            default=Decimal("0.02"),
            help="Funded pension rate as a fraction (default: 0.02)",
        )
        preview.add_argument(
            "--json",
            action="store_true",
            help="Print the breakdown as JSON",
        )

        # validate-code command
        validate = subparsers.add_parser(
            "validate-code",
            help="Validate an Estonian personal code (exit 0 if valid)",
        )
        validate.add_argument("code", type=str, help="11-digit personal code")

        # init-db command
        subparsers.add_parser(
            "init-db",
            help="Create database tables for the configured DATABASE_URL",
        )

        # seed-absence-types command
        seed = subparsers.add_parser(
            "seed-absence-types",
            help="Create the default absence types for a tenant",
        )
        seed.add_argument(
            "--tenant-id",
            type=parse_uuid,
            required=True,
            help="Tenant ID",
        )

        # export-tsd command
        export = subparsers.add_parser(
            "export-tsd",
            help="Export a generated TSD declaration",
        )
        export.add_argument("--tenant-id", type=parse_uuid, required=True, help="Tenant ID")
        export.add_argument("--year", type=int, required=True, help="Period year")
        export.add_argument("--month", type=int, required=True, help="Period month")
        export.add_argument(
            "--format",
            type=str,
            choices=["xml", "csv"],
            default="xml",
            help="Output format",
        )
        export.add_argument(
            "--output-dir",
            type=Path,
            default=Path("."),
            help="Directory to write the file to (default: current directory)",
        )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        # Dispatch to command handler
        handlers: dict[str, Callable[..., int]] = {
            "tax-preview": self._cmd_tax_preview,
            "validate-code": self._cmd_validate_code,
            "init-db": self._cmd_init_db,
            "seed-absence-types": self._cmd_seed_absence_types,
            "export-tsd": self._cmd_export_tsd,
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1

        try:
            return handler(parsed)
        except PayrollError as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 1

    def _cmd_tax_preview(self, args: argparse.Namespace) -> int:
        """Print the tax breakdown for a gross salary."""
        if args.gross < 0:
            print("ERROR: gross salary cannot be negative", file=sys.stderr)
            return 1

        breakdown = TaxCalculator().preview(args.gross, args.basic_exemption, args.pension_rate)

        if args.json:
            print(json.dumps(breakdown.to_dict(), indent=2))
            return 0

        print("Tax Preview")
        print("=" * 40)
        print(f"  Gross salary:            {breakdown.gross_salary:>12,.2f}")
        print(f"  Basic exemption:         {breakdown.basic_exemption:>12,.2f}")
        print(f"  Taxable income:          {breakdown.taxable_income:>12,.2f}")
        print("\n  Employee deductions")
        print(f"    Income tax:            {breakdown.income_tax:>12,.2f}")
        print(f"    Unemployment (EE):     {breakdown.unemployment_employee:>12,.2f}")
        print(f"    Funded pension:        {breakdown.funded_pension:>12,.2f}")
        print(f"  Net salary:              {breakdown.net_salary:>12,.2f}")
        print("\n  Employer costs")
        print(f"    Social tax:            {breakdown.social_tax:>12,.2f}")
        print(f"    Unemployment (ER):     {breakdown.unemployment_employer:>12,.2f}")
        print(f"  Total employer cost:     {breakdown.total_employer_cost:>12,.2f}")
        return 0

    def _cmd_validate_code(self, args: argparse.Namespace) -> int:
        """Validate a personal code."""
        if validate_personal_code(args.code):
            print(f"{args.code}: valid")
            return 0
        print(f"{args.code}: invalid")
        return 1

    def _cmd_init_db(self, args: argparse.Namespace) -> int:
        """Create the schema."""
        from ee_payroll.database import create_schema, dispose_db, init_db

        async def _run() -> None:
            engine, _ = init_db()
            try:
                await create_schema(engine)
            finally:
                await dispose_db()

        asyncio.run(_run())
        print("Schema created.")
        return 0

    def _cmd_seed_absence_types(self, args: argparse.Namespace) -> int:
        """Seed default absence types for a tenant."""
        from ee_payroll.database import dispose_db, get_session
        from ee_payroll.persistence.sqlalchemy_store import SqlAlchemyStore
        from ee_payroll.services.leave_service import LeaveBalanceLedger

        async def _run() -> int:
            try:
                async with get_session() as session:
                    ledger = LeaveBalanceLedger(SqlAlchemyStore(session))
                    created = await ledger.seed_default_absence_types(args.tenant_id)
            finally:
                await dispose_db()
            return len(created)

        count = asyncio.run(_run())
        print(f"Created {count} absence type(s) for tenant {args.tenant_id}")
        return 0

    def _cmd_export_tsd(self, args: argparse.Namespace) -> int:
        """Export a TSD declaration to a file."""
        from ee_payroll.database import dispose_db, get_session
        from ee_payroll.persistence.sqlalchemy_store import SqlAlchemyStore
        from ee_payroll.schemas import CompanyInfo
        from ee_payroll.services.declaration_export import DeclarationExporter
        from ee_payroll.services.declaration_service import DeclarationGenerator

        settings = get_settings()
        if not settings.company_registry_code:
            print("ERROR: COMPANY_REGISTRY_CODE is not configured", file=sys.stderr)
            return 1
        exporter = DeclarationExporter(
            CompanyInfo(registry_code=settings.company_registry_code, name=settings.company_name)
        )

        async def _run():
            try:
                async with get_session() as session:
                    generator = DeclarationGenerator(SqlAlchemyStore(session))
                    return await generator.get_declaration(args.tenant_id, args.year, args.month)
            finally:
                await dispose_db()

        declaration = asyncio.run(_run())
        filename, content = exporter.export(declaration, args.format)

        args.output_dir.mkdir(parents=True, exist_ok=True)
        path = args.output_dir / filename
        path.write_bytes(content)
        print(f"Exported {len(declaration.rows)} row(s) to {path}")
        return 0


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    cli = PayrollCli()
    return cli.run(argv)


if __name__ == "__main__":
    sys.exit(main())
