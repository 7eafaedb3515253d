"""Command-line entrypoint for ledger maintenance and NAV runs."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from nav_ledger.application.use_cases import (
    CalculateFundNavUseCase,
    CalculateNavUseCase,
    NavCalculationContext,
)
from nav_ledger.config import Settings, load_settings
from nav_ledger.domain.errors import LedgerError
from nav_ledger.domain.ledger import Ledger
from nav_ledger.domain.models import Caller
from nav_ledger.domain.services import NavCalculator
from nav_ledger.infrastructure.audit.jsonl_repository import JsonLinesAuditRepository
from nav_ledger.infrastructure.repositories.sources import (
    ExcelValuationRepository,
    StaticBalanceSource,
    StaticExchangeRateSource,
    StaticValuationSource,
)
from nav_ledger.infrastructure.storage.ledger_store import load_ledger, save_ledger
from nav_ledger.logging_setup import setup_logger
from nav_ledger.presentation.ledger_report import (
    calculations_to_rows,
    investors_to_rows,
    render_csv,
    share_classes_to_rows,
)


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Maintain the fund ledger and run NAV calculations")
    parser.add_argument("state", type=Path, help="Path to the ledger JSON snapshot")
    parser.add_argument("--caller", type=str, help="Identity performing the operation (defaults to the orchestrator)")
    parser.add_argument("--audit-log", type=Path, help="Append ledger events to this JSON-lines file")
    parser.add_argument("--log-file", type=Path, help="Also write logs to this file")
    parser.add_argument("--config", type=Path, help="JSON settings override")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    init = sub.add_parser("init", help="Create an empty ledger snapshot")
    init.add_argument("--orchestrator", required=True)
    init.add_argument("--governance", nargs="+", required=True)

    add_class = sub.add_parser("add-class", help="Add a share class (governance)")
    add_class.add_argument("--admin-bps", type=int, default=0)
    add_class.add_argument("--mgmt-bps", type=int, default=0)
    add_class.add_argument("--perform-bps", type=int, default=0)

    terms = sub.add_parser("set-terms", help="Change a share class fee schedule (governance)")
    terms.add_argument("share_class", type=int)
    terms.add_argument("--admin-bps", type=int, required=True)
    terms.add_argument("--mgmt-bps", type=int, required=True)
    terms.add_argument("--perform-bps", type=int, required=True)

    add_investor = sub.add_parser("add-investor", help="Onboard an investor")
    add_investor.add_argument("investor")
    add_investor.add_argument("--type", dest="investor_type", default="USD")
    add_investor.add_argument("--share-class", type=int, default=0)

    remove_investor = sub.add_parser("remove-investor", help="Offboard a drained investor")
    remove_investor.add_argument("investor")

    share_count = sub.add_parser("set-share-count", help="Set a class share supply (scale 100)")
    share_count.add_argument("share_class", type=int)
    share_count.add_argument("supply", type=int)

    calc = sub.add_parser("calc-nav", help="Revalue one share class or every class with shares")
    calc.add_argument("--share-class", type=int, help="Only this class")
    source = calc.add_mutually_exclusive_group(required=True)
    source.add_argument("--portfolio-value", type=int, help="Portfolio value in currency minor units")
    source.add_argument("--valuation-file", type=Path, help="Excel or CSV valuation to sum")
    calc.add_argument("--value-column", type=str, help="Market value column in the valuation file")
    calc.add_argument("--balance", type=int, default=0, help="Fund liquid balance in its native unit")
    calc.add_argument("--rate", type=int, default=0, help="Exchange rate for the liquid balance")
    calc.add_argument("--rate-divisor", type=int, help="Divisor applied after the exchange rate")

    show = sub.add_parser("show", help="Print share classes and investors as CSV")
    show.add_argument("--investors", action="store_true", help="Print investors instead of share classes")

    return parser.parse_args(argv)


def _open_ledger(args: argparse.Namespace, settings: Settings) -> Ledger:
    ledger = load_ledger(args.state, settings=settings)
    if args.audit_log:
        ledger.subscribe(JsonLinesAuditRepository(args.audit_log))
    return ledger


def run(args: argparse.Namespace, settings: Settings) -> int:
    if args.command == "init":
        ledger = Ledger(args.orchestrator, args.governance, settings=settings)
        save_ledger(ledger, args.state)
        print(f"Created ledger at {args.state}")
        return 0

    ledger = _open_ledger(args, settings)
    caller = Caller(args.caller or ledger.orchestrator)

    if args.command == "add-class":
        share_class_id = ledger.add_share_class(caller, args.admin_bps, args.mgmt_bps, args.perform_bps)
        print(f"Added share class {share_class_id}")
    elif args.command == "set-terms":
        ledger.modify_share_class_terms(caller, args.share_class, args.admin_bps, args.mgmt_bps, args.perform_bps)
        print(f"Updated terms of share class {args.share_class}")
    elif args.command == "add-investor":
        ledger.add_investor(caller, args.investor, args.investor_type, args.share_class)
        print(f"Onboarded {args.investor}")
    elif args.command == "remove-investor":
        ledger.remove_investor(caller, args.investor)
        print(f"Removed {args.investor}")
    elif args.command == "set-share-count":
        current = ledger.get_share_class(args.share_class).share_supply
        new_total = ledger.total_share_supply - current + args.supply
        ledger.modify_share_count(caller, args.share_class, args.supply, new_total)
        print(f"Share class {args.share_class} supply set to {args.supply} (total {new_total})")
    elif args.command == "calc-nav":
        if args.valuation_file:
            valuation_source = ExcelValuationRepository(args.valuation_file, value_column=args.value_column)
        else:
            valuation_source = StaticValuationSource(args.portfolio_value)
        context = NavCalculationContext(
            ledger=ledger,
            calculator=NavCalculator(settings),
            valuation_source=valuation_source,
            balance_source=StaticBalanceSource(args.balance),
            exchange_rate_source=StaticExchangeRateSource(
                args.rate, args.rate_divisor or settings.exchange_rate_divisor
            ),
            caller=caller,
        )
        if args.share_class is not None:
            calculations = [CalculateNavUseCase(context).execute(args.share_class)]
        else:
            calculations = list(CalculateFundNavUseCase(context).execute().calculations)

        print("NAV Summary")
        print("===========")
        sys.stdout.write(render_csv(calculations_to_rows(calculations)).decode("utf-8"))
    elif args.command == "show":
        if args.investors:
            rows = investors_to_rows(ledger, caller)
        else:
            rows = share_classes_to_rows(ledger.share_classes())
        sys.stdout.write(render_csv(rows).decode("utf-8"))
        return 0

    save_ledger(ledger, args.state)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    settings = load_settings(args.config)
    level = logging.DEBUG if args.verbose else getattr(logging, settings.log_level, logging.INFO)
    setup_logger("nav_ledger", log_file=args.log_file, level=level)
    try:
        return run(args, settings)
    except LedgerError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
