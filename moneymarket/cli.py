"""Command-line interface for inspecting the market's interest model."""
from __future__ import annotations

import argparse
import logging
import sys
from decimal import Decimal

from .config import load_config
from .interest import borrow_rate, calculate_accrued_interest, supply_rate, utilization_rate
from .logging_setup import configure_logging
from .models import RATE_DECIMALS, AccruedInterest

logger = logging.getLogger(__name__)


def _ratio(value: int) -> str:
    """'<raw> (<percent>%)' for a value scaled by RATE_DECIMALS."""
    percent = Decimal(value) * 100 / Decimal(RATE_DECIMALS)
    return f"{value} ({percent:.6f}%)"


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="moneymarket",
        description="Money-market settlement core",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    rates = sub.add_parser("rates", help="Utilization and per-block rates for pool balances")
    rates.add_argument("--cash", type=int, required=True, help="Underlying held by the market")
    rates.add_argument("--borrows", type=int, required=True, help="Total borrows")
    rates.add_argument("--reserves", type=int, default=0, help="Total reserves (default: 0)")

    accrue = sub.add_parser("accrue", help="Advance an interest checkpoint")
    accrue.add_argument("--rate", type=int, required=True, help="Per-block rate over 10^24")
    accrue.add_argument("--principal", type=int, required=True)
    accrue.add_argument("--from-block", type=int, required=True)
    accrue.add_argument("--to-block", type=int, required=True)
    accrue.add_argument(
        "--accumulated", type=int, default=0, help="Interest already accumulated (default: 0)"
    )

    return parser


def _rates(args: argparse.Namespace) -> None:
    model = load_config(args.config).market.interest_rate_model
    print(f"Utilization: {_ratio(utilization_rate(args.cash, args.borrows, args.reserves))}")
    print(f"Borrow rate: {_ratio(borrow_rate(model, args.cash, args.borrows, args.reserves))}")
    print(f"Supply rate: {_ratio(supply_rate(model, args.cash, args.borrows, args.reserves))}")


def _accrue(args: argparse.Namespace) -> None:
    accrued = calculate_accrued_interest(
        args.rate,
        args.principal,
        AccruedInterest(args.accumulated, args.from_block),
        args.to_block,
    )
    print(f"Accumulated interest: {accrued.accumulated_interest}")
    print(f"Last recalculation block: {accrued.last_recalculation_block}")


def _run(args: argparse.Namespace) -> None:
    """Execute the selected command."""
    configure_logging(args.log_level)

    if args.command == "rates":
        _rates(args)
    elif args.command == "accrue":
        _accrue(args)
    else:
        build_parser().print_help()
        sys.exit(1)


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        _run(args)
    except (FileNotFoundError, ValueError) as e:
        logger.error("%s", e)
        sys.exit(2)
