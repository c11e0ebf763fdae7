"""Command-line verification of a transaction against its official receipt."""

from __future__ import annotations

import argparse
import sys
from typing import Any

from cbeverify.verifier import DEFAULT_TIMEOUT, Options, Transaction, verify

__all__ = ["main"]


def _parse_bool(text: str) -> bool:
    if text in {"1", "t", "T", "true", "TRUE", "True"}:
        return True
    if text in {"0", "f", "F", "false", "FALSE", "False"}:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value {text!r}")


def _format_value(value: Any) -> str:
    if isinstance(value, dict):
        return "map[" + " ".join(f"{k}:{_format_value(value[k])}" for k in sorted(value)) + "]"
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return str(value)


def main(argv: list[str] | None = None) -> int:
    """Run the verifier from the command line and return the exit status."""
    parser = argparse.ArgumentParser(
        prog="cbeverify", description="Verify a transaction against the official bank receipt.")
    parser.add_argument("--id", default="", help="Transaction reference ID (e.g., FTxxxxxxxxx)")
    parser.add_argument("--suffix", default="",
                        help="Transaction suffix: the account digits after 1000")
    parser.add_argument("--amount", type=float, default=0.0,
                        help="Transaction amount in ETB (e.g., 1500.00)")
    parser.add_argument("--details", type=_parse_bool, nargs="?", const=True, default=True,
                        help="Include full transaction details")
    args = parser.parse_args(argv)

    if not args.id or not args.suffix or args.amount <= 0:
        print("Usage:", file=sys.stderr)
        parser.print_help(sys.stderr)
        return 1

    result = verify(
        Transaction(id=args.id, suffix=args.suffix, amount=args.amount),
        Options(include_details=args.details, timeout=DEFAULT_TIMEOUT),
    )

    if result.is_valid:
        print("Transaction verified successfully.")
        if (details := result.details) is not None:
            print(f"Amount: {details.amount:.2f} ETB")
            print(f"Payer: {details.payer}")
            print(f"Receiver: {details.receiver}")
            print(f"Date: {details.date}")
            print(f"Reason: {details.reason}")
    else:
        print(f" Verification failed: {result.error}")
        if result.mismatches:
            print("Mismatches:")
            for name, mismatch in result.mismatches.items():
                print(f"  - {name}: {_format_value(mismatch)}")
    return 0