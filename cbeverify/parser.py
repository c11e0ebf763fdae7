"""Extraction of transaction details from receipt PDFs."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from cbeverify.pdftext import PdfError, extract_rows

__all__ = [
    "ParseResult",
    "parse_receipt",
    "parse_lines",
    "fix_line_spacing",
    "extract_reason",
    "extract_reference_number",
    "parse_amount",
    "is_valid_transaction",
    "missing_fields",
]

_FLAGS = re.IGNORECASE | re.ASCII
_PAYER = re.compile(r"payer\s*[:]?\s*([\w\s&\.-]+)", _FLAGS)
_RECEIVER = re.compile(r"receiver\s*[:]?\s*([\w\s&\.-]+)", _FLAGS)
_ACCOUNT = re.compile(r"account\s*[:]?\s*(\S+)", _FLAGS)
_TRANSFERRED = re.compile(
    r"transferred amount\s*[:]?\s*([\d,]+\.\d{2})\s*ETB", _FLAGS)
_REASON = re.compile(r"reason\s*[:]?\s*(.+)", _FLAGS)
_REFERENCE = re.compile(r"reference no\.?\s*[:]?\s*(.+)", _FLAGS)
_PAYMENT_DATE = re.compile(
    r"payment date.*?(\d{1,2}/\d{1,2}/\d{4}"
    r"(?:,\s*\d{1,2}:\d{2}:\d{2}\s*(?:AM|PM)?)?)",
    _FLAGS,
)
_PARENTHETICAL = re.compile(r"^\(.*?\)")
_MERGED_WORDS = re.compile(r"([a-z])([A-Z])")
_NUMBER_PREFIX = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

_TYPE_OF_SERVICE = "Type of service"
REQUIRED_TEXT_FIELDS = (
    "payer", "receiver", "payerAccount", "receiverAccount", "transaction_id", "date",
)


@dataclass
class ParseResult:
    """Outcome of parsing a receipt: the details found, or error information."""

    success: bool
    details: dict = field(default_factory=dict)


def _field(line: str, pattern: re.Pattern) -> str:
    match = pattern.search(line)
    return match.group(1).strip() if match else ""


def fix_line_spacing(line: str) -> str:
    """Insert a space where a lower-case letter runs into an upper-case one."""
    return _MERGED_WORDS.sub(r"\1 \2", line)


def extract_reason(line: str) -> str:
    """Return the cleaned payment reason from a reason line."""
    raw = _field(line, _REASON)
    idx = raw.find(_TYPE_OF_SERVICE)
    if idx != -1:
        raw = raw[idx + len(_TYPE_OF_SERVICE):].lstrip("/: \t")
    else:
        last = max(raw.rfind("/"), raw.rfind(":"))
        if 0 <= last and last + 1 < len(raw):
            raw = raw[last + 1:].strip()
    return raw.strip()


def extract_reference_number(line: str) -> str:
    """Return the reference number with any leading parenthetical removed."""
    return _PARENTHETICAL.sub("", _field(line, _REFERENCE), count=1).strip()


def parse_amount(text: str) -> float:
    """Parse an amount such as '1,234.50'; 0.0 when nothing can be read."""
    if not text:
        return 0.0
    match = _NUMBER_PREFIX.match(text.replace(",", ""))
    return float(match.group(0)) if match else 0.0


def parse_lines(lines: Iterable[str]) -> dict:
    """Extract transaction details from the text rows of a receipt."""
    payer = receiver = transferred = reason = reference = payment_date = ""
    payer_accounts: list[str] = []
    receiver_accounts: list[str] = []
    current = ""

    for raw_line in lines:
        line = fix_line_spacing(raw_line)
        if value := _field(line, _PAYER):
            payer, current = value, "payer"
        elif value := _field(line, _RECEIVER):
            receiver, current = value, "receiver"
        elif value := _field(line, _ACCOUNT):
            if current == "payer":
                payer_accounts.append(value)
            elif current == "receiver":
                receiver_accounts.append(value)
        elif value := _field(line, _TRANSFERRED):
            transferred = value
        elif _field(line, _REASON):
            reason = extract_reason(line)
        elif _field(line, _REFERENCE):
            reference = extract_reference_number(line)
        elif value := _field(line, _PAYMENT_DATE):
            payment_date = value

    return {
        "payer": payer,
        "payerAccount": payer_accounts[0] if payer_accounts else "",
        "receiver": receiver,
        "receiverAccount": receiver_accounts[0] if receiver_accounts else "",
        "amount": parse_amount(transferred),
        "date": payment_date,
        "transaction_id": reference,
        "reason": reason,
    }


def _amount_ok(details: dict) -> bool:
    amount = details.get("amount")
    return (isinstance(amount, float)) and amount > 0


def is_valid_transaction(details: dict) -> bool:
    """True when every required field is present and the amount is positive."""
    if any(details.get(name, "") == "" for name in REQUIRED_TEXT_FIELDS):
        return False
    return _amount_ok(details)


def missing_fields(details: dict) -> dict[str, bool]:
    """Map each required field to whether it is missing."""
    missing = {name: details.get(name, "") == "" for name in REQUIRED_TEXT_FIELDS}
    missing["amount"] = not _amount_ok(details)
    return missing


def parse_receipt(pdf_bytes: bytes) -> ParseResult:
    """Parse receipt PDF bytes into a ParseResult."""
    if not bytes(pdf_bytes).startswith(b"%PDF-"):
        return ParseResult(False, {"error": "invalid PDF format: missing PDF header"})
    try:
        rows = extract_rows(pdf_bytes)
    except PdfError as exc:
        return ParseResult(False, {"error": f"failed to open PDF: {exc}"})
    details = parse_lines(rows)
    if is_valid_transaction(details):
        return ParseResult(True, details)
    return ParseResult(False, {
        "error": "missing one or more required fields",
        "missing": missing_fields(details),
    })