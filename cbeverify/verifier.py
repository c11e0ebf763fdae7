"""Verification of transactions against the bank's official receipts."""

from __future__ import annotations

import http.client
import ssl
import urllib.error
import urllib.request
from dataclasses import dataclass, replace
from typing import Any, Mapping

from cbeverify.parser import parse_receipt

__all__ = [
    "VerificationError",
    "InvalidTransactionID",
    "InvalidSuffix",
    "InvalidAmount",
    "NetworkError",
    "InvalidPDFResponse",
    "PDFReadError",
    "ReceiptParseError",
    "Transaction",
    "Options",
    "TransactionDetails",
    "VerificationResult",
    "validate_transaction",
    "fetch_receipt",
    "details_from_mapping",
    "compare_transaction",
    "round2",
    "verify",
]

DEFAULT_TIMEOUT = 120
RECEIPT_URL = "https://apps.cbe.com.et:100/?id={}"
VERIFICATION_FAILED = "transaction verification failed"
_HEADERS = {
    "User-Agent": "Mozilla/5.0 (CBE-Verifier-Go/1.0)",
    "Accept": "application/pdf",
    "Accept-Encoding": "identity",
}


class VerificationError(Exception):
    """Base class for errors raised while verifying a transaction."""

    message = "verification error"

    def __init__(self, detail: object | None = None) -> None:
        self.detail = detail
        text = self.message if detail is None else f"{self.message}: {detail}"
        super().__init__(text)


class InvalidTransactionID(VerificationError):
    message = "invalid transaction ID"


class InvalidSuffix(VerificationError):
    message = "invalid suffix"


class InvalidAmount(VerificationError):
    message = "invalid amount"


class NetworkError(VerificationError):
    message = "network error while requesting CBE receipt"


class InvalidPDFResponse(VerificationError):
    message = "invalid PDF response from CBE"


class PDFReadError(VerificationError):
    message = "could not read PDF content"


class ReceiptParseError(VerificationError):
    message = "failed to parse receipt"


@dataclass
class Transaction:
    """A transaction to verify: reference number, suffix and amount in ETB."""

    id: str
    suffix: str
    amount: float


@dataclass
class Options:
    """Settings for a verification run; timeout is in seconds."""

    include_details: bool = False
    timeout: int = DEFAULT_TIMEOUT


@dataclass
class TransactionDetails:
    """Transaction information read from an official receipt."""

    payer: str = ""
    payer_account: str = ""
    receiver: str = ""
    receiver_account: str = ""
    amount: float = 0.0
    date: str = ""
    transaction_id: str = ""
    reason: str = ""


@dataclass
class VerificationResult:
    """Outcome of a verification."""

    is_valid: bool
    details: TransactionDetails | None = None
    error: str = ""
    mismatches: dict[str, Any] | None = None


def validate_transaction(transaction: Transaction) -> None:
    """Raise if the transaction lacks an ID, a suffix or a positive amount."""
    if not transaction.id.strip():
        raise InvalidTransactionID()
    if not transaction.suffix.strip():
        raise InvalidSuffix()
    if transaction.amount <= 0:
        raise InvalidAmount()


def _text(details: Mapping[str, Any], key: str) -> str:
    value = details.get(key)
    return value if isinstance(value, str) else ""


def _number(details: Mapping[str, Any], key: str) -> float:
    value = details.get(key)
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return 0.0
    return 0.0


def details_from_mapping(details: Mapping[str, Any]) -> TransactionDetails:
    """Build TransactionDetails from the mapping produced by the receipt parser."""
    return TransactionDetails(
        payer=_text(details, "payer"),
        payer_account=_text(details, "payerAccount"),
        receiver=_text(details, "receiver"),
        receiver_account=_text(details, "receiverAccount"),
        amount=_number(details, "amount"),
        date=_text(details, "date"),
        transaction_id=_text(details, "transaction_id"),
        reason=_text(details, "reason"),
    )


def _insecure_context() -> ssl.SSLContext:
    # The bank's server does not present a certificate that verifies.
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


def fetch_receipt(reference: str, suffix: str,
                  options: Options | None = None) -> TransactionDetails:
    """Download the official receipt for reference+suffix and parse it."""
    options = options or Options()
    url = RECEIPT_URL.format(reference + suffix)
    try:
        request = urllib.request.Request(url, headers=dict(_HEADERS), method="GET")
    except ValueError as exc:
        raise NetworkError(exc) from exc

    try:
        response = urllib.request.urlopen(
            request, timeout=options.timeout, context=_insecure_context())
    except urllib.error.HTTPError as exc:
        raise InvalidPDFResponse() from exc
    except (OSError, ValueError, http.client.HTTPException) as exc:
        raise NetworkError(exc) from exc

    with response:
        status = getattr(response, "status", None)
        content_type = (response.headers.get("Content-Type") or "").lower()
        if status != 200 or "application/pdf" not in content_type:
            raise InvalidPDFResponse()
        try:
            body = response.read()
        except (OSError, http.client.HTTPException) as exc:
            raise PDFReadError(exc) from exc

    result = parse_receipt(body)
    if not result.success:
        raise ReceiptParseError(result.details.get("error"))
    return details_from_mapping(result.details)


def round2(value: float) -> float:
    """Round to two decimals the way amounts are compared."""
    return float(int(value * 100 + 0.5)) / 100


def compare_transaction(provided: Transaction,
                        official: TransactionDetails) -> dict[str, Any]:
    """Return the fields where provided and official data differ; empty if none."""
    mismatches: dict[str, Any] = {}
    provided_id = provided.id.strip()
    official_id = official.transaction_id.strip()
    if provided_id != official_id:
        mismatches["transaction_id"] = {
            "provided": provided_id,
            "official": official_id,
        }
    if round2(provided.amount) != round2(official.amount):
        mismatches["amount"] = {
            "provided": provided.amount,
            "official": official.amount,
        }
    return mismatches


def verify(transaction: Transaction,
           options: Options | None = None) -> VerificationResult:
    """Fetch the official receipt and check the transaction against it."""
    options = options or Options()
    try:
        validate_transaction(transaction)
    except VerificationError as exc:
        return VerificationResult(is_valid=False, error=str(exc))

    if options.timeout <= 0:
        options = replace(options, timeout=DEFAULT_TIMEOUT)

    try:
        details = fetch_receipt(transaction.id, transaction.suffix, options)
    except VerificationError as exc:
        return VerificationResult(is_valid=False, error=str(exc))

    mismatches = compare_transaction(transaction, details)
    if mismatches:
        return VerificationResult(
            is_valid=False, error=VERIFICATION_FAILED, mismatches=mismatches)

    return VerificationResult(
        is_valid=True,
        details=details if options.include_details else None,
    )