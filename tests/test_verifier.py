import urllib.error
import urllib.request

import pytest

from cbeverify.verifier import (
    InvalidAmount,
    InvalidPDFResponse,
    InvalidSuffix,
    InvalidTransactionID,
    NetworkError,
    Options,
    ReceiptParseError,
    Transaction,
    TransactionDetails,
    VerificationError,
    compare_transaction,
    details_from_mapping,
    fetch_receipt,
    round2,
    validate_transaction,
    verify,
)

RECEIPT_LINES = [
    "Payer: Alice Tester",
    "Account: ACC-0001",
    "Receiver: Bob Sample",
    "Account: ACC-0002",
    "Payment Date: 1/2/2024, 10:30:00 AM",
    "Reference No.: FT24000TEST",
    "Reason / Type of service: Test payment",
    "Transferred Amount: 1,500.00 ETB",
]


def make_pdf(lines):
    ops = ["BT", "10 700 Td"]
    for index, line in enumerate(lines):
        if index:
            ops.append("0 -20 Td")
        ops.append(f"({line}) Tj")
    ops.append("ET")
    content = "\n".join(ops).encode("latin-1")
    return b"".join([
        b"%PDF-1.4\n",
        b"1 0 obj\n<< /Type /Catalog /Pages 2 0 R >>\nendobj\n",
        b"2 0 obj\n<< /Type /Pages /Kids [3 0 R] /Count 1 >>\nendobj\n",
        b"3 0 obj\n<< /Type /Page /Parent 2 0 R /Contents 4 0 R >>\nendobj\n",
        b"4 0 obj\n<< /Length " + str(len(content)).encode() + b" >>\nstream\n",
        content,
        b"\nendstream\nendobj\n",
        b"trailer\n<< /Root 1 0 R >>\n",
    ])


class FakeResponse:
    def __init__(self, body, status=200, content_type="application/pdf"):
        self.body = body
        self.status = status
        self.headers = {"Content-Type": content_type}

    def read(self):
        return self.body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeOpener:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def __call__(self, request, timeout=None, context=None):
        self.calls.append((request, timeout))
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def receipt_server(monkeypatch):
    opener = FakeOpener(FakeResponse(make_pdf(RECEIPT_LINES)))
    monkeypatch.setattr(urllib.request, "urlopen", opener)
    return opener


def test_validate_rejects_blank_id():
    with pytest.raises(InvalidTransactionID) as info:
        validate_transaction(Transaction("  ", "X1", 10.0))
    assert str(info.value) == "invalid transaction ID"


def test_validate_rejects_blank_suffix():
    with pytest.raises(InvalidSuffix) as info:
        validate_transaction(Transaction("FT1", "", 10.0))
    assert str(info.value) == "invalid suffix"


@pytest.mark.parametrize("amount", [0.0, -5.0])
def test_validate_rejects_non_positive_amount(amount):
    with pytest.raises(InvalidAmount) as info:
        validate_transaction(Transaction("FT1", "X1", amount))
    assert str(info.value) == "invalid amount"


def test_error_classes_share_base():
    with pytest.raises(VerificationError):
        validate_transaction(Transaction("", "", 0.0))


def test_round2_keeps_two_decimal_values():
    assert round2(12.5) == 12.5
    assert round2(3.14159) == 3.14


@pytest.mark.parametrize("value", [0.0, 1.005, 99.999, 1234.5678])
def test_round2_is_idempotent(value):
    once = round2(value)
    assert round2(once) == once
    assert abs(once - value) <= 0.005 + 1e-9


def test_compare_matching_transaction():
    official = TransactionDetails(transaction_id=" FT1 ", amount=100.0)
    assert compare_transaction(Transaction("FT1", "X", 100.001), official) == {}


def test_compare_reports_id_mismatch():
    official = TransactionDetails(transaction_id="FT2", amount=50.0)
    mismatches = compare_transaction(Transaction(" FT1", "X", 50.0), official)
    assert mismatches == {"transaction_id": {"provided": "FT1", "official": "FT2"}}


def test_compare_reports_amount_mismatch():
    official = TransactionDetails(transaction_id="FT1", amount=50.0)
    mismatches = compare_transaction(Transaction("FT1", "X", 60.0), official)
    assert mismatches == {"amount": {"provided": 60.0, "official": 50.0}}


def test_details_from_mapping_reads_parser_keys():
    details = details_from_mapping({
        "payer": "Alice", "payerAccount": "ACC-1", "receiver": "Bob",
        "receiverAccount": "ACC-2", "amount": 25.0, "date": "1/1/2024",
        "transaction_id": "FT9", "reason": "rent",
    })
    assert details == TransactionDetails(
        "Alice", "ACC-1", "Bob", "ACC-2", 25.0, "1/1/2024", "FT9", "rent")


def test_details_from_mapping_defaults_and_conversions():
    details = details_from_mapping({"payer": 7, "amount": "12.5"})
    assert details.payer == ""
    assert details.receiver == ""
    assert details.amount == 12.5
    assert details_from_mapping({"amount": "abc"}).amount == 0.0


def test_fetch_receipt_parses_official_pdf(receipt_server):
    details = fetch_receipt("FT24000TEST", "X1234", Options(timeout=30))
    assert details.payer == "Alice Tester"
    assert details.payer_account == "ACC-0001"
    assert details.receiver == "Bob Sample"
    assert details.receiver_account == "ACC-0002"
    assert details.transaction_id == "FT24000TEST"
    assert details.date == "1/2/2024, 10:30:00 AM"
    assert details.reason == "Test payment"
    assert details.amount == 1500.0
    request, timeout = receipt_server.calls[0]
    assert request.full_url == "https://apps.cbe.com.et:100/?id=FT24000TESTX1234"
    assert request.get_header("User-agent") == "Mozilla/5.0 (CBE-Verifier-Go/1.0)"
    assert request.get_header("Accept") == "application/pdf"
    assert timeout == 30


def test_fetch_receipt_rejects_non_pdf(monkeypatch):
    opener = FakeOpener(FakeResponse(b"<html>", content_type="text/html"))
    monkeypatch.setattr(urllib.request, "urlopen", opener)
    with pytest.raises(InvalidPDFResponse) as info:
        fetch_receipt("FT1", "X1")
    assert str(info.value) == "invalid PDF response from CBE"


def test_fetch_receipt_rejects_bad_status(monkeypatch):
    opener = FakeOpener(FakeResponse(make_pdf(RECEIPT_LINES), status=204))
    monkeypatch.setattr(urllib.request, "urlopen", opener)
    with pytest.raises(InvalidPDFResponse):
        fetch_receipt("FT1", "X1")


def test_fetch_receipt_http_error_is_invalid_response(monkeypatch):
    error = urllib.error.HTTPError("https://example.com", 500, "boom", {}, None)
    monkeypatch.setattr(urllib.request, "urlopen", FakeOpener(error=error))
    with pytest.raises(InvalidPDFResponse):
        fetch_receipt("FT1", "X1")


def test_fetch_receipt_network_failure(monkeypatch):
    error = urllib.error.URLError("unreachable")
    monkeypatch.setattr(urllib.request, "urlopen", FakeOpener(error=error))
    with pytest.raises(NetworkError) as info:
        fetch_receipt("FT1", "X1")
    assert str(info.value).startswith("network error while requesting CBE receipt: ")


def test_fetch_receipt_unparseable_body(monkeypatch):
    opener = FakeOpener(FakeResponse(b"not a pdf"))
    monkeypatch.setattr(urllib.request, "urlopen", opener)
    with pytest.raises(ReceiptParseError) as info:
        fetch_receipt("FT1", "X1")
    assert str(info.value) == (
        "failed to parse receipt: invalid PDF format: missing PDF header")


def test_verify_invalid_input_reports_error():
    result = verify(Transaction("FT1", "X1", 0.0))
    assert result.is_valid is False
    assert result.error == "invalid amount"


def test_verify_success_with_details(receipt_server):
    result = verify(Transaction("FT24000TEST", "X1234", 1500.0),
                    Options(include_details=True))
    assert result.is_valid is True
    assert result.error == ""
    assert result.details.receiver == "Bob Sample"
    assert result.details.amount == 1500.0


def test_verify_success_without_details(receipt_server):
    result = verify(Transaction("FT24000TEST", "X1234", 1500.0))
    assert result.is_valid is True
    assert result.details is None


def test_verify_uses_default_timeout(receipt_server):
    result = verify(Transaction("FT24000TEST", "X1234", 1500.0), Options(timeout=0))
    assert result.is_valid is True
    assert result.error == ""
    assert len(receipt_server.calls) == 1
    assert receipt_server.calls[0][1] == 120


def test_verify_reports_mismatch(receipt_server):
    result = verify(Transaction("FT24000TEST", "X1234", 99.0))
    assert result.is_valid is False
    assert result.error == "transaction verification failed"
    assert result.mismatches == {"amount": {"provided": 99.0, "official": 1500.0}}
    assert result.details is None


def test_verify_reports_fetch_error(monkeypatch):
    monkeypatch.setattr(urllib.request, "urlopen",
                        FakeOpener(error=urllib.error.URLError("down")))
    result = verify(Transaction("FT1", "X1", 10.0))
    assert result.is_valid is False
    assert result.error.startswith("network error while requesting CBE receipt")