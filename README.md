# cbeverify

Check that a Commercial Bank of Ethiopia (CBE) transfer really happened, and
for the amount you were told, by fetching the bank's official receipt PDF and
reading the transaction details out of it.

The package has no third-party dependencies. The receipt is downloaded with
the standard library, and the PDF text is extracted by a small built-in reader
(`cbeverify.pdftext`).

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Command line

```
cbe-verify --id FT0000000000 --suffix 00000000 --amount 1500.00
```

* `--id`: the transaction reference shown on the receipt.
* `--suffix`: the account suffix, which is the digits after `1000` in the account number.
* `--amount`: the amount in ETB you expect the transfer to be for.
* `--details`: whether to print the receipt's details on success. It is on by
  default. Turn it off with `--details=false` (also `0`, `f`, `F`, `FALSE`, `False`).

`--id`, `--suffix` and `--amount` are all required. If any is missing, or the
amount is not positive, the command prints `Usage:` and the help text to
standard error and exits with status 1.

On success the command prints `Transaction verified successfully.`. With
`--details` on, it then prints the amount, payer, receiver, date and reason
from the official receipt. On failure it prints ` Verification failed: `
followed by the reason. When the receipt was found but did not match, it also
lists each mismatching field with the provided and official values. In both
cases the exit status is 0.

## Library use

```python
from cbeverify.verifier import Options, Transaction, verify

result = verify(
    Transaction(id="FT0000000000", suffix="00000000", amount=1500.00),
    Options(include_details=True, timeout=120),
)

if result.is_valid:
    print(result.details.payer, "->", result.details.receiver, result.details.amount)
else:
    print("failed:", result.error)
    for field, mismatch in (result.mismatches or {}).items():
        print(field, mismatch)
```

`verify` works through these steps:

1. It checks the transaction with `validate_transaction`. The id and suffix
   must not be blank, and the amount must be greater than zero.
2. It downloads the receipt for id + suffix from the CBE receipt service with
   `fetch_receipt`. The response must be HTTP 200 with a content type that
   contains `application/pdf`. Certificate checking is turned off for this
   request, because the bank's server does not present a certificate that
   verifies.
3. It parses the PDF into payer, payer account, receiver, receiver account,
   amount, date, transaction id and reason with `cbeverify.parser.parse_receipt`.
   It then turns that mapping into a `TransactionDetails` with
   `details_from_mapping`.
4. It compares the transaction id (with surrounding whitespace removed) and the
   amount (rounded to two decimals by `round2`) with what you supplied, using
   `compare_transaction`.

`verify` does not raise for problems with the input, the network or the
receipt. It reports them through `VerificationResult.error`. The individual
steps raise subclasses of `VerificationError`:

* `InvalidTransactionID`, `InvalidSuffix` and `InvalidAmount` for bad input.
* `NetworkError` when the request fails.
* `InvalidPDFResponse` for a non-200 status or a content type that is not PDF.
* `PDFReadError` when the body cannot be read.
* `ReceiptParseError` when the receipt lacks required fields or cannot be read
  as a PDF.

`details` is filled in only when `Options.include_details` is true. The default
timeout is 120 seconds, and a timeout of zero or less falls back to that default.

### Parsing a receipt you already have

```python
from pathlib import Path
from cbeverify.parser import parse_receipt

result = parse_receipt(Path("receipt.pdf").read_bytes())
if result.success:
    print(result.details["amount"], result.details["payer"])
else:
    print(result.details["error"], result.details.get("missing"))
```

`parse_lines` applies the same field extraction to lines of text you have
obtained some other way. `is_valid_transaction` and `missing_fields` report
which of the required fields were found. The smaller helpers are also public:
`fix_line_spacing`, `extract_reason`, `extract_reference_number` and
`parse_amount`.

`cbeverify.pdftext.extract_rows(data)` returns the text rows of every page,
top to bottom and left to right. It raises `PdfError` when the data is not a
readable PDF.

## What it does not do

The built-in PDF reader covers what receipts need and no more:

* It has no support for encrypted PDFs.
* It decodes only the Flate, ASCIIHex and ASCII85 stream filters.
* It maps text through a font's ToUnicode table when there is one, and
  otherwise as Latin-1.

The package keeps no record of past verifications and caches nothing. Each
call fetches the receipt again.