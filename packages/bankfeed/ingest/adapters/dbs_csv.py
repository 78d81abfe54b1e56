"""Adapter for DBS / POSB "Transaction History" CSV downloads.

Layout
------
A short preamble precedes the real header::

    Account Details For:,POSB Savings Account 123-45678-9
    Statement as at:,05 Apr 2024
    ...

    Transaction Date,Reference,Debit Amount,Credit Amount,Transaction Ref1,...

Two header variants exist. POSB accounts carry ``Transaction Ref1..3`` next to
``Reference``; DBS accounts carry ``Statement Code``, ``Client Reference``,
``Additional Reference`` and ``Misc Reference``. Columns are resolved by name,
never by position.

Rows are listed newest first; transactions are returned oldest first.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Sequence
from datetime import date

from dateutil import parser as date_parser

from ...errors import DateParseError, InvalidFormat
from ...transaction import Transaction
from ..utils import collapse_whitespace, parse_float_safely, to_civil_date

SIGNATURE = "Account Details For:"
HEADER_PREFIX = "Transaction Date,"

# Statement code meaning "no reference" (interbank transfer without remarks).
NO_REFERENCE = "ITR"

DATE_COLUMN = "Transaction Date"
DEBIT_COLUMN = "Debit Amount"
CREDIT_COLUMN = "Credit Amount"

POSB_MARKER = "Transaction Ref1"
POSB_REFERENCE_COLUMNS = (
    "Reference",
    "Transaction Ref1",
    "Transaction Ref2",
    "Transaction Ref3",
)
DBS_REFERENCE_COLUMNS = (
    "Statement Code",
    "Client Reference",
    "Additional Reference",
    "Misc Reference",
)


def build_description(refs: Sequence[str]) -> str:
    """Join reference fields in priority order into a description.

    Empty fields and the ``ITR`` placeholder are skipped. When nothing is
    left, the primary field (``refs[0]``) is returned verbatim, even if it is
    the placeholder itself.
    """

    parts = [r for r in refs if r and r != NO_REFERENCE]
    if not parts:
        return refs[0] if refs else ""
    return collapse_whitespace(" ".join(parts))


def _parse_date(raw: str) -> date:
    try:
        return to_civil_date(date_parser.parse(raw, dayfirst=True))
    except (ValueError, OverflowError) as exc:
        raise DateParseError(raw) from exc


def _split_preamble(text: str) -> tuple[str, str]:
    """Return ``(account, body)`` where ``body`` starts at the header row."""

    if SIGNATURE not in text:
        raise InvalidFormat(f"DBS CSV: missing {SIGNATURE!r} preamble")

    start = text.find(HEADER_PREFIX)
    if start == -1:
        raise InvalidFormat(
            f"DBS CSV: could not locate a header row starting with {HEADER_PREFIX!r}"
        )

    preamble = text[:start].strip().splitlines()
    first = next(csv.reader(preamble[:1]), [])
    if len(first) < 2 or not first[1].strip():
        raise InvalidFormat("DBS CSV: account name missing from the preamble")

    return first[1].strip(), text[start:].strip()


def parse_dbs_csv(text: str) -> list[Transaction]:
    """Parse one DBS/POSB CSV download into transactions (oldest first)."""

    account, body = _split_preamble(text)

    reader = csv.reader(io.StringIO(body))
    header = [h.strip() for h in next(reader)]
    columns = {name: idx for idx, name in enumerate(header) if name}

    missing = [c for c in (DATE_COLUMN, DEBIT_COLUMN, CREDIT_COLUMN) if c not in columns]
    if missing:
        raise InvalidFormat("DBS CSV: header mismatch. Missing columns: " + ", ".join(missing))

    ref_names = POSB_REFERENCE_COLUMNS if POSB_MARKER in columns else DBS_REFERENCE_COLUMNS
    ref_idx = [columns.get(name) for name in ref_names]

    def cell(row: list[str], idx: int | None) -> str:
        if idx is None or idx >= len(row):
            return ""
        return row[idx].strip()

    transactions: list[Transaction] = []
    for row in reader:
        if all(not v.strip() for v in row):
            continue

        tx_date = _parse_date(cell(row, columns[DATE_COLUMN]))
        description = build_description([cell(row, i) for i in ref_idx])

        debit = parse_float_safely(cell(row, columns[DEBIT_COLUMN]), remove_commas=True)
        credit = parse_float_safely(cell(row, columns[CREDIT_COLUMN]), remove_commas=True)

        transactions.append(
            Transaction(
                account=account,
                date=tx_date,
                description=description,
                absolute_amount=abs(debit or credit),
                is_debit=debit != 0,
            )
        )

    transactions.reverse()
    return transactions


__all__ = ["NO_REFERENCE", "SIGNATURE", "build_description", "parse_dbs_csv"]
