"""Adapter for the Citibank Singapore posted-transactions table.

Citi offers no CSV download for card activity, so the table markup itself
(the inner HTML of ``#postedTansactionTable table``) is the export. Each body
row carries the card's masked number and, for unsettled activity, a
``pending`` marker in its ``class`` attribute::

    <tr class="cT-bodyRow xxxxxxxxxxxx1234 pending">
      <td class="cT-bodyTableColumn0">...</td>
      <td class="cT-bodyTableColumn1">03/04/2024</td>
      <td class="cT-bodyTableColumn2">GRAB*12345 SINGAPORE SG</td>
      <td class="cT-bodyTableColumn3">SGD 12.30</td>
      <td class="cT-bodyTableColumn4"></td>
    </tr>

Besides transactions, the adapter emits the rows a CSV download would have
contained (settled rows only) so runs keep a CSV artifact for Citi as well.
"""

from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass, field
from datetime import date, datetime

from bs4 import BeautifulSoup, Tag

from ...errors import DateParseError, InvalidFormat
from ...transaction import Transaction
from ..utils import collapse_whitespace, parse_float_safely

SIGNATURE = "cT-bodyTableColumn"
ACCOUNT_PREFIX = "Citi"

_MASKED_PAN_RE = re.compile(r"x{12}([0-9]{4})")
_PENDING_RE = re.compile(r"pending")
_CURRENCY_PREFIX_RE = re.compile(r"^[A-Z]{3}\s*")

# Sort labels and the row selector column are UI chrome, not data.
_CHROME_SELECTOR = "span.cA-sortText, .cT-bodyTableColumn0, .cT-headTableColumn0"

# Known header labels per logical column (compared case-insensitively).
HEADER_NAMES: dict[str, tuple[str, ...]] = {
    "date": ("date", "transaction date"),
    "description": ("description", "transaction details", "details"),
    "debit": ("debit", "withdrawals", "debit amount"),
    "credit": ("credit", "deposits", "credit amount"),
}

# Column order of the table when it is captured without its header.
DEFAULT_LAYOUT: dict[str, int] = {"date": 0, "description": 1, "debit": 2, "credit": 3}


@dataclass(frozen=True, slots=True)
class CitiTable:
    """Parsed table: transactions (oldest first) and CSV-equivalent rows."""

    transactions: list[Transaction] = field(default_factory=list)
    csv_rows: list[list[str]] = field(default_factory=list)

    def to_csv(self) -> str:
        buf = io.StringIO()
        csv.writer(buf).writerows(self.csv_rows)
        return buf.getvalue()


def _resolve_layout(soup: BeautifulSoup) -> dict[str, int]:
    thead = soup.find("thead")
    if not isinstance(thead, Tag):
        return dict(DEFAULT_LAYOUT)

    rows = thead.find_all("tr")
    if not rows:
        return dict(DEFAULT_LAYOUT)

    labels = [
        collapse_whitespace(c.get_text()).lower() for c in rows[-1].find_all(["th", "td"])
    ]
    layout: dict[str, int] = {}
    for key, names in HEADER_NAMES.items():
        for idx, label in enumerate(labels):
            if label in names:
                layout[key] = idx
                break

    missing = sorted(k for k in HEADER_NAMES if k not in layout)
    if missing:
        raise InvalidFormat("Citi table: header mismatch. Missing columns: " + ", ".join(missing))
    return layout


def _strip_amount(raw: str) -> str:
    """``"SGD 1,234.56"`` -> ``"1234.56"``; blank stays blank."""

    s = _CURRENCY_PREFIX_RE.sub("", collapse_whitespace(raw))
    return s.replace(",", "")


def _parse_date(raw: str) -> date:
    try:
        return datetime.strptime(raw, "%d/%m/%Y").date()
    except ValueError as exc:
        raise DateParseError(raw) from exc


def parse_citi_table(html: str) -> CitiTable:
    """Parse the posted-transactions table markup.

    Pending rows appear in ``transactions`` (with ``is_pending=True``) but not
    in ``csv_rows``. ``csv_rows`` keep the table's order; ``transactions`` are
    reversed so the newest-first table yields oldest-first output.
    """

    if SIGNATURE not in html:
        raise InvalidFormat(f"Citi table: missing {SIGNATURE!r} cells")

    soup = BeautifulSoup(html, "html.parser")
    tbody = soup.find("tbody")
    if not isinstance(tbody, Tag):
        raise InvalidFormat("Citi table: no <tbody> element")

    for el in soup.select(_CHROME_SELECTOR):
        el.decompose()

    layout = _resolve_layout(soup)

    transactions: list[Transaction] = []
    csv_rows: list[list[str]] = []
    for tr in tbody.find_all("tr"):
        classes = " ".join(tr.get("class") or [])
        cells = [td.get_text() for td in tr.find_all("td")]

        def cell(key: str, cells: list[str] = cells) -> str:
            idx = layout[key]
            return cells[idx] if idx < len(cells) else ""

        raw_date = cell("date").strip()
        if not raw_date:
            continue

        m = _MASKED_PAN_RE.search(classes)
        masked_pan = m.group(0) if m else ""
        is_pending = _PENDING_RE.search(classes) is not None
        description = collapse_whitespace(cell("description"))

        debit = _strip_amount(cell("debit"))
        credit = _strip_amount(cell("credit"))
        amount_string = f"-{debit}" if debit else credit

        if not is_pending:
            csv_rows.append([raw_date, description, amount_string, "", masked_pan])

        transactions.append(
            Transaction(
                account=f"{ACCOUNT_PREFIX} {masked_pan[-4:]}".rstrip(),
                date=_parse_date(raw_date),
                description=description,
                absolute_amount=abs(parse_float_safely(amount_string)),
                is_debit=amount_string.startswith("-"),
                is_pending=is_pending,
            )
        )

    transactions.reverse()
    return CitiTable(transactions=transactions, csv_rows=csv_rows)


__all__ = ["CitiTable", "SIGNATURE", "parse_citi_table"]
