"""Aggregation: merge transactions from all sources and write the run outputs.

Two views of the same set are written:

- ``transactions.csv``: ``date, description, signed amount, account, status``
  rows (no header), newest first.
- ``output.json``: the structured snapshot, oldest first. It can be read
  back with :func:`load_snapshot` to replay a run into the ledger.

Sorting is stable, so transactions sharing a date keep the order in which the
sources and parsers emitted them. An empty batch writes nothing.
"""

from __future__ import annotations

import csv
import datetime as dt
import io
from collections.abc import Iterable
from operator import attrgetter
from os import PathLike
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from .artifacts import ArtifactStore
from .logging_setup import get_logger
from .transaction import Transaction

COMBINED_CSV_NAME = "transactions.csv"
SNAPSHOT_NAME = "output.json"

_logger = get_logger("bankfeed.aggregate")


def combine(outputs: Iterable[Iterable[Transaction]]) -> list[Transaction]:
    return [t for output in outputs for t in output]


def sort_transactions(
    transactions: Iterable[Transaction], *, descending: bool = False
) -> list[Transaction]:
    # ``sorted`` keeps ties in input order in both directions.
    return sorted(transactions, key=attrgetter("date"), reverse=descending)


def _fmt_amount(value: float) -> str:
    # Adding 0.0 turns -0.0 into 0.0 so zero credits never print as "-0.00".
    return f"{value + 0.0:.2f}"


def combined_csv_rows(transactions: Iterable[Transaction]) -> list[list[str]]:
    return [
        [t.date.isoformat(), t.description, _fmt_amount(t.signed_amount), t.account, t.status]
        for t in transactions
    ]


def to_combined_csv(transactions: Iterable[Transaction]) -> str:
    """Serialize ``transactions`` newest first."""

    buf = io.StringIO()
    csv.writer(buf).writerows(combined_csv_rows(sort_transactions(transactions, descending=True)))
    return buf.getvalue()


# ---------------------------------------------------------------------------
# Structured snapshot
# ---------------------------------------------------------------------------


class SnapshotTransaction(BaseModel):
    model_config = ConfigDict(extra="forbid")

    account: str
    date: dt.date
    description: str
    absolute_amount: float = Field(ge=0)
    is_debit: bool
    is_pending: bool

    @classmethod
    def from_transaction(cls, t: Transaction) -> SnapshotTransaction:
        return cls(
            account=t.account,
            date=t.date,
            description=t.description,
            absolute_amount=t.absolute_amount,
            is_debit=t.is_debit,
            is_pending=t.is_pending,
        )

    def to_transaction(self) -> Transaction:
        return Transaction(
            account=self.account,
            date=self.date,
            description=self.description,
            absolute_amount=self.absolute_amount,
            is_debit=self.is_debit,
            is_pending=self.is_pending,
        )


class SnapshotFile(BaseModel):
    """Top-level schema of ``output.json``."""

    model_config = ConfigDict(extra="forbid")

    transactions: list[SnapshotTransaction]


def to_snapshot(transactions: Iterable[Transaction]) -> SnapshotFile:
    """Build the snapshot, oldest first."""

    return SnapshotFile(
        transactions=[
            SnapshotTransaction.from_transaction(t) for t in sort_transactions(transactions)
        ]
    )


def load_snapshot(path: str | PathLike[str]) -> list[Transaction]:
    text = Path(path).read_text(encoding="utf-8")
    return [s.to_transaction() for s in SnapshotFile.model_validate_json(text).transactions]


def write_outputs(store: ArtifactStore, transactions: list[Transaction]) -> list[Path]:
    """Write the combined CSV and the snapshot; no-op for an empty batch."""

    if not transactions:
        _logger.info("aggregate:skipped reason=no_transactions")
        return []

    csv_path = store.write_text(COMBINED_CSV_NAME, to_combined_csv(transactions))
    snapshot_path = store.write_text(
        SNAPSHOT_NAME, to_snapshot(transactions).model_dump_json(indent=2)
    )
    _logger.info(
        "aggregate:written transactions=%d csv=%s snapshot=%s",
        len(transactions),
        csv_path,
        snapshot_path,
    )
    return [csv_path, snapshot_path]


__all__ = [
    "COMBINED_CSV_NAME",
    "SNAPSHOT_NAME",
    "SnapshotFile",
    "SnapshotTransaction",
    "combine",
    "combined_csv_rows",
    "load_snapshot",
    "sort_transactions",
    "to_combined_csv",
    "to_snapshot",
    "write_outputs",
]
