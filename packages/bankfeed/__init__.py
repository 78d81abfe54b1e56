"""Public interface for the ``bankfeed`` package.

Parsers turn bank exports into :class:`Transaction` values, aggregation writes
the combined outputs of a run and the ledger adapter submits them. Only symbol
re-exports live here.
"""

from .aggregate import combine, load_snapshot, sort_transactions, to_combined_csv
from .config import AppConfig, load_config
from .errors import (
    BankfeedError,
    ConfigurationError,
    DateParseError,
    InvalidFormat,
    LedgerError,
    SubmissionError,
)
from .ingest.adapters.citi_html import CitiTable, parse_citi_table
from .ingest.adapters.dbs_csv import parse_dbs_csv
from .ingest.utils import parse_float_safely
from .ledger.adapter import SyncResult, convert_transaction, sync_transactions
from .pull import RunReport, run_pull
from .transaction import Transaction

__all__ = [
    # Model
    "Transaction",
    # Parsers
    "CitiTable",
    "parse_citi_table",
    "parse_dbs_csv",
    "parse_float_safely",
    # Aggregation
    "combine",
    "load_snapshot",
    "sort_transactions",
    "to_combined_csv",
    # Ledger
    "SyncResult",
    "convert_transaction",
    "sync_transactions",
    # Orchestration / config
    "AppConfig",
    "RunReport",
    "load_config",
    "run_pull",
    # Errors
    "BankfeedError",
    "ConfigurationError",
    "DateParseError",
    "InvalidFormat",
    "LedgerError",
    "SubmissionError",
]
