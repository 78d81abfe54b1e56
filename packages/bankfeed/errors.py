"""Error taxonomy for ``bankfeed``.

Parser errors (``InvalidFormat``, ``DateParseError``) are fatal for one raw
document only; the orchestrator records them and moves on.
``ConfigurationError`` aborts the step it is raised in. ``SubmissionError`` is
recorded per ledger account. Malformed amounts never raise: see
:func:`bankfeed.ingest.utils.parse_float_safely`.
"""

from __future__ import annotations


class BankfeedError(Exception):
    """Base class for all errors raised by this package."""


class InvalidFormat(BankfeedError, ValueError):
    """A raw export does not carry the signature of the selected parser."""


class DateParseError(BankfeedError, ValueError):
    def __init__(self, value: str, message: str | None = None) -> None:
        self.value = value
        super().__init__(message or f"unparseable date: {value!r}")


class ConfigurationError(BankfeedError):
    """Invalid configuration, including ledger accounts that do not exist."""


class LedgerError(BankfeedError):
    """The ledger worker failed or spoke out of protocol."""


class SubmissionError(LedgerError):
    def __init__(self, account: str, message: str) -> None:
        self.account = account
        super().__init__(f"{account}: {message}")


__all__ = [
    "BankfeedError",
    "ConfigurationError",
    "DateParseError",
    "InvalidFormat",
    "LedgerError",
    "SubmissionError",
]
