"""Canonical transaction record.

Every parser produces :class:`Transaction` values; aggregation sorts and
serializes them and the ledger adapter converts them. Instances are frozen and
never mutated after a parser builds them.

Sign conventions
----------------
``signed_amount`` is debit-positive (money leaving the account is ``+``). The
ledger uses the opposite convention; see
:func:`bankfeed.ledger.adapter.convert_transaction`. Filtering and conversion
code works on ``absolute_amount``/``is_debit`` directly and never derives one
convention from the other.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date as Date

PENDING = "pending"
CLEARED = "cleared"


@dataclass(frozen=True, slots=True)
class Transaction:
    """A single normalized bank transaction.

    Attributes
    ----------
    account:
        Source account label, e.g. ``"Citi 1234"`` or the account name from a
        DBS export preamble.
    date:
        Civil date of the transaction in the bank's local calendar.
    description:
        Merchant/reference text with redundant whitespace collapsed.
    absolute_amount:
        Non-negative magnitude.
    is_debit:
        ``True`` when money leaves the account.
    is_pending:
        ``True`` when the bank has not settled the transaction yet.
    """

    account: str
    date: Date
    description: str
    absolute_amount: float
    is_debit: bool = True
    is_pending: bool = False

    def __post_init__(self) -> None:
        if self.absolute_amount < 0:
            raise ValueError(
                f"Transaction.absolute_amount must be non-negative, got {self.absolute_amount!r}"
            )

    @property
    def signed_amount(self) -> float:
        return self.absolute_amount if self.is_debit else -self.absolute_amount

    @property
    def status(self) -> str:
        return PENDING if self.is_pending else CLEARED


__all__ = ["CLEARED", "PENDING", "Transaction"]
