"""Translate canonical transactions into ledger imports, one account at a time.

Sign convention
---------------
The canonical model is debit-positive (:attr:`Transaction.signed_amount`).
The ledger is debit-negative: money leaving an account reduces its balance.
:func:`convert_transaction` therefore works from ``absolute_amount`` and
``is_debit`` and never from ``signed_amount``.

Idempotency
-----------
Nothing is deduplicated here. Repeated runs submit overlapping batches and the
ledger's own import matching (date, amount, payee) reconciles them.

Failure policy
--------------
- A mapped destination account that does not exist in the ledger raises
  :class:`ConfigurationError` before anything is submitted.
- A rejected account batch is recorded and the next account is attempted;
  :attr:`SyncResult.ok` is false if any account failed.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Protocol

from ..errors import ConfigurationError, LedgerError, SubmissionError
from ..logging_setup import get_logger
from ..transaction import Transaction
from .models import ImportResult, LedgerAccount, LedgerTransaction
from .worker import WorkerLedgerClient

if TYPE_CHECKING:
    from ..config import LedgerConfig

_logger = get_logger("bankfeed.ledger.adapter")


class LedgerClient(Protocol):
    def get_accounts(self) -> list[LedgerAccount]: ...

    def import_transactions(
        self, account_id: str, transactions: list[LedgerTransaction]
    ) -> ImportResult: ...


def to_minor_units(amount: float) -> int:
    """Round a non-negative amount to cents, half away from zero.

    The decimal text of the float is used so values like ``1.005`` round the
    way they read (``101``) rather than the way they are stored.
    """

    cents = (Decimal(str(amount)) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return int(cents)


def convert_transaction(t: Transaction) -> LedgerTransaction:
    sign = -1 if t.is_debit else 1
    return LedgerTransaction(
        date=t.date.isoformat(),
        amount=to_minor_units(t.absolute_amount) * sign,
        payee=t.description,
        imported_payee=t.description,
        notes=t.description,
        cleared=not t.is_pending,
    )


def group_by_account(
    account_names: Iterable[str], transactions: Iterable[Transaction]
) -> dict[str, list[Transaction]]:
    """Bucket transactions by account, keeping only ``account_names``.

    Every requested account gets a bucket (possibly empty), in the order
    given; transactions of other accounts are dropped.
    """

    groups: dict[str, list[Transaction]] = {name: [] for name in account_names}
    for t in transactions:
        bucket = groups.get(t.account)
        if bucket is not None:
            bucket.append(t)
    return groups


def resolve_account_mapping(
    mapping: Mapping[str, str], accounts: Iterable[LedgerAccount]
) -> dict[str, str]:
    """Map source account names to ledger account ids.

    Raises :class:`ConfigurationError` naming the first destination that the
    ledger does not know.
    """

    ids_by_name = {a.name: a.id for a in accounts}
    resolved: dict[str, str] = {}
    for source, destination in mapping.items():
        account_id = ids_by_name.get(destination)
        if account_id is None:
            raise ConfigurationError(f'Destination account "{destination}" does not exist.')
        resolved[source] = account_id
    return resolved


@dataclass(frozen=True, slots=True)
class AccountSyncResult:
    account: str
    destination: str
    submitted: int
    result: ImportResult | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class SyncResult:
    accounts: tuple[AccountSyncResult, ...]

    @property
    def ok(self) -> bool:
        return all(a.ok for a in self.accounts)

    @property
    def failures(self) -> list[AccountSyncResult]:
        return [a for a in self.accounts if not a.ok]


def _submit(
    client: LedgerClient, account: str, account_id: str, records: list[LedgerTransaction]
) -> ImportResult:
    try:
        result = client.import_transactions(account_id, records)
    except LedgerError as e:
        raise SubmissionError(account, str(e)) from e
    if result.errors:
        raise SubmissionError(account, "; ".join(result.errors))
    return result


def sync_transactions(
    client: LedgerClient,
    account_mapping: Mapping[str, str],
    transactions: Iterable[Transaction],
) -> SyncResult:
    """Submit mapped accounts' transactions to the ledger, one call per account."""

    account_ids = resolve_account_mapping(account_mapping, client.get_accounts())
    groups = group_by_account(account_mapping.keys(), transactions)

    results: list[AccountSyncResult] = []
    for account, txs in groups.items():
        records = [convert_transaction(t) for t in txs]
        destination = account_mapping[account]
        try:
            result = _submit(client, account, account_ids[account], records)
        except SubmissionError as e:
            _logger.error(
                "ledger:account_failed account=%s destination=%s error=%s",
                account,
                destination,
                e,
            )
            results.append(
                AccountSyncResult(account, destination, len(records), error=str(e))
            )
            continue
        _logger.info(
            "ledger:account_synced account=%s destination=%s submitted=%d added=%d updated=%d",
            account,
            destination,
            len(records),
            len(result.added),
            len(result.updated),
        )
        results.append(AccountSyncResult(account, destination, len(records), result=result))

    return SyncResult(accounts=tuple(results))


def run_ledger_sync(ledger: LedgerConfig, transactions: Iterable[Transaction]) -> SyncResult:
    """Start the configured worker, initialize it and run :func:`sync_transactions`.

    Raises :class:`ConfigurationError` for unknown destination accounts and
    :class:`LedgerError` when the worker cannot be started or initialized.
    """

    with WorkerLedgerClient(ledger.command) as client:
        client.init(ledger.params())
        return sync_transactions(client, ledger.account_mapping, transactions)


__all__ = [
    "AccountSyncResult",
    "LedgerClient",
    "SyncResult",
    "convert_transaction",
    "group_by_account",
    "resolve_account_mapping",
    "run_ledger_sync",
    "sync_transactions",
    "to_minor_units",
]
