"""Wire models for the ledger worker channel.

The ledger runs in a separate worker process. Requests and responses are JSON
documents, one per line:

- request ``{"op": "init", "params": {...}}`` -> ``{"ok": true}``
- request ``{"op": "get_accounts"}`` -> ``{"ok": true, "result": [{"id", "name"}, ...]}``
- request ``{"op": "import_transactions", "account_id": ..., "transactions": [...]}``
  -> ``{"ok": true, "result": {"added": [...], "updated": [...], "errors": [...]}}``
- request ``{"op": "shutdown"}`` -> ``{"ok": true}``; the worker then exits.

Any failure is answered with ``{"ok": false, "error": "<message>"}``.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class LedgerParams(BaseModel):
    """Opaque connection parameters handed to the worker on ``init``."""

    data_dir: str
    server_url: str
    password: str
    sync_id: str


class LedgerTransaction(BaseModel):
    """One transaction in the ledger's import shape.

    ``amount`` is in minor units (cents) and negative for money leaving the
    account.
    """

    model_config = ConfigDict(frozen=True)

    date: str
    amount: int
    payee: str
    imported_payee: str
    notes: str
    cleared: bool


class LedgerAccount(BaseModel):
    id: str
    name: str


class ImportResult(BaseModel):
    added: list[str] = Field(default_factory=list)
    updated: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class InitRequest(BaseModel):
    op: Literal["init"] = "init"
    params: LedgerParams


class GetAccountsRequest(BaseModel):
    op: Literal["get_accounts"] = "get_accounts"


class ImportTransactionsRequest(BaseModel):
    op: Literal["import_transactions"] = "import_transactions"
    account_id: str
    transactions: list[LedgerTransaction]


class ShutdownRequest(BaseModel):
    op: Literal["shutdown"] = "shutdown"


WorkerRequest = Annotated[
    InitRequest | GetAccountsRequest | ImportTransactionsRequest | ShutdownRequest,
    Field(discriminator="op"),
]

REQUEST_ADAPTER: TypeAdapter[
    InitRequest | GetAccountsRequest | ImportTransactionsRequest | ShutdownRequest
] = TypeAdapter(WorkerRequest)


class WorkerResponse(BaseModel):
    ok: bool
    result: Any = None
    error: str | None = None


__all__ = [
    "REQUEST_ADAPTER",
    "GetAccountsRequest",
    "ImportResult",
    "ImportTransactionsRequest",
    "InitRequest",
    "LedgerAccount",
    "LedgerParams",
    "LedgerTransaction",
    "ShutdownRequest",
    "WorkerRequest",
    "WorkerResponse",
]
