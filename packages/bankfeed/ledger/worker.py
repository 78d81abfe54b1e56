"""Line-oriented JSON channel to an isolated ledger worker process.

The ledger's client library does not run in this interpreter, so it lives in
a worker process spoken to over stdin/stdout (schema in
:mod:`bankfeed.ledger.models`). Both ends are here:

- :class:`WorkerLedgerClient` spawns the configured command and sends one
  request line per call, reading exactly one response line back.
- :func:`serve` is the worker side for backends written in Python. It
  answers every request and stops after ``shutdown`` or end of input.

The worker's stderr is inherited so its logs reach the terminal; stdout is
reserved for responses.
"""

from __future__ import annotations

import subprocess
import sys
from collections.abc import Mapping, Sequence
from os import PathLike
from types import TracebackType
from typing import IO, Any, Protocol

from pydantic import BaseModel, ValidationError

from ..errors import LedgerError
from ..logging_setup import get_logger
from .models import (
    REQUEST_ADAPTER,
    GetAccountsRequest,
    ImportResult,
    ImportTransactionsRequest,
    InitRequest,
    LedgerAccount,
    LedgerParams,
    LedgerTransaction,
    ShutdownRequest,
    WorkerResponse,
)

_logger = get_logger("bankfeed.ledger.worker")


class WorkerLedgerClient:
    """Client end of the channel; use as a context manager.

    Every call blocks until the worker answers. No timeout is applied here;
    callers that need a deadline wrap the whole sync.
    """

    def __init__(
        self,
        command: Sequence[str],
        *,
        cwd: str | PathLike[str] | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        if not command:
            raise ValueError("ledger worker command must not be empty")
        self._command = list(command)
        self._cwd = cwd
        self._env = dict(env) if env is not None else None
        self._proc: subprocess.Popen[str] | None = None

    def start(self) -> None:
        try:
            self._proc = subprocess.Popen(
                self._command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                cwd=self._cwd,
                env=self._env,
            )
        except OSError as e:
            raise LedgerError(f"failed to start ledger worker {self._command[0]!r}: {e}") from e
        _logger.info("ledger:worker_started pid=%d command=%s", self._proc.pid, self._command[0])

    def close(self) -> int | None:
        """Ask the worker to shut down and wait for it; returns its exit code."""

        proc = self._proc
        if proc is None:
            return None
        if proc.poll() is None:
            try:
                self.shutdown()
            except LedgerError as e:
                _logger.warning("ledger:shutdown_failed error=%s", e)
        if proc.stdin is not None and not proc.stdin.closed:
            try:
                proc.stdin.close()
            except BrokenPipeError:
                pass
        code = proc.wait()
        if proc.stdout is not None:
            proc.stdout.close()
        self._proc = None
        _logger.info("ledger:worker_exited code=%d", code)
        return code

    def __enter__(self) -> WorkerLedgerClient:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _call(self, request: BaseModel) -> Any:
        proc = self._proc
        if proc is None or proc.stdin is None or proc.stdout is None:
            raise LedgerError("ledger worker is not running")

        try:
            proc.stdin.write(request.model_dump_json() + "\n")
            proc.stdin.flush()
            line = proc.stdout.readline()
        except OSError as e:
            raise LedgerError(f"ledger worker channel failed: {e}") from e

        if not line:
            raise LedgerError(f"ledger worker exited unexpectedly (code={proc.poll()})")

        try:
            response = WorkerResponse.model_validate_json(line)
        except ValidationError as e:
            raise LedgerError(f"malformed response from ledger worker: {line.strip()!r}") from e

        if not response.ok:
            raise LedgerError(response.error or "ledger worker reported an unknown error")
        return response.result

    def init(self, params: LedgerParams) -> None:
        self._call(InitRequest(params=params))

    def get_accounts(self) -> list[LedgerAccount]:
        result = self._call(GetAccountsRequest())
        try:
            return [LedgerAccount.model_validate(a) for a in result or []]
        except ValidationError as e:
            raise LedgerError(f"malformed account list from ledger worker: {e}") from e

    def import_transactions(
        self, account_id: str, transactions: list[LedgerTransaction]
    ) -> ImportResult:
        result = self._call(
            ImportTransactionsRequest(account_id=account_id, transactions=transactions)
        )
        try:
            return ImportResult.model_validate(result or {})
        except ValidationError as e:
            raise LedgerError(f"malformed import result from ledger worker: {e}") from e

    def shutdown(self) -> None:
        self._call(ShutdownRequest())


# ---------------------------------------------------------------------------
# Worker side
# ---------------------------------------------------------------------------


class LedgerBackend(Protocol):
    def init(self, params: LedgerParams) -> None: ...

    def get_accounts(self) -> list[LedgerAccount]: ...

    def import_transactions(
        self, account_id: str, transactions: list[LedgerTransaction]
    ) -> ImportResult: ...

    def shutdown(self) -> None: ...


def _dispatch(backend: LedgerBackend, request: BaseModel) -> Any:
    if isinstance(request, InitRequest):
        backend.init(request.params)
        return None
    if isinstance(request, GetAccountsRequest):
        return [a.model_dump() for a in backend.get_accounts()]
    if isinstance(request, ImportTransactionsRequest):
        return backend.import_transactions(request.account_id, request.transactions).model_dump()
    if isinstance(request, ShutdownRequest):
        backend.shutdown()
        return None
    raise TypeError(f"unsupported request: {request!r}")


def serve(
    backend: LedgerBackend,
    stdin: IO[str] | None = None,
    stdout: IO[str] | None = None,
) -> int:
    """Answer requests from ``stdin`` until ``shutdown`` or end of input.

    The streams default to the process's current ``sys.stdin``/``sys.stdout``.
    Backend exceptions become ``ok=false`` responses so the client can record
    them per account; the loop keeps serving. Returns the number of requests
    answered.
    """

    stdin = stdin if stdin is not None else sys.stdin
    stdout = stdout if stdout is not None else sys.stdout
    answered = 0
    for raw in stdin:
        line = raw.strip()
        if not line:
            continue

        stop = False
        try:
            request = REQUEST_ADAPTER.validate_json(line)
            stop = isinstance(request, ShutdownRequest)
            response = WorkerResponse(ok=True, result=_dispatch(backend, request))
        except Exception as e:  # noqa: BLE001 - reported to the client
            _logger.warning("ledger:request_failed error=%s", e.__class__.__name__)
            response = WorkerResponse(ok=False, error=f"{e.__class__.__name__}: {e}")

        stdout.write(response.model_dump_json() + "\n")
        stdout.flush()
        answered += 1
        if stop:
            break
    return answered


__all__ = ["LedgerBackend", "WorkerLedgerClient", "serve"]
