"""Bank sessions as explicit state machines.

Retrieving exports is a stateful workflow (log in, confirm a second factor,
navigate, download, sign off). It is modelled as a :class:`BankSession` whose
state only moves along :data:`TRANSITIONS`, so parsing code never has to know
how a document was obtained. Browser-driven sessions live outside this
package and plug in through :class:`DocumentProvider`; the built-in
:class:`DirectoryDocumentProvider` reads exports that were downloaded into an
inbox directory.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from types import TracebackType
from typing import Protocol

from .config import AppConfig, SourceConfig
from .drivers import RawDocument, get_driver
from .logging_setup import get_logger

_logger = get_logger("bankfeed.sessions")


class SessionState(StrEnum):
    UNAUTHENTICATED = "unauthenticated"
    CREDENTIALS_SUBMITTED = "credentials_submitted"
    TWO_FACTOR_PENDING = "two_factor_pending"
    AUTHENTICATED = "authenticated"
    DATA_AVAILABLE = "data_available"
    SIGNED_OFF = "signed_off"


TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.UNAUTHENTICATED: frozenset(
        {
            SessionState.CREDENTIALS_SUBMITTED,
            # Pre-authenticated sources (local exports, persistent profiles)
            SessionState.AUTHENTICATED,
            SessionState.SIGNED_OFF,
        }
    ),
    SessionState.CREDENTIALS_SUBMITTED: frozenset(
        {SessionState.TWO_FACTOR_PENDING, SessionState.AUTHENTICATED, SessionState.SIGNED_OFF}
    ),
    SessionState.TWO_FACTOR_PENDING: frozenset(
        {SessionState.AUTHENTICATED, SessionState.SIGNED_OFF}
    ),
    SessionState.AUTHENTICATED: frozenset(
        {SessionState.DATA_AVAILABLE, SessionState.SIGNED_OFF}
    ),
    SessionState.DATA_AVAILABLE: frozenset({SessionState.SIGNED_OFF}),
    SessionState.SIGNED_OFF: frozenset(),
}


class BankSession:
    """Base session. Subclasses implement :meth:`authenticate` and
    :meth:`_collect`; the base class enforces the state order."""

    def __init__(self, source_key: str) -> None:
        self.source_key = source_key
        self._state = SessionState.UNAUTHENTICATED

    @property
    def state(self) -> SessionState:
        return self._state

    def transition(self, new: SessionState) -> None:
        if new not in TRANSITIONS[self._state]:
            raise RuntimeError(
                f"session {self.source_key!r}: illegal transition {self._state} -> {new}"
            )
        _logger.debug(
            "sessions:transition source=%s from=%s to=%s", self.source_key, self._state, new
        )
        self._state = new

    def authenticate(self) -> None:
        self.transition(SessionState.AUTHENTICATED)

    def fetch_documents(self) -> list[RawDocument]:
        if self._state is not SessionState.AUTHENTICATED:
            raise RuntimeError(
                f"session {self.source_key!r}: cannot fetch documents in state {self._state}"
            )
        documents = self._collect()
        self.transition(SessionState.DATA_AVAILABLE)
        return documents

    def sign_off(self) -> None:
        if self._state is not SessionState.SIGNED_OFF:
            self.transition(SessionState.SIGNED_OFF)

    def _collect(self) -> list[RawDocument]:
        raise NotImplementedError

    def __enter__(self) -> BankSession:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.sign_off()


class DocumentProvider(Protocol):
    def open_session(self, source: SourceConfig) -> BankSession: ...


class DirectorySession(BankSession):
    """Session over an inbox of already-downloaded exports."""

    def __init__(self, source_key: str, inbox: Path, patterns: tuple[str, ...]) -> None:
        super().__init__(source_key)
        self.inbox = inbox
        self.patterns = patterns

    def _collect(self) -> list[RawDocument]:
        if not self.inbox.is_dir():
            raise FileNotFoundError(f"inbox directory not found: {self.inbox}")

        paths = sorted({p for pattern in self.patterns for p in self.inbox.glob(pattern)})
        documents = [
            RawDocument(name=p.name, content=p.read_bytes()) for p in paths if p.is_file()
        ]
        _logger.info(
            "sessions:inbox_read source=%s inbox=%s documents=%d",
            self.source_key,
            self.inbox,
            len(documents),
        )
        return documents


class DirectoryDocumentProvider:
    def __init__(self, config: AppConfig) -> None:
        self._config = config

    def open_session(self, source: SourceConfig) -> BankSession:
        driver = get_driver(source.kind)
        if driver is None:
            raise LookupError(f"no driver for source kind {source.kind!r}")
        return DirectorySession(source.key, self._config.inbox_for(source), driver.patterns)


__all__ = [
    "TRANSITIONS",
    "BankSession",
    "DirectoryDocumentProvider",
    "DirectorySession",
    "DocumentProvider",
    "SessionState",
]
