"""Batch orchestration: sources -> documents -> transactions -> outputs -> ledger.

One run:

1. For each configured source, open a session through the document provider,
   fetch its raw documents and store them as artifacts. A source that cannot
   be opened or read is recorded and skipped.
2. Parse every document on a thread pool (parsers are pure), keeping input
   order. A document that fails to parse is recorded and contributes nothing.
3. Concatenate in source/document order and write the combined CSV and the
   snapshot (nothing is written for an empty batch).
4. Optionally sync to the ledger.

Failures are collected in the :class:`RunReport`; only programming errors
escape.
"""

from __future__ import annotations

import csv
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from .aggregate import combine, write_outputs
from .artifacts import ArtifactStore, run_directory
from .config import AppConfig
from .drivers import DriverDefinition, ParsedDocument, RawDocument, get_driver
from .errors import BankfeedError, ConfigurationError, LedgerError
from .ledger.adapter import SyncResult, run_ledger_sync
from .logging_setup import get_logger
from .sessions import DirectoryDocumentProvider, DocumentProvider
from .transaction import Transaction

_logger = get_logger("bankfeed.pull")

# Errors that end one document's parse without affecting the batch.
_DOCUMENT_ERRORS = (BankfeedError, ValueError, csv.Error)


@dataclass(frozen=True, slots=True)
class Failure:
    source: str
    document: str | None
    error: str


@dataclass(frozen=True, slots=True)
class DocumentJob:
    source: str
    driver: DriverDefinition
    document: RawDocument


@dataclass(slots=True)
class RunReport:
    run_directory: Path
    transactions: list[Transaction] = field(default_factory=list)
    failures: list[Failure] = field(default_factory=list)
    written: list[Path] = field(default_factory=list)
    sync: SyncResult | None = None
    sync_error: str | None = None

    @property
    def ok(self) -> bool:
        if self.failures or self.sync_error is not None:
            return False
        return self.sync is None or self.sync.ok


def parse_documents(
    jobs: Sequence[DocumentJob], *, concurrency: int
) -> list[ParsedDocument | Exception]:
    """Parse ``jobs`` concurrently; results align with ``jobs``.

    A parse error is returned in place of the result rather than raised.
    """

    if not jobs:
        return []

    def _run(job: DocumentJob) -> ParsedDocument | Exception:
        t0 = time.perf_counter()
        try:
            parsed = job.driver.parse(job.document)
        except _DOCUMENT_ERRORS as e:
            return e
        _logger.info(
            "pull:document_parsed source=%s document=%s transactions=%d latency_ms=%.2f",
            job.source,
            job.document.name,
            len(parsed.transactions),
            (time.perf_counter() - t0) * 1000.0,
        )
        return parsed

    with ThreadPoolExecutor(max_workers=max(1, min(concurrency, len(jobs)))) as pool:
        return list(pool.map(_run, jobs))


def collect_documents(
    config: AppConfig,
    provider: DocumentProvider,
    store: ArtifactStore,
    failures: list[Failure],
) -> list[DocumentJob]:
    jobs: list[DocumentJob] = []
    for source in config.sources:
        driver = get_driver(source.kind)
        if driver is None:
            failures.append(Failure(source.key, None, f"No matching driver for source: {source.key}"))
            continue

        try:
            with provider.open_session(source) as session:
                session.authenticate()
                documents = session.fetch_documents()
        except (BankfeedError, LookupError, OSError, RuntimeError) as e:
            _logger.error("pull:source_failed source=%s error=%s", source.key, e)
            failures.append(Failure(source.key, None, f"Failed processing source: {e}"))
            continue

        source_store = store.for_source(source.key)
        for document in documents:
            # Stored as retrieved; decoding happens in the parse step.
            source_store.write_bytes(document.name, document.data)
            jobs.append(DocumentJob(source.key, driver, document))
    return jobs


def run_pull(
    config: AppConfig,
    provider: DocumentProvider | None = None,
    *,
    sync: bool = False,
    now: datetime | None = None,
) -> RunReport:
    provider = provider or DirectoryDocumentProvider(config)
    report = RunReport(run_directory=run_directory(config.output_path, now))
    store = ArtifactStore(report.run_directory)

    jobs = collect_documents(config, provider, store, report.failures)
    outcomes = parse_documents(jobs, concurrency=config.concurrency)

    parsed_outputs: list[list[Transaction]] = []
    for job, outcome in zip(jobs, outcomes, strict=True):
        if isinstance(outcome, Exception):
            _logger.error(
                "pull:document_failed source=%s document=%s error=%s",
                job.source,
                job.document.name,
                outcome,
            )
            report.failures.append(Failure(job.source, job.document.name, str(outcome)))
            continue
        source_store = store.for_source(job.source)
        for name, contents in outcome.artifacts.items():
            source_store.write_text(name, contents)
        parsed_outputs.append(outcome.transactions)

    report.transactions = combine(parsed_outputs)
    report.written = write_outputs(store, report.transactions)

    if sync:
        _sync(config, report)
    return report


def _sync(config: AppConfig, report: RunReport) -> None:
    if config.ledger is None:
        report.sync_error = "no [ledger] section configured"
        return
    if not report.transactions:
        _logger.info("pull:sync_skipped reason=no_transactions")
        return
    try:
        report.sync = run_ledger_sync(config.ledger, report.transactions)
    except ConfigurationError as e:
        report.sync_error = str(e)
    except LedgerError as e:
        report.sync_error = f"sync failed: {e}"


__all__ = [
    "DocumentJob",
    "Failure",
    "RunReport",
    "collect_documents",
    "parse_documents",
    "run_pull",
]
