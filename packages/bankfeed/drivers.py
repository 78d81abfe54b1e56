"""Driver registry: which adapter parses which source kind.

A driver knows the file patterns its exports use and how to turn one raw
document into transactions plus any derived artifacts (e.g. the CSV
re-serialization of a Citi table). Drivers are pure: they never touch the
filesystem or the network.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import PurePath

from .errors import InvalidFormat
from .ingest.adapters.citi_html import parse_citi_table
from .ingest.adapters.dbs_csv import parse_dbs_csv
from .transaction import Transaction


@dataclass(frozen=True, slots=True)
class RawDocument:
    """One exported document as retrieved from a bank session.

    ``content`` is what the session produced, bytes as downloaded or text.
    Bytes are decoded lazily by :attr:`text` so a file in the wrong encoding
    fails its own parse rather than the whole session.
    """

    name: str
    content: str | bytes

    @property
    def data(self) -> bytes:
        if isinstance(self.content, bytes):
            return self.content
        return self.content.encode("utf-8")

    @property
    def text(self) -> str:
        if isinstance(self.content, str):
            return self.content
        try:
            # utf-8-sig: bank CSV downloads commonly start with a BOM
            return self.content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise InvalidFormat(
                f"{self.name}: not UTF-8 text ({e.reason} at byte {e.start})"
            ) from e


@dataclass(frozen=True, slots=True)
class ParsedDocument:
    transactions: list[Transaction]
    # Extra artifacts to store next to the raw document: file name -> contents.
    artifacts: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class DriverDefinition:
    name: str
    kind: str
    patterns: tuple[str, ...]
    parse: Callable[[RawDocument], ParsedDocument]


def _parse_dbs(document: RawDocument) -> ParsedDocument:
    return ParsedDocument(transactions=parse_dbs_csv(document.text))


def _parse_citi(document: RawDocument) -> ParsedDocument:
    table = parse_citi_table(document.text)
    csv_name = f"{PurePath(document.name).stem}.csv"
    return ParsedDocument(transactions=table.transactions, artifacts={csv_name: table.to_csv()})


DBS = DriverDefinition(name="dbs.com.sg", kind="dbs", patterns=("*.csv",), parse=_parse_dbs)
CITI = DriverDefinition(
    name="citibank.com.sg", kind="citi", patterns=("*.html", "*.htm"), parse=_parse_citi
)

DRIVERS: tuple[DriverDefinition, ...] = (CITI, DBS)


def get_driver(kind: str) -> DriverDefinition | None:
    for driver in DRIVERS:
        if driver.kind == kind:
            return driver
    return None


__all__ = [
    "CITI",
    "DBS",
    "DRIVERS",
    "DriverDefinition",
    "ParsedDocument",
    "RawDocument",
    "get_driver",
]
