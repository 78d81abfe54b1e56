"""Configuration loading for ``bankfeed``.

The configuration is a TOML file validated into pydantic models. Sources are
a tagged union on ``kind`` so each known bank carries exactly the fields it
needs and unknown kinds are rejected up front::

    output_path = "output"
    concurrency = 4

    [[sources]]
    kind = "dbs"
    key = "dbs"

    [[sources]]
    kind = "citi"
    key = "citi-card"
    inbox = "~/Downloads/citi"

    [ledger]
    data_dir = "state/ledger"
    server_url = "http://localhost:5006"
    sync_id = "0b1c..."
    command = ["npx", "tsx", "ledger-worker.ts"]

    [ledger.account_mapping]
    "Citi 1234" = "Citi Rewards"

Environment variables (a local ``.env`` is loaded by the CLI first) override
selected values: ``BANKFEED_OUTPUT_PATH``, ``BANKFEED_LEDGER_PASSWORD`` and
``BANKFEED_LEDGER_SERVER_URL``. Relative paths resolve against the directory
of the configuration file.
"""

from __future__ import annotations

import os
import tomllib
from os import PathLike
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .artifacts import safe_name
from .errors import ConfigurationError
from .ledger.models import LedgerParams


class _SourceBase(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    key: str
    inbox: Path | None = None

    @field_validator("key")
    @classmethod
    def _key_is_safe(cls, v: str) -> str:
        if not v:
            raise ValueError("source key must be non-empty")
        return safe_name(v)


class DbsSource(_SourceBase):
    kind: Literal["dbs"]


class CitiSource(_SourceBase):
    kind: Literal["citi"]


SourceConfig = Annotated[DbsSource | CitiSource, Field(discriminator="kind")]


class LedgerConfig(BaseModel):
    """Connection parameters and account mapping for the ledger worker.

    ``account_mapping`` keeps file order: source account name -> ledger
    account name. Only mapped accounts are ever submitted.
    """

    model_config = ConfigDict(extra="forbid")

    data_dir: Path
    server_url: str
    password: str = ""
    sync_id: str
    command: list[str] = Field(min_length=1)
    account_mapping: dict[str, str] = Field(default_factory=dict)

    def params(self) -> LedgerParams:
        return LedgerParams(
            data_dir=str(self.data_dir),
            server_url=self.server_url,
            password=self.password,
            sync_id=self.sync_id,
        )


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    output_path: Path = Path("output")
    inbox_root: Path = Path("inbox")
    concurrency: int = Field(default=4, ge=1)
    sources: list[SourceConfig] = Field(default_factory=list)
    ledger: LedgerConfig | None = None

    @model_validator(mode="after")
    def _unique_source_keys(self) -> AppConfig:
        seen: set[str] = set()
        for source in self.sources:
            if source.key in seen:
                raise ValueError(f"duplicate source key: {source.key!r}")
            seen.add(source.key)
        return self

    def inbox_for(self, source: DbsSource | CitiSource) -> Path:
        return source.inbox or (self.inbox_root / source.key)


def _apply_env_overrides(raw: dict[str, Any]) -> None:
    output_path = os.getenv("BANKFEED_OUTPUT_PATH")
    if output_path:
        raw["output_path"] = output_path

    ledger = raw.get("ledger")
    if isinstance(ledger, dict):
        password = os.getenv("BANKFEED_LEDGER_PASSWORD")
        if password:
            ledger["password"] = password
        server_url = os.getenv("BANKFEED_LEDGER_SERVER_URL")
        if server_url:
            ledger["server_url"] = server_url


def _resolve(base: Path, p: Path) -> Path:
    p = p.expanduser()
    return p if p.is_absolute() else (base / p).resolve()


def load_config(path: str | PathLike[str]) -> AppConfig:
    """Read, override from the environment, validate and resolve a config file.

    Raises :class:`ConfigurationError` for unreadable files, TOML syntax
    errors and schema violations.
    """

    p = Path(path)
    try:
        with p.open("rb") as f:
            raw = tomllib.load(f)
    except OSError as e:
        raise ConfigurationError(f"cannot read configuration {p}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"invalid TOML in {p}: {e}") from e

    _apply_env_overrides(raw)

    try:
        config = AppConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"invalid configuration {p}:\n{e}") from e

    base = p.resolve().parent
    config.output_path = _resolve(base, config.output_path)
    config.inbox_root = _resolve(base, config.inbox_root)
    for source in config.sources:
        if source.inbox is not None:
            source.inbox = _resolve(base, source.inbox)
    if config.ledger is not None:
        config.ledger.data_dir = _resolve(base, config.ledger.data_dir)
    return config


__all__ = [
    "AppConfig",
    "CitiSource",
    "DbsSource",
    "LedgerConfig",
    "SourceConfig",
    "load_config",
]
