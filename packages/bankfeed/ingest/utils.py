"""Ingest helpers shared by the bank adapters.

- ``parse_float_safely``: total amount parsing; malformed input yields ``0.0``.
- ``collapse_whitespace``: normalize free text for descriptions.
- ``to_civil_date``: reduce a timestamp to the bank's civil date.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime
from zoneinfo import ZoneInfo

# Banks in scope are Singapore banks; exported timestamps are read in its
# civil time before the date is taken.
DEFAULT_TIMEZONE = "Asia/Singapore"

# Longest leading decimal literal: optional sign, digits with an optional
# fraction (or a bare fraction), optional exponent.
_FLOAT_PREFIX_RE = re.compile(r"\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_WS_RE = re.compile(r"\s+")


def parse_float_safely(text: str | None, remove_commas: bool = False) -> float:
    """Parse the numeric prefix of ``text``; return ``0.0`` when there is none.

    Exports leave the inapplicable amount column blank (or fill it with
    placeholder text), so this never raises: ``""``, ``"n/a"``, ``None`` and
    non-finite values such as ``"1e999"`` all parse to ``0.0``. Trailing
    garbage after a number is ignored (``"12.50 CR"`` -> ``12.5``).

    With ``remove_commas`` every ``,`` is dropped first so thousands
    separators do not truncate the value (``"1,234.50"`` -> ``1234.5``).
    """

    if not text:
        return 0.0
    if remove_commas:
        text = text.replace(",", "")
    m = _FLOAT_PREFIX_RE.match(text)
    if m is None:
        return 0.0
    value = float(m.group(0))
    return value if math.isfinite(value) else 0.0


def collapse_whitespace(text: str) -> str:
    return _WS_RE.sub(" ", text).strip()


def to_civil_date(value: datetime, tz: str = DEFAULT_TIMEZONE) -> date:
    """Return the calendar date of ``value`` in ``tz``.

    Naive datetimes are already civil time in ``tz``; aware ones are converted.
    """

    zone = ZoneInfo(tz)
    if value.tzinfo is None:
        value = value.replace(tzinfo=zone)
    return value.astimezone(zone).date()


__all__ = [
    "DEFAULT_TIMEZONE",
    "collapse_whitespace",
    "parse_float_safely",
    "to_civil_date",
]
