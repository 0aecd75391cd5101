"""Normalization helpers shared by site matching and departure mapping.

Times from SL arrive in several shapes depending on the endpoint and its age:
epoch milliseconds (as numbers or digit strings), the legacy ``/Date(ms)/``
wrapper, and ISO-8601 strings that usually carry no offset. Everything is
turned into a ``datetime`` in Europe/Stockholm or ``None``.
"""

import math
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Iterable
from zoneinfo import ZoneInfo

from .models import ModeFilter

STOCKHOLM = ZoneInfo("Europe/Stockholm")

SUPPORTED_MODES = frozenset({"BUS", "METRO", "TRAIN", "TRAM", "SHIP"})
FERRY_ALIASES = frozenset({"FERRY", "SHIP/FERRY"})

_LEGACY_DATE = re.compile(r"/Date\((\d+)\)/")
_DIGITS = re.compile(r"^\d+$")
_WHITESPACE = re.compile(r"\s+")


def _in_stockholm(moment: datetime) -> datetime | None:
    """Convert to Stockholm time; instants at the edge of the datetime range give None."""
    try:
        return moment.astimezone(STOCKHOLM)
    except (OverflowError, ValueError):
        return None


def _from_epoch_ms(value: int | float | str) -> datetime | None:
    try:
        millis = float(value)
        if not math.isfinite(millis):
            return None
        return _in_stockholm(datetime.fromtimestamp(millis / 1000, tz=timezone.utc))
    except (OverflowError, OSError, ValueError):
        return None


def _from_date_string(text: str) -> datetime | None:
    iso = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        parsed = datetime.fromisoformat(iso)
    except ValueError:
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError, IndexError):
            return None
    if parsed.tzinfo is None:
        # SL sends local wall-clock times without an offset
        parsed = parsed.replace(tzinfo=STOCKHOLM)
    return _in_stockholm(parsed)


def parse_time_value(value: Any) -> datetime | None:
    """Parse an upstream time value into a Europe/Stockholm datetime.

    Tries, in order: numeric epoch milliseconds, ``/Date(ms)/``, a bare digit
    string, then a generic date string. Returns None when nothing matches or
    the instant cannot be represented.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _from_epoch_ms(value)
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    match = _LEGACY_DATE.search(text)
    if match:
        return _from_epoch_ms(match.group(1))
    if _DIGITS.match(text):
        return _from_epoch_ms(text)
    return _from_date_string(text)


def normalize_text(text: str) -> str:
    """Lowercase, collapse whitespace runs and trim."""
    return _WHITESPACE.sub(" ", text.lower()).strip()


def normalize_mode(mode: str) -> str:
    """Canonicalize a transport mode token.

    Ferry aliases become ``SHIP``; everything else is upper-cased and passed
    through, so unknown modes survive for display.
    """
    upper = mode.upper()
    if upper in FERRY_ALIASES:
        return "SHIP"
    return upper


def normalize_modes_filter(modes: Iterable[str]) -> ModeFilter:
    """Split caller-supplied mode tokens into a filter set and ignored tokens.

    Args:
        modes: Mode tokens as given by the caller (e.g. ["metro", "ferry"])

    Returns:
        ModeFilter with canonical tokens to allow, and the original text of
        every token that is neither supported nor a ferry alias.
    """
    allowed: set[str] = set()
    ignored: list[str] = []
    for mode in modes:
        canonical = normalize_mode(mode)
        if canonical in SUPPORTED_MODES:
            allowed.add(canonical)
        else:
            ignored.append(mode)
    return ModeFilter(modes=frozenset(allowed), ignored=ignored)
