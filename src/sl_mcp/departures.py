"""Departure fetching, normalization and display formatting.

SL departure records are loosely typed and the same value shows up under
different field names depending on the API generation. Each logical field is
read through an ordered list of paths; the first one present wins.
"""

from typing import Any, Iterable, Sequence

from .models import Departure, ModeFilter
from .normalizers import normalize_mode, parse_time_value
from .sl_client import SLClient

DEFAULT_LIMIT = 8

FieldPath = tuple[str, ...]

EXPECTED_TIME_FIELDS: Sequence[FieldPath] = (
    ("expectedDepartureTime",),
    ("expected",),
    ("realtimeDepartureTime",),
    ("realtime",),
    ("estimatedDepartureTime",),
)
SCHEDULED_TIME_FIELDS: Sequence[FieldPath] = (
    ("scheduledDepartureTime",),
    ("plannedDepartureTime",),
    ("scheduled",),
    ("time",),
)
MODE_FIELDS: Sequence[FieldPath] = (("transportMode",), ("mode",), ("line", "transportMode"))
LINE_FIELDS: Sequence[FieldPath] = (
    ("line", "designation"),
    ("line", "name"),
    ("line",),
    ("lineNumber",),
)
DESTINATION_FIELDS: Sequence[FieldPath] = (("destination",), ("direction",), ("destinationName",))
PLATFORM_FIELDS: Sequence[FieldPath] = (("stopPoint", "designation"), ("platform",))


def _dig(raw: dict, path: FieldPath) -> Any:
    value: Any = raw
    for key in path:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def _first_present(raw: dict, paths: Sequence[FieldPath]) -> Any:
    """Return the first value that is present (not None)."""
    for path in paths:
        value = _dig(raw, path)
        if value is not None:
            return value
    return None


def _first_text(raw: dict, paths: Sequence[FieldPath]) -> str:
    """Return the first non-empty scalar value as text, or ""."""
    for path in paths:
        value = _dig(raw, path)
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            continue
        text = str(value)
        if text:
            return text
    return ""


def map_departure(raw: dict) -> Departure | None:
    """Map one raw SL record to a Departure, or None if it has no usable time."""
    expected = parse_time_value(_first_present(raw, EXPECTED_TIME_FIELDS))
    scheduled = parse_time_value(_first_present(raw, SCHEDULED_TIME_FIELDS))
    when = expected or scheduled
    if when is None:
        return None

    timing = "realtime" if expected and scheduled and expected != scheduled else "scheduled"
    return Departure(
        time=when.strftime("%H:%M"),
        mode=_first_text(raw, MODE_FIELDS),
        line=_first_text(raw, LINE_FIELDS),
        destination=_first_text(raw, DESTINATION_FIELDS),
        platform=_first_text(raw, PLATFORM_FIELDS),
        timing=timing,
    )


def parse_departures(data: Any) -> list[Departure]:
    """Map a departures payload (bare list or ``{"departures": [...]}``)."""
    if isinstance(data, dict):
        data = data.get("departures")
    if not isinstance(data, list):
        return []

    departures = []
    for raw in data:
        if not isinstance(raw, dict):
            continue
        departure = map_departure(raw)
        if departure is not None:
            departures.append(departure)
    return departures


async def fetch_departures(client: SLClient, site_id: int) -> list[Departure]:
    """Fetch and normalize departures for a site.

    Raises:
        SLAPIError: If SL answers with a non-success status.
    """
    return parse_departures(await client.get_departures(site_id))


def filter_departures(
    departures: Iterable[Departure],
    mode_filter: ModeFilter,
    direction_contains: str | None = None,
    limit: int = DEFAULT_LIMIT,
) -> list[Departure]:
    """Apply the mode filter, then the destination filter, then the limit."""
    needle = direction_contains.lower() if direction_contains else ""
    result = []
    for departure in departures:
        if len(result) >= limit:
            break
        if not mode_filter.allows(normalize_mode(departure.mode)):
            continue
        if needle and needle not in departure.destination.lower():
            continue
        result.append(departure)
    return result


def format_departure_line(departure: Departure) -> str:
    """Format a departure for display."""
    mode = normalize_mode(departure.mode or "UNKNOWN")
    line = departure.line or "-"
    destination = departure.destination or "Unknown destination"
    platform = f" (platform {departure.platform})" if departure.platform else ""
    return f"{departure.time}  {mode}  {line} → {destination}{platform} [{departure.timing}]"
