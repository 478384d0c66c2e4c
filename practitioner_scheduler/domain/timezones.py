"""
Timezone conversion and local-time classification.

Every conversion between UTC instants and civil (wall clock) time goes through
this module. Other components hand it an instant plus an IANA identifier and
never compute offsets or local hours themselves.
"""

import re
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, List, Mapping

import pendulum
from pendulum import DateTime

from .exceptions import InvalidTimestamp, InvalidTimeZone

UTC = "UTC"

INSTANT_FORMAT = "YYYY-MM-DDTHH:mm:ss.SSS"
CIVIL_FORMAT = "YYYY-MM-DD HH:mm:ss"
DISPLAY_FORMAT = "dddd D MMMM YYYY [at] h:mm A"

# Day names and display strings are always English, whatever locale the
# process has set on pendulum.
DISPLAY_LOCALE = "en"

MORNING = "morning"
AFTERNOON = "afternoon"
EVENING = "evening"
TIME_OF_DAY_ORDER = (MORNING, AFTERNOON, EVENING)

# A calendar date followed by a time of day. Bare times, week dates and
# ordinal dates do not identify a civil date-time.
CIVIL_DATETIME_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}")

TIMEZONE_ABBREVIATIONS: Mapping[str, str] = MappingProxyType({
    # Eastern, observes DST (UTC+10/+11)
    "Australia/Melbourne": "AEST/AEDT",
    "Australia/Sydney": "AEST/AEDT",
    "Australia/Hobart": "AEST/AEDT",
    "Australia/ACT": "AEST/AEDT",
    "Australia/Canberra": "AEST/AEDT",
    "Australia/Currie": "AEST/AEDT",
    "Australia/NSW": "AEST/AEDT",
    "Australia/Tasmania": "AEST/AEDT",
    "Australia/Victoria": "AEST/AEDT",
    # Eastern, no DST (UTC+10)
    "Australia/Brisbane": "AEST",
    "Australia/Lindeman": "AEST",
    "Australia/Queensland": "AEST",
    # Central, observes DST (UTC+9:30/+10:30)
    "Australia/Adelaide": "ACST/ACDT",
    "Australia/Broken_Hill": "ACST/ACDT",
    "Australia/South": "ACST/ACDT",
    "Australia/Yancowinna": "ACST/ACDT",
    # Central, no DST (UTC+9:30)
    "Australia/Darwin": "ACST",
    "Australia/North": "ACST",
    # Western (UTC+8)
    "Australia/Perth": "AWST",
    "Australia/West": "AWST",
    "Australia/Eucla": "ACWST",
    "Australia/Lord_Howe": "LHST/LHDT",
    "Australia/LHI": "LHST/LHDT",
})


def ensure_timezone(tz: str) -> str:
    """
    Validate an IANA timezone identifier.

    Returns the identifier unchanged so callers can use it inline.

    Raises:
        InvalidTimeZone: If the identifier is empty or unknown
    """
    if not isinstance(tz, str) or not tz.strip():
        raise InvalidTimeZone(f"Timezone must be a non-empty IANA identifier, got {tz!r}")

    try:
        pendulum.timezone(tz)
    except (ValueError, LookupError, OSError) as exc:
        # Region directories such as "Australia" surface as OSError
        raise InvalidTimeZone(f"Unknown timezone: {tz!r}") from exc

    return tz


def parse_instant(value: Any) -> DateTime:
    """
    Parse a UTC timestamp into a millisecond-resolution instant.

    Strings without an explicit offset are read as UTC. ``datetime`` objects
    are accepted as well; naive ones are assumed to be UTC.

    Raises:
        InvalidTimestamp: If the value cannot be interpreted as a date-time
    """
    if isinstance(value, datetime):
        dt = pendulum.instance(value, tz=UTC)
    elif isinstance(value, str) and value.strip():
        dt = _parse_datetime(value.strip(), UTC)
    else:
        raise InvalidTimestamp(f"Could not parse timestamp: {value!r}")

    utc = dt.in_timezone(UTC)
    return utc.set(microsecond=(utc.microsecond // 1000) * 1000)


def format_instant(instant: DateTime) -> str:
    """Render an instant in canonical form, e.g. ``2025-08-26T00:40:00.000Z``."""
    return instant.in_timezone(UTC).format(INSTANT_FORMAT) + "Z"


def to_utc(local_timestamp: Any, tz: str) -> DateTime:
    """
    Interpret a civil timestamp as wall clock time in ``tz``.

    The offset is resolved from the zone's rules for that particular date, so
    the same wall clock time maps to different instants either side of a DST
    change. A timestamp that already carries an explicit offset identifies an
    instant on its own and is only normalised to UTC.

    Raises:
        InvalidTimeZone: If ``tz`` is not a recognised zone
        InvalidTimestamp: If the timestamp cannot be parsed
    """
    ensure_timezone(tz)

    if isinstance(local_timestamp, datetime):
        if local_timestamp.tzinfo is None:
            local = pendulum.instance(local_timestamp, tz=tz)
        else:
            local = pendulum.instance(local_timestamp)
    elif isinstance(local_timestamp, str) and local_timestamp.strip():
        local = _parse_datetime(local_timestamp.strip(), tz)
    else:
        raise InvalidTimestamp(f"Could not parse civil timestamp: {local_timestamp!r}")

    return parse_instant(local)


def to_local(instant: Any, tz: str) -> DateTime:
    """Convert an instant to a ``DateTime`` carrying wall clock fields in ``tz``."""
    ensure_timezone(tz)
    return parse_instant(instant).in_timezone(tz)


def to_local_string(instant: Any, tz: str) -> str:
    """Convert an instant to a civil timestamp string, e.g. ``2025-08-26 10:40:00``."""
    return to_local(instant, tz).format(CIVIL_FORMAT)


def utc_offset_minutes(tz: str, instant: Any) -> float:
    """Return the offset of ``tz`` from UTC at ``instant``, in minutes."""
    local = to_local(instant, tz)
    return local.utcoffset().total_seconds() / 60


def day_of_week(instant: Any, tz: str) -> str:
    """Return the full English weekday name of ``instant`` in ``tz``."""
    return to_local(instant, tz).format("dddd", locale=DISPLAY_LOCALE)


def _bucket_for_hour(hour: int) -> str:
    if hour < 12:
        return MORNING
    if hour < 17:
        return AFTERNOON
    return EVENING


def time_of_day(instant: Any, tz: str) -> str:
    """Classify ``instant`` as morning, afternoon or evening in ``tz``."""
    return _bucket_for_hour(to_local(instant, tz).hour)


def time_of_day_range(start: Any, end: Any, tz: str) -> str:
    """
    Describe the local time-of-day buckets an interval touches.

    Returns a single bucket name when both ends fall in the same bucket,
    otherwise the buckets spanned joined by hyphens, e.g.
    ``morning-afternoon-evening``.

    When the local end hour is smaller than the start hour the interval
    crosses local midnight; only the start bucket is returned in that case.
    """
    start_hour = to_local(start, tz).hour
    end_hour = to_local(end, tz).hour

    start_bucket = _bucket_for_hour(start_hour)
    end_bucket = _bucket_for_hour(end_hour)

    if start_bucket == end_bucket:
        return start_bucket

    if end_hour < start_hour:
        return start_bucket

    first = TIME_OF_DAY_ORDER.index(start_bucket)
    last = TIME_OF_DAY_ORDER.index(end_bucket)
    return "-".join(TIME_OF_DAY_ORDER[first:last + 1])


def timezone_abbreviation(tz: Any) -> str:
    """
    Short display code for a timezone, e.g. ``AEST/AEDT``.

    Unknown identifiers fall back to their last path segment
    (``America/New_York`` -> ``New_York``). Never raises.
    """
    if not tz or not isinstance(tz, str):
        return ""

    known = TIMEZONE_ABBREVIATIONS.get(tz)
    if known:
        return known

    return tz.rstrip("/").rsplit("/", 1)[-1] or tz


def format_local_time(instant: Any, tz: str) -> str:
    """
    Human-readable local time with the zone abbreviation.

    Example: ``Tuesday 26 August 2025 at 2:00 PM AEST/AEDT``
    """
    local = to_local(instant, tz)
    formatted = local.format(DISPLAY_FORMAT, locale=DISPLAY_LOCALE)
    return f"{formatted} {timezone_abbreviation(tz)}"


def localize_availability(availability: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Convert a calculated availability document to the practitioner's local time.

    This is the view handed to the suggestion generator: each free slot gets
    civil start/end strings plus its weekday and time-of-day range. All other
    top-level fields are preserved.
    """
    tz = ensure_timezone(availability.get("practitionerTimezone"))

    localized_slots: List[Dict[str, Any]] = []
    for slot in availability.get("freeTimeSlots") or []:
        start = parse_instant(slot["startDateTime"])
        end = parse_instant(slot["endDateTime"])
        localized_slots.append({
            "startDateTime": to_local_string(start, tz),
            "endDateTime": to_local_string(end, tz),
            "duration": slot.get("duration"),
            "locationId": slot.get("locationId"),
            "dayOfWeek": day_of_week(start, tz),
            "timeOfDay": time_of_day_range(start, end, tz),
        })

    localized = dict(availability)
    localized["note"] = (
        f"All times are in {tz} local time. When suggesting appointments, "
        f"provide times in this local timezone."
    )
    localized["freeTimeSlots"] = localized_slots
    return localized


def candidates_to_utc(candidates: List[Any], tz: str) -> List[Any]:
    """
    Convert candidate appointments from civil time in ``tz`` to UTC instants.

    Entries that are not records, and candidates whose times cannot be
    parsed, are passed through untouched so the conflict checker can report
    them.
    """
    ensure_timezone(tz)

    converted: List[Any] = []
    for candidate in candidates:
        if not isinstance(candidate, Mapping):
            converted.append(candidate)
            continue

        try:
            start = format_instant(to_utc(candidate.get("start"), tz))
            end = format_instant(to_utc(candidate.get("end"), tz))
        except InvalidTimestamp:
            converted.append(dict(candidate))
            continue

        converted.append({**candidate, "start": start, "end": end})

    return converted


def _parse_datetime(text: str, tz: str) -> DateTime:
    if not CIVIL_DATETIME_PATTERN.match(text):
        raise InvalidTimestamp(f"Could not parse datetime: {text!r}")

    try:
        parsed = pendulum.parse(text, tz=tz, exact=True)
    except (ValueError, OverflowError) as exc:
        raise InvalidTimestamp(f"Could not parse datetime: {text!r}") from exc

    if isinstance(parsed, DateTime):
        return parsed

    raise InvalidTimestamp(f"Could not parse datetime: {text!r}")
