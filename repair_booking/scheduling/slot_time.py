"""Projection of recurring slot times onto calendar dates.

A slot only knows its time of day. Older records carried that time as a full
timestamp pinned to an arbitrary reference year (1970, later 2000); reading
those through local time shifts the result whenever the zone's UTC offset
differed in that year. Everything here works on UTC hour/minute components,
so the projected appointment is the same whatever year the slot was stored
under.
"""

from datetime import date, datetime, time, timedelta, timezone

MINUTES_PER_DAY = 24 * 60

SlotTimeValue = int | time | datetime


def to_minute_of_day(value: SlotTimeValue) -> int:
    """Return minutes since midnight for a stored slot time.

    Accepts a minute count, a `time`, or a legacy epoch-anchored `datetime`.
    Aware datetimes are converted to UTC; naive ones are read as UTC.
    """
    if isinstance(value, bool):
        raise TypeError("Slot time cannot be a boolean.")

    if isinstance(value, int):
        minute = value
    elif isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        minute = value.hour * 60 + value.minute
    elif isinstance(value, time):
        if value.tzinfo is not None:
            offset = value.utcoffset() or timedelta(0)
            shifted = datetime.combine(date(2000, 1, 1), value.replace(tzinfo=None)) - offset
            minute = shifted.hour * 60 + shifted.minute
        else:
            minute = value.hour * 60 + value.minute
    else:
        raise TypeError(f"Unsupported slot time value: {value!r}")

    if not 0 <= minute < MINUTES_PER_DAY:
        raise ValueError(f"Minute of day out of range: {minute}")
    return minute


def project_onto_date(
    start: SlotTimeValue,
    end: SlotTimeValue | None,
    target_date: date,
) -> tuple[datetime, datetime | None]:
    """Anchor a slot's start/end onto `target_date` as UTC instants."""
    start_minute = to_minute_of_day(start)
    start_at = _at_minute(target_date, start_minute)

    if end is None:
        return start_at, None

    end_minute = to_minute_of_day(end)
    end_at = _at_minute(target_date, end_minute)
    if end_minute <= start_minute:
        # Window runs past midnight.
        end_at += timedelta(days=1)
    return start_at, end_at


def format_minute_of_day(minute: int) -> str:
    hours, minutes = divmod(to_minute_of_day(minute), 60)
    return f"{hours:02d}:{minutes:02d}"


def parse_time_of_day(raw: str) -> int:
    """Parse "HH:MM" (24h) into minutes since midnight."""
    normalized = (raw or "").strip()
    try:
        parsed = datetime.strptime(normalized, "%H:%M").time()
    except ValueError:
        raise ValueError(f"Invalid time of day: {raw!r}") from None
    return parsed.hour * 60 + parsed.minute


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as SQLite returns them) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _at_minute(target_date: date, minute: int) -> datetime:
    hours, minutes = divmod(minute, 60)
    return datetime(
        target_date.year,
        target_date.month,
        target_date.day,
        hours,
        minutes,
        tzinfo=timezone.utc,
    )
