"""Slot time projection must not depend on the year a slot was stored under."""

from datetime import date, datetime, time, timedelta, timezone

import pytest

from repair_booking.scheduling.slot_time import (
    as_utc,
    format_minute_of_day,
    parse_time_of_day,
    project_onto_date,
    to_minute_of_day,
)

TARGET = date(2031, 3, 4)

# A zone that sat at UTC+7:30 historically and UTC+8 later.
OLD_SINGAPORE = timezone(timedelta(hours=7, minutes=30))
NEW_SINGAPORE = timezone(timedelta(hours=8))


@pytest.mark.parametrize(
    "stored",
    [
        9 * 60 + 30,
        time(9, 30),
        datetime(1970, 1, 1, 9, 30),
        datetime(2000, 1, 1, 9, 30),
        datetime(1970, 1, 1, 9, 30, tzinfo=timezone.utc),
        datetime(2000, 1, 1, 9, 30, tzinfo=timezone.utc),
        datetime(1970, 1, 1, 17, 0, tzinfo=OLD_SINGAPORE),
        datetime(2000, 1, 1, 17, 30, tzinfo=NEW_SINGAPORE),
    ],
)
def test_projection_ignores_storage_epoch(stored):
    start_at, end_at = project_onto_date(stored, None, TARGET)

    assert start_at == datetime(2031, 3, 4, 9, 30, tzinfo=timezone.utc)
    assert end_at is None


def test_same_minute_for_every_storage_year():
    minutes = {
        to_minute_of_day(datetime(year, 1, 1, 14, 45, tzinfo=timezone.utc))
        for year in (1900, 1970, 1982, 2000, 2024)
    }
    assert minutes == {14 * 60 + 45}


def test_end_is_projected_on_same_date():
    start_at, end_at = project_onto_date(8 * 60, 9 * 60 + 15, TARGET)

    assert start_at.date() == TARGET
    assert end_at == datetime(2031, 3, 4, 9, 15, tzinfo=timezone.utc)


def test_window_past_midnight_rolls_end_to_next_day():
    start_at, end_at = project_onto_date(23 * 60, 30, TARGET)

    assert start_at == datetime(2031, 3, 4, 23, 0, tzinfo=timezone.utc)
    assert end_at == datetime(2031, 3, 5, 0, 30, tzinfo=timezone.utc)


def test_aware_time_of_day_is_read_in_utc():
    assert to_minute_of_day(time(10, 0, tzinfo=NEW_SINGAPORE)) == 2 * 60


@pytest.mark.parametrize("bad", [-1, 24 * 60, 10_000])
def test_out_of_range_minutes_are_rejected(bad):
    with pytest.raises(ValueError):
        to_minute_of_day(bad)


def test_unsupported_value_is_rejected():
    with pytest.raises(TypeError):
        to_minute_of_day("09:00")
    with pytest.raises(TypeError):
        to_minute_of_day(True)


def test_parse_and_format_time_of_day():
    assert parse_time_of_day("07:05") == 7 * 60 + 5
    assert parse_time_of_day(" 18:30 ") == 18 * 60 + 30
    assert format_minute_of_day(7 * 60 + 5) == "07:05"

    with pytest.raises(ValueError):
        parse_time_of_day("25:00")
    with pytest.raises(ValueError):
        parse_time_of_day("9am")


def test_as_utc_treats_naive_values_as_utc():
    naive = datetime(2030, 1, 1, 9, 0)
    assert as_utc(naive) == datetime(2030, 1, 1, 9, 0, tzinfo=timezone.utc)
    assert as_utc(datetime(2030, 1, 1, 17, 0, tzinfo=NEW_SINGAPORE)).hour == 9
