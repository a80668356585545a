from datetime import date, datetime

import pytest

from conftest import UTC, at, make_log
from models.time_logs import LogType, OvertimeStatus
from utils.time_utils import (calculate_internship_progress, calculate_time_worked, compute_hours,
                              local_date, local_day_bounds, parse_timestamp, truncate_to_2_decimals,
                              truncate_to_minute)


@pytest.mark.parametrize("value, expected", [
    (1.999, "1.99"),
    (2, "2.00"),
    (0.1 + 0.2, "0.30"),
    (8.5125, "8.51"),
    (0, "0.00"),
])
def test_truncate_to_2_decimals_never_rounds(value, expected):
    assert truncate_to_2_decimals(value) == expected


def test_compute_hours_truncates_instead_of_rounding():
    # 1h 59m 59s would round to 2.00
    assert compute_hours(at(1, 9), at(1, 10, 59, 59)) == 1.99
    assert compute_hours("2024-01-01T09:00:00Z", "2024-01-01T10:59:24Z") == 1.99


def test_compute_hours_with_break():
    assert compute_hours(at(1, 9), at(1, 18), break_minutes=60) == 8.0


def test_compute_hours_is_zero_when_out_is_not_after_in():
    assert compute_hours(at(1, 18), at(1, 9)) == 0.0
    assert compute_hours(at(1, 9), at(1, 9)) == 0.0


@pytest.mark.parametrize("time_in, time_out", [
    ("not a date", "2024-01-01T10:00:00Z"),
    ("2024-01-01T09:00:00Z", None),
    (None, None),
    (12345, "2024-01-01T10:00:00Z"),
])
def test_compute_hours_degrades_on_malformed_input(time_in, time_out):
    assert compute_hours(time_in, time_out) == 0.0


def test_calculate_time_worked():
    result = calculate_time_worked(at(1, 9), at(1, 17, 30, 45))
    assert result["duration"] == "8h 30m"
    assert result["decimal"] == "8.51"
    assert result["hours_worked"] == pytest.approx(8.5125)


def test_calculate_time_worked_open_span():
    assert calculate_time_worked(at(1, 9), None) == {"duration": "0h 00m", "hours_worked": 0.0, "decimal": "0.00"}


def test_parse_timestamp_treats_naive_as_utc():
    parsed = parse_timestamp("2024-01-01T09:00:00")
    assert parsed == datetime(2024, 1, 1, 9, tzinfo=UTC)
    assert parse_timestamp("garbage") is None


def test_truncate_to_minute():
    assert truncate_to_minute(at(1, 9, 15, 42)) == at(1, 9, 15)
    assert truncate_to_minute(None) is None


def test_internship_progress_counts_overtime_only_once_approved():
    logs = [
        make_log("a", at(1, 9), at(1, 17)),
        make_log("b", at(1, 17), at(1, 19), LogType.OVERTIME, OvertimeStatus.PENDING),
        make_log("c", at(2, 17), at(2, 18), LogType.OVERTIME, OvertimeStatus.APPROVED),
        make_log("d", at(2, 19), at(2, 20), LogType.EXTENDED_OVERTIME, OvertimeStatus.REJECTED),
        make_log("e", at(3, 9)),
    ]
    assert calculate_internship_progress(logs) == 9.0


def test_internship_progress_drops_seconds_per_log():
    logs = [
        make_log("a", at(1, 9), at(1, 9, 20, 59)),
        make_log("b", at(1, 10), at(1, 10, 40, 59)),
    ]
    # 20 + 40 minutes, the stray seconds never add up to a minute
    assert calculate_internship_progress(logs) == 1.0


def test_internship_progress_filters_by_user():
    logs = [make_log("a", at(1, 9), at(1, 12)), make_log("b", at(1, 9), at(1, 10), user_id="someone-else")]
    assert calculate_internship_progress(logs, user_id=logs[0].user_id) == 3.0


def test_local_date_and_day_bounds():
    assert local_date(at(1, 20), "Asia/Manila") == date(2024, 1, 2)
    start, end = local_day_bounds(date(2024, 1, 2), "Asia/Manila")
    assert start == at(1, 16)
    assert end == at(2, 16)
