import random
from datetime import date, timedelta

from conftest import at, make_log
from models.time_logs import LogType, OvertimeStatus
from utils.session_utils import (allocate, allocate_day, build_daily_records, build_sessions,
                                 group_logs_by_date, is_continuous, split_span, summarize_sessions)


def full_day_logs():
    return [
        make_log("reg", at(1, 9), at(1, 18)),
        make_log("ot", at(1, 18), at(1, 20), LogType.OVERTIME),
        make_log("ext", at(1, 20), at(1, 21), LogType.EXTENDED_OVERTIME),
    ]


def test_adjacent_logs_form_one_continuous_session():
    sessions = build_sessions(full_day_logs())

    assert len(sessions) == 1
    session = sessions[0]
    assert session.log_ids == ["reg", "ot", "ext"]
    assert session.is_continuous_session
    assert session.session_type == LogType.EXTENDED_OVERTIME
    assert session.time_in == at(1, 9)
    assert session.time_out == at(1, 21)
    assert session.regular_hours == 9
    assert session.overtime_hours == 3
    assert session.overtime_status == OvertimeStatus.PENDING
    assert not session.is_overtime_session


def test_build_sessions_ignores_input_order():
    logs = full_day_logs() + [make_log("late", at(1, 22), at(1, 23), LogType.EXTENDED_OVERTIME)]
    expected = [s.log_ids for s in build_sessions(logs)]

    shuffled = logs[:]
    random.Random(7).shuffle(shuffled)
    assert [s.log_ids for s in build_sessions(shuffled)] == expected
    assert [s.log_ids for s in build_sessions(reversed(logs))] == expected


def test_gap_larger_than_tolerance_starts_new_session():
    logs = [make_log("a", at(1, 9), at(1, 12)), make_log("b", at(1, 12, 5), at(1, 17))]
    sessions = build_sessions(logs)

    assert [s.log_ids for s in sessions] == [["a"], ["b"]]
    assert not sessions[0].is_continuous_session


def test_small_gap_or_overlap_within_tolerance_is_continuous():
    gap = [make_log("a", at(1, 9), at(1, 12)), make_log("b", at(1, 12, 0, 30), at(1, 17))]
    overlap = [make_log("a", at(1, 9), at(1, 12, 0, 40)), make_log("b", at(1, 12), at(1, 17))]

    assert len(build_sessions(gap)) == 1
    assert len(build_sessions(overlap)) == 1
    assert len(build_sessions(gap, tolerance=timedelta(seconds=10))) == 2


def test_is_continuous_needs_both_timestamps():
    open_log = make_log("a", at(1, 9))
    assert not is_continuous(open_log, make_log("b", at(1, 9), at(1, 10)))


def test_single_log_session():
    sessions = build_sessions([make_log("only", at(1, 9), at(1, 17))])

    assert len(sessions) == 1
    assert not sessions[0].is_continuous_session
    assert sessions[0].session_type == LogType.REGULAR
    assert sessions[0].overtime_status == OvertimeStatus.NONE


def test_empty_input():
    assert build_sessions([]) == []
    assert build_daily_records([], "UTC", 9, 3) == []


def test_open_log_is_active_and_measured_until_now():
    sessions = build_sessions([make_log("open", at(1, 9))], now=at(1, 11, 30))

    assert sessions[0].is_active
    assert sessions[0].time_out is None
    assert sessions[0].regular_hours == 2.5


def test_open_log_ends_its_session():
    logs = [make_log("open", at(1, 9)), make_log("later", at(1, 13), at(1, 14))]
    assert [s.log_ids for s in build_sessions(logs, now=at(1, 15))] == [["open"], ["later"]]


def test_session_overtime_status_prefers_rejected_then_approved():
    logs = [
        make_log("ot1", at(1, 18), at(1, 19), LogType.OVERTIME, OvertimeStatus.APPROVED),
        make_log("ot2", at(1, 19), at(1, 20), LogType.OVERTIME, OvertimeStatus.REJECTED),
    ]
    session = build_sessions(logs)[0]
    assert session.overtime_status == OvertimeStatus.REJECTED
    assert session.is_overtime_session

    logs[1] = make_log("ot2", at(1, 19), at(1, 20), LogType.OVERTIME, OvertimeStatus.PENDING)
    assert build_sessions(logs)[0].overtime_status == OvertimeStatus.APPROVED


def test_allocate_thirteen_hour_session():
    session = build_sessions([make_log("long", at(1, 8), at(1, 21))])[0]
    allocation = allocate(session, 0, 9, 3)

    assert allocation.regular_hours == 9
    assert allocation.overtime_hours == 3
    assert allocation.extended_overtime_hours == 1
    assert allocation.total_hours == 13


def test_allocate_carries_regular_hours_from_earlier_sessions():
    session = build_sessions([make_log("pm", at(1, 13), at(1, 19))])[0]
    allocation = allocate(session, 5, 9, 3)

    assert allocation.regular_hours == 4
    assert allocation.overtime_hours == 2
    assert allocation.extended_overtime_hours == 0


def test_allocate_open_session_without_now_is_empty():
    session = build_sessions([make_log("open", at(1, 9))])[0]
    assert allocate(session, 0, 9, 3).total_hours == 0


def test_allocate_day():
    sessions = build_sessions([make_log("am", at(1, 8), at(1, 12)), make_log("pm", at(1, 13), at(1, 20))])
    first, second = allocate_day(sessions, 9, 3)

    assert (first.regular_hours, first.overtime_hours) == (4, 0)
    assert (second.regular_hours, second.overtime_hours, second.extended_overtime_hours) == (5, 2, 0)


def test_split_span_into_three_segments():
    segments = split_span(at(1, 9), at(1, 22, 30), 0, 9, 3)

    assert [(s.log_type, s.time_in, s.time_out) for s in segments] == [
        (LogType.REGULAR, at(1, 9), at(1, 18)),
        (LogType.OVERTIME, at(1, 18), at(1, 21)),
        (LogType.EXTENDED_OVERTIME, at(1, 21), at(1, 22, 30)),
    ]


def test_split_span_within_remaining_budget_stays_regular():
    segments = split_span(at(1, 16, 0, 45), at(1, 17, 0, 10), 8, 9, 3)

    assert len(segments) == 1
    assert segments[0].log_type == LogType.REGULAR
    assert segments[0].time_in == at(1, 16)


def test_split_span_after_budget_is_all_overtime():
    segments = split_span(at(1, 19), at(1, 20), 9, 9, 3)
    assert [s.log_type for s in segments] == [LogType.OVERTIME]


def test_split_span_empty_or_reversed():
    assert split_span(at(1, 9), at(1, 9), 0, 9, 3) == []
    assert split_span(at(1, 10), at(1, 9), 0, 9, 3) == []


def test_summarize_moves_excess_regular_hours_to_overtime():
    sessions = build_sessions([make_log("am", at(1, 7), at(1, 13)), make_log("pm", at(1, 14), at(1, 19))])
    totals = summarize_sessions(sessions, 9)

    assert totals.total_regular_hours == 9
    assert totals.total_overtime_hours == 2
    assert totals.has_excess_regular_hours
    assert totals.overall_overtime_status == OvertimeStatus.PENDING


def test_summarize_rejected_overtime_counts_nothing():
    logs = [
        make_log("reg", at(1, 9), at(1, 18)),
        make_log("ot", at(1, 18), at(1, 20), LogType.OVERTIME, OvertimeStatus.REJECTED),
    ]
    totals = summarize_sessions(build_sessions(logs), 9)

    assert totals.total_regular_hours == 9
    assert totals.total_overtime_hours == 0
    assert totals.overall_overtime_status == OvertimeStatus.REJECTED


def test_group_logs_by_local_date():
    logs = [make_log("a", at(1, 20), at(1, 22)), make_log("b", at(2, 1), at(2, 3))]

    assert set(group_logs_by_date(logs, "UTC")) == {date(2024, 1, 1), date(2024, 1, 2)}
    assert list(group_logs_by_date(logs, "Asia/Manila")) == [date(2024, 1, 2)]


def test_build_daily_records():
    logs = full_day_logs() + [make_log("next", at(2, 9), at(2, 12))]
    records = build_daily_records(logs, "UTC", 9, 3)

    assert [r.day for r in records] == [date(2024, 1, 1), date(2024, 1, 2)]
    assert records[0].allocations[0].extended_overtime_hours == 0
    assert records[0].totals.total_overtime_hours == 3
    assert records[1].allocations[0].regular_hours == 3
