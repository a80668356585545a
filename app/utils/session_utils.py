"""
Session reconstruction for the daily time record.

Raw time logs for a user and day are chained into continuous sessions, each
session is split into regular / overtime / extended overtime hours against
the daily requirement, and the day is summarized for display. Everything in
here is pure; persistence lives in time_log_utils.
"""
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from models.time_logs import LogType, OvertimeStatus, TimeLog
from schemas.session import Allocation, DailyRecord, Session, SessionSegment, SessionTotals
from utils.time_utils import calculate_time_worked, compute_hours, local_date, truncate_to_minute

DEFAULT_TOLERANCE = timedelta(seconds=60)


def _sort_key(log: TimeLog) -> Tuple:
    anchor = log.time_in or log.time_out
    if anchor is None:
        return (1, 0, str(log.id))
    return (0, anchor, str(log.id))


def is_continuous(previous: TimeLog, following: TimeLog, tolerance: timedelta = DEFAULT_TOLERANCE) -> bool:
    if previous.time_out is None or following.time_in is None:
        return False
    return abs(following.time_in - previous.time_out) <= tolerance


def _session_overtime_status(logs: Sequence[TimeLog]) -> OvertimeStatus:
    statuses = {log.overtime_status for log in logs if log.is_overtime}
    if not statuses:
        return OvertimeStatus.NONE
    for status in (OvertimeStatus.REJECTED, OvertimeStatus.APPROVED, OvertimeStatus.PENDING):
        if status in statuses:
            return status
    return OvertimeStatus.PENDING


def _session_type(logs: Sequence[TimeLog]) -> LogType:
    types = {log.log_type for log in logs}
    if LogType.EXTENDED_OVERTIME in types:
        return LogType.EXTENDED_OVERTIME
    if LogType.OVERTIME in types:
        return LogType.OVERTIME
    return LogType.REGULAR


def create_session(logs: List[TimeLog], now: Optional[datetime] = None) -> Session:
    first, last = logs[0], logs[-1]

    regular_hours = 0.0
    overtime_hours = 0.0
    for log in logs:
        if log.time_in is None:
            continue
        end = log.time_out or now
        hours = calculate_time_worked(log.time_in, end)["hours_worked"] if end else 0.0
        if log.is_overtime:
            overtime_hours += hours
        else:
            regular_hours += hours

    return Session(
        logs=logs,
        session_type=_session_type(logs),
        time_in=first.time_in,
        time_out=last.time_out,
        is_continuous_session=len(logs) > 1,
        is_active=last.time_out is None and first.time_in is not None,
        is_overtime_session=all(log.is_overtime for log in logs),
        overtime_status=_session_overtime_status(logs),
        regular_hours=regular_hours,
        overtime_hours=overtime_hours,
    )


def build_sessions(
    logs: Iterable[TimeLog],
    now: Optional[datetime] = None,
    tolerance: timedelta = DEFAULT_TOLERANCE,
) -> List[Session]:
    """Group one user's logs for one day into chronological sessions.

    A log joins the current session when its time in is within `tolerance`
    of the previous log's time out. An open log (no time out) always ends
    its session. `now` is used to measure open logs.
    """
    ordered = sorted(logs, key=_sort_key)

    sessions: List[Session] = []
    current: List[TimeLog] = []
    for log in ordered:
        if current and is_continuous(current[-1], log, tolerance):
            current.append(log)
            continue
        if current:
            sessions.append(create_session(current, now))
        current = [log]

    if current:
        sessions.append(create_session(current, now))
    return sessions


def group_logs_by_date(logs: Iterable[TimeLog], tz_name: str) -> Dict[date, List[TimeLog]]:
    """Bucket logs by the local calendar date of their time in."""
    grouped: Dict[date, List[TimeLog]] = defaultdict(list)
    for log in logs:
        day = local_date(log.time_in or log.time_out, tz_name)
        if day is None:
            continue
        grouped[day].append(log)
    return dict(grouped)


def summarize_sessions(sessions: Iterable[Session], daily_required_hours: float) -> SessionTotals:
    """
    Day totals across sessions.

    Regular hours past the daily requirement move to overtime (pending if the
    day had no overtime decision yet). A rejected overtime decision drops all
    overtime hours.
    """
    total_regular = 0.0
    total_overtime = 0.0
    overall = OvertimeStatus.NONE

    for session in sessions:
        total_regular += session.regular_hours
        total_overtime += session.overtime_hours

        if session.overtime_status == OvertimeStatus.REJECTED:
            overall = OvertimeStatus.REJECTED
        elif session.overtime_status == OvertimeStatus.APPROVED and overall != OvertimeStatus.REJECTED:
            overall = OvertimeStatus.APPROVED
        elif session.overtime_status == OvertimeStatus.PENDING and overall == OvertimeStatus.NONE:
            overall = OvertimeStatus.PENDING

    has_excess = total_regular > daily_required_hours
    if has_excess:
        total_overtime += total_regular - daily_required_hours
        total_regular = daily_required_hours
        if overall == OvertimeStatus.NONE:
            overall = OvertimeStatus.PENDING

    if overall == OvertimeStatus.REJECTED:
        total_overtime = 0.0

    return SessionTotals(
        total_regular_hours=total_regular,
        total_overtime_hours=total_overtime,
        overall_overtime_status=overall,
        has_excess_regular_hours=has_excess,
    )


def allocate(
    session: Session,
    cumulative_regular_hours: float,
    daily_required_hours: float,
    max_standard_overtime_hours: float,
    now: Optional[datetime] = None,
) -> Allocation:
    """Split one session's duration into regular, overtime and extended overtime.

    `cumulative_regular_hours` is the regular time already counted earlier
    the same day; the caller carries it from session to session.
    """
    end = session.time_out or (now if session.is_active else None)
    if session.time_in is None or end is None:
        return Allocation()

    duration = compute_hours(session.time_in, end)
    remaining = max(0.0, daily_required_hours - cumulative_regular_hours)

    if duration <= remaining:
        return Allocation(regular_hours=duration)

    regular = remaining
    beyond = round(duration - regular, 2)
    overtime = min(beyond, max_standard_overtime_hours)
    extended = round(beyond - overtime, 2)
    return Allocation(
        regular_hours=round(regular, 2),
        overtime_hours=round(overtime, 2),
        extended_overtime_hours=extended,
    )


def allocate_day(
    sessions: Iterable[Session],
    daily_required_hours: float,
    max_standard_overtime_hours: float,
    now: Optional[datetime] = None,
) -> List[Allocation]:
    allocations = []
    cumulative = 0.0
    for session in sessions:
        allocation = allocate(session, cumulative, daily_required_hours, max_standard_overtime_hours, now)
        cumulative += allocation.regular_hours
        allocations.append(allocation)
    return allocations


def split_span(
    time_in: datetime,
    time_out: datetime,
    cumulative_regular_hours: float,
    daily_required_hours: float,
    max_standard_overtime_hours: float,
) -> List[SessionSegment]:
    """
    Cut a work span into minute-aligned regular / overtime / extended overtime
    segments, chained end to end. Empty segments are left out.
    """
    start = truncate_to_minute(time_in)
    end = truncate_to_minute(time_out)
    if start is None or end is None or end <= start:
        return []

    remaining = max(0.0, daily_required_hours - cumulative_regular_hours)
    regular_end = min(end, truncate_to_minute(start + timedelta(hours=remaining)))
    overtime_end = min(end, truncate_to_minute(regular_end + timedelta(hours=max_standard_overtime_hours)))

    segments = []
    for log_type, seg_start, seg_end in (
        (LogType.REGULAR, start, regular_end),
        (LogType.OVERTIME, regular_end, overtime_end),
        (LogType.EXTENDED_OVERTIME, overtime_end, end),
    ):
        if seg_end > seg_start:
            segments.append(SessionSegment(log_type=log_type, time_in=seg_start, time_out=seg_end))
    return segments


def build_daily_records(
    logs: Iterable[TimeLog],
    tz_name: str,
    daily_required_hours: float,
    max_standard_overtime_hours: float,
    now: Optional[datetime] = None,
    tolerance: timedelta = DEFAULT_TOLERANCE,
) -> List[DailyRecord]:
    """Sessions, allocations and totals for every day the logs touch, oldest first."""
    records = []
    for day, day_logs in sorted(group_logs_by_date(logs, tz_name).items()):
        sessions = build_sessions(day_logs, now=now, tolerance=tolerance)
        records.append(DailyRecord(
            day=day,
            sessions=sessions,
            allocations=allocate_day(sessions, daily_required_hours, max_standard_overtime_hours, now),
            totals=summarize_sessions(sessions, daily_required_hours),
        ))
    return records
