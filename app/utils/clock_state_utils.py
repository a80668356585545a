"""
"Clocked in / timed out today" status for the dashboard.

A DTR business day starts at DAY_BOUNDARY_HOUR local time, so a log opened
before that hour belongs to the previous day. The status is derived from the
user's latest log on every call; nothing is kept between requests.
"""
from datetime import date, datetime, timedelta
from typing import Optional

from pydantic import BaseModel
from pytz import UTC, timezone

from models.time_logs import TimeLog
from utils.time_utils import calculate_time_worked


class ClockState(BaseModel):
    user_id: str
    business_date: date
    is_clocked_in: bool = False
    has_timed_out_today: bool = False
    active_since: Optional[datetime] = None
    today_duration: str = "0h 00m"


def get_business_date(now: datetime, tz_name: str, boundary_hour: int = 6) -> date:
    """Local date of the DTR day `now` falls in; times before the boundary hour count for the day before."""
    if now.tzinfo is None:
        now = UTC.localize(now)
    local_now = now.astimezone(timezone(tz_name))
    return (local_now - timedelta(hours=boundary_hour)).date()


def get_clock_state(
    user_id: str,
    latest_log: Optional[TimeLog],
    now: datetime,
    tz_name: str,
    boundary_hour: int = 6,
) -> ClockState:
    """Clock status for the business day of `now`, read off the user's latest log."""
    business_date = get_business_date(now, tz_name, boundary_hour)
    state = ClockState(user_id=str(user_id), business_date=business_date)

    if latest_log is None or latest_log.time_in is None:
        return state

    if latest_log.time_out is None:
        # an open log counts even when it was opened on an earlier business day
        state.is_clocked_in = True
        state.active_since = latest_log.time_in
    elif get_business_date(latest_log.time_in, tz_name, boundary_hour) == business_date:
        state.has_timed_out_today = True
        state.today_duration = calculate_time_worked(latest_log.time_in, latest_log.time_out)["duration"]
    return state
