import logging
from datetime import date, datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pymongo.errors import PyMongoError
from pytz import UTC

from config import settings
from exceptions import get_bad_request_exception, get_conflict_exception, get_unknown_entity_exception
from models.edit_requests import EditRequestStatus
from schemas.time_log import ClockOut, TodayStatus
from utils.app_utils import fetch_user, get_current_user, require_admin
from utils.clock_state_utils import get_clock_state
from utils.edit_request_db_utils import fetch_edit_requests
from utils.edit_request_utils import overlay
from utils.session_utils import allocate_day, build_daily_records, build_sessions, summarize_sessions
from utils.time_log_utils import (clock_in, clock_out, completed_hours, fetch_day_logs, fetch_latest_log,
                                  fetch_open_log, fetch_time_logs)
from utils.time_utils import (calculate_internship_progress, calculate_time_worked, local_date,
                              local_day_bounds)

router = APIRouter()

logger = logging.getLogger(__name__)

def _target_user_id(user_and_type: tuple, user_id: Optional[str]) -> str:
    """Interns only ever see their own logs; admins may ask for anyone's."""
    user, _ = user_and_type
    if user_id is None or user_id == str(user["_id"]):
        return str(user["_id"])
    require_admin(user_and_type)
    return user_id


@router.post("/clock-in", status_code=status.HTTP_201_CREATED)
async def clock_in_user(user_and_type: tuple = Depends(get_current_user)):
    """
    Clock the current user in.

    The new log is regular while the user is under the daily requirement,
    overtime once the requirement is met, and extended overtime once the
    standard overtime allowance is used up as well.

    Returns:
        dict: Success message and the created time log.

    Raises:
        HTTPException: 409 if the user is already clocked in.
    """
    user, _ = user_and_type
    user_id = str(user["_id"])

    try:
        log = await clock_in(user_id)
    except ValueError as e:
        raise get_conflict_exception(str(e))
    except PyMongoError as e:
        logger.error(f"Clock in failed for user {user_id} - {e}")
        raise get_bad_request_exception(f"An error occurred - {e}")

    return {"message": "Clocked in successfully", "log": log.model_dump()}


@router.post("/clock-out")
async def clock_out_user(
    payload: Optional[ClockOut] = None,
    user_and_type: tuple = Depends(get_current_user),
):
    """
    Clock the current user out.

    A regular log that runs past the daily requirement is stored as a regular
    log followed by overtime and extended overtime logs, all chained end to
    end. With `discard_overtime` the span is cut at the requirement instead
    and the day's overtime logs are dropped.

    Args:
        payload (ClockOut): Overtime handling options.

    Returns:
        dict: Success message and every log now covering the closed span.

    Raises:
        HTTPException: 404 if the user is not clocked in.
    """
    payload = payload or ClockOut()
    user, _ = user_and_type
    user_id = str(user["_id"])

    try:
        logs = await clock_out(user_id, discard_overtime=payload.discard_overtime,
                               overtime_note=payload.overtime_note)
    except LookupError as e:
        raise get_unknown_entity_exception(str(e))
    except PyMongoError as e:
        logger.error(f"Clock out failed for user {user_id} - {e}")
        raise get_bad_request_exception(f"An error occurred - {e}")

    return {"message": "Clocked out successfully", "logs": [log.model_dump() for log in logs]}


@router.get("/")
async def list_time_logs(
    start: Optional[date] = Query(None, description="First local date to include"),
    end: Optional[date] = Query(None, description="Last local date to include"),
    user_id: Optional[str] = Query(None),
    user_and_type: tuple = Depends(get_current_user),
):
    """Raw time logs ordered by time in, optionally limited to a date range."""
    target = _target_user_id(user_and_type, user_id)
    start_at = local_day_bounds(start, settings.TIMEZONE)[0] if start else None
    end_at = local_day_bounds(end, settings.TIMEZONE)[1] if end else None

    logs = await fetch_time_logs(user_id=target, start=start_at, end=end_at)
    return {"logs": [log.model_dump() for log in logs]}


@router.get("/today", response_model=TodayStatus)
async def get_today_status(user_and_type: tuple = Depends(get_current_user)):
    """
    Clock status for today's business day.

    Read from the latest log in the database on every call, so a clock in
    from another device shows up straight away.
    """
    user, _ = user_and_type
    user_id = str(user["_id"])
    now = datetime.now(UTC)

    latest = await fetch_open_log(user_id) or await fetch_latest_log(user_id)
    state = get_clock_state(user_id, latest, now, settings.TIMEZONE, settings.DAY_BOUNDARY_HOUR)

    today_logs = await fetch_day_logs(user_id, local_date(now, settings.TIMEZONE))
    hours_today = completed_hours(today_logs)
    if state.is_clocked_in and state.active_since:
        hours_today += calculate_time_worked(state.active_since, now)["hours_worked"]

    return TodayStatus(
        business_date=state.business_date,
        is_clocked_in=state.is_clocked_in,
        has_timed_out_today=state.has_timed_out_today,
        active_since=state.active_since,
        today_duration=state.today_duration,
        hours_today=round(hours_today, 2),
    )


@router.get("/sessions")
async def get_day_sessions(
    day: Optional[date] = Query(None, alias="date"),
    user_id: Optional[str] = Query(None),
    user_and_type: tuple = Depends(get_current_user),
):
    """
    One day's sessions with their hour allocation and the day totals.

    Pending edit requests are shown over the affected logs; the stored logs
    themselves are untouched until an admin approves the request.
    """
    target = _target_user_id(user_and_type, user_id)
    now = datetime.now(UTC)
    day = day or local_date(now, settings.TIMEZONE)

    logs = await fetch_day_logs(target, day)
    pending = await fetch_edit_requests(user_id=target, status=EditRequestStatus.PENDING)

    sessions = build_sessions(logs, now=now, tolerance=timedelta(seconds=settings.SESSION_TOLERANCE_SECONDS))
    allocations = allocate_day(sessions, settings.DAILY_REQUIRED_HOURS, settings.MAX_OVERTIME_HOURS, now)
    totals = summarize_sessions(sessions, settings.DAILY_REQUIRED_HOURS)

    return {
        "date": day,
        "sessions": [overlay(session, pending).model_dump() for session in sessions],
        "allocations": [allocation.model_dump() for allocation in allocations],
        "totals": totals.model_dump(),
    }


@router.get("/dtr")
async def get_daily_time_record(
    start: date = Query(...),
    end: date = Query(...),
    user_id: Optional[str] = Query(None),
    user_and_type: tuple = Depends(get_current_user),
):
    """
    Daily time record between two local dates, inclusive.

    Returns one entry per day that has logs, each with its sessions,
    regular / overtime / extended overtime allocation and totals.
    """
    if end < start:
        raise get_bad_request_exception("End date must not be before start date")

    target = _target_user_id(user_and_type, user_id)
    start_at = local_day_bounds(start, settings.TIMEZONE)[0]
    end_at = local_day_bounds(end, settings.TIMEZONE)[1]

    logs = await fetch_time_logs(user_id=target, start=start_at, end=end_at)
    records = build_daily_records(
        logs,
        settings.TIMEZONE,
        settings.DAILY_REQUIRED_HOURS,
        settings.MAX_OVERTIME_HOURS,
        now=datetime.now(UTC),
        tolerance=timedelta(seconds=settings.SESSION_TOLERANCE_SECONDS),
    )
    return {"records": [record.model_dump() for record in records]}


@router.get("/progress")
async def get_internship_progress(
    user_id: Optional[str] = Query(None),
    user_and_type: tuple = Depends(get_current_user),
):
    """Hours completed towards the internship; overtime counts once approved."""
    user, _ = user_and_type
    target = _target_user_id(user_and_type, user_id)
    if target != str(user["_id"]):
        user = await fetch_user(target)
        if user is None:
            raise get_unknown_entity_exception("User not found")

    logs = await fetch_time_logs(user_id=target)
    completed = calculate_internship_progress(logs, user_id=target)
    required = user.get("required_hours") or 0

    return {
        "user_id": target,
        "completed_hours": completed,
        "required_hours": required,
        "remaining_hours": max(0.0, round(required - completed, 2)) if required else None,
    }
