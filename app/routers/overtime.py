import logging
from datetime import date, datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pymongo.errors import PyMongoError
from pytz import UTC

from config import settings
from exceptions import get_bad_request_exception, get_unknown_entity_exception
from models.time_logs import OVERTIME_LOG_TYPES, OvertimeStatus
from schemas.time_log import BulkOvertimeAction, OvertimeStatusUpdate
from utils.activity_utils import log_admin_activity
from utils.app_utils import get_current_user, require_admin
from utils.batch_utils import run_batch
from utils.session_utils import build_sessions, group_logs_by_date
from utils.time_log_utils import fetch_time_logs, find_long_logs, split_long_logs, update_log_status
from utils.time_utils import calculate_time_worked, local_day_bounds

router = APIRouter()

logger = logging.getLogger(__name__)


@router.get("/overtime")
async def list_overtime(
    overtime_status: Optional[OvertimeStatus] = Query(None, alias="status"),
    user_id: Optional[str] = Query(None),
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    user_and_type: tuple = Depends(get_current_user),
):
    """
    List overtime for review, grouped into continuous sessions.

    Overtime logs are chained per user and day the same way the DTR chains
    them, so an overtime block split across several logs shows up as one
    entry with every log id needed to decide it at once.

    Args:
        overtime_status (OvertimeStatus, optional): Only logs with this status.
        user_id (str, optional): Only this user's logs.
        start (date, optional): First local date to include.
        end (date, optional): Last local date to include.

    Returns:
        dict: `sessions`, each with user id, date, log ids, time span, hours
        and the aggregated overtime status.

    Raises:
        HTTPException: 403 if the caller is not an admin.
    """
    require_admin(user_and_type)

    logs = await fetch_time_logs(
        user_id=user_id,
        start=local_day_bounds(start, settings.TIMEZONE)[0] if start else None,
        end=local_day_bounds(end, settings.TIMEZONE)[1] if end else None,
        log_types=OVERTIME_LOG_TYPES,
        overtime_status=overtime_status,
    )

    by_user = {}
    for log in logs:
        by_user.setdefault(log.user_id, []).append(log)

    tolerance = timedelta(seconds=settings.SESSION_TOLERANCE_SECONDS)
    now = datetime.now(UTC)
    sessions = []
    for owner, owner_logs in by_user.items():
        for day, day_logs in sorted(group_logs_by_date(owner_logs, settings.TIMEZONE).items()):
            for session in build_sessions(day_logs, now=now, tolerance=tolerance):
                sessions.append({
                    "user_id": owner,
                    "date": day,
                    "log_ids": session.log_ids,
                    "time_in": session.time_in,
                    "time_out": session.time_out,
                    "session_type": session.session_type,
                    "overtime_hours": round(session.overtime_hours, 2),
                    "overtime_status": session.overtime_status,
                    "notes": [log.notes for log in session.logs if log.notes],
                })

    sessions.sort(key=lambda s: s["time_in"] or now, reverse=True)
    return {"sessions": sessions}


@router.put("/overtime/{log_id}")
async def update_overtime_status(
    log_id: str,
    payload: OvertimeStatusUpdate,
    user_and_type: tuple = Depends(get_current_user),
):
    """
    Approve, reject or reset one overtime log.

    Setting the status back to pending clears who approved it and when.

    Raises:
        HTTPException: 403 if the caller is not an admin.
        HTTPException: 404 if no overtime log has this id.
    """
    admin = require_admin(user_and_type)
    admin_id = str(admin["_id"])

    try:
        log = await update_log_status(log_id, payload.status.value, admin_id)
    except LookupError as e:
        await log_admin_activity(admin_id, "overtime", f"Set overtime to {payload.status.value}", "failed", log_id)
        raise get_unknown_entity_exception(str(e))
    except (ValueError, PyMongoError) as e:
        raise get_bad_request_exception(f"An error occurred - {e}")

    await log_admin_activity(admin_id, "overtime", f"Set overtime to {payload.status.value}", "success", log_id)
    return {"message": f"Overtime status set to {payload.status.value}", "log": log.model_dump()}


@router.post("/overtime/bulk")
async def bulk_update_overtime_status(
    payload: BulkOvertimeAction,
    user_and_type: tuple = Depends(get_current_user),
):
    """
    Apply one overtime decision to many logs.

    Logs are processed one at a time; a failure on one log is reported and
    does not stop the rest.

    Returns:
        dict: `succeeded` and `failed` log ids and the error for each failure.
    """
    admin = require_admin(user_and_type)
    admin_id = str(admin["_id"])

    async def handle(log_id: str):
        await update_log_status(log_id, payload.status.value, admin_id)

    result = await run_batch(payload.log_ids, handle, label="bulk overtime")
    await log_admin_activity(
        admin_id, "overtime",
        f"Bulk set {result.success_count} overtime logs to {payload.status.value}",
        "success" if not result.failed else "failed",
    )
    return result.model_dump()


@router.get("/long-logs/check")
async def check_long_logs(user_and_type: tuple = Depends(get_current_user)):
    """Regular logs longer than the daily requirement that still need splitting."""
    require_admin(user_and_type)

    logs = await find_long_logs()
    return {
        "count": len(logs),
        "logs": [
            {
                "id": log.id,
                "user_id": log.user_id,
                "time_in": log.time_in,
                "time_out": log.time_out,
                "hours": calculate_time_worked(log.time_in, log.time_out)["hours_worked"],
            }
            for log in logs
        ],
    }


@router.post("/long-logs/migrate")
async def migrate_long_logs(user_and_type: tuple = Depends(get_current_user)):
    """Split every long regular log into regular, overtime and extended overtime logs."""
    admin = require_admin(user_and_type)

    result = await split_long_logs()
    await log_admin_activity(
        str(admin["_id"]), "long_logs", f"Split {result['processed']} long logs",
        "success" if not result["errors"] else "failed",
    )
    return {"message": f"Processed {result['processed']} logs", **result}
