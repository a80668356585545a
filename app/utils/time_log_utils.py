import logging
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from pytz import UTC

from config import settings
from db import time_logs_collection
from models.time_logs import OVERTIME_LOG_TYPES, LogStatus, LogType, OvertimeStatus, TimeLog
from schemas.session import SessionSegment
from utils.session_utils import split_span
from utils.time_utils import calculate_time_worked, local_date, local_day_bounds, truncate_to_minute

logger = logging.getLogger(__name__)


def to_object_id(value: str) -> ObjectId:
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise LookupError(f"Invalid id: {value}")


def _to_log(document: dict) -> TimeLog:
    return TimeLog(**document)


async def fetch_time_logs(
    user_id: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    log_types: Optional[Iterable[LogType]] = None,
    overtime_status: Optional[OvertimeStatus] = None,
) -> List[TimeLog]:
    """Time logs ordered by time in, optionally limited to a user and a [start, end) range."""
    query: Dict = {}
    if user_id is not None:
        query["user_id"] = str(user_id)
    if start is not None or end is not None:
        query["time_in"] = {}
        if start is not None:
            query["time_in"]["$gte"] = start
        if end is not None:
            query["time_in"]["$lt"] = end
    if log_types:
        query["log_type"] = {"$in": [LogType(t).value for t in log_types]}
    if overtime_status is not None:
        query["overtime_status"] = OvertimeStatus(overtime_status).value

    documents = await time_logs_collection.find(query).sort("time_in", 1).to_list(length=None)
    return [_to_log(document) for document in documents]


async def fetch_time_log(log_id: str) -> Optional[TimeLog]:
    document = await time_logs_collection.find_one({"_id": to_object_id(log_id)})
    return _to_log(document) if document else None


async def fetch_time_logs_by_ids(log_ids: Iterable[str]) -> List[TimeLog]:
    object_ids = []
    for log_id in log_ids:
        try:
            object_ids.append(to_object_id(log_id))
        except LookupError:
            continue
    if not object_ids:
        return []
    documents = await time_logs_collection.find({"_id": {"$in": object_ids}}).to_list(length=None)
    return [_to_log(document) for document in documents]


async def fetch_open_log(user_id: str) -> Optional[TimeLog]:
    document = await time_logs_collection.find_one(
        {"user_id": str(user_id), "status": LogStatus.PENDING.value, "time_out": None},
        sort=[("time_in", -1)],
    )
    return _to_log(document) if document else None


async def fetch_latest_log(user_id: str) -> Optional[TimeLog]:
    document = await time_logs_collection.find_one({"user_id": str(user_id)}, sort=[("time_in", -1)])
    return _to_log(document) if document else None


async def fetch_day_logs(user_id: str, day: date) -> List[TimeLog]:
    start, end = local_day_bounds(day, settings.TIMEZONE)
    return await fetch_time_logs(user_id=user_id, start=start, end=end)


def regular_hours_before(logs: Iterable[TimeLog], before: datetime, exclude: Iterable[str] = ()) -> float:
    """Completed regular hours that ended by `before`."""
    excluded = set(exclude)
    hours = 0.0
    for log in logs:
        if log.id in excluded or log.is_overtime or log.time_in is None or log.time_out is None:
            continue
        if log.time_in < before:
            hours += calculate_time_worked(log.time_in, min(log.time_out, before))["hours_worked"]
    return hours


def completed_hours(logs: Iterable[TimeLog]) -> float:
    return sum(
        calculate_time_worked(log.time_in, log.time_out)["hours_worked"]
        for log in logs
        if log.status == LogStatus.COMPLETED and log.time_in and log.time_out
    )


def log_type_for_clock_in(hours_today: float) -> LogType:
    if hours_today < settings.DAILY_REQUIRED_HOURS:
        return LogType.REGULAR
    if hours_today < settings.DAILY_REQUIRED_HOURS + settings.MAX_OVERTIME_HOURS:
        return LogType.OVERTIME
    return LogType.EXTENDED_OVERTIME


def segment_to_log(user_id: str, segment: SessionSegment, notes: Optional[str] = None,
                   created_at: Optional[datetime] = None) -> TimeLog:
    log = TimeLog(
        user_id=str(user_id),
        time_in=segment.time_in,
        time_out=segment.time_out,
        log_type=segment.log_type,
        status=LogStatus.COMPLETED,
        notes=notes if segment.log_type != LogType.REGULAR else None,
        updated_at=datetime.now(UTC),
    )
    if created_at is not None:
        log.created_at = created_at
    return log


async def insert_logs(logs: Iterable[TimeLog]) -> List[str]:
    documents = [log.to_document() for log in logs]
    if not documents:
        return []
    result = await time_logs_collection.insert_many(documents)
    return [str(inserted_id) for inserted_id in result.inserted_ids]


async def clock_in(user_id: str, at: Optional[datetime] = None) -> TimeLog:
    """Open a new log; its type depends on the hours already completed today."""
    if await fetch_open_log(user_id):
        raise ValueError("You are already clocked in. Please clock out before clocking in again.")

    now = truncate_to_minute(at or datetime.now(UTC))
    today_logs = await fetch_day_logs(user_id, local_date(now, settings.TIMEZONE))
    log_type = log_type_for_clock_in(completed_hours(today_logs))

    log = TimeLog(user_id=str(user_id), time_in=now, log_type=log_type, status=LogStatus.PENDING)
    result = await time_logs_collection.insert_one(log.to_document())
    log.id = str(result.inserted_id)

    logger.info(f"User {user_id} clocked in at {now.isoformat()} as {log_type.value}")
    return log


async def clock_out(
    user_id: str,
    at: Optional[datetime] = None,
    discard_overtime: bool = False,
    overtime_note: Optional[str] = None,
) -> List[TimeLog]:
    """
    Close the user's open log and return the logs that now cover the span.

    Overtime logs are closed as is. A regular log running past the remaining
    regular budget for the day is split into regular / overtime / extended
    overtime logs, unless `discard_overtime` is set, in which case it is cut
    at the budget and the day's overtime logs are deleted.
    """
    log = await fetch_open_log(user_id)
    if not log:
        raise LookupError("No active clock-in found")

    now = truncate_to_minute(at or datetime.now(UTC))
    updated_at = datetime.now(UTC)

    if log.is_overtime:
        await time_logs_collection.update_one(
            {"_id": to_object_id(log.id)},
            {"$set": {"time_out": now, "status": LogStatus.COMPLETED.value, "updated_at": updated_at}},
        )
        log.time_out, log.status = now, LogStatus.COMPLETED
        return [log]

    day = local_date(log.time_in, settings.TIMEZONE)
    day_logs = await fetch_day_logs(user_id, day)
    cumulative = regular_hours_before(day_logs, log.time_in, exclude=[log.id])
    segments = split_span(log.time_in, now, cumulative,
                          settings.DAILY_REQUIRED_HOURS, settings.MAX_OVERTIME_HOURS)

    if discard_overtime:
        segments = [segment for segment in segments if segment.log_type == LogType.REGULAR]
        start, end = local_day_bounds(day, settings.TIMEZONE)
        deleted = await time_logs_collection.delete_many({
            "user_id": str(user_id),
            "log_type": {"$in": [t.value for t in OVERTIME_LOG_TYPES]},
            "time_in": {"$gte": start, "$lt": end},
        })
        logger.info(f"Discarded {deleted.deleted_count} overtime logs for user {user_id} on {day}")

    if segments:
        first = segments[0]
    else:
        # zero-length span, or nothing left of the regular budget to keep
        cutoff = log.time_in if discard_overtime else max(now, log.time_in)
        first = SessionSegment(log_type=log.log_type, time_in=log.time_in, time_out=cutoff)
    first_status = OvertimeStatus.NONE if first.log_type == LogType.REGULAR else OvertimeStatus.PENDING
    await time_logs_collection.update_one(
        {"_id": to_object_id(log.id)},
        {"$set": {
            "time_out": first.time_out,
            "status": LogStatus.COMPLETED.value,
            "log_type": first.log_type.value,
            "overtime_status": first_status.value,
            "updated_at": updated_at,
        }},
    )
    log.time_out, log.status, log.log_type, log.overtime_status = (
        first.time_out, LogStatus.COMPLETED, first.log_type, first_status)

    extra = [segment_to_log(user_id, segment, overtime_note, log.created_at) for segment in segments[1:]]
    for extra_log, inserted_id in zip(extra, await insert_logs(extra)):
        extra_log.id = inserted_id

    if extra:
        logger.info(f"Split clock-out for user {user_id} into {len(extra) + 1} logs")
    return [log, *extra]


async def update_log_status(log_id: str, status: OvertimeStatus, admin_id: Optional[str] = None) -> TimeLog:
    """Record an overtime decision; reverting to pending clears the approval data."""
    status = OvertimeStatus(status)
    if status == OvertimeStatus.NONE:
        raise ValueError("Overtime status must be pending, approved or rejected")

    if status == OvertimeStatus.PENDING:
        changes = {"overtime_status": status.value, "approved_by": None, "approved_at": None}
    else:
        changes = {"overtime_status": status.value, "approved_by": admin_id, "approved_at": datetime.now(UTC)}
    changes["updated_at"] = datetime.now(UTC)

    document = await time_logs_collection.find_one_and_update(
        {"_id": to_object_id(log_id), "log_type": {"$in": [t.value for t in OVERTIME_LOG_TYPES]}},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if not document:
        raise LookupError("Overtime log not found")
    return _to_log(document)


async def delete_time_logs(log_ids: Iterable[str]) -> int:
    object_ids = [to_object_id(log_id) for log_id in log_ids]
    if not object_ids:
        return 0
    result = await time_logs_collection.delete_many({"_id": {"$in": object_ids}})
    return result.deleted_count


async def delete_time_log(log_id: str) -> None:
    result = await time_logs_collection.delete_one({"_id": to_object_id(log_id)})
    if result.deleted_count == 0:
        raise LookupError("Time log not found")
    logger.info(f"Deleted time log {log_id}")


async def find_long_logs() -> List[TimeLog]:
    """Completed regular logs longer than the daily requirement."""
    documents = await time_logs_collection.find({
        "status": LogStatus.COMPLETED.value,
        "log_type": LogType.REGULAR.value,
        "time_in": {"$ne": None},
        "time_out": {"$ne": None},
    }).sort("created_at", 1).to_list(length=None)

    logs = [_to_log(document) for document in documents]
    return [
        log for log in logs
        if calculate_time_worked(log.time_in, log.time_out)["hours_worked"] > settings.DAILY_REQUIRED_HOURS
    ]


async def split_long_logs() -> dict:
    """Split every long regular log into regular + overtime logs. Errors are collected per log."""
    processed = 0
    errors = []

    for log in await find_long_logs():
        try:
            segments = split_span(log.time_in, log.time_out, 0,
                                  settings.DAILY_REQUIRED_HOURS, settings.MAX_OVERTIME_HOURS)
            if len(segments) < 2:
                continue
            await time_logs_collection.update_one(
                {"_id": to_object_id(log.id)},
                {"$set": {"time_out": segments[0].time_out, "updated_at": datetime.now(UTC)}},
            )
            await insert_logs(segment_to_log(log.user_id, segment, created_at=log.created_at)
                              for segment in segments[1:])
            processed += 1
        except Exception as e:
            logger.error(f"Long log split failed for log {log.id} - {e}")
            errors.append(f"Log {log.id}: {e}")

    logger.info(f"Long log split processed {processed} logs with {len(errors)} errors")
    return {"processed": processed, "errors": errors}
