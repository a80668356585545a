import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from pymongo import ReturnDocument
from pytz import UTC

from config import settings
from db import edit_requests_collection
from models.edit_requests import EditLogRequest, EditRequestAction, EditRequestStatus, LogSnapshot
from models.time_logs import LogStatus, TimeLog
from utils.session_utils import split_span
from utils.time_log_utils import (delete_time_logs, fetch_day_logs, fetch_time_log, fetch_time_logs_by_ids,
                                  insert_logs, regular_hours_before, segment_to_log, to_object_id)
from utils.time_utils import local_date, truncate_to_minute

logger = logging.getLogger(__name__)


def _to_request(document: dict) -> EditLogRequest:
    return EditLogRequest(**document)


def snapshot(log: TimeLog) -> LogSnapshot:
    return LogSnapshot(
        log_id=log.id,
        time_in=log.time_in,
        time_out=log.time_out,
        log_type=log.log_type.value,
        overtime_status=log.overtime_status.value,
        status=log.status.value,
        notes=log.notes,
    )


async def fetch_edit_requests(
    user_id: Optional[str] = None,
    status: Optional[EditRequestStatus] = None,
) -> List[EditLogRequest]:
    query: Dict = {}
    if user_id is not None:
        query["user_id"] = str(user_id)
    if status is not None:
        query["status"] = EditRequestStatus(status).value
    documents = await edit_requests_collection.find(query).sort("created_at", -1).to_list(length=None)
    return [_to_request(document) for document in documents]


async def fetch_edit_request(request_id: str) -> Optional[EditLogRequest]:
    document = await edit_requests_collection.find_one({"_id": to_object_id(request_id)})
    return _to_request(document) if document else None


async def fetch_edit_requests_by_ids(request_ids: Iterable[str]) -> List[EditLogRequest]:
    requests = []
    for request_id in request_ids:
        request = await fetch_edit_request(request_id)
        if request is None:
            raise LookupError(f"Edit request {request_id} not found")
        requests.append(request)
    return requests


async def _ensure_no_pending_request(log_ids: Iterable[str]) -> None:
    existing = await edit_requests_collection.find_one({
        "status": EditRequestStatus.PENDING.value,
        "$or": [{"log_id": {"$in": list(log_ids)}}, {"log_ids": {"$in": list(log_ids)}}],
    })
    if existing:
        raise ValueError("A pending edit request already exists for this time log")


async def _insert_request(request: EditLogRequest) -> EditLogRequest:
    result = await edit_requests_collection.insert_one(request.to_document())
    request.id = str(result.inserted_id)
    return request


async def create_edit_request(
    user_id: str,
    log_id: str,
    requested_time_in: Optional[datetime] = None,
    requested_time_out: Optional[datetime] = None,
    reason: Optional[str] = None,
    requested_by: Optional[str] = None,
) -> EditLogRequest:
    """File a correction for one log; the log's current times are kept on the request."""
    log = await fetch_time_log(log_id)
    if log is None or log.user_id != str(user_id):
        raise LookupError("Time log not found")
    if requested_time_in is None and requested_time_out is None:
        raise ValueError("Provide a new time in or time out")
    await _ensure_no_pending_request([log.id])

    request = EditLogRequest(
        user_id=str(user_id),
        log_id=log.id,
        requested_time_in=truncate_to_minute(requested_time_in),
        requested_time_out=truncate_to_minute(requested_time_out),
        original_time_in=log.time_in,
        original_time_out=log.time_out,
        reason=reason,
        original_logs=[snapshot(log)],
        requested_by=requested_by or str(user_id),
    )
    return await _insert_request(request)


async def create_session_edit_request(
    user_id: str,
    log_ids: List[str],
    requested_time_in: datetime,
    requested_time_out: datetime,
    reason: Optional[str] = None,
    requested_by: Optional[str] = None,
) -> EditLogRequest:
    """File one correction covering every log of a continuous session."""
    logs = await fetch_time_logs_by_ids(log_ids)
    if len(logs) != len(set(log_ids)) or any(log.user_id != str(user_id) for log in logs):
        raise LookupError("Time log not found")
    await _ensure_no_pending_request([log.id for log in logs])

    logs.sort(key=lambda log: log.time_in)
    request = EditLogRequest(
        user_id=str(user_id),
        log_ids=[log.id for log in logs],
        requested_time_in=truncate_to_minute(requested_time_in),
        requested_time_out=truncate_to_minute(requested_time_out),
        original_time_in=logs[0].time_in,
        original_time_out=logs[-1].time_out,
        reason=reason,
        is_continuous_session=True,
        original_logs=[snapshot(log) for log in logs],
        requested_by=requested_by or str(user_id),
    )
    return await _insert_request(request)


async def _set_request(request_id: str, changes: dict) -> EditLogRequest:
    document = await edit_requests_collection.find_one_and_update(
        {"_id": to_object_id(request_id)},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if not document:
        raise LookupError("Edit request not found")
    return _to_request(document)


async def _approve(requests: List[EditLogRequest], reviewer_id: Optional[str]) -> List[EditLogRequest]:
    target_ids = [log_id for request in requests for log_id in request.target_log_ids]
    logs = sorted(await fetch_time_logs_by_ids(target_ids), key=lambda log: log.time_in)
    if not logs:
        raise LookupError("Time log not found")

    requested_in = [r.requested_time_in for r in requests if r.requested_time_in is not None]
    requested_out = [r.requested_time_out for r in requests if r.requested_time_out is not None]
    new_in = min(requested_in) if requested_in else logs[0].time_in
    new_out = max(requested_out) if requested_out else logs[-1].time_out
    if new_in is None or new_out is None or new_out <= new_in:
        raise ValueError("Requested time out must be after time in")

    user_id = logs[0].user_id
    day_logs = await fetch_day_logs(user_id, local_date(new_in, settings.TIMEZONE))
    cumulative = regular_hours_before(day_logs, new_in, exclude=[log.id for log in logs])
    segments = split_span(new_in, new_out, cumulative,
                          settings.DAILY_REQUIRED_HOURS, settings.MAX_OVERTIME_HOURS)

    await delete_time_logs([log.id for log in logs])
    new_ids = await insert_logs(segment_to_log(user_id, segment, created_at=logs[0].created_at)
                                for segment in segments)

    now = datetime.now(UTC)
    updated = []
    for request in requests:
        updated.append(await _set_request(request.id, {
            "status": EditRequestStatus.APPROVED.value,
            "applied_log_ids": new_ids,
            "reviewed_by": reviewer_id,
            "reviewed_at": now,
        }))
    logger.info(f"Approved edit requests {[r.id for r in requests]}: {len(logs)} logs replaced by {len(new_ids)}")
    return updated


async def _reject(requests: List[EditLogRequest], reviewer_id: Optional[str]) -> List[EditLogRequest]:
    now = datetime.now(UTC)
    return [
        await _set_request(request.id, {
            "status": EditRequestStatus.REJECTED.value,
            "reviewed_by": reviewer_id,
            "reviewed_at": now,
        })
        for request in requests
    ]


async def _with_shared_approvals(requests: List[EditLogRequest]) -> List[EditLogRequest]:
    """Add every approved request whose applied logs overlap the given ones.

    Requests approved together share one set of replacement logs, so they can
    only be reverted together.
    """
    applied = {log_id for r in requests if r.status == EditRequestStatus.APPROVED for log_id in r.applied_log_ids}
    if not applied:
        return requests

    known = {r.id for r in requests}
    documents = await edit_requests_collection.find({
        "status": EditRequestStatus.APPROVED.value,
        "applied_log_ids": {"$in": list(applied)},
    }).to_list(length=None)
    siblings = [_to_request(document) for document in documents if str(document["_id"]) not in known]
    if siblings:
        logger.info(f"Reverting {[r.id for r in siblings]} together with {sorted(known)}")
    return requests + siblings


async def _revert(requests: List[EditLogRequest]) -> List[EditLogRequest]:
    applied_ids = {log_id for r in requests if r.status == EditRequestStatus.APPROVED for log_id in r.applied_log_ids}
    originals: Dict[str, LogSnapshot] = {}
    for request in requests:
        if request.status == EditRequestStatus.APPROVED:
            for original in request.original_logs:
                originals.setdefault(original.log_id, original)

    id_map: Dict[str, str] = {}
    if applied_ids or originals:
        user_id = requests[0].user_id
        await delete_time_logs(applied_ids)
        restored = [
            TimeLog(
                user_id=user_id,
                time_in=original.time_in,
                time_out=original.time_out,
                log_type=original.log_type,
                overtime_status=original.overtime_status,
                status=original.status or LogStatus.COMPLETED.value,
                notes=original.notes,
                updated_at=datetime.now(UTC),
            )
            for original in originals.values()
        ]
        new_ids = await insert_logs(restored)
        id_map = dict(zip(originals.keys(), new_ids))

    updated = []
    for request in requests:
        changes = {
            "status": EditRequestStatus.PENDING.value,
            "applied_log_ids": [],
            "reviewed_by": None,
            "reviewed_at": None,
        }
        if id_map:
            # originals come back under new ids
            if request.log_id:
                changes["log_id"] = id_map.get(request.log_id, request.log_id)
            changes["log_ids"] = [id_map.get(log_id, log_id) for log_id in request.log_ids]
            changes["original_logs"] = [
                {**original.model_dump(), "log_id": id_map.get(original.log_id, original.log_id)}
                for original in request.original_logs
            ]
        updated.append(await _set_request(request.id, changes))
    return updated


async def update_edit_request_status(
    request_ids: Iterable[str],
    action: EditRequestAction,
    reviewer_id: Optional[str] = None,
) -> List[EditLogRequest]:
    """
    Approve, reject or revert a set of edit requests as one unit.

    Approving replaces the targeted logs with the requested span, split into
    regular / overtime / extended overtime logs. Rejecting only records the
    decision. Reverting puts the requests back to pending and, for approved
    ones, restores the logs as they were before approval. Requests approved
    in the same action share their replacement logs and are reverted along
    with the ones asked for.
    """
    action = EditRequestAction(action)
    requests = await fetch_edit_requests_by_ids(request_ids)
    if not requests:
        raise ValueError("No edit requests given")

    if action == EditRequestAction.REVERT:
        if all(r.status == EditRequestStatus.PENDING for r in requests):
            raise ValueError("Edit request is already pending")
        return await _revert(await _with_shared_approvals(requests))

    decided = [r for r in requests if r.status != EditRequestStatus.PENDING]
    if decided:
        raise ValueError(f"Edit request has already been {decided[0].status.value}")

    if action == EditRequestAction.APPROVE:
        return await _approve(requests, reviewer_id)
    return await _reject(requests, reviewer_id)


async def delete_edit_request(request_id: str) -> None:
    result = await edit_requests_collection.delete_one({"_id": to_object_id(request_id)})
    if result.deleted_count == 0:
        raise LookupError("Request not found or already deleted")

