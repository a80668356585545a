import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pymongo.errors import PyMongoError

from config import settings
from exceptions import get_bad_request_exception, get_conflict_exception, get_unknown_entity_exception
from models.edit_requests import EditRequestAction, EditRequestStatus
from schemas.edit_request import BatchEditAction, EditRequestActionBody
from utils.activity_utils import log_admin_activity
from utils.app_utils import get_current_user, require_admin
from utils.batch_utils import run_batch
from utils.edit_request_db_utils import delete_edit_request, fetch_edit_requests, update_edit_request_status
from utils.edit_request_utils import group_continuous_sessions
from utils.time_log_utils import fetch_time_logs_by_ids

router = APIRouter()

logger = logging.getLogger(__name__)


async def _apply(request_ids, action: EditRequestAction, admin_id: str):
    """Run one action on a set of requests and translate failures to HTTP errors."""
    try:
        updated = await update_edit_request_status(request_ids, action, admin_id)
    except LookupError as e:
        await log_admin_activity(admin_id, "edit_request", f"{action.value} edit request", "failed",
                                 ",".join(request_ids))
        raise get_unknown_entity_exception(str(e))
    except ValueError as e:
        raise get_conflict_exception(str(e))
    except PyMongoError as e:
        logger.error(f"Edit request {action.value} failed for {request_ids} - {e}")
        raise get_bad_request_exception(f"An error occurred - {e}")

    await log_admin_activity(admin_id, "edit_request", f"{action.value} edit request", "success",
                             ",".join(request_ids))
    return updated


@router.get("/")
async def list_edit_requests(
    request_status: Optional[EditRequestStatus] = Query(None, alias="status"),
    user_id: Optional[str] = Query(None),
    user_and_type: tuple = Depends(get_current_user),
):
    """
    Edit requests for review, grouped by continuous session.

    Requests whose logs chain into one session come back as a single group
    listing every request id, so the group can be approved, rejected or
    reverted in one action. Requests whose logs no longer exist come back as
    orphan groups of one.

    Args:
        request_status (EditRequestStatus, optional): Only requests in this status.
        user_id (str, optional): Only this user's requests.

    Returns:
        dict: `groups` and the total number of requests.

    Raises:
        HTTPException: 403 if the caller is not an admin.
    """
    require_admin(user_and_type)

    requests = await fetch_edit_requests(user_id=user_id, status=request_status)
    log_ids = {log_id for request in requests for log_id in request.target_log_ids}
    logs = await fetch_time_logs_by_ids(log_ids)

    groups = group_continuous_sessions(requests, logs, tz_name=settings.TIMEZONE)
    return {"groups": [group.model_dump() for group in groups], "total": len(requests)}


@router.put("/{request_id}")
async def update_edit_request(
    request_id: str,
    payload: EditRequestActionBody,
    user_and_type: tuple = Depends(get_current_user),
):
    """
    Approve, reject or revert one edit request.

    Approving replaces the targeted logs with the requested span. Reverting
    an approved request restores the logs as they were and puts the request
    back to pending.

    Raises:
        HTTPException: 403 if the caller is not an admin.
        HTTPException: 404 if the request does not exist.
        HTTPException: 409 if the request was already decided, or is already pending on revert.
    """
    admin = require_admin(user_and_type)

    updated = await _apply([request_id], payload.action, str(admin["_id"]))
    return {"message": f"Edit request {updated[0].status.value}", "request": updated[0].model_dump()}


@router.post("/{request_id}/revert")
async def revert_edit_request(request_id: str, user_and_type: tuple = Depends(get_current_user)):
    """Put an approved or rejected edit request back to pending."""
    admin = require_admin(user_and_type)

    updated = await _apply([request_id], EditRequestAction.REVERT, str(admin["_id"]))
    return {"message": "Edit request reverted", "request": updated[0].model_dump()}


@router.post("/batch")
async def batch_update_edit_requests(payload: BatchEditAction, user_and_type: tuple = Depends(get_current_user)):
    """
    Apply one action to many edit requests.

    With `as_group` the ids are treated as one continuous session group and
    decided together. Otherwise each id is processed on its own, in order,
    and failures are reported per id without stopping the rest.

    Returns:
        dict: `succeeded` and `failed` request ids and the error for each failure.
    """
    admin = require_admin(user_and_type)
    admin_id = str(admin["_id"])

    if payload.as_group:
        updated = await _apply(payload.request_ids, payload.action, admin_id)
        return {"succeeded": [request.id for request in updated], "failed": [], "errors": {}}

    async def handle(request_id: str):
        await update_edit_request_status([request_id], payload.action, admin_id)

    result = await run_batch(payload.request_ids, handle, label=f"edit request {payload.action.value}")
    await log_admin_activity(
        admin_id, "edit_request",
        f"Batch {payload.action.value} on {result.success_count} edit requests",
        "success" if not result.failed else "failed",
    )
    return result.model_dump()


@router.delete("/{request_id}")
async def remove_edit_request(request_id: str, user_and_type: tuple = Depends(get_current_user)):
    """Delete an edit request. The time logs it targets are left as they are."""
    admin = require_admin(user_and_type)

    try:
        await delete_edit_request(request_id)
    except LookupError as e:
        raise get_unknown_entity_exception(str(e))

    await log_admin_activity(str(admin["_id"]), "edit_request", "Deleted edit request", "success", request_id)
    return {"message": "Edit request deleted"}
