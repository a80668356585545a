import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pymongo.errors import PyMongoError

from exceptions import get_bad_request_exception, get_conflict_exception, get_unknown_entity_exception
from models.edit_requests import EditRequestStatus
from schemas.edit_request import CreateEditRequest, CreateSessionEditRequest
from utils.app_utils import get_current_user
from utils.edit_request_db_utils import (create_edit_request, create_session_edit_request,
                                         fetch_edit_requests)

router = APIRouter()

logger = logging.getLogger(__name__)


@router.post("/", status_code=status.HTTP_201_CREATED)
async def request_log_edit(payload: CreateEditRequest, user_and_type: tuple = Depends(get_current_user)):
    """
    Ask for a correction of one of your time logs.

    The log keeps its stored times until an admin approves the request; the
    requested times are only shown over it in the meantime.

    Args:
        payload (CreateEditRequest): The log id, the new time in and / or
            time out and a reason.

    Returns:
        dict: Success message and the stored request.

    Raises:
        HTTPException: 404 if the log does not exist or is not yours.
        HTTPException: 409 if the log already has a pending request.
    """
    user, _ = user_and_type
    user_id = str(user["_id"])

    try:
        request = await create_edit_request(
            user_id,
            payload.log_id,
            requested_time_in=payload.requested_time_in,
            requested_time_out=payload.requested_time_out,
            reason=payload.reason,
        )
    except LookupError as e:
        raise get_unknown_entity_exception(str(e))
    except ValueError as e:
        raise get_conflict_exception(str(e))
    except PyMongoError as e:
        logger.error(f"Edit request failed for user {user_id} - {e}")
        raise get_bad_request_exception(f"An error occurred - {e}")

    return {"message": "Edit request submitted", "request": request.model_dump()}


@router.post("/session", status_code=status.HTTP_201_CREATED)
async def request_session_edit(payload: CreateSessionEditRequest,
                               user_and_type: tuple = Depends(get_current_user)):
    """
    Ask for a correction of a whole continuous session.

    On approval every listed log is replaced by the requested span, split
    again into regular, overtime and extended overtime logs.

    Raises:
        HTTPException: 404 if any log does not exist or is not yours.
        HTTPException: 409 if any of the logs already has a pending request.
    """
    user, _ = user_and_type
    user_id = str(user["_id"])

    try:
        request = await create_session_edit_request(
            user_id,
            payload.log_ids,
            requested_time_in=payload.requested_time_in,
            requested_time_out=payload.requested_time_out,
            reason=payload.reason,
        )
    except LookupError as e:
        raise get_unknown_entity_exception(str(e))
    except ValueError as e:
        raise get_conflict_exception(str(e))
    except PyMongoError as e:
        logger.error(f"Session edit request failed for user {user_id} - {e}")
        raise get_bad_request_exception(f"An error occurred - {e}")

    return {"message": "Edit request submitted", "request": request.model_dump()}


@router.get("/mine")
async def list_my_edit_requests(
    request_status: Optional[EditRequestStatus] = Query(None, alias="status"),
    user_and_type: tuple = Depends(get_current_user),
):
    """Your edit requests, newest first."""
    user, _ = user_and_type
    requests = await fetch_edit_requests(user_id=str(user["_id"]), status=request_status)
    return {"requests": [request.model_dump() for request in requests]}
