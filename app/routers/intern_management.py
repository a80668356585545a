import logging

from fastapi import APIRouter, Depends, status
from pymongo.errors import PyMongoError

from exceptions import get_bad_request_exception, get_conflict_exception, get_unknown_entity_exception
from schemas.users import CreateIntern
from utils.activity_utils import log_admin_activity
from utils.app_utils import get_current_user, require_admin
from utils.time_log_utils import delete_time_log
from utils.user_utils import create_intern, fetch_interns

router = APIRouter()

logger = logging.getLogger(__name__)


@router.get("/interns")
async def list_interns(user_and_type: tuple = Depends(get_current_user)):
    """
    List every intern with their completed internship hours.

    Raises:
        HTTPException: 403 if the caller is not an admin.
    """
    require_admin(user_and_type)
    interns = await fetch_interns()
    return {"interns": [intern.model_dump() for intern in interns]}


@router.post("/interns", status_code=status.HTTP_201_CREATED)
async def create_intern_account(payload: CreateIntern, user_and_type: tuple = Depends(get_current_user)):
    """
    Create an intern account.

    Args:
        payload (CreateIntern): Name, email, school, department, required hours
            and internship dates. The password is optional.

    Returns:
        dict: Success message, the created intern and the password to hand over.

    Raises:
        HTTPException: 403 if the caller is not an admin.
        HTTPException: 409 if the email is already registered.
    """
    admin = require_admin(user_and_type)
    admin_id = str(admin["_id"])

    try:
        intern, password = await create_intern(payload)
    except ValueError as e:
        await log_admin_activity(admin_id, "intern", f"Create intern {payload.email}", "failed")
        raise get_conflict_exception(str(e))
    except PyMongoError as e:
        logger.error(f"Creating intern {payload.email} failed - {e}")
        raise get_bad_request_exception(f"An error occurred - {e}")

    await log_admin_activity(admin_id, "intern", f"Created {intern.first_name} profile", "success", intern.id)
    return {"message": "Intern account created successfully",
            "data": {"intern": intern.model_dump(), "password": password}}


@router.delete("/time-logs/{log_id}")
async def delete_intern_time_log(log_id: str, user_and_type: tuple = Depends(get_current_user)):
    """
    Delete one time log.

    Corrections go through edit requests; this is only for removing a log
    outright, e.g. a duplicate.

    Raises:
        HTTPException: 403 if the caller is not an admin.
        HTTPException: 404 if no log has this id.
    """
    admin = require_admin(user_and_type)
    admin_id = str(admin["_id"])

    try:
        await delete_time_log(log_id)
    except LookupError as e:
        await log_admin_activity(admin_id, "time_log", "Delete time log", "failed", log_id)
        raise get_unknown_entity_exception(str(e))
    except PyMongoError as e:
        raise get_bad_request_exception(f"An error occurred - {e}")

    await log_admin_activity(admin_id, "time_log", "Delete time log", "success", log_id)
    return {"message": "Time log deleted successfully"}
