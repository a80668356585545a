from datetime import datetime
from typing import Optional
from pytz import UTC
from db import system_activity_collection


async def log_admin_activity(admin_id: str = None, type: str = None, action: str = None,
                             status: str = None, target_id: Optional[str] = None):
    """
    Log an admin activity.

    Args:
        admin_id (str): The admin's identifier.
        type (str): What was acted on, e.g. "overtime" or "edit_request".
        action (str): Description of the admin activity.
        status (str): "success" or "failed".
        target_id (str, optional): Id of the record acted on.
    """
    log_entry = {
        "admin_id": admin_id,
        "type": type,
        "action": action,
        "status": status,
        "target_id": target_id,
        "timestamp": datetime.now(UTC)
    }
    await system_activity_collection.insert_one(log_entry)
