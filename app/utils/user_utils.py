import logging
from datetime import datetime
from typing import List, Tuple

from pytz import UTC

from db import users_collection
from schemas.users import CreateIntern, InternOut
from utils.app_utils import generate_password, hash_password
from utils.time_log_utils import fetch_time_logs
from utils.time_utils import calculate_internship_progress

logger = logging.getLogger(__name__)


def _to_intern(user: dict, completed_hours: float = 0) -> InternOut:
    return InternOut(
        id=str(user["_id"]),
        role=user.get("role", "intern"),
        completed_hours=completed_hours,
        **{k: v for k, v in user.items() if k not in ("_id", "password", "role")},
    )


async def fetch_interns() -> List[InternOut]:
    """Every intern with the hours counted towards their internship so far."""
    users = await users_collection.find({"role": "intern"}).sort("last_name", 1).to_list(length=None)
    interns = []
    for user in users:
        logs = await fetch_time_logs(user_id=str(user["_id"]))
        interns.append(_to_intern(user, calculate_internship_progress(logs)))
    return interns


async def create_intern(data: CreateIntern) -> Tuple[InternOut, str]:
    """
    Create an intern account.

    A password is generated when none is given; the plain password is
    returned once so the admin can hand it over.

    Raises:
        ValueError: if the email is already registered.
    """
    email = str(data.email)
    if await users_collection.find_one({"email": email}):
        raise ValueError("Email already exists")

    password = data.password or generate_password(8)
    user = data.model_dump(exclude={"password"})
    user.update({
        "first_name": data.first_name.strip(),
        "last_name": data.last_name.strip(),
        "email": email,
        "password": hash_password(password),
        "role": "intern",
        "created_at": datetime.now(UTC),
    })
    result = await users_collection.insert_one(user)
    user["_id"] = result.inserted_id
    logger.info(f"Created intern {email}")
    return _to_intern(user), password
