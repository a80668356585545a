import os
from datetime import datetime, timezone

os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("TIMEZONE", "UTC")
os.environ["ENABLE_SCHEDULER"] = "false"

import pytest
import pytest_asyncio
from asgi_lifespan import LifespanManager
from httpx import AsyncClient, ASGITransport
from mongomock_motor import AsyncMongoMockClient

from main import app
from models.edit_requests import EditLogRequest
from models.time_logs import LogStatus, LogType, OvertimeStatus, TimeLog
from utils import activity_utils, app_utils, edit_request_db_utils, time_log_utils, user_utils
from utils.app_utils import get_current_user

UTC = timezone.utc

INTERN = {"_id": "64b000000000000000000001", "email": "intern@example.com", "first_name": "Ina",
          "last_name": "Reyes", "role": "intern", "required_hours": 486}
ADMIN = {"_id": "64b000000000000000000002", "email": "admin@example.com", "first_name": "Ada",
         "last_name": "Cruz", "role": "admin"}


def at(day: int, hour: int, minute: int = 0, second: int = 0) -> datetime:
    return datetime(2024, 1, day, hour, minute, second, tzinfo=UTC)


def make_log(log_id, time_in, time_out=None, log_type=LogType.REGULAR,
             overtime_status=None, user_id=INTERN["_id"]) -> TimeLog:
    return TimeLog(
        _id=log_id,
        user_id=user_id,
        time_in=time_in,
        time_out=time_out,
        log_type=log_type,
        overtime_status=overtime_status or OvertimeStatus.NONE,
        status=LogStatus.COMPLETED if time_out else LogStatus.PENDING,
    )


def make_request(request_id, log_ids, requested_time_in=None, requested_time_out=None,
                 status="pending", user_id=INTERN["_id"]) -> EditLogRequest:
    return EditLogRequest(
        _id=request_id,
        user_id=user_id,
        log_id=log_ids[0] if len(log_ids) == 1 else None,
        log_ids=log_ids if len(log_ids) > 1 else [],
        requested_time_in=requested_time_in,
        requested_time_out=requested_time_out,
        status=status,
        is_continuous_session=len(log_ids) > 1,
    )


@pytest.fixture
def as_intern():
    app.dependency_overrides[get_current_user] = lambda: (INTERN, "intern")
    yield INTERN
    app.dependency_overrides.clear()


@pytest.fixture
def as_admin():
    app.dependency_overrides[get_current_user] = lambda: (ADMIN, "admin")
    yield ADMIN
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client():
    async with LifespanManager(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac


@pytest.fixture
def mongo(monkeypatch):
    """In-memory database behind every data access module."""
    db = AsyncMongoMockClient(tz_aware=True)["internhq_test"]
    monkeypatch.setattr(time_log_utils, "time_logs_collection", db.time_logs)
    monkeypatch.setattr(edit_request_db_utils, "edit_requests_collection", db.time_log_edit_requests)
    monkeypatch.setattr(app_utils, "users_collection", db.users)
    monkeypatch.setattr(user_utils, "users_collection", db.users)
    monkeypatch.setattr(activity_utils, "system_activity_collection", db.system_activity)
    return db
