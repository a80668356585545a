from motor.motor_asyncio import AsyncIOMotorClient
from config import settings


client = AsyncIOMotorClient(settings.MONGODB_URL, tz_aware=True)
db = client[settings.DATABASE_NAME]


users_collection = db.users
time_logs_collection = db.time_logs
edit_requests_collection = db.time_log_edit_requests
system_activity_collection = db.system_activity
