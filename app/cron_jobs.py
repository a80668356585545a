import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from config import settings
from utils.time_log_utils import split_long_logs

logger = logging.getLogger(__name__)

# Create a shared scheduler instance
scheduler = AsyncIOScheduler()


async def split_long_regular_logs():
    """Split regular logs that ran past the daily requirement into overtime logs."""
    try:
        result = await split_long_logs()
        logger.info(f"Long log split done: {result['processed']} processed, {len(result['errors'])} errors")
    except Exception as e:
        logger.error(f"Error during long log split: {e}")


scheduler.add_job(
    split_long_regular_logs,
    "interval",
    hours=settings.LONG_LOG_SPLIT_HOURS,
)
