import logging
from typing import Awaitable, Callable, Iterable, Optional

from schemas.session import BatchResult

logger = logging.getLogger(__name__)

BatchHandler = Callable[[str], Awaitable[Optional[bool]]]


async def run_batch(ids: Iterable[str], handler: BatchHandler, label: str = "batch") -> BatchResult:
    """
    Apply `handler` to each id in order, one call at a time.

    A handler that raises or returns False marks that id as failed and the
    loop moves on to the next id. Nothing already applied is rolled back.
    """
    result = BatchResult()
    for item_id in ids:
        item_id = str(item_id)
        try:
            outcome = await handler(item_id)
        except Exception as e:
            logger.error(f"{label}: item {item_id} failed - {e}")
            result.failed.append(item_id)
            result.errors[item_id] = str(e)
            continue

        if outcome is False:
            result.failed.append(item_id)
            result.errors[item_id] = "not applied"
        else:
            result.succeeded.append(item_id)

    logger.info(f"{label} finished: {result.success_count} succeeded, {result.error_count} failed")
    return result
