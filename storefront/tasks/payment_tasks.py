"""Payment reconciliation background tasks"""

from celery.utils.log import get_task_logger
import asyncio

from storefront.core.celery_app import celery_app
from storefront.core.config import settings
from storefront.core.database import get_db_context
from storefront.api.v1.payments.webhooks import replay_unprocessed_events

logger = get_task_logger(__name__)

async def _replay(limit: int) -> int:
    async with get_db_context() as db:
        return await replay_unprocessed_events(db, limit=limit)

@celery_app.task(name="storefront.tasks.payment_tasks.replay_unprocessed_webhook_events")
def replay_unprocessed_webhook_events(limit: int = None):
    """Re-dispatch verified webhook events whose processing never finished"""
    limit = limit or settings.WEBHOOK_REPLAY_BATCH_SIZE

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        replayed = loop.run_until_complete(_replay(limit))
    except Exception as e:
        logger.error(f"Error replaying webhook events: {str(e)}")
        raise
    finally:
        loop.close()

    logger.info(f"Replayed {replayed} webhook events")
    return {"replayed": replayed}
