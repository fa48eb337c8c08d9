import asyncio
from app import config
from app.db import get_db
from app.models.shift_cancellation import CancellationStatus
from app.services.calendar import utcnow
from app.services.notification_service import notification_service
from app.utils.logger import log_event, EventTypes
import logging

logger = logging.getLogger(__name__)


async def expire_stale_requests() -> dict:
    """Mark lapsed pending cancellation requests expired and drop their announcements"""
    db = get_db()
    now = utcnow()
    expired_ids = []

    cursor = db["shift_cancellation_requests"].find(
        {"status": CancellationStatus.PENDING.value, "expires_at": {"$lte": now}},
        {"_id": 1}
    )
    async for request in cursor:
        result = await db["shift_cancellation_requests"].update_one(
            {"_id": request["_id"], "status": CancellationStatus.PENDING.value},
            {"$set": {"status": CancellationStatus.EXPIRED.value, "updated_at": now}}
        )
        if result.modified_count:
            expired_ids.append(str(request["_id"]))
            await notification_service.delete_notifications_by_cancellation_request(str(request["_id"]))

    removed = await notification_service.cleanup_expired_notifications()
    return {"expired_requests": len(expired_ids), "removed_notifications": removed}


class CancellationCleanupService:
    def __init__(self, cleanup_interval_minutes: int = 30):
        self.cleanup_interval_minutes = cleanup_interval_minutes
        self.is_running = False
        self.task = None

    async def start(self):
        """Start the cancellation cleanup background task"""
        if self.is_running:
            return

        self.is_running = True
        self.task = asyncio.create_task(self._cleanup_loop())
        logger.info("Cancellation cleanup service started")

    async def stop(self):
        """Stop the cancellation cleanup background task"""
        if not self.is_running:
            return

        self.is_running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
        logger.info("Cancellation cleanup service stopped")

    async def run_once(self):
        try:
            summary = await expire_stale_requests()
            await log_event(EventTypes.CANCELLATION_CLEANUP_COMPLETED, {
                **summary,
                "timestamp": utcnow().isoformat()
            })
            logger.info(f"Cancellation cleanup completed: {summary}")
            return summary
        except Exception as e:
            logger.error(f"Error during cancellation cleanup: {e}")
            await log_event(EventTypes.CANCELLATION_CLEANUP_ERROR, {
                "error": str(e),
                "timestamp": utcnow().isoformat()
            })
            return None

    async def _cleanup_loop(self):
        """Main cleanup loop"""
        while self.is_running:
            await self.run_once()

            # Wait for the next cleanup interval
            await asyncio.sleep(self.cleanup_interval_minutes * 60)

# Global instance
cancellation_cleanup_service = CancellationCleanupService(config.CANCELLATION_CLEANUP_INTERVAL_MINUTES)

async def start_cancellation_cleanup():
    """Start the cancellation cleanup service"""
    await cancellation_cleanup_service.start()

async def stop_cancellation_cleanup():
    """Stop the cancellation cleanup service"""
    await cancellation_cleanup_service.stop()
