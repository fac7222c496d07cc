import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .repository import NotificationRepository

logger = logging.getLogger(__name__)

FIRESTORE_MAX_BATCH_SIZE = 500


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RetentionSweeper:
    """Deletes notifications older than the retention window."""

    def __init__(self,
                 repository: NotificationRepository,
                 retention_days: int = 30,
                 batch_size: int = FIRESTORE_MAX_BATCH_SIZE,
                 clock: Callable[[], datetime] = utc_now):
        self.repository = repository
        self.retention_days = retention_days
        self.batch_size = max(1, min(batch_size, FIRESTORE_MAX_BATCH_SIZE))
        self.clock = clock

    def cutoff(self, now: Optional[datetime] = None) -> datetime:
        return (now or self.clock()) - timedelta(days=self.retention_days)

    async def sweep(self) -> int:
        """
        Delete every notification created before the cutoff, one batch per page.

        Errors are logged and end the sweep; what is left is picked up by the
        next scheduled run.

        Returns:
            Number of notifications deleted
        """
        cutoff = self.cutoff()
        deleted = 0
        try:
            while True:
                refs = await self.repository.list_created_before(cutoff, self.batch_size)
                if not refs:
                    break
                deleted += await self.repository.delete_all(refs)
                if len(refs) < self.batch_size:
                    break
        except Exception as e:
            logger.error(f"Error cleaning up old notifications: {str(e)}", exc_info=True)

        logger.info(f"Deleted {deleted} notification(s) created before {cutoff.isoformat()}")
        return deleted
