import asyncio
import logging

import google.cloud.firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from .schemas import BestEffort

logger = logging.getLogger(__name__)


class UnreadCounter:
    """Counts a user's unread notifications for the badge shown on the app icon."""

    def __init__(self, firestore_db: google.cloud.firestore.Client):
        self.notifications = firestore_db.collection('notifications')

    async def count(self, user_id: str) -> BestEffort[int]:
        query = (
            self.notifications
            .where(filter=FieldFilter('userId', '==', user_id))
            .where(filter=FieldFilter('isRead', '==', False))
        )
        try:
            results = await asyncio.to_thread(query.count(alias='unread').get)
            return BestEffort[int].succeeded(int(results[0][0].value))
        except Exception as e:
            logger.error(f"Error counting unread notifications for user {user_id}: {str(e)}")
            return BestEffort[int].failed(0, e)
