import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import google.cloud.firestore
from firebase_admin import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from .schemas import NotificationRecord

logger = logging.getLogger(__name__)


class NotificationRepository:
    """Access to the `notifications` collection."""

    def __init__(self, firestore_db: google.cloud.firestore.Client):
        self.firestore_db = firestore_db
        self.notifications = firestore_db.collection('notifications')

    async def get(self, notification_id: str) -> Optional[NotificationRecord]:
        notif = await asyncio.to_thread(self.notifications.document(notification_id).get)
        if not notif.exists:
            return None
        return NotificationRecord(**{**(notif.to_dict() or {}), 'id': notif.id})

    async def create(self, fields: Dict[str, Any]) -> str:
        """
        Add a notification document, stamping createdAt with the server time.

        Returns:
            The ID of the new document
        """
        data = dict(fields)
        data.setdefault('isRead', False)
        data['createdAt'] = firestore.SERVER_TIMESTAMP
        _, notif_ref = await asyncio.to_thread(self.notifications.add, data)
        logger.info(f"Created notification {notif_ref.id} for user {data.get('userId')}")
        return notif_ref.id

    async def mark_sent(self, notification_id: str, success_count: int, failure_count: int) -> None:
        notif_ref = self.notifications.document(notification_id)
        await asyncio.to_thread(notif_ref.update, {
            'sent': True,
            'sentAt': firestore.SERVER_TIMESTAMP,
            'successCount': success_count,
            'failureCount': failure_count,
        })

    async def mark_failed(self, notification_id: str, error: str) -> None:
        notif_ref = self.notifications.document(notification_id)
        await asyncio.to_thread(notif_ref.update, {
            'sent': False,
            'error': error,
            'errorAt': firestore.SERVER_TIMESTAMP,
        })

    async def list_created_before(self, cutoff: datetime, limit: int) -> List[Any]:
        """References of at most `limit` notifications with createdAt strictly before cutoff."""
        query = (
            self.notifications
            .where(filter=FieldFilter('createdAt', '<', cutoff))
            .order_by('createdAt')
            .limit(limit)
        )
        docs = await asyncio.to_thread(query.get)
        return [doc.reference for doc in docs]

    async def delete_all(self, refs: List[Any]) -> int:
        """Delete the given documents in one atomic batch."""
        if not refs:
            return 0
        batch = self.firestore_db.batch()
        for ref in refs:
            batch.delete(ref)
        await asyncio.to_thread(batch.commit)
        return len(refs)
