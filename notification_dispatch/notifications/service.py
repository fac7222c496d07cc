import logging
from typing import Optional

from .dispatcher import MulticastDispatcher
from .reconciler import InvalidTokenReconciler
from .schemas import DispatchResult, DispatchStatus, NotificationContent
from .token_store import TokenStore
from .unread_counter import UnreadCounter

logger = logging.getLogger(__name__)


class NotificationDispatchService:
    """Push pipeline shared by the on-create and direct-send triggers."""

    def __init__(self,
                 token_store: TokenStore,
                 unread_counter: UnreadCounter,
                 dispatcher: MulticastDispatcher,
                 reconciler: InvalidTokenReconciler):
        self.token_store = token_store
        self.unread_counter = unread_counter
        self.dispatcher = dispatcher
        self.reconciler = reconciler
        logger.info("NotificationDispatchService initialized")

    async def dispatch(self,
                       user_id: str,
                       content: NotificationContent,
                       notification_id: Optional[str] = None) -> DispatchResult:
        """
        Push a notification to every device of a user.

        Args:
            user_id: The recipient's user ID
            content: Notification title, body and data fields
            notification_id: ID of the originating notification record, if any

        Returns:
            DispatchResult; users without a document or without tokens are
            skipped, not treated as errors
        """
        tokens = await self.token_store.get_tokens(user_id)
        if tokens is None:
            logger.info(f"User {user_id} not found")
            return DispatchResult(status=DispatchStatus.SKIPPED_NO_USER)

        if not tokens:
            logger.info(f"User {user_id} has no FCM tokens")
            return DispatchResult(status=DispatchStatus.SKIPPED_NO_TOKENS)

        badge = await self.unread_counter.count(user_id)

        logger.info(f"Sending notification to {len(tokens)} device(s) of user {user_id}")
        result = await self.dispatcher.send(content, tokens, badge=badge.value, notification_id=notification_id)

        removed_tokens = []
        if result.failureCount > 0:
            cleanup = await self.reconciler.reconcile(user_id, result.deliveries)
            removed_tokens = cleanup.value

        return DispatchResult(
            status=DispatchStatus.DISPATCHED,
            successCount=result.successCount,
            failureCount=result.failureCount,
            removedTokens=removed_tokens,
            badge=badge.value,
        )
