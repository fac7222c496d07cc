import logging
from typing import Any, Dict, Optional

from .repository import NotificationRepository
from .schemas import BestEffort, DispatchResult, DispatchStatus, NotificationRecord
from .service import NotificationDispatchService

logger = logging.getLogger(__name__)


async def _record_sent(repository: NotificationRepository, notification_id: str,
                       result: DispatchResult) -> BestEffort[bool]:
    try:
        await repository.mark_sent(notification_id, result.successCount, result.failureCount)
        return BestEffort[bool].succeeded(True)
    except Exception as e:
        logger.error(f"Error recording delivery outcome for notification {notification_id}: {str(e)}")
        return BestEffort[bool].failed(False, e)


async def _record_failure(repository: NotificationRepository, notification_id: str,
                          error: Exception) -> BestEffort[bool]:
    try:
        await repository.mark_failed(notification_id, str(error) or type(error).__name__)
        return BestEffort[bool].succeeded(True)
    except Exception as e:
        logger.error(f"Error marking notification {notification_id} as failed: {str(e)}")
        return BestEffort[bool].failed(False, e)


async def handle_notification_created(service: NotificationDispatchService,
                                      repository: NotificationRepository,
                                      notification_id: str,
                                      data: Optional[Dict[str, Any]] = None,
                                      record_outcome: bool = True) -> Optional[DispatchResult]:
    """
    Push a newly created notification record to its owner's devices.

    Never raises: the creation event must not be redelivered, since sending
    again would duplicate the push.

    Args:
        service: Dispatch pipeline
        repository: Notification store, used to load the record when `data`
            is missing and to record the delivery outcome
        notification_id: ID of the created document
        data: Fields of the created document, if carried by the event
        record_outcome: Whether to write sent/sentAt/counts back on the record

    Returns:
        The DispatchResult, or None when nothing was sent
    """
    record = None
    try:
        if data is None:
            record = await repository.get(notification_id)
            if record is None:
                logger.info(f"Notification {notification_id} not found")
                return None
        else:
            record = NotificationRecord(**{**data, 'id': notification_id})

        if not record.userId:
            logger.info(f"No userId found in notification {notification_id}")
            return None

        logger.info(f"Processing notification {notification_id} for user {record.userId}")
        result = await service.dispatch(record.userId, record.to_content(), notification_id=notification_id)

        if result.status == DispatchStatus.DISPATCHED:
            logger.info(f"Notification {notification_id} sent to {record.userId}: "
                        f"{result.successCount} succeeded, {result.failureCount} failed")
            if record_outcome:
                await _record_sent(repository, notification_id, result)
        return result

    except Exception as e:
        logger.error(f"Error sending notification {notification_id}: {str(e)}", exc_info=True)
        if record is not None or data is not None:
            await _record_failure(repository, notification_id, e)
        return None
