import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from .repository import NotificationRepository
from .retention import RetentionSweeper
from .schemas import (
    CleanupResponse,
    DirectNotificationRequest,
    DirectNotificationResponse,
    DispatchStatus,
    NotificationCreatedEvent,
)
from .service import NotificationDispatchService
from .triggers import handle_notification_created
from ..container import NotificationComponents
from ..dependencies import (
    AuthenticatedUser,
    get_components,
    get_current_active_user,
    get_dispatch_service,
    get_repository,
    get_sweeper,
    verify_internal_caller,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Notifications"])

internal_router = APIRouter(
    prefix="/internal",
    dependencies=[Depends(verify_internal_caller)],
    tags=["Internal"]
)


@router.post('/notifications/direct',
             response_model=DirectNotificationResponse,
             response_model_exclude_none=True)
async def send_direct_notification(
    payload: DirectNotificationRequest,
    current_user: Annotated[AuthenticatedUser, Depends(get_current_active_user)],
    service: Annotated[NotificationDispatchService, Depends(get_dispatch_service)],
):
    """
    Push a notification to another user's devices right away
    """
    if not payload.targetUserId:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="targetUserId is required")
    if not payload.title or not payload.body:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="title and body are required")

    try:
        result = await service.dispatch(payload.targetUserId, payload.to_content())
    except Exception as e:
        logger.error(f"Error in send_direct_notification from {current_user.uid}: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error"
        )

    if result.status == DispatchStatus.SKIPPED_NO_USER:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    if result.status == DispatchStatus.SKIPPED_NO_TOKENS:
        return DirectNotificationResponse(
            success=True,
            successCount=0,
            failureCount=0,
            message="User has no FCM tokens"
        )

    return DirectNotificationResponse(
        success=True,
        successCount=result.successCount,
        failureCount=result.failureCount
    )


@router.post('/notifications/test', response_model=DirectNotificationResponse, response_model_exclude_none=True)
async def send_test_notification(
    current_user: Annotated[AuthenticatedUser, Depends(get_current_active_user)],
    components: Annotated[NotificationComponents, Depends(get_components)],
):
    """
    Create a test notification for the caller; the on-create trigger delivers it
    """
    settings = components.settings
    try:
        await components.repository.create({
            'userId': current_user.uid,
            'type': settings.default_notification_type,
            'title': settings.test_notification_title,
            'message': settings.test_notification_message,
            'priority': settings.default_priority,
            'isRead': False,
            'fromUserName': settings.test_notification_sender,
        })
    except Exception as e:
        logger.error(f"Error creating test notification for {current_user.uid}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error sending test notification"
        )

    return DirectNotificationResponse(success=True, message="Test notification sent")


@internal_router.post('/notifications/created', status_code=status.HTTP_202_ACCEPTED)
async def notification_created(
    event: NotificationCreatedEvent,
    service: Annotated[NotificationDispatchService, Depends(get_dispatch_service)],
    repository: Annotated[NotificationRepository, Depends(get_repository)],
    components: Annotated[NotificationComponents, Depends(get_components)],
):
    """
    Deliver a newly created notification record.

    Always accepted, so the event source does not redeliver the event.
    """
    await handle_notification_created(
        service,
        repository,
        event.notificationId,
        data=event.data,
        record_outcome=components.settings.record_delivery_outcome,
    )
    return {'status': 'accepted'}


@internal_router.post('/notifications/cleanup', response_model=CleanupResponse)
async def cleanup_old_notifications(
    sweeper: Annotated[RetentionSweeper, Depends(get_sweeper)],
):
    """
    Delete notifications past the retention window
    """
    deleted = await sweeper.sweep()
    return CleanupResponse(deleted=deleted)
