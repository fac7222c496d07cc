import asyncio
import logging
from typing import Dict, List, Optional, Sequence

from firebase_admin import exceptions, messaging

from .schemas import (
    DEFAULT_NOTIFICATION_TYPE,
    DEFAULT_PRIORITY,
    DeliveryOutcome,
    MulticastResult,
    NotificationContent,
    TokenDelivery,
)
from ..config import Settings
from ..firebase import FirebaseDB

logger = logging.getLogger(__name__)

TOKEN_NOT_REGISTERED = "messaging/registration-token-not-registered"
INVALID_REGISTRATION_TOKEN = "messaging/invalid-registration-token"
UNKNOWN_ERROR = "messaging/unknown-error"


def error_code_for(error: Optional[BaseException]) -> Optional[str]:
    """
    Map an Admin SDK send exception to a `messaging/...` error code.

    Args:
        error: The exception attached to a failed SendResponse

    Returns:
        The error code, or None when there is no error
    """
    if error is None:
        return None
    if isinstance(error, messaging.UnregisteredError):
        return TOKEN_NOT_REGISTERED
    if isinstance(error, exceptions.InvalidArgumentError) and 'registration token' in str(error).lower():
        return INVALID_REGISTRATION_TOKEN
    if isinstance(error, exceptions.FirebaseError) and error.code:
        return "messaging/" + str(error.code).lower().replace('_', '-')
    return UNKNOWN_ERROR


def pair_deliveries(tokens: Sequence[str], responses: Sequence[messaging.SendResponse]) -> List[TokenDelivery]:
    """Pair each token with the gateway response at the same position."""
    if len(tokens) != len(responses):
        raise ValueError(f"Got {len(responses)} send responses for {len(tokens)} tokens")

    deliveries = []
    for token, response in zip(tokens, responses):
        outcome = DeliveryOutcome(
            success=response.success,
            errorCode=None if response.success else error_code_for(response.exception),
            messageId=response.message_id,
        )
        deliveries.append(TokenDelivery(token=token, outcome=outcome))
    return deliveries


class MulticastDispatcher:
    """Sends one notification to all of a user's devices in a single FCM call."""

    def __init__(self, firebase: FirebaseDB, settings: Settings):
        self.firebase = firebase
        self.settings = settings

    def build_data(self, content: NotificationContent, notification_id: Optional[str] = None) -> Dict[str, str]:
        # FCM data values must all be strings
        data = {
            'type': content.type or self.settings.default_notification_type or DEFAULT_NOTIFICATION_TYPE,
            'postId': content.postId or '',
            'fromUserId': content.fromUserId or '',
            'fromUserName': content.fromUserName or '',
            'actionUrl': content.actionUrl or '',
            'priority': content.priority or self.settings.default_priority or DEFAULT_PRIORITY,
        }
        if notification_id:
            data['notificationId'] = notification_id
        return data

    def build_message(self,
                      content: NotificationContent,
                      tokens: List[str],
                      badge: int = 0,
                      notification_id: Optional[str] = None) -> messaging.MulticastMessage:
        return messaging.MulticastMessage(
            tokens=tokens,
            notification=messaging.Notification(title=content.title, body=content.body),
            data=self.build_data(content, notification_id),
            android=messaging.AndroidConfig(
                priority='high',
                notification=messaging.AndroidNotification(
                    click_action=self.settings.android_click_action,
                    sound=self.settings.notification_sound,
                    color=self.settings.android_color,
                ),
            ),
            apns=messaging.APNSConfig(
                payload=messaging.APNSPayload(
                    aps=messaging.Aps(
                        alert=messaging.ApsAlert(title=content.title, body=content.body),
                        sound=self.settings.notification_sound,
                        badge=badge,
                    ),
                ),
            ),
        )

    async def send(self,
                   content: NotificationContent,
                   tokens: List[str],
                   badge: int = 0,
                   notification_id: Optional[str] = None) -> MulticastResult:
        """
        Send a notification to a set of tokens.

        Failed tokens are reported in the result, never retried.

        Args:
            content: Title, body and data fields of the notification
            tokens: Non-empty list of FCM registration tokens
            badge: Badge count for iOS devices
            notification_id: ID of the originating record, added to the data map

        Returns:
            MulticastResult with one TokenDelivery per token
        """
        if not tokens:
            raise ValueError("Cannot dispatch a notification to an empty token list")

        tokens = list(tokens)
        message = self.build_message(content, tokens, badge=badge, notification_id=notification_id)
        batch_response = await asyncio.to_thread(self.firebase.send_each_for_multicast, message)

        result = MulticastResult(
            successCount=batch_response.success_count,
            failureCount=batch_response.failure_count,
            deliveries=pair_deliveries(tokens, batch_response.responses),
        )
        logger.info(f"Sent '{content.title}' to {len(tokens)} device(s): "
                    f"{result.successCount} succeeded, {result.failureCount} failed")
        return result
