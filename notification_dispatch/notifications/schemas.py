from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, field_validator

T = TypeVar("T")

DEFAULT_NOTIFICATION_TYPE = "system_message"
DEFAULT_PRIORITY = "medium"


class NotificationContent(BaseModel):
    """Display fields a push message is built from"""
    title: str
    body: str
    type: Optional[str] = None
    postId: Optional[str] = None
    fromUserId: Optional[str] = None
    fromUserName: Optional[str] = None
    actionUrl: Optional[str] = None
    priority: Optional[str] = None


class NotificationRecord(BaseModel):
    """A document of the `notifications` collection"""
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    userId: Optional[str] = None
    title: str = ""
    message: str = ""
    type: str = DEFAULT_NOTIFICATION_TYPE
    postId: Optional[str] = None
    fromUserId: Optional[str] = None
    fromUserName: Optional[str] = None
    actionUrl: Optional[str] = None
    priority: str = DEFAULT_PRIORITY
    isRead: bool = False
    createdAt: Optional[datetime] = None
    sent: Optional[bool] = None
    sentAt: Optional[datetime] = None
    successCount: Optional[int] = None
    failureCount: Optional[int] = None
    error: Optional[str] = None
    errorAt: Optional[datetime] = None

    @field_validator("title", "message", "type", "priority", "isRead", mode="before")
    @classmethod
    def null_to_default(cls, value, info):
        # Stored nulls fall back to the field default
        if value is None:
            return cls.model_fields[info.field_name].default
        return value

    def to_content(self) -> NotificationContent:
        return NotificationContent(
            title=self.title,
            body=self.message,
            type=self.type,
            postId=self.postId,
            fromUserId=self.fromUserId,
            fromUserName=self.fromUserName,
            actionUrl=self.actionUrl,
            priority=self.priority,
        )


class DeliveryOutcome(BaseModel):
    success: bool
    errorCode: Optional[str] = None
    messageId: Optional[str] = None


class TokenDelivery(BaseModel):
    """A push token paired with the gateway's answer for it"""
    token: str
    outcome: DeliveryOutcome


class MulticastResult(BaseModel):
    successCount: int
    failureCount: int
    deliveries: List[TokenDelivery]


class DispatchStatus(str, Enum):
    DISPATCHED = "dispatched"
    SKIPPED_NO_TOKENS = "skipped-no-tokens"
    SKIPPED_NO_USER = "skipped-no-user"


class DispatchResult(BaseModel):
    status: DispatchStatus
    successCount: int = 0
    failureCount: int = 0
    removedTokens: List[str] = []
    badge: int = 0


class BestEffort(BaseModel, Generic[T]):
    """
    Result of an operation whose failure must not fail its caller.

    Attributes:
        value (T): The result, or the fallback value when the operation failed.
        error (Optional[str]): Description of the failure, None on success.
    """
    value: T
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def succeeded(cls, value: T) -> "BestEffort[T]":
        return cls(value=value)

    @classmethod
    def failed(cls, fallback: T, error: BaseException) -> "BestEffort[T]":
        return cls(value=fallback, error=str(error) or type(error).__name__)


class DirectNotificationRequest(BaseModel):
    # Required fields are checked by the endpoint so callers get a descriptive 400
    title: Optional[str] = None
    body: Optional[str] = None
    type: Optional[str] = None
    postId: Optional[str] = None
    fromUserId: Optional[str] = None
    fromUserName: Optional[str] = None
    actionUrl: Optional[str] = None
    priority: Optional[str] = None
    targetUserId: Optional[str] = None

    def to_content(self) -> NotificationContent:
        return NotificationContent(**self.model_dump(exclude={"targetUserId"}))


class DirectNotificationResponse(BaseModel):
    success: bool
    successCount: Optional[int] = None
    failureCount: Optional[int] = None
    message: Optional[str] = None


class NotificationCreatedEvent(BaseModel):
    """Creation event for a `notifications/{notificationId}` document"""
    notificationId: str
    data: Optional[Dict[str, Any]] = None


class CleanupResponse(BaseModel):
    deleted: int
