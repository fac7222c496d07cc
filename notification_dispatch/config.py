from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration settings for the Notification Dispatch Service"""

    # Application settings
    service_name: str = "notification-dispatch"
    log_level: str = "INFO"
    environment: str = "dev"
    path_prefix: str = ''

    # Firebase settings
    firebase_secret: Optional[str] = None
    firebase_project_id: Optional[str] = None

    # Shared secret for scheduler / event callers of the internal endpoints
    internal_task_token: Optional[str] = None

    # Retention sweep settings
    retention_days: int = 30
    sweep_batch_size: int = Field(500, ge=1, le=500)  # Firestore batch write limit
    cleanup_schedule: str = "0 2 * * 0"  # weekly, Sunday 02:00

    # Push payload settings
    default_notification_type: str = "system_message"
    default_priority: str = "medium"
    android_click_action: str = "FLUTTER_NOTIFICATION_CLICK"
    android_color: str = "#2196F3"
    notification_sound: str = "default"
    record_delivery_outcome: bool = True

    # Test notification content
    test_notification_title: str = "🧪 Test Notification"
    test_notification_message: str = "Push notifications are working correctly!"
    test_notification_sender: str = "System"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    def is_dev_environment(self) -> bool:
        return self.environment.lower() == "dev"


settings = Settings()


def get_prefix(api_version: str) -> str:
    path_prefix = settings.path_prefix
    if not path_prefix.startswith('/'):
        path_prefix = f'/{path_prefix}'
    if path_prefix.endswith('/'):
        path_prefix = path_prefix.rstrip('/')
    return f'{path_prefix}{api_version}'
