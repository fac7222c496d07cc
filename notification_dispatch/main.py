import logging

from fastapi import FastAPI

from .config import get_prefix, settings
from .container import NotificationComponents
from .firebase import FirebaseDB
from .log import setup_logging
from .notifications import all_router as notifications_routers

setup_logging()

logger = logging.getLogger(__name__)


API_VERSION = '/api/v1'
PREFIX = get_prefix(API_VERSION)

logger.info(f"Start HTTP server with prefix: {PREFIX}")

app = FastAPI(root_path=PREFIX, title="Notification Dispatch API", version="1.0.0")


for router in notifications_routers:
    app.include_router(router)


@app.on_event("startup")
async def startup_event():
    """
    Connect to Firebase and wire the notification components
    """
    firebase = FirebaseDB(settings)
    app.state.components = NotificationComponents.from_firebase(firebase, settings)
    logger.info(f"{settings.service_name} started in {settings.environment} environment, "
                f"retention sweep scheduled as '{settings.cleanup_schedule}'")
