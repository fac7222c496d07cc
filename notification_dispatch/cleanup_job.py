import asyncio
import logging
import sys

from .config import settings
from .container import NotificationComponents
from .firebase import FirebaseDB
from .log import setup_logging

logger = logging.getLogger(__name__)


def main():
    """Run one retention sweep; meant to be started by a scheduler."""
    setup_logging()
    logger.info(f"Starting notification retention sweep in {settings.environment} environment")

    try:
        components = NotificationComponents.from_firebase(FirebaseDB(settings), settings)
        deleted = asyncio.run(components.sweeper.sweep())
    except Exception as e:
        logger.error(f"Retention sweep could not run: {str(e)}")
        return 0

    logger.info(f"Retention sweep finished, {deleted} notification(s) deleted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
