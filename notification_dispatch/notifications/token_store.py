import asyncio
import logging
from typing import Iterable, List, Optional

import google.cloud.firestore
from firebase_admin import firestore

logger = logging.getLogger(__name__)

TOKENS_FIELD = 'fcmTokens'


class TokenStore:
    """Reads and prunes the FCM tokens kept on `users/{userId}`."""

    def __init__(self, firestore_db: google.cloud.firestore.Client):
        self.users = firestore_db.collection('users')

    async def get_tokens(self, user_id: str) -> Optional[List[str]]:
        """
        Get the distinct push tokens registered for a user.

        Returns:
            The tokens in stored order with blanks and repeats dropped,
            or None if the user document does not exist.
        """
        user = await asyncio.to_thread(self.users.document(user_id).get)
        if not user.exists:
            return None

        tokens = (user.to_dict() or {}).get(TOKENS_FIELD)
        if not isinstance(tokens, list):
            return []
        return list(dict.fromkeys(t for t in tokens if isinstance(t, str) and t))

    async def remove_tokens(self, user_id: str, tokens: Iterable[str]) -> None:
        """Remove tokens from the user's set. Tokens not present are ignored."""
        tokens = list(dict.fromkeys(tokens))
        if not tokens:
            return
        user_ref = self.users.document(user_id)
        await asyncio.to_thread(user_ref.update, {TOKENS_FIELD: firestore.ArrayRemove(tokens)})
        logger.info(f"Removed {len(tokens)} token(s) from user {user_id}")
