import logging
from typing import Iterable, List, Optional

from .dispatcher import INVALID_REGISTRATION_TOKEN, TOKEN_NOT_REGISTERED
from .schemas import BestEffort, DeliveryOutcome, TokenDelivery
from .token_store import TokenStore

logger = logging.getLogger(__name__)

# Codes meaning the token will never work again, compared without the `messaging/` prefix
PERMANENT_TOKEN_ERRORS = frozenset(
    code.split('/', 1)[1] for code in (TOKEN_NOT_REGISTERED, INVALID_REGISTRATION_TOKEN)
)


def _strip_prefix(error_code: Optional[str]) -> str:
    if not error_code:
        return ''
    return error_code.split('/', 1)[1] if error_code.startswith('messaging/') else error_code


def is_permanently_invalid(outcome: DeliveryOutcome) -> bool:
    return not outcome.success and _strip_prefix(outcome.errorCode) in PERMANENT_TOKEN_ERRORS


def select_invalid_tokens(deliveries: Iterable[TokenDelivery]) -> List[str]:
    """Distinct tokens whose delivery failed with a permanent-invalid error code."""
    return list(dict.fromkeys(d.token for d in deliveries if is_permanently_invalid(d.outcome)))


class InvalidTokenReconciler:
    """Drops tokens the gateway reported as unusable from the user's token set."""

    def __init__(self, token_store: TokenStore):
        self.token_store = token_store

    async def reconcile(self, user_id: str, deliveries: Iterable[TokenDelivery]) -> BestEffort[List[str]]:
        """
        Remove the permanently invalid tokens of a send from the user's token set.

        Transient failures leave their token in place. A failed removal is
        logged and reported in the result, never raised.

        Args:
            user_id: Owner of the tokens
            deliveries: Token/outcome pairs of one multicast send

        Returns:
            BestEffort holding the tokens that were removed
        """
        invalid_tokens = select_invalid_tokens(deliveries)
        if not invalid_tokens:
            return BestEffort[List[str]].succeeded([])

        logger.info(f"Cleaning up {len(invalid_tokens)} invalid token(s) for user {user_id}")
        try:
            await self.token_store.remove_tokens(user_id, invalid_tokens)
        except Exception as e:
            logger.error(f"Error removing invalid tokens for user {user_id}: {str(e)}")
            return BestEffort[List[str]].failed([], e)

        return BestEffort[List[str]].succeeded(invalid_tokens)
