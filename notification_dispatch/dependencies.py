import asyncio
import hmac
import logging
from typing import Annotated, Any, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from firebase_admin import auth
from pydantic import BaseModel

from .container import NotificationComponents
from .notifications.repository import NotificationRepository
from .notifications.retention import RetentionSweeper
from .notifications.service import NotificationDispatchService

logger = logging.getLogger(__name__)

# Missing credentials are reported by decode_token with a 401
security = HTTPBearer(scheme_name='Authorization', auto_error=False)


class AuthenticatedUser(BaseModel):
    uid: str


def get_components(request: Request) -> NotificationComponents:
    return request.app.state.components


def get_dispatch_service(
    components: Annotated[NotificationComponents, Depends(get_components)],
) -> NotificationDispatchService:
    return components.service


def get_repository(
    components: Annotated[NotificationComponents, Depends(get_components)],
) -> NotificationRepository:
    return components.repository


def get_sweeper(
    components: Annotated[NotificationComponents, Depends(get_components)],
) -> RetentionSweeper:
    return components.sweeper


async def decode_token(
    components: Annotated[NotificationComponents, Depends(get_components)],
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict[str, Any]:
    if credentials is None:
        raise HTTPException(status_code=401, detail="User must be authenticated")
    token = credentials.credentials

    if components.settings.is_dev_environment():
        # Dev shortcut: the bearer token is the caller's uid
        logger.info(f"Token: {token}")
        return dict(uid=token)

    try:
        return await asyncio.to_thread(components.firebase.verify_id_token, token)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token format")
    except auth.ExpiredIdTokenError:
        raise HTTPException(status_code=401, detail="Token has expired")
    except auth.RevokedIdTokenError:
        raise HTTPException(status_code=401, detail="Token has been revoked")
    except auth.InvalidIdTokenError:
        raise HTTPException(status_code=401, detail="Invalid ID token")
    except auth.CertificateFetchError:
        raise HTTPException(status_code=500, detail="Error fetching certificates")
    except auth.UserDisabledError:
        raise HTTPException(status_code=403, detail="User account is disabled")
    except Exception as e:
        logger.error(f"Token verification error: {str(e)}")
        raise HTTPException(status_code=500, detail="Authentication error")


async def get_current_active_user(
    decoded_token: Annotated[dict, Depends(decode_token)],
) -> AuthenticatedUser:
    uid = decoded_token.get("uid") or decoded_token.get("user_id")
    if not uid:
        raise HTTPException(status_code=401, detail="User must be authenticated")
    return AuthenticatedUser(uid=uid)


async def verify_internal_caller(
    components: Annotated[NotificationComponents, Depends(get_components)],
    x_internal_token: Annotated[Optional[str], Header()] = None,
) -> None:
    """
    Dependency guarding the endpoints called by the scheduler and the
    Firestore event forwarder.

    Raises:
        HTTPException(401): If the X-Internal-Token header does not match.
        HTTPException(403): If no internal token is configured outside dev.
    """
    expected = components.settings.internal_task_token
    if not expected:
        if components.settings.is_dev_environment():
            return
        logger.warning("Rejected internal call: INTERNAL_TASK_TOKEN is not configured")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Internal endpoints are disabled")

    if not x_internal_token or not hmac.compare_digest(x_internal_token, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid internal token")
