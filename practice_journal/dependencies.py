"""
FastAPI dependencies for dependency injection.
Provides the database session and the current owner id.
"""

import logging
from typing import Annotated, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from practice_journal.auth.service import AuthService, get_auth_service
from practice_journal.config import Settings, get_settings
from practice_journal.core.exceptions import unauthorized
from practice_journal.database import get_db

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


async def get_current_user_id(
        credentials: Annotated[
            Optional[HTTPAuthorizationCredentials],
            Depends(security)
        ],
        auth_service: AuthService = Depends(get_auth_service),
) -> Optional[str]:
    """
    Resolve the current user id, or None if there is no valid token.

    Services treat None as "not authenticated" and fail closed.
    """
    if not credentials:
        return None
    return auth_service.get_user_id(credentials.credentials)


async def require_user_id(
        user_id: Annotated[Optional[str], Depends(get_current_user_id)],
) -> str:
    """
    Dependency that rejects the request when no user id resolves.

    Raises:
        HTTPException: 401 if not authenticated
    """
    if user_id is None:
        raise unauthorized()
    return user_id


# Type aliases for cleaner dependency injection
DBSession = Annotated[AsyncSession, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_settings)]
OptionalUserId = Annotated[Optional[str], Depends(get_current_user_id)]
CurrentUserId = Annotated[str, Depends(require_user_id)]
