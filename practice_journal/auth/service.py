"""
Identity service - resolves the current user id from a bearer token.

Users and sign-in live with the hosted identity provider; this service
only verifies the access tokens it issues (shared HS256 secret) and hands
the subject claim to the rest of the application as the owner id.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from jose import JWTError, jwt

from practice_journal.auth.schemas import TokenPayload
from practice_journal.config import get_settings
from practice_journal.core.exceptions import InvalidTokenError

logger = logging.getLogger(__name__)


class AuthService:
    """Service for access token operations."""

    def __init__(self):
        self.settings = get_settings()

    def verify_token(self, token: str, token_type: str = "access") -> TokenPayload:
        """
        Verify and decode a JWT token.

        Args:
            token: JWT token string
            token_type: Expected token type

        Returns:
            TokenPayload with decoded data

        Raises:
            InvalidTokenError: If token is invalid or expired
        """
        try:
            payload = jwt.decode(
                token,
                self.settings.jwt_secret_key,
                algorithms=[self.settings.jwt_algorithm],
            )

            if payload.get("type") != token_type:
                raise InvalidTokenError(f"Invalid token type. Expected {token_type}")

            return TokenPayload(
                sub=payload["sub"],
                exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                type=payload["type"],
            )
        except (JWTError, KeyError) as e:
            logger.warning(f"[AuthService] Token verification failed: {e}")
            raise InvalidTokenError("Invalid or expired token")

    def get_user_id(self, token: Optional[str]) -> Optional[str]:
        """
        Resolve the owner id for a token.

        Returns None for a missing or invalid token; callers fail closed.
        """
        if not token:
            return None
        try:
            return self.verify_token(token).sub
        except InvalidTokenError:
            return None


def get_auth_service() -> AuthService:
    """Factory function for AuthService."""
    return AuthService()
