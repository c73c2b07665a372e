"""
Auth gate: resolves a request's ``Authorization`` header to a user.

The gate returns the identity; callers pass it on explicitly to the
operations that need it. Every rejection raises ``Unauthorized`` with the
same client message, and only the log says which check failed.
"""

from typing import Optional

import structlog

from auth.tokens import TokenService
from store.models import UserPublic
from store.users import UserDirectory
from utilities.errors import TokenError, Unauthorized

logger = structlog.get_logger(__name__)

BEARER_PREFIX = "Bearer "


def extract_token(authorization: Optional[str]) -> Optional[str]:
    """Strip the literal ``Bearer `` prefix. None when no credential is present."""
    if authorization is None:
        return None
    token = authorization.replace(BEARER_PREFIX, "", 1).strip()
    return token or None


class AuthGate:
    """Request guard turning a bearer token into an authenticated user."""

    def __init__(self, tokens: TokenService, users: UserDirectory):
        self.tokens = tokens
        self.users = users

    async def authenticate(self, authorization: Optional[str]) -> UserPublic:
        token = extract_token(authorization)
        if token is None:
            logger.info("Rejected request without credentials")
            raise Unauthorized("missing credential")

        try:
            user_id = self.tokens.verify(token)
        except TokenError as e:
            logger.info("Rejected request with unusable token", reason=type(e).__name__, detail=e.detail)
            raise Unauthorized(type(e).__name__)

        user = await self.users.get_by_id(user_id)
        if user is None:
            logger.info("Rejected token for unknown user", user_id=user_id)
            raise Unauthorized("unknown user")

        return user
