"""
Identity token issuance and verification.

Tokens are JWTs (python-jose, HS256 by default) carrying ``userId``, ``iat``
and ``exp``. Nothing is persisted; verification only needs the signing
secret, which comes from ``AppConfig.jwt_secret``.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt

from utilities.config import AppConfig
from utilities.errors import InvalidSignature, MalformedToken, TokenExpired

USER_ID_CLAIM = "userId"


class TokenService:
    """Issues and verifies signed, time-limited identity tokens."""

    def __init__(self, secret: str, algorithm: str = "HS256", lifetime: timedelta = timedelta(days=15)):
        if not secret:
            raise ValueError("Token secret must not be empty")
        self._secret = secret
        self.algorithm = algorithm
        self.lifetime = lifetime

    @classmethod
    def from_config(cls, config: AppConfig) -> "TokenService":
        return cls(
            secret=config.jwt_secret,
            algorithm=config.jwt_algorithm,
            lifetime=timedelta(days=config.token_lifetime_days),
        )

    def issue(self, user_id: str, now: Optional[datetime] = None) -> str:
        """Create a signed token for ``user_id`` expiring exactly one lifetime after ``now``."""
        issued_at = now or datetime.now(timezone.utc)
        claims = {
            USER_ID_CLAIM: str(user_id),
            "iat": issued_at,
            "exp": issued_at + self.lifetime,
        }
        return jwt.encode(claims, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> str:
        """
        Verify ``token`` and return the user id it carries.

        Raises:
            MalformedToken: token is not a readable JWT or lacks a user id
            InvalidSignature: token was not signed with our secret
            TokenExpired: token is past its expiry
        """
        if not token:
            raise MalformedToken("Empty token")

        try:
            unverified = jwt.get_unverified_claims(token)
        except JWTError as e:
            raise MalformedToken("Token is not a valid JWT", detail=str(e))
        if not unverified.get(USER_ID_CLAIM):
            raise MalformedToken("Token carries no user id")

        try:
            claims = jwt.decode(token, self._secret, algorithms=[self.algorithm])
        except ExpiredSignatureError as e:
            raise TokenExpired("Token has expired", detail=str(e))
        except JWTError as e:
            raise InvalidSignature("Token signature is invalid", detail=str(e))

        return str(claims[USER_ID_CLAIM])
