"""
User directory: registration, login and identity lookup.

Uniqueness of email and username is enforced by the unique indexes created
in ``MongoDBManager``. The find_one pre-checks only exist to answer the
common case cheaply and in the right order (email before username); a
concurrent registration that slips past them is caught as a
``DuplicateKeyError`` on insert.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import quote

import structlog
from pymongo.errors import DuplicateKeyError

from auth.passwords import PasswordHasher
from auth.tokens import TokenService
from store.database import MongoDBManager, to_object_id
from store.models import AuthResult, UserPublic, user_from_document
from utilities.errors import CredentialsError, ValidationError

logger = structlog.get_logger(__name__)

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6
AVATAR_URL_TEMPLATE = "https://api.dicebear.com/7.x/avataaars/svg?seed={seed}"

EMAIL_TAKEN = "Email already exists"
USERNAME_TAKEN = "Username already exists"

# The password hash is never read back out of the users collection except by login
PUBLIC_PROJECTION = {"password": 0}


def default_avatar(username: str) -> str:
    """Deterministic placeholder avatar keyed by username."""
    return AVATAR_URL_TEMPLATE.format(seed=quote(username, safe=""))


class UserDirectory:
    """Owns user identity records."""

    def __init__(self, db_manager: MongoDBManager, hasher: PasswordHasher, tokens: TokenService):
        self.db_manager = db_manager
        self.hasher = hasher
        self.tokens = tokens
        self.logger = logger.bind(component="user_directory")

    async def register(
        self,
        username: Optional[str],
        email: Optional[str],
        password: Optional[str],
        profile_image: Optional[str] = None,
    ) -> AuthResult:
        """
        Create a user and issue a token for it.

        Raises:
            ValidationError: missing field, short username/password, or a taken
                email/username (email is reported first)
        """
        if not username or not email or not password:
            raise ValidationError("Please provide all fields")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
        if len(username) < MIN_USERNAME_LENGTH:
            raise ValidationError(f"Username must be at least {MIN_USERNAME_LENGTH} characters long")

        users = self.db_manager.users
        if await users.find_one({"email": email}, {"_id": 1}):
            raise ValidationError(EMAIL_TAKEN)
        if await users.find_one({"username": username}, {"_id": 1}):
            raise ValidationError(USERNAME_TAKEN)

        now = datetime.now(timezone.utc)
        document = {
            "username": username,
            "email": email,
            "password": await asyncio.to_thread(self.hasher.hash, password),
            "profileImage": profile_image or default_avatar(username),
            "createdAt": now,
            "updatedAt": now,
        }

        try:
            result = await users.insert_one(document)
        except DuplicateKeyError as e:
            message = _duplicate_key_message(e)
            self.logger.warning("Registration lost a uniqueness race", username=username, reason=message)
            raise ValidationError(message)

        document["_id"] = result.inserted_id
        user = user_from_document(document)
        self.logger.info("Registered user", user_id=user.id, username=username)
        return AuthResult(token=self.tokens.issue(user.id), user=user)

    async def login(self, email: Optional[str], password: Optional[str]) -> AuthResult:
        """
        Check credentials and issue a fresh token.

        Raises:
            ValidationError: email or password missing
            CredentialsError: unknown email or wrong password
        """
        if not email or not password:
            raise ValidationError("Please provide all fields")

        document = await self.db_manager.users.find_one({"email": email})
        if document is None:
            raise CredentialsError("User not found")

        matches = await asyncio.to_thread(self.hasher.verify, password, document.get("password", ""))
        if not matches:
            self.logger.info("Rejected login with wrong password", user_id=str(document["_id"]))
            raise CredentialsError("Invalid credentials")

        user = user_from_document(document)
        self.logger.info("User logged in", user_id=user.id)
        return AuthResult(token=self.tokens.issue(user.id), user=user)

    async def get_by_id(self, user_id: str) -> Optional[UserPublic]:
        """Look up a user by id, without the password hash. None if absent or invalid."""
        object_id = to_object_id(user_id)
        if object_id is None:
            return None
        document = await self.db_manager.users.find_one({"_id": object_id}, PUBLIC_PROJECTION)
        return user_from_document(document) if document else None


def _duplicate_key_message(error: DuplicateKeyError) -> str:
    details: Dict[str, Any] = error.details or {}
    key_pattern = details.get("keyPattern") or details.get("keyValue") or {}
    if "email" in key_pattern:
        return EMAIL_TAKEN
    if "username" in key_pattern:
        return USERNAME_TAKEN
    return "User already exists"
