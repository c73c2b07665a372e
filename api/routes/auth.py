"""
Auth routes: register and login.

Route prefix: /api/auth
"""

import structlog
from fastapi import APIRouter, Depends, status

from api.dependencies import get_users
from api.models import LoginRequest, RegisterRequest
from store.models import AuthResult
from store.users import UserDirectory
from utilities.errors import BookwormError, InternalError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/register", response_model=AuthResult, status_code=status.HTTP_201_CREATED)
async def register(req: RegisterRequest, users: UserDirectory = Depends(get_users)):
    """
    Register a new user.

    Returns a token and the public user projection (never the password hash).
    """
    try:
        return await users.register(req.username, req.email, req.password)
    except BookwormError:
        raise
    except Exception as e:
        logger.error("Failed to register user", username=req.username, error=str(e), exc_info=True)
        raise InternalError()


@router.post("/login", response_model=AuthResult, status_code=status.HTTP_201_CREATED)
async def login(req: LoginRequest, users: UserDirectory = Depends(get_users)):
    """Login with email + password."""
    try:
        return await users.login(req.email, req.password)
    except BookwormError:
        raise
    except Exception as e:
        logger.error("Failed to log in", error=str(e), exc_info=True)
        raise InternalError()
