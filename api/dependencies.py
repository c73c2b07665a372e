"""
FastAPI dependencies.

Services are built once in the application lifespan and kept on
``app.state``; these helpers hand them to route handlers.
"""

from typing import Optional

from fastapi import Header, Request

from auth.gate import AuthGate
from store.books import BookCatalog
from store.models import UserPublic
from store.users import UserDirectory


def get_users(request: Request) -> UserDirectory:
    return request.app.state.users


def get_catalog(request: Request) -> BookCatalog:
    return request.app.state.catalog


def get_gate(request: Request) -> AuthGate:
    return request.app.state.gate


async def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> UserPublic:
    """
    Authenticate the request from its ``Authorization: Bearer <token>`` header.

    Raises ``Unauthorized`` (401) when the header is missing, the token does
    not verify, or the user no longer exists.
    """
    return await get_gate(request).authenticate(authorization)
