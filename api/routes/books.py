"""
Book post routes. Every route requires a bearer token.

Route prefix: /api/books
"""

from typing import List

import structlog
from fastapi import APIRouter, Depends, status

from api.dependencies import get_catalog, get_current_user
from api.models import CreateBookRequest, MessageResponse
from store.books import DEFAULT_PAGE, DEFAULT_PAGE_SIZE, BookCatalog
from store.models import BookPage, BookPost, UserPublic
from utilities.errors import BookwormError, InternalError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/books", tags=["Books"])


@router.post("", response_model=BookPost, status_code=status.HTTP_201_CREATED)
async def create_book(
    req: CreateBookRequest,
    user: UserPublic = Depends(get_current_user),
    catalog: BookCatalog = Depends(get_catalog),
):
    """
    Create a book post owned by the caller.

    - **image**: base64 data URI or http(s) URL; it is uploaded to the image host
    """
    try:
        return await catalog.create(user, req.title, req.caption, req.rating, req.image)
    except BookwormError:
        raise
    except Exception as e:
        logger.error("Failed to create book", user_id=user.id, error=str(e), exc_info=True)
        raise InternalError()


@router.get("", response_model=BookPage)
async def list_books(
    page: int = DEFAULT_PAGE,
    limit: int = DEFAULT_PAGE_SIZE,
    user: UserPublic = Depends(get_current_user),
    catalog: BookCatalog = Depends(get_catalog),
):
    """
    Get all posts, newest first, with pagination.

    - **page**: Page number (starts from 1)
    - **limit**: Posts per page
    """
    try:
        return await catalog.list(page=page, page_size=limit)
    except BookwormError:
        raise
    except Exception as e:
        logger.error("Failed to get books", page=page, limit=limit, error=str(e), exc_info=True)
        raise InternalError()


@router.get("/user", response_model=List[BookPost])
async def list_user_books(
    user: UserPublic = Depends(get_current_user),
    catalog: BookCatalog = Depends(get_catalog),
):
    """Get every post of the authenticated user, newest first."""
    try:
        return await catalog.list_by_owner(user)
    except BookwormError:
        raise
    except Exception as e:
        logger.error("Failed to get user books", user_id=user.id, error=str(e), exc_info=True)
        raise InternalError()


@router.delete("/{book_id}", response_model=MessageResponse)
async def delete_book(
    book_id: str,
    user: UserPublic = Depends(get_current_user),
    catalog: BookCatalog = Depends(get_catalog),
):
    """Delete one of the caller's posts."""
    try:
        await catalog.delete(book_id, user)
        return MessageResponse(message="Book deleted successfully")
    except BookwormError:
        raise
    except Exception as e:
        logger.error("Failed to delete book", book_id=book_id, user_id=user.id, error=str(e), exc_info=True)
        raise InternalError()
