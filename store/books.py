"""
Book post catalog: creation, paginated listing, per-owner listing and
owner-only deletion.
"""

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from pymongo import DESCENDING

from media.images import ImageHost
from store.database import MongoDBManager, to_object_id
from store.models import BookOwner, BookPage, BookPost, UserPublic, book_from_document, owner_from_document
from utilities.errors import Forbidden, NotFound, ValidationError

logger = structlog.get_logger(__name__)

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 5
MIN_RATING = 1
MAX_RATING = 5

# Newest first; _id breaks createdAt ties so page boundaries are deterministic
NEWEST_FIRST = [("createdAt", DESCENDING), ("_id", DESCENDING)]
OWNER_PROJECTION = {"username": 1, "profileImage": 1}


class BookCatalog:
    """Owns book post records."""

    def __init__(self, db_manager: MongoDBManager, image_host: ImageHost):
        self.db_manager = db_manager
        self.image_host = image_host
        self.logger = logger.bind(component="book_catalog")

    async def create(
        self,
        owner: UserPublic,
        title: Optional[str],
        caption: Optional[str],
        rating: Any,
        image: Optional[str],
    ) -> BookPost:
        """
        Upload the cover image and store a new post owned by ``owner``.

        If the post cannot be stored, the uploaded image is removed again on a
        best-effort basis and the original error is raised.

        Raises:
            ValidationError: a field is missing or blank, or the rating is not 1-5
        """
        title = title.strip() if isinstance(title, str) else title
        caption = caption.strip() if isinstance(caption, str) else caption
        if not title or not caption or rating in (None, "") or not image:
            raise ValidationError("Please provide all fields")
        rating = _parse_rating(rating)

        image_url = await self.image_host.upload(image)

        now = datetime.now(timezone.utc)
        document = {
            "title": title,
            "caption": caption,
            "rating": rating,
            "image": image_url,
            "user": to_object_id(owner.id),
            "createdAt": now,
            "updatedAt": now,
        }
        try:
            result = await self.db_manager.books.insert_one(document)
        except Exception:
            await self._discard_image(image_url, reason="insert failed")
            raise
        document["_id"] = result.inserted_id

        self.logger.info("Created book post", book_id=str(result.inserted_id), user_id=owner.id)
        return book_from_document(document)

    async def list(self, page: int = DEFAULT_PAGE, page_size: int = DEFAULT_PAGE_SIZE) -> BookPage:
        """
        Get one page of posts, newest first, with owners resolved.

        Args:
            page: Page number (starts from 1)
            page_size: Posts per page

        Returns:
            BookPage with the window and totals
        """
        if page < 1:
            raise ValidationError("page must be at least 1")
        if page_size < 1:
            raise ValidationError("limit must be at least 1")

        books = self.db_manager.books
        skip = (page - 1) * page_size

        cursor = books.find({}).sort(NEWEST_FIRST).skip(skip).limit(page_size)
        documents = await cursor.to_list(length=page_size)
        total = await books.count_documents({})

        owners = await self._resolve_owners(documents)
        return BookPage(
            books=[book_from_document(doc, owners.get(doc.get("user"))) for doc in documents],
            current_page=page,
            total_books=total,
            total_pages=math.ceil(total / page_size),
        )

    async def list_by_owner(self, owner: UserPublic) -> List[BookPost]:
        """All posts owned by ``owner``, newest first."""
        owner_id = to_object_id(owner.id)
        cursor = self.db_manager.books.find({"user": owner_id}).sort(NEWEST_FIRST)
        documents = await cursor.to_list(length=None)
        return [book_from_document(doc) for doc in documents]

    async def delete(self, book_id: str, requester: UserPublic) -> None:
        """
        Delete a post on behalf of its owner.

        The hosted image is removed first on a best-effort basis: a failure
        there is logged and the post is deleted anyway.

        Raises:
            NotFound: no post with that id
            Forbidden: requester is not the owner
        """
        object_id = to_object_id(book_id)
        if object_id is None:
            raise NotFound("Book not found")

        books = self.db_manager.books
        document = await books.find_one({"_id": object_id})
        if document is None:
            raise NotFound("Book not found")

        if str(document.get("user")) != str(requester.id):
            self.logger.warning("Rejected delete by non-owner", book_id=book_id, user_id=requester.id)
            raise Forbidden("Not authorized")

        await self._discard_image(document.get("image"), reason="post deleted", book_id=book_id)

        await books.delete_one({"_id": object_id})
        self.logger.info("Deleted book post", book_id=book_id, user_id=requester.id)

    async def _resolve_owners(self, documents: List[Dict[str, Any]]) -> Dict[Any, BookOwner]:
        owner_ids = list({doc["user"] for doc in documents if doc.get("user") is not None})
        if not owner_ids:
            return {}
        cursor = self.db_manager.users.find({"_id": {"$in": owner_ids}}, OWNER_PROJECTION)
        users = await cursor.to_list(length=len(owner_ids))
        return {user["_id"]: owner_from_document(user) for user in users}

    async def _discard_image(self, image_url: Optional[str], **context) -> None:
        """Best-effort removal of a hosted image; failures are only logged."""
        if not image_url or not self.image_host.owns(image_url):
            return
        try:
            await self.image_host.delete(image_url)
        except Exception as e:
            self.logger.error("Failed to delete image from host", image=image_url, error=str(e), **context)


def _parse_rating(value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError("Rating must be a number between 1 and 5")
    try:
        rating = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError("Rating must be a number between 1 and 5")
    if isinstance(value, float) and value != rating:
        raise ValidationError("Rating must be a whole number")
    if rating < MIN_RATING or rating > MAX_RATING:
        raise ValidationError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")
    return rating
