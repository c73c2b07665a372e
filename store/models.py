"""
Pydantic projections for user and book-post records.

Documents are stored with the field names the mobile client already speaks
(``profileImage``, ``createdAt``, ...). The models below use snake_case
attributes and serialize back to camelCase. None of them has a password
field: the hash stays inside the users collection.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserPublic(CamelModel):
    """User projection safe to return to clients."""
    id: str = Field(..., description="User identifier")
    username: str = Field(..., description="Unique username")
    email: str = Field(..., description="Unique email address")
    profile_image: str = Field("", description="Avatar URL")
    created_at: Optional[datetime] = Field(None, description="Registration timestamp")


class BookOwner(CamelModel):
    """Minimal public projection of a post's owner."""
    id: str = Field(..., description="User identifier")
    username: str = Field(..., description="Owner username")
    profile_image: str = Field("", description="Owner avatar URL")


class BookPost(CamelModel):
    """A book recommendation post."""
    id: str = Field(..., description="Post identifier")
    title: str = Field(..., description="Book title")
    caption: str = Field(..., description="Recommendation text")
    rating: int = Field(..., ge=1, le=5, description="Rating (1-5)")
    image: str = Field(..., description="Hosted cover image URL")
    user: Union[BookOwner, str] = Field(..., description="Owner, resolved or as raw id")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")


class BookPage(CamelModel):
    """One pagination window of the newest-first post listing."""
    books: List[BookPost] = Field(..., description="Posts in this window")
    current_page: int = Field(..., description="Current page number")
    total_books: int = Field(..., description="Total number of posts")
    total_pages: int = Field(..., description="Total number of pages")


class AuthResult(BaseModel):
    """Outcome of a successful register or login."""
    token: str = Field(..., description="Signed identity token")
    user: UserPublic


def user_from_document(doc: Dict[str, Any]) -> UserPublic:
    return UserPublic(
        id=str(doc["_id"]),
        username=doc["username"],
        email=doc["email"],
        profile_image=doc.get("profileImage") or "",
        created_at=doc.get("createdAt"),
    )


def owner_from_document(doc: Dict[str, Any]) -> BookOwner:
    return BookOwner(
        id=str(doc["_id"]),
        username=doc["username"],
        profile_image=doc.get("profileImage") or "",
    )


def book_from_document(doc: Dict[str, Any], owner: Optional[BookOwner] = None) -> BookPost:
    return BookPost(
        id=str(doc["_id"]),
        title=doc["title"],
        caption=doc["caption"],
        rating=doc["rating"],
        image=doc["image"],
        user=owner if owner is not None else str(doc["user"]),
        created_at=doc.get("createdAt"),
        updated_at=doc.get("updatedAt"),
    )
