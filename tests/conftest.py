"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId

from auth.passwords import PasswordHasher
from auth.tokens import TokenService
from media.images import ImageHost
from store.models import UserPublic
from utilities.config import AppConfig

TEST_SECRET = "test-secret-key-that-is-long-enough"


class FakeCursor:
    """
    Stand-in for a motor cursor over an in-memory list of documents.
    Supports the sort/skip/limit chain and ``to_list`` used by the catalog.
    """

    def __init__(self, documents: List[Dict[str, Any]]):
        self.documents = list(documents)
        self.sort_spec = None
        self.skipped = 0
        self.limited: Optional[int] = None

    def sort(self, spec):
        self.sort_spec = spec
        for key, direction in reversed(spec):
            self.documents.sort(key=lambda doc: doc[key], reverse=direction < 0)
        return self

    def skip(self, count: int):
        self.skipped = count
        self.documents = self.documents[count:]
        return self

    def limit(self, count: int):
        self.limited = count
        self.documents = self.documents[:count]
        return self

    async def to_list(self, length=None):
        return self.documents if length is None else self.documents[:length]


def make_collection() -> MagicMock:
    """A motor collection mock: async CRUD methods, sync ``find`` returning a cursor."""
    collection = MagicMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id=ObjectId()))
    collection.delete_one = AsyncMock(return_value=MagicMock(deleted_count=1))
    collection.count_documents = AsyncMock(return_value=0)
    collection.find = MagicMock(return_value=FakeCursor([]))
    return collection


@pytest.fixture
def test_config():
    """Configuration with a fixed secret and a cheap bcrypt cost."""
    return AppConfig(
        _env_file=None,
        jwt_secret=TEST_SECRET,
        bcrypt_rounds=4,
        aws_s3_bucket_name="test-bucket",
        aws_region="us-east-1",
        api_url="https://bookworm.example.com/health",
    )


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=4)


@pytest.fixture
def token_service():
    return TokenService(TEST_SECRET)


@pytest.fixture
def mock_db_manager():
    """Create a mock MongoDB manager with users and books collections."""
    manager = MagicMock()
    manager.users = make_collection()
    manager.books = make_collection()
    return manager


@pytest.fixture
def mock_image_host():
    """Create a mock image host that owns every URL it is asked about."""
    host = MagicMock(spec=ImageHost)
    host.upload.return_value = "https://test-bucket.s3.us-east-1.amazonaws.com/books/cover.png"
    host.owns.return_value = True
    return host


@pytest.fixture
def sample_user():
    return UserPublic(
        id=str(ObjectId()),
        username="abc",
        email="a@x.com",
        profile_image="https://api.dicebear.com/7.x/avataaars/svg?seed=abc",
        created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def make_book_documents():
    """Factory for book documents created one minute apart, oldest first."""
    def _make(count: int, owner_id: Optional[ObjectId] = None) -> List[Dict[str, Any]]:
        start = datetime(2025, 1, 1, tzinfo=timezone.utc)
        owner_id = owner_id or ObjectId()
        return [
            {
                "_id": ObjectId(),
                "title": f"Book {index}",
                "caption": f"Caption {index}",
                "rating": (index % 5) + 1,
                "image": f"https://test-bucket.s3.us-east-1.amazonaws.com/books/{index}.png",
                "user": owner_id,
                "createdAt": start + timedelta(minutes=index),
                "updatedAt": start + timedelta(minutes=index),
            }
            for index in range(1, count + 1)
        ]
    return _make


@pytest.fixture
def make_cursor():
    """Factory for in-memory cursors handed out by ``collection.find``."""
    return FakeCursor
