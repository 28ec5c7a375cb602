"""Tests for the SQLAlchemy-backed user document store."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from kyara.infrastructure.db.models import Base
from kyara.repositories.document_store_sqlalchemy import SqlAlchemyDocumentStore


@pytest.fixture
async def async_engine(tmp_path):
    """File-backed SQLite so separate sessions see the same data."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/documents.db", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(async_engine) -> SqlAlchemyDocumentStore:
    sessionmaker = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)
    return SqlAlchemyDocumentStore(sessionmaker=sessionmaker, timeout_seconds=5.0)


class TestDocumentStore:
    async def test_missing_document(self, store: SqlAlchemyDocumentStore) -> None:
        """Unknown users have no document."""
        assert await store.get_document("nobody") is None

    async def test_upsert_creates_document(self, store: SqlAlchemyDocumentStore) -> None:
        """The first upsert creates the document."""
        await store.upsert_document("u1", {"selectedCharacterIds": [1, 2]})

        assert await store.get_document("u1") == {"selectedCharacterIds": [1, 2]}

    async def test_merge_keeps_other_fields(self, store: SqlAlchemyDocumentStore) -> None:
        """Merging replaces only the given top-level fields."""
        await store.upsert_document("u1", {"displayName": "Mika", "selectedCharacterIds": [1]})
        await store.upsert_document("u1", {"selectedCharacterIds": [2]})

        assert await store.get_document("u1") == {"displayName": "Mika", "selectedCharacterIds": [2]}

    async def test_replace_drops_other_fields(self, store: SqlAlchemyDocumentStore) -> None:
        """merge=False overwrites the whole document."""
        await store.upsert_document("u1", {"displayName": "Mika"})
        await store.upsert_document("u1", {"cachedAnimesData": {}}, merge=False)

        assert await store.get_document("u1") == {"cachedAnimesData": {}}

    async def test_blank_user_rejected(self, store: SqlAlchemyDocumentStore) -> None:
        """Blank user ids are refused."""
        with pytest.raises(ValueError):
            await store.get_document("  ")
