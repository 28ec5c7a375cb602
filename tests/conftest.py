import os

# kyara.main builds its app at import time; settings need these to validate.
os.environ.setdefault("POSTGRES_DSN", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_DSN", "redis://localhost:6379/15")
os.environ.setdefault("LOG_JSON", "false")

import pytest

from kyara.domain.entities import AnimeCacheEntry, CharacterRef, RosterMember
from kyara.services.selection_synchronizer import SelectionSynchronizerConfig
from tests.fakes import (
    CACHE_KEY,
    SELECTION_KEY,
    FakeDocumentStore,
    FakeDurableStore,
    FakeIdentityProvider,
    FakeMetadataSource,
)


@pytest.fixture
def sync_config() -> SelectionSynchronizerConfig:
    """Short timeouts so a hung fake fails the test quickly."""
    return SelectionSynchronizerConfig(
        selection_ids_key=SELECTION_KEY,
        anime_cache_key=CACHE_KEY,
        document_timeout_seconds=1.0,
        durable_timeout_seconds=1.0,
        metadata_timeout_seconds=1.0,
    )


@pytest.fixture
def identity() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def metadata() -> FakeMetadataSource:
    """Anime 42 has three main characters and one supporting one."""
    source = FakeMetadataSource()
    source.add_anime(
        42,
        title="Frieren",
        image_url="https://cdn.example/frieren.jpg",
        roster=[
            RosterMember(id=1, name="Frieren", role="Main"),
            RosterMember(id=2, name="Fern", role="Main"),
            RosterMember(id=3, name="Stark", role="Main"),
            RosterMember(id=4, name="Himmel", role="Supporting"),
        ],
    )
    return source


@pytest.fixture
def documents() -> FakeDocumentStore:
    return FakeDocumentStore()


@pytest.fixture
def durable_store() -> FakeDurableStore:
    return FakeDurableStore()


@pytest.fixture
def frieren_entry() -> AnimeCacheEntry:
    return AnimeCacheEntry(
        id=42,
        title="Frieren",
        image_url="https://cdn.example/frieren.jpg",
        roster=(
            CharacterRef(id=1, name="Frieren"),
            CharacterRef(id=2, name="Fern"),
            CharacterRef(id=3, name="Stark"),
        ),
    )
