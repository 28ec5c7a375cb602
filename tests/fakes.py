"""In-memory collaborators for the synchronizer and roster cache tests."""

from __future__ import annotations

import asyncio
import copy
from typing import Any, Callable

from kyara.core.errors import DocumentStoreError, DurableStoreError, MetadataFetchError
from kyara.domain.entities import AnimeMetadata, RosterMember
from kyara.domain.ports.identity import IdentityListener

SELECTION_KEY = "@SelectedCharacterIDs_v3"
CACHE_KEY = "@CachedAnimesData_v3"


class FakeIdentityProvider:
    def __init__(self, *, initializing: bool = True, user_id: str | None = None) -> None:
        self.initializing = initializing
        self.user_id = user_id
        self._listeners: list[IdentityListener] = []

    def current_user(self) -> str | None:
        return self.user_id

    def is_initializing(self) -> bool:
        return self.initializing

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    async def resolve(self, user_id: str | None) -> None:
        self.initializing = False
        self.user_id = user_id
        for listener in list(self._listeners):
            await listener()


class FakeMetadataSource:
    def __init__(self) -> None:
        self.animes: dict[int, AnimeMetadata] = {}
        self.rosters: dict[int, list[RosterMember]] = {}
        self.metadata_calls: list[int] = []
        self.roster_calls: list[int] = []
        self.fail_metadata = False
        self.fail_roster = False
        # Set to hold roster fetches until the test releases them.
        self.roster_gate: asyncio.Event | None = None

    def add_anime(self, anime_id: int, *, title: str, image_url: str, roster: list[RosterMember]) -> None:
        self.animes[anime_id] = AnimeMetadata(title=title, image_url=image_url)
        self.rosters[anime_id] = list(roster)

    async def get_anime_by_id(self, anime_id: int) -> AnimeMetadata:
        self.metadata_calls.append(anime_id)
        if self.fail_metadata or anime_id not in self.animes:
            raise MetadataFetchError("metadata down", anime_id=anime_id)
        return self.animes[anime_id]

    async def get_anime_roster(self, anime_id: int) -> list[RosterMember]:
        self.roster_calls.append(anime_id)
        if self.roster_gate is not None:
            await self.roster_gate.wait()
        if self.fail_roster or anime_id not in self.rosters:
            raise MetadataFetchError("roster down", anime_id=anime_id)
        return list(self.rosters[anime_id])


class FakeDocumentStore:
    def __init__(self, documents: dict[str, dict[str, Any]] | None = None) -> None:
        self.documents: dict[str, dict[str, Any]] = copy.deepcopy(documents or {})
        self.reads: list[str] = []
        self.writes: list[tuple[str, dict[str, Any]]] = []
        self.fail_reads = False
        self.fail_writes = False
        self.read_gate: asyncio.Event | None = None

    async def get_document(self, user_id: str) -> dict[str, Any] | None:
        self.reads.append(user_id)
        if self.read_gate is not None:
            await self.read_gate.wait()
        if self.fail_reads:
            raise DocumentStoreError("documents offline")
        doc = self.documents.get(user_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def upsert_document(self, user_id: str, fields: dict[str, Any], *, merge: bool = True) -> None:
        if self.fail_writes:
            raise DocumentStoreError("documents offline")
        self.writes.append((user_id, copy.deepcopy(fields)))
        current = self.documents.get(user_id, {}) if merge else {}
        self.documents[user_id] = {**current, **copy.deepcopy(fields)}


class FakeDurableStore:
    def __init__(self, data: dict[str, bytes] | None = None) -> None:
        self.data: dict[str, bytes] = dict(data or {})
        self.writes: list[tuple[str, bytes]] = []
        self.fail = False

    async def get(self, key: str) -> bytes | None:
        if self.fail:
            raise DurableStoreError("disk unavailable")
        return self.data.get(key)

    async def set(self, key: str, value: bytes) -> None:
        if self.fail:
            raise DurableStoreError("disk unavailable")
        self.writes.append((key, value))
        self.data[key] = value
