from __future__ import annotations

from typing import Protocol

from kyara.domain.entities import AnimeMetadata, RosterMember


class MetadataSource(Protocol):
    async def get_anime_by_id(self, anime_id: int) -> AnimeMetadata:
        ...

    async def get_anime_roster(self, anime_id: int) -> list[RosterMember]:
        ...
