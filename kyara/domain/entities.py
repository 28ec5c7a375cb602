from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping

PLACEHOLDER_ANIME_TITLE = "Anime"


def is_resolved_title(title: str | None, *, placeholder: str = PLACEHOLDER_ANIME_TITLE) -> bool:
    if not isinstance(title, str):
        return False
    value = title.strip()
    return bool(value) and value != placeholder


class AuthPhase(str, Enum):
    UNRESOLVED = "unresolved"
    IDENTIFIED = "identified"
    ANONYMOUS = "anonymous"


class AnimeSelectionStatus(str, Enum):
    NONE = "none"
    PARTIAL = "partial"
    FULL = "full"


@dataclass(frozen=True)
class CharacterRef:
    id: int
    name: str
    image_url: str | None = None


@dataclass(frozen=True)
class DetailedCharacterRef:
    id: int
    name: str
    anime_id: int
    anime_title: str
    image_url: str | None = None


@dataclass(frozen=True)
class AnimeCacheEntry:
    """Last-known-good metadata and main-character roster of one anime.

    An empty roster means either that no roster fetch has succeeded yet or that
    the source genuinely has no main characters; the two cases look the same.
    """

    id: int
    title: str = PLACEHOLDER_ANIME_TITLE
    image_url: str = ""
    roster: tuple[CharacterRef, ...] = ()

    def roster_ids(self) -> frozenset[int]:
        return frozenset(c.id for c in self.roster)

    def detailed_roster(self, anime_title: str | None = None) -> list[DetailedCharacterRef]:
        title = anime_title if anime_title is not None else self.title
        return [
            DetailedCharacterRef(
                id=c.id,
                name=c.name,
                image_url=c.image_url,
                anime_id=self.id,
                anime_title=title,
            )
            for c in self.roster
        ]


@dataclass(frozen=True)
class AnimeMetadata:
    title: str
    image_url: str


@dataclass(frozen=True)
class RosterMember:
    id: int
    name: str
    role: str
    image_url: str | None = None


@dataclass(frozen=True)
class SelectionSnapshot:
    selected_ids: frozenset[int] = frozenset()
    cache: Mapping[int, AnimeCacheEntry] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.selected_ids and not self.cache
