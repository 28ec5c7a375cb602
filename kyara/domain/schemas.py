from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from kyara.domain.entities import AnimeCacheEntry, DetailedCharacterRef


class SignInIn(BaseModel):
    user_id: str = Field(min_length=1, max_length=128)


class AnimeHintsIn(BaseModel):
    title: str = Field(default="", max_length=512)
    image_url: str = Field(default="", max_length=2048)


class DetailedCharacterIn(BaseModel):
    name: str = Field(default="", max_length=256)
    image_url: str | None = Field(default=None, max_length=2048)
    anime_id: int = Field(ge=1)
    anime_title: str = Field(default="", max_length=512)


class DetailedCharacterOut(BaseModel):
    id: int
    name: str
    image_url: str | None = None
    anime_id: int
    anime_title: str

    @classmethod
    def from_entity(cls, ref: DetailedCharacterRef) -> "DetailedCharacterOut":
        return cls(
            id=ref.id,
            name=ref.name,
            image_url=ref.image_url,
            anime_id=ref.anime_id,
            anime_title=ref.anime_title,
        )


class AnimeSummaryOut(BaseModel):
    id: int
    title: str
    image_url: str
    roster_size: int

    @classmethod
    def from_entity(cls, entry: AnimeCacheEntry) -> "AnimeSummaryOut":
        return cls(id=entry.id, title=entry.title, image_url=entry.image_url, roster_size=len(entry.roster))


class SelectionStatusOut(BaseModel):
    loading: bool
    phase: Literal["unresolved", "identified", "anonymous"]
    user_id: str | None = None
    selected_count: int
    cached_animes: int


class CharacterSelectionOut(BaseModel):
    character_id: int
    selected: bool


class AnimeSelectionOut(BaseModel):
    anime_id: int
    selected: bool
    status: Literal["none", "partial", "full"]
    selected_count: int
    roster_size: int


class AnimeRosterOut(BaseModel):
    anime_id: int
    title: str
    characters: list[DetailedCharacterOut]


class SelectedAnimesOut(BaseModel):
    animes: list[AnimeSummaryOut]


class CharacterPoolOut(BaseModel):
    characters: list[DetailedCharacterOut]


class ErrorDetail(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    error: ErrorDetail
    request_id: str
