from __future__ import annotations

import asyncio
from typing import Any

import httpx

from kyara.core.errors import MetadataFetchError
from kyara.core.validation import normalize_public_url
from kyara.domain.entities import AnimeMetadata, RosterMember
from kyara.domain.ports.metadata import MetadataSource


class JikanMetadataSource(MetadataSource):
    """Anime metadata and character rosters from the Jikan v4 REST API."""

    def __init__(self, *, http_client: httpx.AsyncClient, timeout_seconds: float) -> None:
        self._client = http_client
        self._timeout = float(timeout_seconds)

    async def get_anime_by_id(self, anime_id: int) -> AnimeMetadata:
        data = await self._get_data(f"/anime/{int(anime_id)}", anime_id=anime_id)
        if not isinstance(data, dict):
            raise MetadataFetchError("invalid jikan anime payload", anime_id=anime_id)

        title = _first_text(data.get("title_english"), data.get("title"))
        return AnimeMetadata(title=title, image_url=_jpg_image_url(data.get("images")) or "")

    async def get_anime_roster(self, anime_id: int) -> list[RosterMember]:
        data = await self._get_data(f"/anime/{int(anime_id)}/characters", anime_id=anime_id)
        if not isinstance(data, list):
            raise MetadataFetchError("invalid jikan characters payload", anime_id=anime_id)

        out: list[RosterMember] = []
        for item in data:
            member = _parse_roster_item(item)
            if member is not None:
                out.append(member)
        return out

    async def _get_data(self, path: str, *, anime_id: int) -> Any:
        try:
            resp = await asyncio.wait_for(self._client.get(path), timeout=self._timeout)
            resp.raise_for_status()
            payload = resp.json()
        except TimeoutError as exc:
            raise MetadataFetchError("jikan timeout", anime_id=anime_id) from exc
        except httpx.HTTPStatusError as exc:
            raise MetadataFetchError(f"jikan status {exc.response.status_code}", anime_id=anime_id) from exc
        except httpx.HTTPError as exc:
            raise MetadataFetchError("jikan transport failure", anime_id=anime_id) from exc
        except ValueError as exc:
            raise MetadataFetchError("jikan response is not json", anime_id=anime_id) from exc

        if not isinstance(payload, dict):
            raise MetadataFetchError("invalid jikan envelope", anime_id=anime_id)
        return payload.get("data")


def _parse_roster_item(item: Any) -> RosterMember | None:
    if not isinstance(item, dict):
        return None
    character = item.get("character")
    if not isinstance(character, dict):
        return None
    mal_id = character.get("mal_id")
    if not isinstance(mal_id, int) or isinstance(mal_id, bool):
        return None
    role = item.get("role")
    return RosterMember(
        id=mal_id,
        name=_first_text(character.get("name")),
        role=role.strip() if isinstance(role, str) else "",
        image_url=_jpg_image_url(character.get("images")),
    )


def _jpg_image_url(images: Any) -> str | None:
    if not isinstance(images, dict):
        return None
    jpg = images.get("jpg")
    if not isinstance(jpg, dict):
        return None
    return normalize_public_url(jpg.get("image_url"))


def _first_text(*values: Any) -> str:
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""
