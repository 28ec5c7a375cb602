from __future__ import annotations

import json
from typing import Any, Iterable, Mapping

from kyara.domain.entities import (
    PLACEHOLDER_ANIME_TITLE,
    AnimeCacheEntry,
    CharacterRef,
    SelectionSnapshot,
)

SELECTED_IDS_FIELD = "selectedCharacterIds"
CACHED_ANIMES_FIELD = "cachedAnimesData"


def encode_selected_ids(ids: Iterable[int]) -> list[int]:
    return sorted(int(i) for i in ids)


def encode_anime_cache(cache: Mapping[int, AnimeCacheEntry]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for anime_id, entry in cache.items():
        out[str(anime_id)] = {
            "mal_id": entry.id,
            "title": entry.title,
            "image_url": entry.image_url,
            "characters": [
                {"mal_id": c.id, "name": c.name, "image_url": c.image_url}
                for c in entry.roster
            ],
        }
    return out


def encode_snapshot(snapshot: SelectionSnapshot) -> dict[str, Any]:
    return {
        SELECTED_IDS_FIELD: encode_selected_ids(snapshot.selected_ids),
        CACHED_ANIMES_FIELD: encode_anime_cache(snapshot.cache),
    }


def has_selection_fields(document: Mapping[str, Any] | None) -> bool:
    if not document:
        return False
    return SELECTED_IDS_FIELD in document or CACHED_ANIMES_FIELD in document


def decode_snapshot(
    document: Mapping[str, Any] | None, *, placeholder_title: str = PLACEHOLDER_ANIME_TITLE
) -> SelectionSnapshot:
    if not document:
        return SelectionSnapshot()
    return SelectionSnapshot(
        selected_ids=decode_selected_ids(document.get(SELECTED_IDS_FIELD)),
        cache=decode_anime_cache(document.get(CACHED_ANIMES_FIELD), placeholder_title=placeholder_title),
    )


def decode_selected_ids(raw: Any) -> frozenset[int]:
    if not isinstance(raw, (list, tuple)):
        return frozenset()
    out: set[int] = set()
    for item in raw:
        parsed = _as_int(item)
        if parsed is not None:
            out.add(parsed)
    return frozenset(out)


def decode_anime_cache(raw: Any, *, placeholder_title: str = PLACEHOLDER_ANIME_TITLE) -> dict[int, AnimeCacheEntry]:
    if not isinstance(raw, dict):
        return {}
    out: dict[int, AnimeCacheEntry] = {}
    for key, value in raw.items():
        anime_id = _as_int(key)
        if anime_id is None or not isinstance(value, dict):
            continue
        entry = _parse_entry(anime_id, value, placeholder_title=placeholder_title)
        if entry is not None:
            out[anime_id] = entry
    return out


def dumps_field(value: Any) -> bytes:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def loads_field(raw: bytes | None) -> Any | None:
    if raw is None:
        return None
    text = raw.decode("utf-8", errors="strict") if isinstance(raw, bytes) else str(raw)
    return json.loads(text)


def _parse_entry(anime_id: int, raw: dict[str, Any], *, placeholder_title: str) -> AnimeCacheEntry | None:
    stored_id = _as_int(raw.get("mal_id", anime_id))
    if stored_id is not None and stored_id != anime_id:
        return None

    title = raw.get("title")
    image_url = raw.get("image_url")
    roster: list[CharacterRef] = []
    seen: set[int] = set()
    characters = raw.get("characters")
    if isinstance(characters, list):
        for item in characters:
            character = _parse_character(item)
            if character is None or character.id in seen:
                continue
            seen.add(character.id)
            roster.append(character)

    return AnimeCacheEntry(
        id=anime_id,
        title=title.strip() if isinstance(title, str) and title.strip() else placeholder_title,
        image_url=image_url.strip() if isinstance(image_url, str) else "",
        roster=tuple(roster),
    )


def _parse_character(raw: Any) -> CharacterRef | None:
    if not isinstance(raw, dict):
        return None
    character_id = _as_int(raw.get("mal_id"))
    if character_id is None:
        return None
    name = raw.get("name")
    image_url = raw.get("image_url")
    return CharacterRef(
        id=character_id,
        name=name.strip() if isinstance(name, str) else "",
        image_url=image_url if isinstance(image_url, str) and image_url.strip() else None,
    )


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None
