"""Side-effect free views over a selection and an anime roster cache.

A missing cache entry or an empty roster makes an anime's selection state
indeterminate; it is reported as not selected even if some of its characters
are in the selection.
"""

from __future__ import annotations

from typing import AbstractSet, Mapping

from kyara.domain.entities import (
    AnimeCacheEntry,
    AnimeSelectionStatus,
    DetailedCharacterRef,
)


def is_character_selected(selection: AbstractSet[int], character_id: int) -> bool:
    return character_id in selection


def is_anime_selected(
    selection: AbstractSet[int],
    cache: Mapping[int, AnimeCacheEntry],
    anime_id: int,
    *,
    ready: bool = True,
) -> bool:
    if not ready:
        return False
    entry = cache.get(anime_id)
    if entry is None or not entry.roster:
        return False
    return any(c.id in selection for c in entry.roster)


def selected_count(selection: AbstractSet[int], entry: AnimeCacheEntry) -> int:
    return sum(1 for character_id in entry.roster_ids() if character_id in selection)


def anime_selection_status(
    selection: AbstractSet[int],
    cache: Mapping[int, AnimeCacheEntry],
    anime_id: int,
) -> AnimeSelectionStatus:
    entry = cache.get(anime_id)
    if entry is None or not entry.roster:
        return AnimeSelectionStatus.NONE
    count = selected_count(selection, entry)
    if count == 0:
        return AnimeSelectionStatus.NONE
    if count == len(entry.roster_ids()):
        return AnimeSelectionStatus.FULL
    return AnimeSelectionStatus.PARTIAL


def detailed_roster(cache: Mapping[int, AnimeCacheEntry], anime_id: int) -> list[DetailedCharacterRef]:
    entry = cache.get(anime_id)
    return entry.detailed_roster() if entry is not None else []


def selected_animes(
    selection: AbstractSet[int],
    cache: Mapping[int, AnimeCacheEntry],
) -> list[AnimeCacheEntry]:
    out = [entry for anime_id, entry in cache.items() if is_anime_selected(selection, cache, anime_id)]
    out.sort(key=lambda e: (e.title.casefold(), e.id))
    return out


def game_character_pool(
    selection: AbstractSet[int],
    cache: Mapping[int, AnimeCacheEntry],
) -> list[DetailedCharacterRef]:
    """Selected characters joined with the first cached anime that lists them.

    Rosters of different animes can share a character, so the pool is
    deduplicated by character id. Selected ids that no cached roster knows
    about cannot be displayed and are left out.
    """
    seen: set[int] = set()
    out: list[DetailedCharacterRef] = []
    for anime_id in sorted(cache):
        for character in detailed_roster(cache, anime_id):
            if character.id in seen or character.id not in selection:
                continue
            seen.add(character.id)
            out.append(character)
    return out
