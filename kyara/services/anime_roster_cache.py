from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Callable, Mapping

from kyara.core.errors import MetadataFetchError
from kyara.domain.entities import (
    PLACEHOLDER_ANIME_TITLE,
    AnimeCacheEntry,
    AnimeMetadata,
    CharacterRef,
    DetailedCharacterRef,
    RosterMember,
    is_resolved_title,
)
from kyara.domain.ports.metadata import MetadataSource

logger = logging.getLogger(__name__)

ChangeListener = Callable[[], None]


@dataclass(frozen=True)
class AnimeRosterCacheConfig:
    metadata_timeout_seconds: float
    main_role: str = "Main"
    placeholder_title: str = PLACEHOLDER_ANIME_TITLE


class AnimeRosterCache:
    """Anime id -> metadata and main-character roster, populated on demand.

    Remote failures never escape ``resolve``: the best data already known is
    kept and returned.
    """

    def __init__(
        self,
        *,
        config: AnimeRosterCacheConfig,
        metadata: MetadataSource,
        entries: Mapping[int, AnimeCacheEntry] | None = None,
    ) -> None:
        self._cfg = config
        self._metadata = metadata
        self._entries: dict[int, AnimeCacheEntry] = dict(entries or {})
        self._inflight: dict[int, asyncio.Future[list[DetailedCharacterRef]]] = {}
        self._listeners: list[ChangeListener] = []
        # Bumped by replace(); resolutions started under an older epoch store nothing.
        self._epoch = 0

    def __contains__(self, anime_id: object) -> bool:
        return anime_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def get(self, anime_id: int) -> AnimeCacheEntry | None:
        return self._entries.get(anime_id)

    def entries(self) -> Mapping[int, AnimeCacheEntry]:
        # Writes swap in a new dict, so the proxy is a stable snapshot.
        return MappingProxyType(self._entries)

    def replace(self, entries: Mapping[int, AnimeCacheEntry]) -> None:
        self._epoch += 1
        self._inflight = {}
        new_entries = dict(entries)
        if new_entries == self._entries:
            return
        self._entries = new_entries
        self._notify()

    def clear(self) -> None:
        if not self._entries:
            return
        self._entries = {}
        self._notify()

    async def resolve(self, anime_id: int, title_hint: str = "", image_hint: str = "") -> list[DetailedCharacterRef]:
        """Return the main-character roster of ``anime_id``, fetching it if needed.

        Concurrent calls for one anime share a single resolution driven by the
        first caller's hints. A later caller whose title hint is real still
        gets that title if the shared resolution could not find one.
        """
        epoch = self._epoch
        pending = self._inflight.get(anime_id)
        joined = pending is not None
        if pending is None:
            pending = asyncio.ensure_future(self._resolve(anime_id, title_hint, image_hint, epoch=epoch))
            self._inflight[anime_id] = pending
            pending.add_done_callback(lambda f: self._forget_inflight(anime_id, f))
        roster = list(await asyncio.shield(pending))
        if joined and self._is_resolved(title_hint):
            return self._adopt_title(anime_id, title_hint.strip(), roster, epoch=epoch)
        return roster

    def _forget_inflight(self, anime_id: int, future: asyncio.Future[list[DetailedCharacterRef]]) -> None:
        if self._inflight.get(anime_id) is future:
            del self._inflight[anime_id]

    def _adopt_title(
        self,
        anime_id: int,
        title: str,
        roster: list[DetailedCharacterRef],
        *,
        epoch: int,
    ) -> list[DetailedCharacterRef]:
        entry = self._entries.get(anime_id)
        if entry is None or self._is_resolved(entry.title) or epoch != self._epoch:
            return roster
        entry = replace(entry, title=title)
        self._store(entry, epoch=epoch)
        return entry.detailed_roster()

    async def _resolve(
        self,
        anime_id: int,
        title_hint: str,
        image_hint: str,
        *,
        epoch: int,
    ) -> list[DetailedCharacterRef]:
        cached = self._entries.get(anime_id)
        if cached is not None and cached.roster:
            return await self._serve_cached(cached, title_hint, image_hint, epoch=epoch)

        title, image_url = await self._best_metadata(anime_id, cached, title_hint, image_hint)

        try:
            members = await self._fetch_roster(anime_id)
        except MetadataFetchError as exc:
            logger.warning(
                "roster_fetch_failed",
                extra={"anime_id": anime_id, "reason": str(exc)},
            )
            previous = self._entries.get(anime_id)
            roster = previous.roster if previous is not None else ()
            entry = AnimeCacheEntry(id=anime_id, title=title, image_url=image_url, roster=roster)
            self._store(entry, epoch=epoch)
            return entry.detailed_roster()

        roster = tuple(
            CharacterRef(id=m.id, name=m.name, image_url=m.image_url)
            for m in members
            if m.role == self._cfg.main_role
        )
        entry = AnimeCacheEntry(id=anime_id, title=title, image_url=image_url, roster=roster)
        if self._store(entry, epoch=epoch):
            logger.info("roster_cached", extra={"anime_id": anime_id, "roster_size": len(roster)})
        return entry.detailed_roster()

    async def _serve_cached(
        self,
        cached: AnimeCacheEntry,
        title_hint: str,
        image_hint: str,
        *,
        epoch: int,
    ) -> list[DetailedCharacterRef]:
        image_hint = (image_hint or "").strip()
        if self._is_resolved(cached.title):
            if cached.image_url or not image_hint:
                return cached.detailed_roster()
            title, image_url = cached.title, image_hint
        else:
            title, image_url = await self._best_metadata(
                cached.id, cached, title_hint, image_hint, lookup_for_image=False
            )

        # Re-read after the lookup; only title and image are rewritten.
        current = self._entries.get(cached.id, cached)
        if (title, image_url) != (current.title, current.image_url):
            current = replace(current, title=title, image_url=image_url)
            if self._store(current, epoch=epoch):
                logger.info("anime_metadata_refreshed", extra={"anime_id": cached.id})
        return current.detailed_roster()

    async def _best_metadata(
        self,
        anime_id: int,
        cached: AnimeCacheEntry | None,
        title_hint: str,
        image_hint: str,
        *,
        lookup_for_image: bool = True,
    ) -> tuple[str, str]:
        title = self._cfg.placeholder_title
        if self._is_resolved(title_hint):
            title = title_hint.strip()
        elif cached is not None and self._is_resolved(cached.title):
            title = cached.title

        image_url = (image_hint or "").strip()
        if not image_url and cached is not None:
            image_url = cached.image_url

        if self._is_resolved(title) and (image_url or not lookup_for_image):
            return title, image_url

        try:
            fresh = await self._fetch_metadata(anime_id)
        except MetadataFetchError as exc:
            logger.warning(
                "anime_metadata_fetch_failed",
                extra={"anime_id": anime_id, "reason": str(exc)},
            )
            return title, image_url

        if self._is_resolved(fresh.title):
            title = fresh.title.strip()
        if fresh.image_url:
            image_url = fresh.image_url
        return title, image_url

    async def _fetch_metadata(self, anime_id: int) -> AnimeMetadata:
        try:
            return await asyncio.wait_for(
                self._metadata.get_anime_by_id(anime_id),
                timeout=self._cfg.metadata_timeout_seconds,
            )
        except MetadataFetchError:
            raise
        except TimeoutError as exc:
            raise MetadataFetchError("metadata timeout", anime_id=anime_id) from exc
        except Exception as exc:  # noqa: BLE001
            raise MetadataFetchError("metadata failure", anime_id=anime_id) from exc

    async def _fetch_roster(self, anime_id: int) -> list[RosterMember]:
        try:
            return await asyncio.wait_for(
                self._metadata.get_anime_roster(anime_id),
                timeout=self._cfg.metadata_timeout_seconds,
            )
        except MetadataFetchError:
            raise
        except TimeoutError as exc:
            raise MetadataFetchError("roster timeout", anime_id=anime_id) from exc
        except Exception as exc:  # noqa: BLE001
            raise MetadataFetchError("roster failure", anime_id=anime_id) from exc

    def _is_resolved(self, title: str | None) -> bool:
        return is_resolved_title(title, placeholder=self._cfg.placeholder_title)

    def _store(self, entry: AnimeCacheEntry, *, epoch: int) -> bool:
        if epoch != self._epoch:
            logger.info("roster_result_discarded", extra={"anime_id": entry.id})
            return False
        if self._entries.get(entry.id) == entry:
            return True
        self._entries = {**self._entries, entry.id: entry}
        self._notify()
        return True

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()
