from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from kyara.core.context import user_id_ctx_var
from kyara.core.errors import DocumentStoreError, DurableStoreError
from kyara.domain.entities import (
    PLACEHOLDER_ANIME_TITLE,
    AnimeCacheEntry,
    AnimeSelectionStatus,
    AuthPhase,
    DetailedCharacterRef,
    SelectionSnapshot,
)
from kyara.domain.ports.document_store import DocumentStore
from kyara.domain.ports.durable_store import DurableStore
from kyara.domain.ports.identity import IdentityProvider
from kyara.domain.ports.metadata import MetadataSource
from kyara.services import selection_queries
from kyara.services.anime_roster_cache import AnimeRosterCache, AnimeRosterCacheConfig
from kyara.services.selection_codec import (
    CACHED_ANIMES_FIELD,
    SELECTED_IDS_FIELD,
    decode_anime_cache,
    decode_selected_ids,
    decode_snapshot,
    dumps_field,
    encode_anime_cache,
    encode_selected_ids,
    encode_snapshot,
    has_selection_fields,
    loads_field,
)
from kyara.services.selection_set import SelectionSet

logger = logging.getLogger(__name__)

FieldWrite = Callable[[str | None, Any], Awaitable[None]]


@dataclass(frozen=True)
class SelectionSynchronizerConfig:
    selection_ids_key: str
    anime_cache_key: str
    document_timeout_seconds: float
    durable_timeout_seconds: float
    metadata_timeout_seconds: float
    main_role: str = "Main"
    placeholder_title: str = PLACEHOLDER_ANIME_TITLE


class _FieldWriter:
    """Runs the writes of one persisted field one at a time.

    Payloads scheduled while a write is in flight collapse into the most recent
    one, so the last scheduled state is always the last one written.
    """

    def __init__(self, *, name: str, write: FieldWrite) -> None:
        self._name = name
        self._write = write
        self._pending: tuple[str | None, Any] | None = None
        self._task: asyncio.Task[None] | None = None

    def schedule(self, user_id: str | None, payload: Any) -> None:
        self._pending = (user_id, payload)
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._drain())

    async def flush(self) -> None:
        while self._task is not None and not self._task.done():
            await asyncio.shield(self._task)

    async def _drain(self) -> None:
        while self._pending is not None:
            user_id, payload = self._pending
            self._pending = None
            try:
                await self._write(user_id, payload)
            except Exception:  # noqa: BLE001
                logger.exception("selection_field_write_crashed", extra={"field": self._name})


class SelectionSynchronizer:
    """Owns the selection and roster cache for whichever identity is active.

    Loads on every identity change once the identity provider has finished
    initializing, and persists later mutations to the local durable store and,
    for identified users, to the remote document store.
    """

    def __init__(
        self,
        *,
        config: SelectionSynchronizerConfig,
        identity: IdentityProvider,
        metadata: MetadataSource,
        documents: DocumentStore,
        durable_store: DurableStore,
    ) -> None:
        self._cfg = config
        self._identity = identity
        self._documents = documents
        self._durable = durable_store

        self._selection = SelectionSet()
        self._cache = AnimeRosterCache(
            config=AnimeRosterCacheConfig(
                metadata_timeout_seconds=config.metadata_timeout_seconds,
                main_role=config.main_role,
                placeholder_title=config.placeholder_title,
            ),
            metadata=metadata,
        )

        self._phase = AuthPhase.UNRESOLVED
        self._user_id: str | None = None
        self._ready = False
        self._generation = 0
        self._unsubscribe_identity: Callable[[], None] | None = None

        self._selection_writer = _FieldWriter(
            name=SELECTED_IDS_FIELD,
            write=lambda user_id, payload: self._write_field(
                SELECTED_IDS_FIELD, self._cfg.selection_ids_key, user_id, payload
            ),
        )
        self._cache_writer = _FieldWriter(
            name=CACHED_ANIMES_FIELD,
            write=lambda user_id, payload: self._write_field(
                CACHED_ANIMES_FIELD, self._cfg.anime_cache_key, user_id, payload
            ),
        )
        self._selection.subscribe(self._on_selection_changed)
        self._cache.subscribe(self._on_cache_changed)

    @property
    def phase(self) -> AuthPhase:
        return self._phase

    @property
    def user_id(self) -> str | None:
        return self._user_id

    async def start(self) -> None:
        if self._unsubscribe_identity is None:
            self._unsubscribe_identity = self._identity.subscribe(self.reload)
        await self.reload()

    async def close(self) -> None:
        if self._unsubscribe_identity is not None:
            self._unsubscribe_identity()
            self._unsubscribe_identity = None
        await self.flush()

    async def flush(self) -> None:
        await asyncio.gather(self._selection_writer.flush(), self._cache_writer.flush())

    async def reload(self) -> None:
        self._generation += 1
        generation = self._generation
        self._ready = False

        if self._identity.is_initializing():
            self._phase = AuthPhase.UNRESOLVED
            self._user_id = None
            logger.info("selection_load_deferred")
            return

        # Writes queued for the previous identity must land before its
        # replacement is read.
        await self.flush()
        if generation != self._generation:
            return

        user_id = self._identity.current_user()
        token = user_id_ctx_var.set(user_id or "-")
        try:
            if user_id is None:
                snapshot, from_remote = await self._load_local(), False
            else:
                snapshot, from_remote = await self._load_identified(user_id)

            if generation != self._generation:
                logger.info("selection_load_superseded", extra={"user_id": user_id or "-"})
                return
            if from_remote:
                await self._mirror_local(snapshot)
        finally:
            user_id_ctx_var.reset(token)

        if generation != self._generation:
            return

        self._selection.replace(snapshot.selected_ids)
        self._cache.replace(snapshot.cache)
        self._user_id = user_id
        self._phase = AuthPhase.IDENTIFIED if user_id is not None else AuthPhase.ANONYMOUS
        self._ready = True
        logger.info(
            "selection_loaded",
            extra={
                "user_id": user_id or "-",
                "phase": self._phase.value,
                "selected_count": len(snapshot.selected_ids),
                "cached_animes": len(snapshot.cache),
            },
        )

    def is_loading(self) -> bool:
        return not self._ready

    def is_character_selected(self, character_id: int) -> bool:
        if not self._ready:
            return False
        return selection_queries.is_character_selected(self._selection, character_id)

    def is_anime_selected(self, anime_id: int) -> bool:
        return selection_queries.is_anime_selected(
            self._selection,
            self._cache.entries(),
            anime_id,
            ready=self._ready,
        )

    def anime_selection_status(self, anime_id: int) -> AnimeSelectionStatus:
        if not self._ready:
            return AnimeSelectionStatus.NONE
        return selection_queries.anime_selection_status(self._selection, self._cache.entries(), anime_id)

    def selected_ids(self) -> frozenset[int]:
        if not self._ready:
            return frozenset()
        return self._selection.snapshot()

    def cached_animes(self) -> dict[int, AnimeCacheEntry]:
        return dict(self._cache.entries())

    def cached_anime(self, anime_id: int) -> AnimeCacheEntry | None:
        return self._cache.get(anime_id)

    def selected_animes(self) -> list[AnimeCacheEntry]:
        if not self._ready:
            return []
        return selection_queries.selected_animes(self._selection, self._cache.entries())

    def game_character_pool(self) -> list[DetailedCharacterRef]:
        if not self._ready:
            return []
        return selection_queries.game_character_pool(self._selection, self._cache.entries())

    async def add_character(self, character: DetailedCharacterRef) -> None:
        self._selection.add(character.id)

    async def remove_character(self, character_id: int) -> None:
        self._selection.remove(character_id)

    async def resolve_anime_roster(
        self,
        anime_id: int,
        title_hint: str = "",
        image_hint: str = "",
    ) -> list[DetailedCharacterRef]:
        return await self._cache.resolve(anime_id, title_hint, image_hint)

    async def toggle_all_characters_of_anime(
        self,
        anime_id: int,
        title_hint: str = "",
        image_hint: str = "",
    ) -> None:
        if self.is_anime_selected(anime_id):
            entry = self._cache.get(anime_id)
            if entry is not None:
                self._selection.remove_many(entry.roster_ids())
            return

        owner = (self._generation, self._ready)
        roster = await self._cache.resolve(anime_id, title_hint, image_hint)
        if owner != (self._generation, self._ready):
            # A load started or finished while the roster was fetched.
            logger.info("selection_toggle_superseded", extra={"anime_id": anime_id})
            return
        self._selection.add_many(c.id for c in roster)

    async def clear_all_selections(self) -> None:
        self._selection.clear()
        self._cache.clear()

    def _on_selection_changed(self) -> None:
        if not self._ready:
            return
        self._selection_writer.schedule(self._user_id, encode_selected_ids(self._selection))

    def _on_cache_changed(self) -> None:
        if not self._ready:
            return
        self._cache_writer.schedule(self._user_id, encode_anime_cache(self._cache.entries()))

    async def _write_field(self, field: str, key: str, user_id: str | None, payload: Any) -> None:
        token = user_id_ctx_var.set(user_id or "-")
        try:
            try:
                await self._local_set(key, dumps_field(payload))
            except DurableStoreError as exc:
                logger.warning("local_save_failed", extra={"field": field, "reason": str(exc)})

            if user_id is None:
                return
            try:
                await self._remote_upsert(user_id, {field: payload})
            except DocumentStoreError as exc:
                logger.warning("remote_save_failed", extra={"field": field, "reason": str(exc)})
        finally:
            user_id_ctx_var.reset(token)

    async def _load_identified(self, user_id: str) -> tuple[SelectionSnapshot, bool]:
        """Returns the snapshot and whether it came from the remote document."""
        try:
            document = await self._remote_get(user_id)
            if has_selection_fields(document):
                return decode_snapshot(document, placeholder_title=self._cfg.placeholder_title), True

            # No selection stored for this account yet: seed it from the local
            # (guest) data. The document may already hold profile fields.
            snapshot = await self._load_local()
            if not snapshot.is_empty():
                await self._remote_upsert(user_id, encode_snapshot(snapshot))
                logger.info(
                    "local_selection_migrated",
                    extra={"selected_count": len(snapshot.selected_ids), "cached_animes": len(snapshot.cache)},
                )
            return snapshot, False
        except DocumentStoreError as exc:
            logger.warning("remote_load_failed", extra={"reason": str(exc)})
            return await self._load_local(), False

    async def _load_local(self) -> SelectionSnapshot:
        ids_raw = await self._read_local_field(self._cfg.selection_ids_key)
        cache_raw = await self._read_local_field(self._cfg.anime_cache_key)
        return SelectionSnapshot(
            selected_ids=decode_selected_ids(ids_raw),
            cache=decode_anime_cache(cache_raw, placeholder_title=self._cfg.placeholder_title),
        )

    async def _mirror_local(self, snapshot: SelectionSnapshot) -> None:
        fields = encode_snapshot(snapshot)
        for key, field in (
            (self._cfg.selection_ids_key, SELECTED_IDS_FIELD),
            (self._cfg.anime_cache_key, CACHED_ANIMES_FIELD),
        ):
            try:
                await self._local_set(key, dumps_field(fields[field]))
            except DurableStoreError as exc:
                logger.warning("local_mirror_failed", extra={"field": field, "reason": str(exc)})

    async def _read_local_field(self, key: str) -> Any | None:
        try:
            raw = await self._local_get(key)
        except DurableStoreError as exc:
            logger.warning("local_load_failed", extra={"key": key, "reason": str(exc)})
            return None
        try:
            return loads_field(raw)
        except ValueError as exc:
            logger.warning("local_field_malformed", extra={"key": key, "reason": str(exc)})
            return None

    async def _local_get(self, key: str) -> bytes | None:
        try:
            return await asyncio.wait_for(self._durable.get(key), timeout=self._cfg.durable_timeout_seconds)
        except DurableStoreError:
            raise
        except TimeoutError as exc:
            raise DurableStoreError("durable read timeout") from exc
        except Exception as exc:  # noqa: BLE001
            raise DurableStoreError("durable read failure") from exc

    async def _local_set(self, key: str, value: bytes) -> None:
        try:
            await asyncio.wait_for(self._durable.set(key, value), timeout=self._cfg.durable_timeout_seconds)
        except DurableStoreError:
            raise
        except TimeoutError as exc:
            raise DurableStoreError("durable write timeout") from exc
        except Exception as exc:  # noqa: BLE001
            raise DurableStoreError("durable write failure") from exc

    async def _remote_get(self, user_id: str) -> dict[str, Any] | None:
        try:
            return await asyncio.wait_for(
                self._documents.get_document(user_id),
                timeout=self._cfg.document_timeout_seconds,
            )
        except DocumentStoreError:
            raise
        except TimeoutError as exc:
            raise DocumentStoreError("document read timeout") from exc
        except Exception as exc:  # noqa: BLE001
            raise DocumentStoreError("document read failure") from exc

    async def _remote_upsert(self, user_id: str, fields: dict[str, Any]) -> None:
        try:
            await asyncio.wait_for(
                self._documents.upsert_document(user_id, fields, merge=True),
                timeout=self._cfg.document_timeout_seconds,
            )
        except DocumentStoreError:
            raise
        except TimeoutError as exc:
            raise DocumentStoreError("document write timeout") from exc
        except Exception as exc:  # noqa: BLE001
            raise DocumentStoreError("document write failure") from exc
