from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from kyara.api.v1.router import router as v1_router
from kyara.core.config import Settings, get_settings
from kyara.core.exception_handlers import register_exception_handlers
from kyara.core.logging import setup_logging
from kyara.core.middleware.access_log import AccessLogMiddleware
from kyara.core.middleware.request_context import RequestContextMiddleware
from kyara.domain.ports.durable_store import DurableStore
from kyara.infrastructure.db.session import build_async_engine, build_sessionmaker
from kyara.infrastructure.identity.session_identity import SessionIdentityProvider
from kyara.infrastructure.metadata.jikan_client import JikanMetadataSource
from kyara.infrastructure.storage.redis_store import (
    InMemoryDurableStore,
    RedisDurableStore,
    close_redis_client,
    create_redis_client,
)
from kyara.repositories.document_store_sqlalchemy import SqlAlchemyDocumentStore
from kyara.services.selection_synchronizer import SelectionSynchronizer, SelectionSynchronizerConfig

logger = logging.getLogger(__name__)


def build_synchronizer_config(settings: Settings) -> SelectionSynchronizerConfig:
    return SelectionSynchronizerConfig(
        selection_ids_key=settings.selection_ids_key,
        anime_cache_key=settings.anime_cache_key,
        document_timeout_seconds=settings.document_store_timeout_seconds,
        durable_timeout_seconds=settings.durable_store_timeout_seconds,
        metadata_timeout_seconds=settings.metadata_timeout_seconds,
        main_role=settings.main_character_role,
        placeholder_title=settings.placeholder_anime_title,
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)

    docs_url = "/docs" if settings.docs_enabled else None
    redoc_url = "/redoc" if settings.docs_enabled else None
    openapi_url = "/openapi.json" if settings.docs_enabled else None

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        await _startup(app, settings)
        try:
            yield
        finally:
            await _shutdown(app)

    app = FastAPI(
        title=settings.app_name,
        docs_url=docs_url,
        redoc_url=redoc_url,
        openapi_url=openapi_url,
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(RequestContextMiddleware)

    app.include_router(v1_router, prefix=settings.api_v1_prefix)

    return app


async def _startup(app: FastAPI, settings: Settings) -> None:
    engine: AsyncEngine = build_async_engine(settings)
    sessionmaker: async_sessionmaker = build_sessionmaker(engine)
    app.state.engine = engine

    redis = await create_redis_client(settings)
    app.state.redis = redis
    durable_store: DurableStore
    if redis is None:
        logger.warning("durable_store_in_memory")
        durable_store = InMemoryDurableStore()
    else:
        durable_store = RedisDurableStore(
            redis=redis,
            operation_timeout_seconds=settings.redis_operation_timeout_seconds,
            key_prefix=settings.durable_key_prefix,
        )

    http_client = httpx.AsyncClient(
        base_url=str(settings.jikan_base_url),
        timeout=httpx.Timeout(settings.metadata_timeout_seconds),
        headers={"Accept": "application/json"},
        limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
    )
    app.state.http_client = http_client

    identity = SessionIdentityProvider()
    app.state.identity = identity

    synchronizer = SelectionSynchronizer(
        config=build_synchronizer_config(settings),
        identity=identity,
        metadata=JikanMetadataSource(http_client=http_client, timeout_seconds=settings.metadata_timeout_seconds),
        documents=SqlAlchemyDocumentStore(
            sessionmaker=sessionmaker,
            timeout_seconds=settings.document_store_timeout_seconds,
        ),
        durable_store=durable_store,
    )
    app.state.synchronizer = synchronizer

    await synchronizer.start()
    await identity.complete_initialization(settings.initial_user_id)

    logger.info(
        "startup_complete",
        extra={
            "redis_enabled": redis is not None,
            "phase": synchronizer.phase.value,
        },
    )


async def _shutdown(app: FastAPI) -> None:
    synchronizer: SelectionSynchronizer | None = getattr(app.state, "synchronizer", None)
    if synchronizer is not None:
        try:
            await synchronizer.close()
        except Exception:  # noqa: BLE001
            logger.exception("synchronizer_close_failed")

    http_client = getattr(app.state, "http_client", None)
    if http_client is not None:
        try:
            await http_client.aclose()
        except Exception:  # noqa: BLE001
            pass

    redis = getattr(app.state, "redis", None)
    await close_redis_client(redis)

    engine = getattr(app.state, "engine", None)
    if engine is not None:
        try:
            await engine.dispose()
        except Exception:  # noqa: BLE001
            pass


app = create_app()
