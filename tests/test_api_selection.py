"""Tests for the HTTP surface over the selection synchronizer."""

import pytest
from httpx import ASGITransport, AsyncClient

from kyara.infrastructure.identity.session_identity import SessionIdentityProvider
from kyara.main import create_app
from kyara.services.selection_synchronizer import SelectionSynchronizer, SelectionSynchronizerConfig
from tests.fakes import FakeDocumentStore, FakeDurableStore, FakeMetadataSource


@pytest.fixture
def session_identity() -> SessionIdentityProvider:
    return SessionIdentityProvider()


@pytest.fixture
async def app_synchronizer(
    sync_config: SelectionSynchronizerConfig,
    session_identity: SessionIdentityProvider,
    metadata: FakeMetadataSource,
    documents: FakeDocumentStore,
    durable_store: FakeDurableStore,
) -> SelectionSynchronizer:
    synchronizer = SelectionSynchronizer(
        config=sync_config,
        identity=session_identity,
        metadata=metadata,
        documents=documents,
        durable_store=durable_store,
    )
    await synchronizer.start()
    return synchronizer


@pytest.fixture
async def client(app_synchronizer: SelectionSynchronizer, session_identity: SessionIdentityProvider):
    """Client against an app wired to fakes; lifespan is not run."""
    app = create_app()
    app.state.synchronizer = app_synchronizer
    app.state.identity = session_identity

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    await app_synchronizer.close()


@pytest.fixture
async def ready_client(client: AsyncClient, session_identity: SessionIdentityProvider) -> AsyncClient:
    await session_identity.complete_initialization(None)
    return client


class TestHealth:
    async def test_healthz(self, client: AsyncClient) -> None:
        """Liveness does not depend on the selection state."""
        response = await client.get("/v1/healthz")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    async def test_readyz_while_loading(self, client: AsyncClient) -> None:
        """Readiness reports 503 until the first load completes."""
        response = await client.get("/v1/readyz")

        assert response.status_code == 503
        assert response.json() == {"status": "loading", "phase": "unresolved"}

    async def test_readyz_after_load(self, ready_client: AsyncClient) -> None:
        """Readiness turns 200 once loaded."""
        response = await ready_client.get("/v1/readyz")

        assert response.status_code == 200
        assert response.json() == {"status": "ready", "phase": "anonymous"}


class TestLoadingGate:
    async def test_mutation_while_loading_is_rejected(self, client: AsyncClient) -> None:
        """Mutations before the first load answer 409 with a retry hint."""
        response = await client.put(
            "/v1/selection/characters/1",
            json={"name": "Frieren", "anime_id": 42},
            headers={"X-Locale": "en"},
        )

        assert response.status_code == 409
        assert response.headers["Retry-After"] == "1"
        assert response.json()["error"]["code"] == "selection_loading"

    async def test_reads_while_loading_report_empty(self, client: AsyncClient) -> None:
        """Read endpoints stay available and report nothing selected."""
        response = await client.get("/v1/selection/animes/42")

        assert response.status_code == 200
        assert response.json()["selected"] is False


class TestSelection:
    async def test_add_and_remove_character(self, ready_client: AsyncClient) -> None:
        """A character can be selected and deselected by id."""
        added = await ready_client.put(
            "/v1/selection/characters/2",
            json={"name": "Fern", "anime_id": 42, "anime_title": "Frieren"},
        )
        assert added.status_code == 200
        assert added.json() == {"character_id": 2, "selected": True}

        removed = await ready_client.delete("/v1/selection/characters/2")
        assert removed.json() == {"character_id": 2, "selected": False}

    async def test_toggle_anime(self, ready_client: AsyncClient) -> None:
        """Toggling selects every main character of the anime."""
        response = await ready_client.post(
            "/v1/selection/animes/42/toggle",
            json={"title": "Frieren", "image_url": "https://cdn.example/frieren.jpg"},
        )

        assert response.status_code == 200
        assert response.json() == {
            "anime_id": 42,
            "selected": True,
            "status": "full",
            "selected_count": 3,
            "roster_size": 3,
        }

        animes = await ready_client.get("/v1/selection/animes")
        assert [a["id"] for a in animes.json()["animes"]] == [42]

        pool = await ready_client.get("/v1/selection/pool")
        assert [c["id"] for c in pool.json()["characters"]] == [1, 2, 3]

    async def test_anime_roster(self, ready_client: AsyncClient) -> None:
        """The roster endpoint resolves and returns main characters."""
        response = await ready_client.get("/v1/animes/42/characters")

        body = response.json()
        assert response.status_code == 200
        assert body["title"] == "Frieren"
        assert [c["name"] for c in body["characters"]] == ["Frieren", "Fern", "Stark"]

    async def test_clear_selection(self, ready_client: AsyncClient) -> None:
        """Clearing answers 204 and empties the status counters."""
        await ready_client.post("/v1/selection/animes/42/toggle", json={})

        response = await ready_client.delete("/v1/selection")
        status = await ready_client.get("/v1/selection")

        assert response.status_code == 204
        assert status.json()["selected_count"] == 0
        assert status.json()["cached_animes"] == 0

    async def test_invalid_id_uses_error_envelope(self, ready_client: AsyncClient) -> None:
        """Validation errors use the shared error envelope and echo the request id."""
        response = await ready_client.get(
            "/v1/selection/characters/0",
            headers={"X-Request-ID": "req-12345678"},
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "request_invalid"
        assert response.json()["request_id"] == "req-12345678"
        assert response.headers["X-Request-ID"] == "req-12345678"


class TestSession:
    async def test_sign_in_and_out(self, ready_client: AsyncClient, documents: FakeDocumentStore) -> None:
        """Signing in loads the account's remote selection."""
        documents.documents["u1"] = {"selectedCharacterIds": [9]}

        signed_in = await ready_client.post("/v1/session/sign-in", json={"user_id": "u1"})
        assert signed_in.json() == {
            "loading": False,
            "phase": "identified",
            "user_id": "u1",
            "selected_count": 1,
            "cached_animes": 0,
        }

        signed_out = await ready_client.post("/v1/session/sign-out")
        assert signed_out.json()["phase"] == "anonymous"
        assert signed_out.json()["user_id"] is None

    async def test_blank_user_rejected(self, ready_client: AsyncClient) -> None:
        """An empty user id is a validation error."""
        response = await ready_client.post("/v1/session/sign-in", json={"user_id": ""})

        assert response.status_code == 422
