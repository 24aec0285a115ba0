"""API route tests. Lifespan is disabled and the games gateway is overridden, so no DB is needed."""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from shared.errors import PersistenceError
from shared.models.domain import CommentaryEntry
from shared.models.enums import GameResult
from api.app import create_app
from api.dependencies import get_games_gateway

from conftest import TOURNAMENT_ID, make_state


@pytest.fixture
def gateway() -> MagicMock:
    g = MagicMock()
    g.list_ongoing = AsyncMock(return_value=[make_state()])
    g.list_completed = AsyncMock(return_value=[])
    g.get_game_by_id = AsyncMock(return_value=None)
    return g


@pytest.fixture
def client(gateway: MagicMock) -> TestClient:
    """Test client with lifespan disabled and an in-memory gateway."""
    app = create_app(use_lifespan=False)
    app.dependency_overrides[get_games_gateway] = lambda: gateway
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


def test_health_returns_ok(client: TestClient) -> None:
    """GET /health returns 200 and status ok."""
    r = client.get("/health")
    assert r.status_code == 200
    data = r.json()
    assert data.get("status") == "ok"
    assert data.get("service") == "api"


def test_health_returns_json(client: TestClient) -> None:
    r = client.get("/health")
    assert r.headers.get("content-type", "").startswith("application/json")


def test_ready_degraded_without_database(client: TestClient) -> None:
    r = client.get("/ready")
    assert r.status_code == 200
    assert r.json() == {"status": "degraded", "database": False}


def test_request_id_echoed(client: TestClient) -> None:
    r = client.get("/health", headers={"X-Request-ID": "abc123"})
    assert r.headers.get("X-Request-ID") == "abc123"


def test_list_ongoing_games(client: TestClient, gateway: MagicMock) -> None:
    r = client.get(f"/v1/tournaments/{TOURNAMENT_ID}/games")
    assert r.status_code == 200
    games = r.json()
    assert len(games) == 1
    assert games[0]["result"] == "ongoing"
    assert games[0]["white_name"] == "Magnus Carlsen"
    gateway.list_ongoing.assert_awaited_once_with(TOURNAMENT_ID)


def test_list_results(client: TestClient, gateway: MagicMock) -> None:
    gateway.list_completed.return_value = [make_state(result=GameResult.DRAW, is_live=False)]
    r = client.get(f"/v1/tournaments/{TOURNAMENT_ID}/results")
    assert r.status_code == 200
    assert [g["result"] for g in r.json()] == ["1/2-1/2"]
    gateway.list_completed.assert_awaited_once_with(TOURNAMENT_ID)


def test_get_game(client: TestClient, gateway: MagicMock) -> None:
    state = make_state(
        commentaries=[CommentaryEntry(text="Sharp.", evaluation=0.4)],
        image_media_id="media-9",
    )
    gateway.get_game_by_id.return_value = state
    r = client.get(f"/v1/games/{state.game_id}")
    assert r.status_code == 200
    body = r.json()
    assert body["game_id"] == state.game_id
    assert body["commentaries"] == [{"text": "Sharp.", "evaluation": 0.4}]
    assert body["image_media_id"] == "media-9"


def test_get_game_not_found(client: TestClient) -> None:
    r = client.get("/v1/games/missing")
    assert r.status_code == 404


def test_store_failure_maps_to_503(client: TestClient, gateway: MagicMock) -> None:
    gateway.list_ongoing.side_effect = PersistenceError("db down")
    r = client.get(f"/v1/tournaments/{TOURNAMENT_ID}/games")
    assert r.status_code == 503
    assert r.json()["error"] == "store_unavailable"
