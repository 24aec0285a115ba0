"""Unit tests for the LiveChessCloud feed client and the game state fetcher."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from unittest.mock import AsyncMock, MagicMock

import chess
import httpx
import pytest

from shared.errors import FetchError
from shared.models.domain import NO_MOVE, GameDocument
from shared.models.enums import GameResult
from shared.utils.http_client import retry_after_seconds
from ingest.feed import LiveChessCloudFeed
from ingest.fetcher import GameStateFetcher, build_game_id, player_token

from conftest import TOURNAMENT_ID, make_index, pairing


def _response(payload=None, content: bytes | None = None) -> httpx.Response:
    request = httpx.Request("GET", "https://feed.test/")
    if content is not None:
        return httpx.Response(200, content=content, request=request)
    return httpx.Response(200, json=payload, request=request)


@pytest.fixture
def http() -> MagicMock:
    client = MagicMock()
    client.get = AsyncMock()
    return client


@pytest.fixture
def feed(http: MagicMock) -> LiveChessCloudFeed:
    return LiveChessCloudFeed(TOURNAMENT_ID, http_client=http)


# ── Feed client ─────────────────────────────────────────────────────────

def test_feed_paths(feed: LiveChessCloudFeed) -> None:
    assert feed.tournament_path() == f"/{TOURNAMENT_ID}/tournament.json"
    assert feed.round_index_path(3) == f"/{TOURNAMENT_ID}/round-3/index.json"
    assert feed.game_path(3, 2) == f"/{TOURNAMENT_ID}/round-3/game-2.json"


@pytest.mark.asyncio
async def test_get_game_requests_fresh_copy(feed: LiveChessCloudFeed, http: MagicMock) -> None:
    http.get.return_value = _response({"moves": ["e4 1:59"], "live": True, "result": None, "clock": {}})
    doc = await feed.get_game(1, 4)
    http.get.assert_awaited_once_with(f"/{TOURNAMENT_ID}/round-1/game-4.json?poll")
    assert doc.moves == ["e4 1:59"]
    assert doc.live is True


@pytest.mark.asyncio
async def test_get_tournament_parses_rounds(feed: LiveChessCloudFeed, http: MagicMock) -> None:
    http.get.return_value = _response({"name": "Open", "rounds": [{"count": 5, "live": 0}, {"count": 3, "live": 2}]})
    doc = await feed.get_tournament()
    assert [r.live for r in doc.rounds] == [0, 2]


@pytest.mark.asyncio
async def test_transport_error_becomes_fetch_error(feed: LiveChessCloudFeed, http: MagicMock) -> None:
    http.get.side_effect = httpx.ConnectError("refused")
    with pytest.raises(FetchError) as info:
        await feed.get_round_index(2)
    assert info.value.round_number == 2


@pytest.mark.asyncio
async def test_undecodable_body_becomes_fetch_error(feed: LiveChessCloudFeed, http: MagicMock) -> None:
    http.get.return_value = _response(content=b"<html>maintenance</html>")
    with pytest.raises(FetchError, match="invalid feed document"):
        await feed.get_game(1, 1)


@pytest.mark.asyncio
async def test_wrong_shape_becomes_fetch_error(feed: LiveChessCloudFeed, http: MagicMock) -> None:
    http.get.return_value = _response({"pairings": "not-a-list"})
    with pytest.raises(FetchError):
        await feed.get_round_index(1)


# ── Game ids ────────────────────────────────────────────────────────────

def test_player_token() -> None:
    assert player_token("Magnus Carlsen", "Hikaru Nakamura") == "magnusca"
    assert player_token("Li Yi", "") == "liyi"


def test_build_game_id() -> None:
    assert build_game_id("t1", 2, 3, "Ding Liren", "Ian Nepo") == "t1-2-3-dinglire"


# ── GameStateFetcher ────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_fetch_builds_state(mock_feed: MagicMock) -> None:
    mock_feed.get_game.return_value = GameDocument(
        moves=["e4 {[%clk 1:59:58]}", "c5 {[%clk 1:59:30]}"],
        live=True,
        result=None,
    )
    state = await GameStateFetcher(mock_feed).fetch(1, 1)

    assert state.game_id == f"{TOURNAMENT_ID}-1-1-magnusca"
    assert state.tournament_id == TOURNAMENT_ID
    assert state.round == 1
    assert state.last_move == "c7c5"
    assert state.latest_pgn == "e4 c5"
    assert state.white_name == "Magnus Carlsen"
    assert state.white_fide_id == "1503014"
    assert state.black_title == "GM"
    assert state.result == GameResult.ONGOING
    assert state.is_live is True
    board = chess.Board()
    board.push_san("e4")
    assert state.fen_before_last_move == board.fen()


@pytest.mark.asyncio
async def test_fetch_without_moves_is_initial_position(mock_feed: MagicMock) -> None:
    mock_feed.get_game.return_value = GameDocument(moves=[], live=False)
    state = await GameStateFetcher(mock_feed).fetch(1, 1)
    assert state.last_move == NO_MOVE
    assert state.latest_fen == chess.STARTING_FEN


@pytest.mark.asyncio
async def test_fetch_normalizes_feed_result(mock_feed: MagicMock) -> None:
    mock_feed.get_game.return_value = GameDocument(moves=["e4"], live=False, result="BLACKWIN")
    state = await GameStateFetcher(mock_feed).fetch(1, 1)
    assert state.result == GameResult.BLACK_WIN
    assert state.is_live is False


@pytest.mark.asyncio
async def test_fetch_missing_pairing_raises(mock_feed: MagicMock) -> None:
    mock_feed.get_round_index.return_value = make_index(pairing())
    with pytest.raises(FetchError, match="no pairing"):
        await GameStateFetcher(mock_feed).fetch(1, 2)


@pytest.mark.asyncio
async def test_fetch_keeps_partial_position_on_bad_move(mock_feed: MagicMock) -> None:
    mock_feed.get_game.return_value = GameDocument(moves=["e4", "e5", "Qxf9", "Nc6"], live=True)
    state = await GameStateFetcher(mock_feed).fetch(1, 1)
    assert state.last_move == "e7e5"


@pytest.mark.asyncio
async def test_fetch_unknown_player_names(mock_feed: MagicMock) -> None:
    mock_feed.get_round_index.return_value = make_index({"white": {}, "black": None, "live": True})
    state = await GameStateFetcher(mock_feed).fetch(1, 1)
    assert state.white_name == "Unknown"
    assert state.black_name == "Unknown"
    assert state.white_fide_id == ""


@pytest.mark.asyncio
async def test_fetch_propagates_feed_errors(mock_feed: MagicMock) -> None:
    mock_feed.get_game.side_effect = FetchError("feed unreachable", 1, 1)
    with pytest.raises(FetchError):
        await GameStateFetcher(mock_feed).fetch(1, 1)


# ── Retry-After parsing ─────────────────────────────────────────────────

def test_retry_after_delta_seconds() -> None:
    assert retry_after_seconds("3") == 3.0
    assert retry_after_seconds("120") == 10.0
    assert retry_after_seconds(None) == 2.0


def test_retry_after_http_date() -> None:
    assert retry_after_seconds("Wed, 21 Oct 2015 07:28:00 GMT") == 0.0
    future = format_datetime(datetime.now(timezone.utc) + timedelta(hours=1), usegmt=True)
    assert retry_after_seconds(future) == 10.0


def test_retry_after_garbage_uses_default() -> None:
    assert retry_after_seconds("soon") == 2.0
