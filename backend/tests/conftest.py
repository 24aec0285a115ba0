"""Shared fixtures: feed documents, game states and an in-memory game store."""
from __future__ import annotations

from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import chess
import pytest

from shared.models.domain import (
    CommentaryEntry,
    GameDocument,
    GameState,
    RoundIndex,
    TournamentDocument,
)
from shared.models.enums import Decision, GameResult
from enrichment.retry import RetryPolicy

TOURNAMENT_ID = "b0c6ff7e-test"


def make_state(**overrides: Any) -> GameState:
    """A game after 1.e4 with two named players; override any field."""
    board = chess.Board()
    before = board.fen()
    board.push_san("e4")
    fields: dict[str, Any] = {
        "game_id": f"{TOURNAMENT_ID}-1-1-magnusca",
        "tournament_id": TOURNAMENT_ID,
        "round": 1,
        "latest_fen": board.fen(),
        "fen_before_last_move": before,
        "last_move": "e2e4",
        "white_name": "Magnus Carlsen",
        "black_name": "Hikaru Nakamura",
        "latest_pgn": "e4",
        "result": GameResult.ONGOING,
        "is_live": True,
    }
    fields.update(overrides)
    return GameState(**fields)


def make_index(*pairings: dict[str, Any]) -> RoundIndex:
    return RoundIndex.model_validate({"pairings": list(pairings)})


def pairing(
    white: str = "Magnus Carlsen",
    black: str = "Hikaru Nakamura",
    result: Optional[str] = None,
    live: bool = True,
) -> dict[str, Any]:
    wf, _, wl = white.partition(" ")
    bf, _, bl = black.partition(" ")
    return {
        "white": {"fname": wf, "lname": wl, "title": "GM", "fideid": 1503014},
        "black": {"fname": bf, "lname": bl, "title": "GM", "fideid": 2016192},
        "result": result,
        "live": live,
    }


class FakeGameStore:
    """In-memory stand-in for PersistenceGateway with the same merge rules."""

    def __init__(self) -> None:
        self.docs: dict[tuple[str, str], GameState] = {}
        self.writes: list[Decision] = []

    async def get_game(self, game_id: str, tournament_id: str) -> Optional[GameState]:
        doc = self.docs.get((game_id, tournament_id))
        return doc.model_copy(deep=True) if doc else None

    async def upsert(
        self,
        game_id: str,
        tournament_id: str,
        decision: Decision,
        fields: GameState,
        commentary: Optional[CommentaryEntry] = None,
        image_media_id: Optional[str] = None,
    ) -> bool:
        if decision == Decision.NO_CHANGE:
            return False
        key = (game_id, tournament_id)
        existing = self.docs.get(key)
        if existing is None:
            doc = fields.model_copy(
                update={
                    "commentaries": [commentary] if commentary else [],
                    "image_media_id": image_media_id,
                },
                deep=True,
            )
        elif decision == Decision.FULL_UPDATE:
            update: dict[str, Any] = {
                k: getattr(fields, k) for k in fields.scalar_fields() if k != "game_id"
            }
            update["commentaries"] = existing.commentaries + ([commentary] if commentary else [])
            if image_media_id is not None:
                update["image_media_id"] = image_media_id
            doc = existing.model_copy(update=update, deep=True)
        else:
            doc = existing.model_copy(update={"result": fields.result, "is_live": fields.is_live})
        self.docs[key] = doc
        self.writes.append(decision)
        return True


@pytest.fixture
def store() -> FakeGameStore:
    return FakeGameStore()


@pytest.fixture
def no_sleep() -> AsyncMock:
    return AsyncMock(return_value=None)


@pytest.fixture
def fast_retry(no_sleep: AsyncMock) -> RetryPolicy:
    return RetryPolicy(max_attempts=3, base_delay_s=5.0, sleep=no_sleep)


@pytest.fixture
def mock_feed() -> MagicMock:
    feed = MagicMock()
    feed.tournament_id = TOURNAMENT_ID
    feed.get_tournament = AsyncMock(return_value=TournamentDocument())
    feed.get_round_index = AsyncMock(return_value=make_index(pairing()))
    feed.get_game = AsyncMock(return_value=GameDocument(moves=["e4 {[%clk 1:59:58]}"], live=True))
    return feed
