"""
Game REST endpoints.

GET /v1/tournaments/{tournament_id}/games   Games still in progress.
GET /v1/tournaments/{tournament_id}/results Finished games (decisive or drawn).
GET /v1/games/{game_id}                     One game with its commentary history.
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from shared.models.domain import GameState
from shared.utils.logging import get_logger

from api.dependencies import get_games_gateway
from tracker.persistence import PersistenceGateway

logger = get_logger(__name__)
router = APIRouter(prefix="/v1", tags=["games"])


def _game_to_dict(game: GameState) -> dict[str, Any]:
    return game.model_dump(mode="json")


@router.get("/tournaments/{tournament_id}/games")
async def list_ongoing_games(
    tournament_id: str,
    gateway: PersistenceGateway = Depends(get_games_gateway),
) -> list[dict[str, Any]]:
    games = await gateway.list_ongoing(tournament_id)
    return [_game_to_dict(g) for g in games]


@router.get("/tournaments/{tournament_id}/results")
async def list_results(
    tournament_id: str,
    gateway: PersistenceGateway = Depends(get_games_gateway),
) -> list[dict[str, Any]]:
    games = await gateway.list_completed(tournament_id)
    return [_game_to_dict(g) for g in games]


@router.get("/games/{game_id}")
async def get_game(
    game_id: str,
    gateway: PersistenceGateway = Depends(get_games_gateway),
) -> dict[str, Any]:
    """
    Full stored document for one game, including every commentary entry
    appended so far and the latest image media id.
    """
    game = await gateway.get_game_by_id(game_id)
    if game is None:
        raise HTTPException(status_code=404, detail="Game not found")
    return _game_to_dict(game)
