"""
GameStateFetcher: one feed game + its pairing -> normalized GameState.
"""
from __future__ import annotations

import re
from typing import Any

from shared.errors import FetchError, ReplayWarning
from shared.models.domain import FeedPlayer, GameState
from shared.models.enums import normalize_result
from shared.utils.logging import get_logger

from ingest.feed import LiveChessCloudFeed
from ingest.pgn import clean_moves, describe_position, replay_moves

logger = get_logger(__name__)

_WHITESPACE = re.compile(r"\s+")


def player_token(white_name: str, black_name: str) -> str:
    """First 8 chars of both names concatenated, lower-cased, whitespace removed."""
    combined = _WHITESPACE.sub("", f"{white_name}{black_name}").lower()
    return combined[:8]


def build_game_id(tournament_id: str, round_number: int, game_number: int, white_name: str, black_name: str) -> str:
    return f"{tournament_id}-{round_number}-{game_number}-{player_token(white_name, black_name)}"


def _text(value: Any) -> str:
    return "" if value is None else str(value)


class GameStateFetcher:
    """Builds GameState snapshots for one tournament from the live feed."""

    def __init__(self, feed: LiveChessCloudFeed) -> None:
        self._feed = feed

    async def fetch(self, round_number: int, game_number: int) -> GameState:
        """
        Fetch and normalize one game.

        Raises:
            FetchError: feed unreachable, malformed document, or no pairing for
                this game number.
        """
        game_doc = await self._feed.get_game(round_number, game_number)
        index = await self._feed.get_round_index(round_number)

        if game_number < 1 or game_number > len(index.pairings):
            raise FetchError(
                f"no pairing for game {game_number} in round {round_number}",
                round_number,
                game_number,
            )
        pairing = index.pairings[game_number - 1]
        white = pairing.white or FeedPlayer()
        black = pairing.black or FeedPlayer()

        moves = clean_moves(game_doc.moves)
        try:
            board = replay_moves(moves)
        except ReplayWarning as warning:
            logger.warning(
                "pgn_replay_incomplete",
                round=round_number,
                game=game_number,
                ply=warning.ply,
                move=warning.san,
                error=str(warning),
            )
            board = warning.board
        position = describe_position(board)

        white_name = white.display_name
        black_name = black.display_name

        return GameState(
            game_id=build_game_id(self._feed.tournament_id, round_number, game_number, white_name, black_name),
            tournament_id=self._feed.tournament_id,
            round=round_number,
            latest_fen=position.latest_fen,
            fen_before_last_move=position.fen_before_last_move,
            last_move=position.last_move,
            white_name=white_name,
            black_name=black_name,
            white_fide_id=_text(white.fideid),
            black_fide_id=_text(black.fideid),
            white_title=_text(white.title),
            black_title=_text(black.title),
            latest_pgn=" ".join(moves),
            result=normalize_result(game_doc.result),
            is_live=bool(game_doc.live),
        )
