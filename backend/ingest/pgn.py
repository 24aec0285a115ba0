"""
Move-list helpers built on python-chess.

The feed reports each move as "<san> <clock/comment...>"; only the SAN token
is meaningful for replay.
"""
from __future__ import annotations

from dataclasses import dataclass

import chess

from shared.errors import ReplayWarning
from shared.models.domain import NO_MOVE


@dataclass(frozen=True)
class ReplayedPosition:
    latest_fen: str
    fen_before_last_move: str
    last_move: str
    ply_count: int


def clean_moves(raw_moves: list[str]) -> list[str]:
    """Strip per-move annotations, keeping the first whitespace-separated token."""
    cleaned: list[str] = []
    for raw in raw_moves:
        parts = (raw or "").split()
        if parts:
            cleaned.append(parts[0])
    return cleaned


def replay_moves(moves: list[str]) -> chess.Board:
    """
    Replay SAN moves from the standard start position.

    Raises:
        ReplayWarning: a move is illegal or unparseable; ``exc.board`` holds the
            position reached before it.
    """
    board = chess.Board()
    for ply, san in enumerate(moves, start=1):
        try:
            board.push_san(san)
        except ValueError as exc:
            raise ReplayWarning(
                f"cannot replay ply {ply} ({san!r}): {exc}",
                board=board,
                ply=ply,
                san=san,
            ) from exc
    return board


def last_move_uci(board: chess.Board) -> str:
    """from-square + to-square (+ promotion piece) of the last move, or NO_MOVE."""
    if not board.move_stack:
        return NO_MOVE
    return board.peek().uci()


def fen_before_last_move(board: chess.Board) -> str:
    previous = board.copy()
    if previous.move_stack:
        previous.pop()
    return previous.fen()


def describe_position(board: chess.Board) -> ReplayedPosition:
    return ReplayedPosition(
        latest_fen=board.fen(),
        fen_before_last_move=fen_before_last_move(board),
        last_move=last_move_uci(board),
        ply_count=len(board.move_stack),
    )


def highlight_squares(last_move: str) -> list[str]:
    """Split a coordinate move into its from/to squares ("e7e8q" -> ["e7", "e8"])."""
    if not last_move or last_move == NO_MOVE:
        return []
    squares = [last_move[i:i + 2] for i in range(0, len(last_move), 2)]
    return squares[:2]


def is_checkmate(fen: str) -> bool:
    return chess.Board(fen).is_checkmate()
