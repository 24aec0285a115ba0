"""Unit tests for move cleaning and replay helpers."""
from __future__ import annotations

import chess
import pytest

from shared.errors import ReplayWarning
from shared.models.domain import NO_MOVE
from ingest.pgn import (
    clean_moves,
    describe_position,
    highlight_squares,
    is_checkmate,
    last_move_uci,
    replay_moves,
)


# ── clean_moves ─────────────────────────────────────────────────────────

def test_clean_moves_keeps_first_token() -> None:
    assert clean_moves(["e4 {[%clk 1:59:58]}", "c5 1:59:50", "Nf3"]) == ["e4", "c5", "Nf3"]


def test_clean_moves_drops_blank_entries() -> None:
    assert clean_moves(["e4", "   ", "", "e5"]) == ["e4", "e5"]


# ── replay ──────────────────────────────────────────────────────────────

def test_replay_legal_sequence() -> None:
    board = replay_moves(["e4", "e5", "Nf3", "Nc6"])
    assert len(board.move_stack) == 4
    assert board.turn == chess.WHITE


def test_replay_stops_at_illegal_move_with_partial_board() -> None:
    with pytest.raises(ReplayWarning) as info:
        replay_moves(["e4", "e5", "Ke3", "Nc6"])
    warning = info.value
    assert warning.ply == 3
    assert warning.san == "Ke3"
    assert len(warning.board.move_stack) == 2


def test_replay_rejects_garbage_token() -> None:
    with pytest.raises(ReplayWarning) as info:
        replay_moves(["e4", "zz9"])
    assert info.value.ply == 2
    assert len(info.value.board.move_stack) == 1


# ── Position description ────────────────────────────────────────────────

def test_initial_position_has_sentinel_last_move() -> None:
    board = replay_moves([])
    pos = describe_position(board)
    assert pos.last_move == NO_MOVE
    assert pos.latest_fen == chess.STARTING_FEN
    assert pos.fen_before_last_move == chess.STARTING_FEN
    assert pos.ply_count == 0


def test_fen_before_last_move_is_one_ply_back() -> None:
    board = replay_moves(["e4", "e5"])
    pos = describe_position(board)
    assert pos.last_move == "e7e5"
    assert pos.fen_before_last_move == replay_moves(["e4"]).fen()
    # describing must not mutate the board
    assert len(board.move_stack) == 2


def test_last_move_uci_includes_promotion() -> None:
    board = chess.Board("8/4P3/8/8/8/8/k7/7K w - - 0 1")
    board.push_san("e8=Q")
    assert last_move_uci(board) == "e7e8q"


def test_highlight_squares() -> None:
    assert highlight_squares("g1f3") == ["g1", "f3"]
    assert highlight_squares("e7e8q") == ["e7", "e8"]
    assert highlight_squares(NO_MOVE) == []


def test_is_checkmate_fools_mate() -> None:
    board = replay_moves(["f3", "e5", "g4", "Qh4#"])
    assert is_checkmate(board.fen())
    assert not is_checkmate(chess.STARTING_FEN)
