"""Error taxonomy for the tracker core."""
from __future__ import annotations

from typing import Optional

import chess


class TrackerError(Exception):
    """Base for every error raised by the tracker core."""


class FetchError(TrackerError):
    """Feed unreachable, malformed response, or missing pairing."""

    def __init__(self, message: str, round_number: Optional[int] = None, game_number: Optional[int] = None):
        self.round_number = round_number
        self.game_number = game_number
        super().__init__(message)


class ReplayWarning(TrackerError):
    """
    A move list could not be replayed to the end.

    Carries the board reached before the offending move so callers can keep
    going with a best-effort position.
    """

    def __init__(self, message: str, board: chess.Board, ply: int, san: str):
        self.board = board
        self.ply = ply
        self.san = san
        super().__init__(message)


class EnrichmentError(TrackerError):
    """Commentary backend kept failing after every retry attempt."""

    def __init__(self, message: str, attempts: int):
        self.attempts = attempts
        super().__init__(message)


class PersistenceError(TrackerError):
    """Store read or write failure."""
