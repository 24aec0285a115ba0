"""Domain enumerations for the live chess tracker."""
from __future__ import annotations

from enum import Enum
from typing import Optional


class GameResult(str, Enum):
    WHITE_WIN = "1-0"
    BLACK_WIN = "0-1"
    DRAW = "1/2-1/2"
    ONGOING = "ongoing"
    UNKNOWN = "unknown"

    @property
    def is_terminal(self) -> bool:
        return self in (
            GameResult.WHITE_WIN,
            GameResult.BLACK_WIN,
            GameResult.DRAW,
        )

    @property
    def is_decisive(self) -> bool:
        return self in (GameResult.WHITE_WIN, GameResult.BLACK_WIN)


# Feed vocabulary -> canonical result. Keys are upper-cased before lookup.
FEED_RESULT_MAP: dict[str, GameResult] = {
    "WHITEWIN": GameResult.WHITE_WIN,
    "BLACKWIN": GameResult.BLACK_WIN,
    "DRAW": GameResult.DRAW,
    "1-0": GameResult.WHITE_WIN,
    "0-1": GameResult.BLACK_WIN,
    "1/2-1/2": GameResult.DRAW,
}


def normalize_result(raw: Optional[str]) -> GameResult:
    """Map a feed result to the canonical set; unrecognized values become UNKNOWN."""
    if raw is None:
        return GameResult.ONGOING
    return FEED_RESULT_MAP.get(str(raw).strip().upper(), GameResult.UNKNOWN)


class Decision(str, Enum):
    """Outcome of diffing a fetched game against its stored document."""
    NO_CHANGE = "no_change"
    METADATA_UPDATE = "metadata_update"
    FULL_UPDATE = "full_update"
