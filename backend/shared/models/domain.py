"""
Pydantic v2 domain models shared across the tracker services.
These are the canonical wire/internal representations; not ORM models.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

import chess
from pydantic import BaseModel, ConfigDict, Field

from shared.models.enums import GameResult

# Sentinel stored in last_move while no half-move has been played.
NO_MOVE = "initial"
START_FEN = chess.STARTING_FEN


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


# ── Feed documents ──────────────────────────────────────────────────────
class FeedPlayer(DomainModel):
    """Player record as it appears in a round pairing."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True, extra="ignore")

    fname: Optional[str] = None
    lname: Optional[str] = None
    title: Optional[str] = None
    fideid: Optional[Any] = None

    @property
    def display_name(self) -> str:
        return f"{self.fname or 'Unknown'} {self.lname or ''}".strip()


class Pairing(DomainModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True, extra="ignore")

    white: Optional[FeedPlayer] = None
    black: Optional[FeedPlayer] = None
    result: Optional[str] = None
    live: bool = False


class RoundIndex(DomainModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True, extra="ignore")

    pairings: list[Pairing] = Field(default_factory=list)


class RoundSummary(DomainModel):
    """Per-round counters from the tournament document."""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True, extra="ignore")

    count: int = 0
    live: int = 0


class TournamentDocument(DomainModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True, extra="ignore")

    name: Optional[str] = None
    rounds: list[RoundSummary] = Field(default_factory=list)


class GameDocument(DomainModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True, extra="ignore")

    moves: list[str] = Field(default_factory=list)
    live: bool = False
    result: Optional[str] = None


# ── Game state ──────────────────────────────────────────────────────────
class CommentaryEntry(DomainModel):
    text: str
    evaluation: Optional[float] = None


class GameState(DomainModel):
    """Normalized view of one tournament game, as fetched and as stored."""
    game_id: str
    tournament_id: str
    round: int
    latest_fen: str = START_FEN
    fen_before_last_move: str = START_FEN
    last_move: str = NO_MOVE
    white_name: str = ""
    black_name: str = ""
    white_fide_id: str = ""
    black_fide_id: str = ""
    white_title: str = ""
    black_title: str = ""
    latest_pgn: str = ""
    result: GameResult = GameResult.ONGOING
    is_live: bool = False
    commentaries: list[CommentaryEntry] = Field(default_factory=list)
    image_media_id: Optional[str] = None
    last_updated: datetime = Field(default_factory=_utcnow)

    def scalar_fields(self) -> dict[str, Any]:
        """Fetched columns written on a full update (no commentary/image/timestamps)."""
        return self.model_dump(
            mode="json",
            exclude={"commentaries", "image_media_id", "last_updated"},
        )


class EnrichmentResult(DomainModel):
    commentary: Optional[CommentaryEntry] = None
    image_media_id: Optional[str] = None
