"""
SQLAlchemy 2.0 ORM models for the live chess tracker.
One row per tournament game, keyed by (game_id, tournament_id).
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

GAME_UNIQUE_CONSTRAINT = "uq_game_tournament"


class Base(DeclarativeBase):
    pass


class GameORM(Base):
    __tablename__ = "games"
    __table_args__ = (
        UniqueConstraint("game_id", "tournament_id", name=GAME_UNIQUE_CONSTRAINT),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    game_id: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    tournament_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    round: Mapped[int] = mapped_column(Integer, nullable=False)
    latest_fen: Mapped[str] = mapped_column(String(100), nullable=False)
    fen_before_last_move: Mapped[str] = mapped_column(String(100), nullable=False)
    last_move: Mapped[str] = mapped_column(String(10), nullable=False)
    white_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    black_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    white_fide_id: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    black_fide_id: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    white_title: Mapped[str] = mapped_column(String(10), nullable=False, default="")
    black_title: Mapped[str] = mapped_column(String(10), nullable=False, default="")
    latest_pgn: Mapped[str] = mapped_column(Text, nullable=False, default="")
    result: Mapped[str] = mapped_column(String(10), nullable=False, default="ongoing")
    is_live: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    commentaries: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    image_media_id: Mapped[Optional[str]] = mapped_column(String(200))
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
