"""
PersistenceGateway: the only writer of game documents.

Every write is a single INSERT ... ON CONFLICT (game_id, tournament_id) DO UPDATE,
so creating a game and updating it share one statement shape.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.postgresql.dml import Insert
from sqlalchemy.exc import SQLAlchemyError

from shared.errors import PersistenceError
from shared.models.domain import CommentaryEntry, GameState
from shared.models.enums import Decision, GameResult
from shared.models.orm import GAME_UNIQUE_CONSTRAINT, GameORM
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger

logger = get_logger(__name__)

METADATA_FIELDS = ("result", "is_live")
COMPLETED_RESULTS = [r.value for r in GameResult if r.is_terminal]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_upsert(
    decision: Decision,
    fields: GameState,
    tournament_id: str,
    now: datetime,
    commentary: Optional[CommentaryEntry] = None,
    image_media_id: Optional[str] = None,
) -> Insert:
    """
    Build the upsert for a FULL_UPDATE or METADATA_UPDATE.

    The inserted row always carries the full fetched state so a first write is
    complete; the conflict branch limits what an existing row receives.
    """
    if decision == Decision.NO_CHANGE:
        raise ValueError("NO_CHANGE does not produce a write")

    table = GameORM.__table__
    values: dict[str, Any] = {
        **fields.scalar_fields(),
        "tournament_id": tournament_id,
        "last_updated": now,
        "commentaries": [commentary.model_dump(mode="json")] if commentary else [],
        "image_media_id": image_media_id,
    }
    stmt = pg_insert(GameORM).values(**values)

    set_: dict[str, Any] = {"last_updated": now, "tournament_id": tournament_id}
    if decision == Decision.FULL_UPDATE:
        for column in fields.scalar_fields():
            if column not in ("game_id", "tournament_id"):
                set_[column] = stmt.excluded[column]
        if commentary is not None:
            set_["commentaries"] = table.c.commentaries.op("||")(stmt.excluded.commentaries)
        if image_media_id is not None:
            set_["image_media_id"] = stmt.excluded.image_media_id
    else:
        for column in METADATA_FIELDS:
            set_[column] = stmt.excluded[column]

    return stmt.on_conflict_do_update(constraint=GAME_UNIQUE_CONSTRAINT, set_=set_)


class PersistenceGateway:
    """Reads and writes game documents through an owned DatabaseManager."""

    def __init__(self, db: DatabaseManager, clock: Callable[[], datetime] = _utcnow) -> None:
        self._db = db
        self._clock = clock

    async def get_game(self, game_id: str, tournament_id: str) -> Optional[GameState]:
        try:
            async with self._db.read_session() as session:
                stmt = select(GameORM).where(
                    GameORM.game_id == game_id,
                    GameORM.tournament_id == tournament_id,
                )
                row = (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to load game {game_id}: {exc}") from exc
        return GameState.model_validate(row) if row else None

    async def upsert(
        self,
        game_id: str,
        tournament_id: str,
        decision: Decision,
        fields: GameState,
        commentary: Optional[CommentaryEntry] = None,
        image_media_id: Optional[str] = None,
    ) -> bool:
        """
        Apply a reconciliation decision. Returns False when nothing was written.

        Raises:
            PersistenceError: the store rejected the write.
        """
        if decision == Decision.NO_CHANGE:
            return False
        if fields.game_id != game_id:
            raise ValueError(f"fields belong to {fields.game_id}, not {game_id}")

        stmt = build_upsert(decision, fields, tournament_id, self._clock(), commentary, image_media_id)
        try:
            async with self._db.write_session() as session:
                await session.execute(stmt)
        except SQLAlchemyError as exc:
            logger.error("game_upsert_failed", game_id=game_id, decision=decision.value, error=str(exc))
            raise PersistenceError(f"failed to upsert game {game_id}: {exc}") from exc

        logger.info(
            "game_upserted",
            game_id=game_id,
            decision=decision.value,
            commentary_appended=commentary is not None,
            image_media_id=image_media_id,
        )
        return True

    # ── Read projections (API) ──────────────────────────────────────────

    async def get_game_by_id(self, game_id: str) -> Optional[GameState]:
        stmt = (
            select(GameORM)
            .where(GameORM.game_id == game_id)
            .order_by(GameORM.last_updated.desc())
            .limit(1)
        )
        try:
            async with self._db.read_session() as session:
                row = (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to load game {game_id}: {exc}") from exc
        return GameState.model_validate(row) if row else None

    async def list_ongoing(self, tournament_id: str) -> list[GameState]:
        return await self._list(tournament_id, [GameResult.ONGOING.value])

    async def list_completed(self, tournament_id: str) -> list[GameState]:
        return await self._list(tournament_id, COMPLETED_RESULTS)

    async def _list(self, tournament_id: str, results: list[str]) -> list[GameState]:
        stmt = (
            select(GameORM)
            .where(GameORM.tournament_id == tournament_id, GameORM.result.in_(results))
            .order_by(GameORM.round, GameORM.game_id)
        )
        try:
            async with self._db.read_session() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"failed to list games for {tournament_id}: {exc}") from exc
        return [GameState.model_validate(r) for r in rows]
