"""
ReconciliationEngine: diff a fetched game against its stored document,
enrich when the position moved, and hand the write to the gateway.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from shared.errors import EnrichmentError
from shared.models.domain import CommentaryEntry, EnrichmentResult, GameState
from shared.models.enums import Decision
from shared.utils.logging import get_logger
from shared.utils.metrics import RECONCILE_DECISIONS

from enrichment.pipeline import EnrichmentPipeline

logger = get_logger(__name__)


class GameStore(Protocol):
    async def get_game(self, game_id: str, tournament_id: str) -> Optional[GameState]: ...

    async def upsert(
        self,
        game_id: str,
        tournament_id: str,
        decision: Decision,
        fields: GameState,
        commentary: Optional[CommentaryEntry] = None,
        image_media_id: Optional[str] = None,
    ) -> bool: ...


def decide(stored: Optional[GameState], fetched: GameState) -> Decision:
    if stored is None or stored.latest_fen != fetched.latest_fen:
        return Decision.FULL_UPDATE
    if stored.result != fetched.result or stored.is_live != fetched.is_live:
        return Decision.METADATA_UPDATE
    return Decision.NO_CHANGE


def should_enrich(decision: Decision, stored: Optional[GameState]) -> bool:
    """Only new positions of games that were still open at the last write."""
    if decision != Decision.FULL_UPDATE:
        return False
    return stored is None or not stored.result.is_terminal


@dataclass
class ReconcileOutcome:
    decision: Decision
    written: bool = False
    commentary_added: bool = False
    image_media_id: Optional[str] = None
    enrichment_error: Optional[EnrichmentError] = None


class ReconciliationEngine:
    def __init__(self, gateway: GameStore, pipeline: EnrichmentPipeline) -> None:
        self._gateway = gateway
        self._pipeline = pipeline

    async def reconcile(self, fetched: GameState) -> ReconcileOutcome:
        """
        Bring the stored document for ``fetched.game_id`` in line with the feed.

        EnrichmentError is captured on the outcome; the write still happens.
        PersistenceError propagates to the caller.
        """
        stored = await self._gateway.get_game(fetched.game_id, fetched.tournament_id)
        decision = decide(stored, fetched)
        RECONCILE_DECISIONS.labels(decision=decision.value).inc()
        outcome = ReconcileOutcome(decision=decision)

        if decision == Decision.NO_CHANGE:
            logger.debug("game_unchanged", game_id=fetched.game_id)
            return outcome

        enrichment = EnrichmentResult()
        if should_enrich(decision, stored):
            try:
                enrichment = await self._pipeline.enrich(fetched)
            except EnrichmentError as exc:
                outcome.enrichment_error = exc
                logger.error(
                    "enrichment_failed",
                    game_id=fetched.game_id,
                    attempts=exc.attempts,
                    error=str(exc),
                )

        outcome.written = await self._gateway.upsert(
            fetched.game_id,
            fetched.tournament_id,
            decision,
            fetched,
            commentary=enrichment.commentary,
            image_media_id=enrichment.image_media_id,
        )
        outcome.commentary_added = outcome.written and enrichment.commentary is not None
        outcome.image_media_id = enrichment.image_media_id

        logger.info(
            "game_reconciled",
            game_id=fetched.game_id,
            decision=decision.value,
            last_move=fetched.last_move,
            result=fetched.result.value,
            commentary_added=outcome.commentary_added,
        )
        return outcome
