"""
Tournament monitor.
Polls the monitored boards of the current round, reconciles each game and
moves the round cursor forward once the current round is finished and the
next one has gone live.
"""
from __future__ import annotations

import asyncio
from typing import Optional, Sequence

from shared.errors import FetchError, PersistenceError
from shared.utils.logging import get_logger
from shared.utils.metrics import CURRENT_ROUND, CYCLE_ERRORS, MONITORED_GAMES

from ingest.fetcher import GameStateFetcher
from ingest.rounds import RoundTracker
from tracker.engine import ReconcileOutcome, ReconciliationEngine

logger = get_logger(__name__)


class TournamentMonitor:
    """
    Single cooperative task per tournament.

    Games are processed one after another inside a cycle; a failing game is
    logged and skipped, never fatal to the loop.
    """

    def __init__(
        self,
        fetcher: GameStateFetcher,
        rounds: RoundTracker,
        engine: ReconciliationEngine,
        games_to_monitor: Sequence[int],
        poll_interval_s: float = 5.0,
    ) -> None:
        self._fetcher = fetcher
        self._rounds = rounds
        self._engine = engine
        self._games = list(games_to_monitor)
        self._poll_interval_s = poll_interval_s
        self._current_round: Optional[int] = None
        self._shutdown = asyncio.Event()
        MONITORED_GAMES.set(len(self._games))

    @property
    def current_round(self) -> Optional[int]:
        return self._current_round

    # ── Round cursor ────────────────────────────────────────────────────

    async def _resolve_round(self) -> Optional[int]:
        if self._current_round is None:
            try:
                self._current_round = await self._rounds.latest_round_number()
            except FetchError as exc:
                CYCLE_ERRORS.labels(kind="round").inc()
                logger.warning("round_resolution_failed", error=str(exc))
                return None
            CURRENT_ROUND.set(self._current_round)
            logger.info("round_resolved", round=self._current_round)
            return self._current_round

        current = self._current_round
        if await self._rounds.are_all_games_over(current) and await self._rounds.is_round_live(current + 1):
            self._current_round = current + 1
            CURRENT_ROUND.set(self._current_round)
            logger.info("round_advanced", previous=current, round=self._current_round)
        return self._current_round

    # ── Per game ────────────────────────────────────────────────────────

    async def process_game(self, round_number: int, game_number: int) -> Optional[ReconcileOutcome]:
        try:
            fetched = await self._fetcher.fetch(round_number, game_number)
        except FetchError as exc:
            CYCLE_ERRORS.labels(kind="fetch").inc()
            logger.warning("game_fetch_failed", round=round_number, game=game_number, error=str(exc))
            return None
        except Exception as exc:
            CYCLE_ERRORS.labels(kind="game").inc()
            logger.error("game_fetch_error", round=round_number, game=game_number, error=str(exc), exc_info=True)
            return None

        try:
            outcome = await self._engine.reconcile(fetched)
        except PersistenceError as exc:
            CYCLE_ERRORS.labels(kind="persistence").inc()
            logger.error("game_persist_failed", game_id=fetched.game_id, error=str(exc))
            return None
        except Exception as exc:
            CYCLE_ERRORS.labels(kind="game").inc()
            logger.error("game_reconcile_error", game_id=fetched.game_id, error=str(exc), exc_info=True)
            return None

        if outcome.enrichment_error is not None:
            CYCLE_ERRORS.labels(kind="enrichment").inc()
        return outcome

    async def run_cycle(self) -> list[ReconcileOutcome]:
        round_number = await self._resolve_round()
        if round_number is None:
            return []

        outcomes: list[ReconcileOutcome] = []
        for game_number in self._games:
            if self._shutdown.is_set():
                break
            outcome = await self.process_game(round_number, game_number)
            if outcome is not None:
                outcomes.append(outcome)
        return outcomes

    # ── Main loop ───────────────────────────────────────────────────────

    async def run(self, max_cycles: Optional[int] = None) -> None:
        """Poll until shutdown is requested or ``max_cycles`` cycles have run."""
        cycles = 0
        logger.info("monitor_started", games=self._games, poll_interval_s=self._poll_interval_s)

        while not self._shutdown.is_set():
            try:
                await self.run_cycle()
            except asyncio.CancelledError:
                break
            except Exception as exc:
                CYCLE_ERRORS.labels(kind="cycle").inc()
                logger.error("monitor_cycle_error", error=str(exc), exc_info=True)

            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break

            try:
                await asyncio.wait_for(self._shutdown.wait(), timeout=self._poll_interval_s)
            except asyncio.TimeoutError:
                continue

        logger.info("monitor_stopped", cycles=cycles, round=self._current_round)

    def request_shutdown(self) -> None:
        self._shutdown.set()
