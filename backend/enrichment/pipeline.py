"""
EnrichmentPipeline: commentary + illustrative image for a changed position.

Order of checks for a state flagged for enrichment:
    1. no move played yet   -> nothing to enrich
    2. checkmate on board   -> synthesized commentary, no backend call
    3. otherwise            -> commentary backend under the retry policy
Then, when commentary carries an evaluation, render + upload the image.
Image failures never discard commentary.
"""
from __future__ import annotations

from typing import Optional

import chess

from shared.errors import EnrichmentError
from shared.models.domain import NO_MOVE, CommentaryEntry, EnrichmentResult, GameState
from shared.models.enums import GameResult
from shared.utils.logging import get_logger
from shared.utils.metrics import (
    COMMENTARY_ATTEMPTS,
    ENRICHMENT_PROCESSING,
    IMAGE_FAILURES,
    atrack_latency,
)

from enrichment.commentary import CommentaryClient
from enrichment.media import ImageRenderer, MediaUploader
from enrichment.retry import RetryPolicy
from ingest.pgn import highlight_squares

logger = get_logger(__name__)

MATE_EVALUATION = 100.0


def checkmate_commentary(state: GameState, board: chess.Board) -> CommentaryEntry:
    """Deterministic entry for a mated position; the winner follows the result."""
    if state.result == GameResult.WHITE_WIN:
        white_won = True
    elif state.result == GameResult.BLACK_WIN:
        white_won = False
    else:
        # Feed has not published the result yet: the side to move is mated.
        white_won = board.turn == chess.BLACK

    winner = state.white_name if white_won else state.black_name
    loser = state.black_name if white_won else state.white_name
    colour = "White" if white_won else "Black"
    text = f"Checkmate! {winner} ({colour}) delivers mate with {state.last_move}; {loser} has no legal reply."
    return CommentaryEntry(text=text, evaluation=MATE_EVALUATION if white_won else -MATE_EVALUATION)


class EnrichmentPipeline:
    def __init__(
        self,
        commentary: CommentaryClient,
        renderer: Optional[ImageRenderer] = None,
        uploader: Optional[MediaUploader] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        self._commentary = commentary
        self._renderer = renderer
        self._uploader = uploader
        self._retry = retry_policy or RetryPolicy()

    @property
    def commentary(self) -> CommentaryClient:
        return self._commentary

    @property
    def renderer(self) -> Optional[ImageRenderer]:
        return self._renderer

    @property
    def uploader(self) -> Optional[MediaUploader]:
        return self._uploader

    async def enrich(self, state: GameState) -> EnrichmentResult:
        """
        Produce commentary and an image reference for ``state``.

        Raises:
            EnrichmentError: the commentary backend failed on every attempt.
        """
        if state.last_move == NO_MOVE:
            logger.info("enrichment_skipped_initial_position", game_id=state.game_id)
            return EnrichmentResult()

        async with atrack_latency(ENRICHMENT_PROCESSING):
            board = chess.Board(state.latest_fen)
            if board.is_checkmate():
                entry = checkmate_commentary(state, board)
                logger.info("checkmate_commentary_synthesized", game_id=state.game_id, evaluation=entry.evaluation)
            else:
                entry = await self._commentary_with_retry(state)

            media_id = None
            if entry.evaluation is not None:
                media_id = await self._generate_image(state, entry.evaluation)

        return EnrichmentResult(commentary=entry, image_media_id=media_id)

    async def _commentary_with_retry(self, state: GameState) -> CommentaryEntry:
        policy = self._retry
        last_error: Optional[Exception] = None

        for attempt in range(1, policy.max_attempts + 1):
            logger.info(
                "commentary_attempt",
                game_id=state.game_id,
                attempt=attempt,
                max_attempts=policy.max_attempts,
                last_move=state.last_move,
            )
            try:
                entry = await self._commentary.generate(
                    state.latest_fen,
                    state.last_move,
                    state.white_name,
                    state.black_name,
                )
            except Exception as exc:
                entry = None
                last_error = exc
                logger.error(
                    "commentary_attempt_failed",
                    game_id=state.game_id,
                    attempt=attempt,
                    error=str(exc),
                )
            else:
                if entry is None:
                    logger.warning("commentary_empty_response", game_id=state.game_id, attempt=attempt)

            if entry is not None:
                COMMENTARY_ATTEMPTS.labels(outcome="success").inc()
                logger.info("commentary_received", game_id=state.game_id, preview=entry.text[:100])
                return entry

            COMMENTARY_ATTEMPTS.labels(outcome="failure").inc()
            if policy.is_last(attempt):
                break
            delay = await policy.backoff(attempt)
            logger.info("commentary_retry_scheduled", game_id=state.game_id, delay_s=delay)

        logger.error("commentary_retries_exhausted", game_id=state.game_id, attempts=policy.max_attempts)
        raise EnrichmentError(
            f"no commentary for {state.game_id} after {policy.max_attempts} attempts",
            attempts=policy.max_attempts,
        ) from last_error

    async def _generate_image(self, state: GameState, evaluation: float) -> Optional[str]:
        if self._renderer is None or self._uploader is None:
            return None
        try:
            image = await self._renderer.render(
                state.latest_fen,
                state.white_name,
                state.black_name,
                evaluation,
                highlight_squares(state.last_move),
            )
        except Exception as exc:
            IMAGE_FAILURES.labels(stage="render").inc()
            logger.error("image_render_failed", game_id=state.game_id, error=str(exc))
            return None
        try:
            return await self._uploader.upload(image)
        except Exception as exc:
            IMAGE_FAILURES.labels(stage="upload").inc()
            logger.error("image_upload_failed", game_id=state.game_id, error=str(exc))
            return None
