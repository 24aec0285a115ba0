"""
Tracker service entrypoint.
Wires feed, enrichment clients, store and monitor for one tournament.
"""
from __future__ import annotations

import asyncio
import signal
import sys
from typing import Optional

from shared.config import get_settings
from shared.utils.database import DatabaseManager
from shared.utils.http_client import ServiceHTTPClient
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server

from enrichment.commentary import CommentaryClient
from enrichment.media import ImageRenderer, MediaUploader
from enrichment.pipeline import EnrichmentPipeline
from enrichment.retry import RetryPolicy
from ingest.feed import LiveChessCloudFeed
from ingest.fetcher import GameStateFetcher
from ingest.rounds import RoundTracker
from tracker.config import TrackerSettings, get_tracker_settings
from tracker.engine import ReconciliationEngine
from tracker.persistence import PersistenceGateway
from tracker.service import TournamentMonitor

logger = get_logger(__name__)

# Retry connection on startup (e.g. DB not ready yet in Docker)
CONNECT_RETRY_ATTEMPTS = 10
CONNECT_RETRY_BASE_DELAY_S = 2.0


async def _connect_with_retry(connect_fn, name: str) -> None:
    """Call async connect_fn(); retry with exponential backoff on failure."""
    for attempt in range(1, CONNECT_RETRY_ATTEMPTS + 1):
        try:
            await connect_fn()
            return
        except Exception as exc:
            if attempt == CONNECT_RETRY_ATTEMPTS:
                raise
            delay = CONNECT_RETRY_BASE_DELAY_S * (2 ** (attempt - 1))
            logger.warning(
                "connect_retry",
                name=name,
                attempt=attempt,
                max_attempts=CONNECT_RETRY_ATTEMPTS,
                delay_s=delay,
                error=str(exc),
            )
            await asyncio.sleep(delay)


def build_pipeline(tracker_settings: TrackerSettings) -> EnrichmentPipeline:
    commentary = CommentaryClient(
        ServiceHTTPClient(
            "commentary",
            base_url=tracker_settings.commentary_api_url,
            timeout_s=tracker_settings.commentary_timeout_s,
        )
    )
    renderer: Optional[ImageRenderer] = None
    uploader: Optional[MediaUploader] = None
    if tracker_settings.images_enabled:
        renderer = ImageRenderer(
            ServiceHTTPClient(
                "image",
                base_url=tracker_settings.image_generation_api_url,
                timeout_s=tracker_settings.image_timeout_s,
            )
        )
        uploader = MediaUploader(
            ServiceHTTPClient(
                "media",
                base_url=tracker_settings.media_upload_base_url,
                timeout_s=tracker_settings.image_timeout_s,
            ),
            phone_number_id=tracker_settings.whatsapp_phone_number_id,
            access_token=tracker_settings.whatsapp_access_token,
        )
    else:
        logger.info("image_generation_disabled")

    policy = RetryPolicy(
        max_attempts=tracker_settings.commentary_max_attempts,
        base_delay_s=tracker_settings.commentary_retry_base_delay_s,
    )
    return EnrichmentPipeline(commentary, renderer, uploader, policy)


async def main() -> None:
    """Tracker service entrypoint."""
    settings = get_settings()
    tracker_settings = get_tracker_settings()
    setup_logging("tracker", {"tournament_id": settings.tournament_id})

    if not settings.tournament_id:
        logger.error("tournament_id_missing", hint="set LC_TOURNAMENT_ID")
        sys.exit(2)
    if not tracker_settings.commentary_api_url:
        logger.error("commentary_api_url_missing", hint="set LC_TRACKER_COMMENTARY_API_URL")
        sys.exit(2)

    start_metrics_server(tracker_settings.metrics_port)

    db = DatabaseManager(settings)
    await _connect_with_retry(db.connect, "Database")
    await db.create_schema()

    feed = LiveChessCloudFeed(settings.tournament_id, settings=settings)
    pipeline = build_pipeline(tracker_settings)
    clients = [feed, pipeline.commentary, *filter(None, (pipeline.renderer, pipeline.uploader))]
    for client in clients:
        await client.start()

    monitor = TournamentMonitor(
        fetcher=GameStateFetcher(feed),
        rounds=RoundTracker(feed),
        engine=ReconciliationEngine(PersistenceGateway(db), pipeline),
        games_to_monitor=tracker_settings.games_to_monitor,
        poll_interval_s=tracker_settings.poll_interval_s,
    )

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, monitor.request_shutdown)
        except (ValueError, OSError, RuntimeError, NotImplementedError) as exc:
            logger.warning("signal_handler_unavailable", signal=sig, error=str(exc))

    logger.info("tracker_service_started", tournament_id=settings.tournament_id)

    try:
        await monitor.run()
    finally:
        for client in clients:
            await client.close()
        await db.disconnect()
        logger.info("tracker_service_stopped")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
