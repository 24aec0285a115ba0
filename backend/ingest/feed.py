"""
LiveChessCloud feed client.

Read-only access to the three feed documents:
    /{tournament}/tournament.json
    /{tournament}/round-{n}/index.json
    /{tournament}/round-{n}/game-{m}.json?poll
"""
from __future__ import annotations

from typing import Any, Optional

import httpx
from pydantic import BaseModel, ValidationError

from shared.config import Settings, get_settings
from shared.errors import FetchError
from shared.models.domain import GameDocument, RoundIndex, TournamentDocument
from shared.utils.http_client import ServiceHTTPClient
from shared.utils.logging import get_logger

logger = get_logger(__name__)


class LiveChessCloudFeed:
    """Fetches and validates feed documents for one tournament."""

    def __init__(
        self,
        tournament_id: str,
        http_client: Optional[ServiceHTTPClient] = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._tournament_id = tournament_id
        self._http = http_client or ServiceHTTPClient(
            "livechesscloud",
            base_url=settings.feed_base_url,
            timeout_s=settings.feed_request_timeout_s,
            max_retries=settings.feed_max_retries,
        )

    @property
    def tournament_id(self) -> str:
        return self._tournament_id

    async def start(self) -> None:
        await self._http.start()

    async def close(self) -> None:
        await self._http.close()

    def tournament_path(self) -> str:
        return f"/{self._tournament_id}/tournament.json"

    def round_index_path(self, round_number: int) -> str:
        return f"/{self._tournament_id}/round-{round_number}/index.json"

    def game_path(self, round_number: int, game_number: int) -> str:
        return f"/{self._tournament_id}/round-{round_number}/game-{game_number}.json"

    async def get_tournament(self) -> TournamentDocument:
        return await self._fetch(self.tournament_path(), TournamentDocument)

    async def get_round_index(self, round_number: int) -> RoundIndex:
        return await self._fetch(self.round_index_path(round_number), RoundIndex, round_number=round_number)

    async def get_game(self, round_number: int, game_number: int) -> GameDocument:
        # The bare "poll" query flag asks the feed for the freshest copy.
        return await self._fetch(
            self.game_path(round_number, game_number) + "?poll",
            GameDocument,
            round_number=round_number,
            game_number=game_number,
        )

    async def _fetch(
        self,
        path: str,
        model: type[BaseModel],
        round_number: Optional[int] = None,
        game_number: Optional[int] = None,
    ) -> Any:
        try:
            resp = await self._http.get(path)
        except httpx.HTTPError as exc:
            logger.warning("feed_unreachable", path=path, error=str(exc))
            raise FetchError(f"feed unreachable: {path}: {exc}", round_number, game_number) from exc

        try:
            return model.model_validate(resp.json())
        except (ValidationError, ValueError) as exc:
            logger.warning("feed_invalid_document", path=path, error=str(exc))
            raise FetchError(f"invalid feed document: {path}", round_number, game_number) from exc
