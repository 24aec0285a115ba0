"""
RoundTracker: which round is live, which rounds are finished.

The predicates are the only inputs to the monitor's round-advance decision;
an unreachable round reads as "not live" / "not over" so a feed hiccup never
stalls or skips a round.
"""
from __future__ import annotations

from shared.errors import FetchError
from shared.models.enums import GameResult, normalize_result
from shared.utils.logging import get_logger

from ingest.feed import LiveChessCloudFeed

logger = get_logger(__name__)


class RoundTracker:
    def __init__(self, feed: LiveChessCloudFeed) -> None:
        self._feed = feed

    async def latest_round_number(self) -> int:
        """
        Highest 1-based round with live games, else the highest with any games.

        Raises:
            FetchError: tournament document unavailable or no round has games.
        """
        tournament = await self._feed.get_tournament()
        rounds = tournament.rounds

        for idx in range(len(rounds) - 1, -1, -1):
            if rounds[idx].live > 0:
                return idx + 1

        for idx in range(len(rounds) - 1, -1, -1):
            if rounds[idx].count > 0:
                return idx + 1

        raise FetchError("no rounds with games found")

    async def is_round_live(self, round_number: int) -> bool:
        try:
            index = await self._feed.get_round_index(round_number)
        except FetchError as exc:
            logger.warning("round_unavailable", round=round_number, check="live", error=str(exc))
            return False
        return any(p.live for p in index.pairings)

    async def are_all_games_over(self, round_number: int) -> bool:
        try:
            index = await self._feed.get_round_index(round_number)
        except FetchError as exc:
            logger.warning("round_unavailable", round=round_number, check="over", error=str(exc))
            return False
        if not index.pairings:
            return False
        return all(normalize_result(p.result) != GameResult.ONGOING for p in index.pairings)
