"""
Commentary backend client.

Request:  {fen, last_move, white_name, black_name}
Response: {commentary: str, stockfish_eval: number} or {error: ...}
"""
from __future__ import annotations

from typing import Any, Optional

from shared.models.domain import CommentaryEntry
from shared.utils.http_client import ServiceHTTPClient
from shared.utils.logging import get_logger

logger = get_logger(__name__)


def parse_commentary_response(payload: Any) -> Optional[CommentaryEntry]:
    """Return the entry, or None when the payload is an error or lacks either field."""
    if not isinstance(payload, dict):
        return None
    if payload.get("error"):
        logger.warning("commentary_backend_error", error=str(payload["error"])[:200])
        return None
    text = payload.get("commentary")
    evaluation = payload.get("stockfish_eval")
    if not text or not isinstance(text, str):
        return None
    # bool is an int subclass; the backend never sends it as an evaluation
    if isinstance(evaluation, bool) or not isinstance(evaluation, (int, float)):
        return None
    return CommentaryEntry(text=text, evaluation=float(evaluation))


class CommentaryClient:
    def __init__(self, http_client: ServiceHTTPClient, path: str = "") -> None:
        self._http = http_client
        self._path = path

    async def start(self) -> None:
        await self._http.start()

    async def close(self) -> None:
        await self._http.close()

    async def generate(
        self,
        fen: str,
        last_move: str,
        white_name: str,
        black_name: str,
    ) -> Optional[CommentaryEntry]:
        """
        Ask the backend for commentary on a position.

        Returns None for an invalid or error response; transport and HTTP
        status errors propagate to the caller's retry loop.
        """
        payload = {
            "fen": fen,
            "last_move": last_move,
            "white_name": white_name,
            "black_name": black_name,
        }
        resp = await self._http.post(self._path, json=payload)
        try:
            body = resp.json()
        except ValueError:
            logger.warning("commentary_response_not_json", status=resp.status_code)
            return None

        entry = parse_commentary_response(body)
        if entry is None:
            logger.warning("commentary_response_invalid", body=str(body)[:500])
        return entry
