"""
Illustrative board image: render via the image backend, then upload the bytes
to the media host and keep the returned media id.
"""
from __future__ import annotations

from typing import Optional

from shared.utils.http_client import ServiceHTTPClient
from shared.utils.logging import get_logger

logger = get_logger(__name__)


class ImageRenderer:
    """POSTs a position description and receives a JPEG."""

    def __init__(self, http_client: ServiceHTTPClient, path: str = "") -> None:
        self._http = http_client
        self._path = path

    async def start(self) -> None:
        await self._http.start()

    async def close(self) -> None:
        await self._http.close()

    async def render(
        self,
        fen: str,
        white_name: str,
        black_name: str,
        evaluation: float,
        highlight_squares: list[str],
    ) -> bytes:
        resp = await self._http.post(
            self._path,
            json={
                "fen": fen,
                "whiteName": white_name,
                "blackName": black_name,
                "evaluation": evaluation,
                "highlightSquares": highlight_squares,
            },
        )
        if not resp.content:
            raise ValueError("image backend returned an empty body")
        return resp.content


class MediaUploader:
    """Uploads image bytes to the WhatsApp Cloud media endpoint."""

    def __init__(self, http_client: ServiceHTTPClient, phone_number_id: str, access_token: str) -> None:
        self._http = http_client
        self._phone_number_id = phone_number_id
        self._access_token = access_token

    async def start(self) -> None:
        await self._http.start()

    async def close(self) -> None:
        await self._http.close()

    async def upload(self, image: bytes, filename: str = "board.jpg") -> str:
        resp = await self._http.post(
            f"/{self._phone_number_id}/media",
            data={"messaging_product": "whatsapp", "type": "image/jpeg"},
            files={"file": (filename, image, "image/jpeg")},
            extra_headers={"Authorization": f"Bearer {self._access_token}"},
        )
        body = resp.json()
        media_id: Optional[str] = body.get("id") if isinstance(body, dict) else None
        if not media_id:
            raise ValueError("media upload response carried no id")
        logger.info("media_uploaded", media_id=media_id, size=len(image))
        return str(media_id)
