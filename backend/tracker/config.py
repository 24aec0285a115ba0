"""
Tracker service configuration.
Uses LC_TRACKER_ prefix; DB, feed and tournament settings come from get_settings().
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TrackerSettings(BaseSettings):
    """Polling and enrichment settings for the tournament monitor."""

    model_config = SettingsConfigDict(
        env_prefix="LC_TRACKER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Polling
    poll_interval_s: float = Field(default=5.0, description="Pause between poll cycles")
    games_to_monitor: list[int] = Field(
        default=[1, 2, 3, 4, 5, 6],
        description="1-based board numbers polled each cycle",
    )

    # Commentary backend
    commentary_api_url: str = Field(default="", description="POST endpoint returning commentary + eval")
    commentary_timeout_s: float = Field(default=60.0, description="Commentary generation can be slow")
    commentary_max_attempts: int = Field(default=3, description="Attempts before giving up on a position")
    commentary_retry_base_delay_s: float = Field(default=5.0, description="Linear backoff unit between attempts")

    # Image + media
    image_generation_api_url: str = Field(default="", description="Board image renderer; empty disables images")
    image_timeout_s: float = 30.0
    media_upload_base_url: str = "https://graph.facebook.com/v17.0"
    whatsapp_phone_number_id: str = ""
    whatsapp_access_token: str = ""

    # Metrics
    metrics_port: int = Field(default=9091, description="Port for the tracker's Prometheus endpoint")

    @property
    def images_enabled(self) -> bool:
        return bool(self.image_generation_api_url and self.whatsapp_phone_number_id and self.whatsapp_access_token)


@lru_cache(maxsize=1)
def get_tracker_settings() -> TrackerSettings:
    return TrackerSettings()
