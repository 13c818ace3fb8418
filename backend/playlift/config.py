from __future__ import annotations
import os
from pydantic import BaseModel

def _csv(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]

class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "dev")
    app_name: str = os.getenv("APP_NAME", "playlift-api")
    app_display_name: str = os.getenv("APP_DISPLAY_NAME", "Slack Playlift")
    app_version: str = os.getenv("APP_VERSION", "0.1.0")
    git_sha: str = os.getenv("GIT_SHA", "dev")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    base_url: str = os.getenv("BASE_URL", "http://localhost:8000")
    http_timeout_seconds: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))

    # Redis (the only shared state)
    redis_url: str = os.getenv("REDIS_URL", "redis://redis:6379/0")
    redis_socket_timeout_seconds: float = float(os.getenv("REDIS_SOCKET_TIMEOUT_SECONDS", "5"))
    redis_connect_timeout_seconds: float = float(os.getenv("REDIS_CONNECT_TIMEOUT_SECONDS", "10"))

    # Skip votes
    skip_vote_ttl_seconds: int = int(os.getenv("SKIP_VOTE_TTL_SECONDS", str(60 * 15)))
    skip_vote_window_seconds: int = int(os.getenv("SKIP_VOTE_WINDOW_SECONDS", "10"))
    up_reactions: list[str] = _csv(os.getenv("UP_REACTIONS", "+1,thumbsup,thumbs_up"))
    down_reactions: list[str] = _csv(os.getenv("DOWN_REACTIONS", "-1,thumbsdown,thumbs_down"))

    # QStash delayed trigger
    qstash_url: str = os.getenv("QSTASH_URL", "https://qstash.upstash.io")
    qstash_token: str = os.getenv("QSTASH_TOKEN", "")
    qstash_current_signing_key: str = os.getenv("QSTASH_CURRENT_SIGNING_KEY", "")
    qstash_next_signing_key: str = os.getenv("QSTASH_NEXT_SIGNING_KEY", "")

    # Slack OAuth v2
    slack_client_id: str = os.getenv("SLACK_CLIENT_ID", "")
    slack_client_secret: str = os.getenv("SLACK_CLIENT_SECRET", "")
    slack_redirect_uri: str = os.getenv("SLACK_REDIRECT_URI", "")

    # Spotify
    spotify_client_id: str = os.getenv("SPOTIFY_CLIENT_ID", "fake-client-id")
    spotify_client_secret: str = os.getenv("SPOTIFY_CLIENT_SECRET", "fake-secret")
    spotify_redirect_uri: str = os.getenv("SPOTIFY_REDIRECT_URI", "http://localhost:8000/spotify-callback")

    @property
    def up_reaction_set(self) -> frozenset[str]:
        return frozenset(self.up_reactions)

    @property
    def down_reaction_set(self) -> frozenset[str]:
        return frozenset(self.down_reactions)

    @property
    def trigger_signing_enabled(self) -> bool:
        return bool(self.qstash_current_signing_key or self.qstash_next_signing_key)

settings = Settings()
