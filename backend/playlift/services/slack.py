from __future__ import annotations
import time
from datetime import datetime, timezone
from urllib.parse import urlencode
import httpx
import structlog
from playlift.config import settings
from playlift.schemas.channel import TeamInstall

log = structlog.get_logger()

SLACK_API = "https://slack.com/api"
INSTALL_SCOPES = [
    "channels:history",
    "channels:read",
    "chat:write",
    "commands",
    "reactions:read",
    "groups:read",
    "groups:history",
    "im:history",
    "mpim:history",
]


class SlackError(Exception):
    pass


def _is_mock(bot_token: str | None) -> bool:
    return not bot_token or not bot_token.startswith("xoxb-")


async def post_message(channel: str, text: str, bot_token: str | None) -> str:
    """Post to a channel and return the message ts (used as the announcement ref)."""
    if _is_mock(bot_token):
        log.info("slack_mock_post", channel=channel, text=text)
        return f"{time.time():.6f}"
    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
            r = await client.post(
                f"{SLACK_API}/chat.postMessage",
                json={"channel": channel, "text": text},
                headers={"Authorization": f"Bearer {bot_token}"},
            )
            r.raise_for_status()
    except httpx.HTTPError as e:
        raise SlackError(f"chat.postMessage failed: {e}") from e
    data = r.json()
    if not data.get("ok"):
        raise SlackError(f"Slack API error: {data.get('error', 'unknown')}")
    return data["ts"]


def skip_vote_text(track_name: str, artist_name: str, requested_by: str, window_seconds: int) -> str:
    return (
        f"⏭️ Skip requested by {requested_by}\n"
        f'🎵 Currently playing: "{track_name}" by {artist_name}\n\n'
        f"👍 React with thumbs up in {window_seconds} seconds to save it!\n"
        "👎 Thumbs down to skip"
    )


async def post_skip_vote_message(channel: str, track_name: str, artist_name: str, requested_by: str, bot_token: str | None) -> str:
    text = skip_vote_text(track_name, artist_name, requested_by, settings.skip_vote_window_seconds)
    return await post_message(channel, text, bot_token)


class SlackAnnouncer:
    def __init__(self, bot_token: str | None):
        self.bot_token = bot_token

    async def post(self, channel_id: str, text: str) -> str:
        # no install means nowhere to post; mock mode is only for explicit dev tokens
        if not self.bot_token:
            raise SlackError("App not installed in this workspace; no bot token")
        return await post_message(channel_id, text, self.bot_token)


# ---------- OAuth v2 ----------

def install_url(state: str = "") -> str:
    params = {
        "client_id": settings.slack_client_id,
        "scope": ",".join(INSTALL_SCOPES),
        "redirect_uri": settings.slack_redirect_uri,
    }
    if state:
        params["state"] = state
    return f"https://slack.com/oauth/v2/authorize?{urlencode(params)}"


async def exchange_code(code: str) -> TeamInstall:
    log.info("slack_oauth_exchange", redirect_uri=settings.slack_redirect_uri)
    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
            r = await client.post(
                f"{SLACK_API}/oauth.v2.access",
                data={
                    "client_id": settings.slack_client_id,
                    "client_secret": settings.slack_client_secret,
                    "code": code,
                    "redirect_uri": settings.slack_redirect_uri,
                },
            )
            r.raise_for_status()
    except httpx.HTTPError as e:
        raise SlackError(f"oauth.v2.access failed: {e}") from e
    data = r.json()
    if not data.get("ok"):
        raise SlackError(f"Slack OAuth error: {data.get('error', 'unknown')}")
    return TeamInstall(
        team_id=data["team"]["id"],
        team_name=data["team"].get("name"),
        bot_token=data["access_token"],
        bot_user_id=data.get("bot_user_id"),
        scope=data.get("scope"),
        app_id=data.get("app_id"),
        enterprise_id=(data.get("enterprise") or {}).get("id"),
        installed_at=datetime.now(timezone.utc),
    )
