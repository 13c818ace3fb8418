from __future__ import annotations
import base64
from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode
import httpx
import structlog
from playlift.config import settings
from playlift.schemas.channel import CurrentTrack, SearchHit, SpotifyToken

log = structlog.get_logger()

ACCOUNTS_URL = "https://accounts.spotify.com"
API_URL = "https://api.spotify.com/v1"
SCOPES = "user-modify-playback-state user-read-playback-state"
MOCK_ACCESS_TOKEN = "fake-access"


class SpotifyError(Exception):
    pass


def _is_mock(access_token: str | None) -> bool:
    return access_token == MOCK_ACCESS_TOKEN


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=API_URL, timeout=settings.http_timeout_seconds)


def _auth(access_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {access_token}"}


def generate_auth_url(channel_id: str) -> str:
    # state carries the channel so the callback can find it again
    params = urlencode({
        "client_id": settings.spotify_client_id,
        "response_type": "code",
        "redirect_uri": settings.spotify_redirect_uri,
        "scope": SCOPES,
        "state": channel_id,
    })
    return f"{ACCOUNTS_URL}/authorize?{params}"


async def exchange_code(code: str) -> SpotifyToken:
    now = datetime.now(timezone.utc)
    if not settings.spotify_client_id or settings.spotify_client_id == "fake-client-id":
        return SpotifyToken(access_token=MOCK_ACCESS_TOKEN, refresh_token="fake-refresh", expires_at=now + timedelta(hours=1))

    basic = base64.b64encode(f"{settings.spotify_client_id}:{settings.spotify_client_secret}".encode()).decode()
    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
            r = await client.post(
                f"{ACCOUNTS_URL}/api/token",
                data={"grant_type": "authorization_code", "code": code, "redirect_uri": settings.spotify_redirect_uri},
                headers={"Authorization": f"Basic {basic}"},
            )
            r.raise_for_status()
    except httpx.HTTPError as e:
        raise SpotifyError(f"token exchange failed: {e}") from e
    data = r.json()
    return SpotifyToken(
        access_token=data["access_token"],
        refresh_token=data.get("refresh_token"),
        expires_at=now + timedelta(seconds=int(data.get("expires_in", 3600))),
    )


def parse_song_text(text: str) -> tuple[str, str] | None:
    """'Song - Artist' (quotes optional) -> (title, artist). Artist may itself contain dashes."""
    parts = text.split("-")
    if len(parts) < 2:
        return None
    title = parts[0].strip().strip('"')
    artist = "-".join(parts[1:]).strip().strip('"')
    if not title or not artist:
        return None
    return title, artist


async def search_track(title: str, artist: str, access_token: str) -> SearchHit | None:
    if _is_mock(access_token):
        log.info("spotify_mock_search", title=title, artist=artist)
        return SearchHit(uri="spotify:track:mock123", name=title, artists=[artist])
    try:
        async with _client() as client:
            r = await client.get(
                "/search",
                params={"q": f"track:{title} artist:{artist}", "type": "track", "limit": 1},
                headers=_auth(access_token),
            )
            r.raise_for_status()
    except httpx.HTTPError as e:
        log.error("spotify_search_failed", error=str(e))
        raise SpotifyError("Failed to search Spotify") from e
    items = r.json().get("tracks", {}).get("items", [])
    if not items:
        return None
    t = items[0]
    return SearchHit(uri=t["uri"], name=t["name"], artists=[a["name"] for a in t.get("artists", [])])


async def add_to_queue(track_uri: str, access_token: str) -> None:
    if _is_mock(access_token):
        log.info("spotify_mock_queue", uri=track_uri)
        return
    try:
        async with _client() as client:
            r = await client.post("/me/player/queue", params={"uri": track_uri}, headers=_auth(access_token))
            r.raise_for_status()
    except httpx.HTTPError as e:
        log.error("spotify_queue_failed", error=str(e))
        raise SpotifyError(f"Failed to add to Spotify queue: {e}") from e


async def get_currently_playing(access_token: str) -> CurrentTrack | None:
    if _is_mock(access_token):
        return CurrentTrack(track_id="mock123", track_name="Mock Song", artist_name="Mock Artist")
    try:
        async with _client() as client:
            r = await client.get("/me/player/currently-playing", headers=_auth(access_token))
            r.raise_for_status()
    except httpx.HTTPError as e:
        log.error("spotify_now_playing_failed", error=str(e))
        raise SpotifyError("Failed to get currently playing track") from e
    # 204: nothing playing
    if r.status_code == 204 or not r.content:
        return None
    data = r.json()
    item = data.get("item")
    if not item:
        return None
    return CurrentTrack(
        track_id=item.get("id"),
        track_name=item["name"],
        artist_name=", ".join(a["name"] for a in item.get("artists", [])),
        is_playing=bool(data.get("is_playing")),
        progress_ms=data.get("progress_ms"),
        duration_ms=item.get("duration_ms"),
    )


async def skip_track(access_token: str | None) -> bool:
    """Skip to the next track. Never raises; False means Spotify did not skip."""
    if not access_token:
        log.warning("spotify_not_connected")
        return False
    if _is_mock(access_token):
        log.info("spotify_mock_skip")
        return True
    try:
        async with _client() as client:
            r = await client.post("/me/player/next", headers=_auth(access_token))
            r.raise_for_status()
    except httpx.HTTPError as e:
        log.warning("spotify_skip_failed", error=str(e))
        return False
    return True


class SpotifyPlayer:
    def __init__(self, access_token: str | None):
        self.access_token = access_token

    async def skip_current_track(self) -> bool:
        return await skip_track(self.access_token)
