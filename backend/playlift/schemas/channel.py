from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel

class TeamInstall(BaseModel):
    team_id: str
    team_name: str | None = None
    bot_token: str
    bot_user_id: str | None = None
    scope: str | None = None
    app_id: str | None = None
    enterprise_id: str | None = None
    installed_at: datetime

class SpotifyToken(BaseModel):
    access_token: str
    refresh_token: str | None = None
    expires_at: datetime

class ChannelRecord(BaseModel):
    slack_channel_id: str
    spotify: SpotifyToken | None = None

class CurrentTrack(BaseModel):
    track_id: str | None = None
    track_name: str
    artist_name: str
    is_playing: bool = True
    progress_ms: int | None = None
    duration_ms: int | None = None

class SearchHit(BaseModel):
    uri: str
    name: str
    artists: list[str]
