from __future__ import annotations
import structlog
from fastapi import APIRouter, Depends, Form, HTTPException
from fastapi.responses import PlainTextResponse
from playlift.config import settings
from playlift.deps import get_channels, get_coordinator, get_trigger
from playlift.schemas.channel import ChannelRecord
from playlift.schemas.vote import SkipVoteTrigger, TrackInfo
from playlift.services import slack, spotify
from playlift.services.channels import ChannelRepository, NotInstalled
from playlift.services.skip_vote import SkipVoteCoordinator
from playlift.services.store import StoreUnavailable
from playlift.services.trigger import DelayedTrigger, TriggerError

router = APIRouter(tags=["commands"])
log = structlog.get_logger()

NOT_CONNECTED = "Channel is not connected to Spotify. Use /connect first."

# Slash commands always answer 200 with text; Slack shows it to the caller only.

def _require(value: str | None, detail: str) -> str:
    if not value:
        raise HTTPException(status_code=400, detail=detail)
    return value

@router.post("/connect")
async def connect(
    channel_id: str | None = Form(None),
    team_id: str | None = Form(None),
    channels: ChannelRepository = Depends(get_channels),
):
    channel_id = _require(channel_id, "Missing channel_id")
    team_id = _require(team_id, "Missing team_id")
    try:
        await channels.bot_token(team_id)
        await channels.set_channel_team(channel_id, team_id)
        if await channels.get_channel(team_id, channel_id) is None:
            await channels.set_channel(team_id, ChannelRecord(slack_channel_id=channel_id))
    except NotInstalled as e:
        return {"text": f"❌ {e}"}
    except StoreUnavailable as e:
        log.error("connect_failed", error=str(e))
        return {"text": "Failed to start Spotify connection"}
    return {"text": f"Click to connect Spotify for this channel: {spotify.generate_auth_url(channel_id)}"}

@router.get("/spotify-callback", response_class=PlainTextResponse)
async def spotify_callback(
    code: str | None = None,
    state: str | None = None,
    channels: ChannelRepository = Depends(get_channels),
):
    channel_id = _require(state, "Missing state")
    try:
        team_id = await channels.get_channel_team(channel_id)
        if team_id is None:
            raise HTTPException(status_code=400, detail="Unknown channel; run /connect again")
        token = await spotify.exchange_code(code or "")
        await channels.update_channel(team_id, channel_id, spotify=token)
    except (spotify.SpotifyError, StoreUnavailable) as e:
        log.error("spotify_callback_failed", channel_id=channel_id, error=str(e))
        raise HTTPException(status_code=500, detail="Spotify token exchange failed")
    return f"Spotify connected for channel {channel_id}. You can close this window."

@router.post("/add-song")
async def add_song(
    channel_id: str | None = Form(None),
    team_id: str | None = Form(None),
    text: str | None = Form(None),
    user_name: str | None = Form(None),
    user_id: str | None = Form(None),
    channels: ChannelRepository = Depends(get_channels),
):
    channel_id = _require(channel_id, "Missing channel_id")
    text = _require(text, 'Need song text like "Song - Artist"')
    team_id = _require(team_id, "Missing team_id")
    try:
        bot_token = await channels.bot_token(team_id)
        ch = await channels.get_channel(team_id, channel_id)
        if ch is None or ch.spotify is None:
            return {"text": NOT_CONNECTED}
        parsed = spotify.parse_song_text(text)
        if parsed is None:
            return {"text": "Could not parse song. Use format: Song - Artist"}
        title, artist = parsed
        track = await spotify.search_track(title, artist, ch.spotify.access_token)
        if track is None:
            return {"text": f'Could not find "{title}" by {artist} on Spotify. Try different search terms.'}
        await spotify.add_to_queue(track.uri, ch.spotify.access_token)
        who = user_name or user_id
        await slack.post_message(
            ch.slack_channel_id,
            f'✅ {who} added "{track.name}" by {", ".join(track.artists)} to the queue!',
            bot_token,
        )
    except NotInstalled as e:
        return {"text": f"❌ {e}"}
    except (spotify.SpotifyError, slack.SlackError, StoreUnavailable) as e:
        log.error("add_song_failed", error=str(e))
        return {"text": f"Failed to add song: {e}"}
    return {"text": "Song added!"}

@router.post("/skip")
async def skip(
    channel_id: str | None = Form(None),
    team_id: str | None = Form(None),
    user_name: str | None = Form(None),
    user_id: str | None = Form(None),
    channels: ChannelRepository = Depends(get_channels),
    coordinator: SkipVoteCoordinator = Depends(get_coordinator),
    trigger: DelayedTrigger = Depends(get_trigger),
):
    channel_id = _require(channel_id, "Missing channel_id")
    team_id = _require(team_id, "Missing team_id")
    try:
        bot_token = await channels.bot_token(team_id)
        ch = await channels.get_channel(team_id, channel_id)
        if ch is None or ch.spotify is None:
            return {"text": NOT_CONNECTED}
        current = await spotify.get_currently_playing(ch.spotify.access_token)
        if current is None:
            return {"text": "No song is currently playing."}

        vote = await coordinator.create_vote(
            team_id, channel_id,
            TrackInfo(track_name=current.track_name, artist_name=current.artist_name),
            requested_by=user_name or user_id or "someone",
        )
        try:
            ts = await slack.post_skip_vote_message(
                ch.slack_channel_id, vote.track_name, vote.artist_name, vote.requested_by, bot_token,
            )
            await coordinator.attach_announcement(vote, ts)
            await trigger.schedule(
                settings.skip_vote_window_seconds,
                SkipVoteTrigger(team_id=team_id, channel_id=channel_id, vote_id=vote.id),
            )
        except (slack.SlackError, TriggerError):
            await coordinator.abandon(vote)
            raise
    except NotInstalled as e:
        return {"text": f"❌ {e}"}
    except (spotify.SpotifyError, slack.SlackError, TriggerError, StoreUnavailable) as e:
        log.error("skip_failed", error=str(e))
        return {"text": f"Failed to skip: {e}"}

    log.info("skip_vote_started", vote_id=vote.id, requested_by=vote.requested_by, window=settings.skip_vote_window_seconds)
    return {
        "text": f'Skip vote started for "{vote.track_name}"! React with 👍 or 👎. '
                f"Voting closes in {settings.skip_vote_window_seconds} seconds."
    }
