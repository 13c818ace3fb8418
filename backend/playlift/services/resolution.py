from __future__ import annotations
import structlog
from playlift.schemas.vote import ResolutionOutcome, SkipVoteTrigger
from playlift.services.channels import ChannelRepository
from playlift.services.skip_vote import SkipVoteCoordinator
from playlift.services.slack import SlackAnnouncer
from playlift.services.spotify import SpotifyPlayer

log = structlog.get_logger()


async def resolve_triggered_vote(
    coordinator: SkipVoteCoordinator, channels: ChannelRepository, trigger: SkipVoteTrigger,
) -> ResolutionOutcome:
    """Resolve a vote from a delivered trigger, wiring Slack/Spotify for its team and channel."""
    structlog.contextvars.bind_contextvars(vote_id=trigger.vote_id, team_id=trigger.team_id)
    team = await channels.get_team(trigger.team_id)
    if team is None:
        log.warning("resolve_without_install", channel_id=trigger.channel_id)
    channel = await channels.get_channel(trigger.team_id, trigger.channel_id)
    access_token = channel.spotify.access_token if channel and channel.spotify else None
    return await coordinator.resolve(
        trigger.team_id, trigger.channel_id, trigger.vote_id,
        announcer=SlackAnnouncer(team.bot_token if team else None),
        player=SpotifyPlayer(access_token),
    )
