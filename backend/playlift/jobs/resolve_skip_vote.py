from __future__ import annotations
import asyncio
from playlift.config import settings
from playlift.logging_setup import configure_logging
from playlift.redis_client import create_redis
from playlift.schemas.vote import SkipVoteTrigger
from playlift.services.channels import ChannelRepository
from playlift.services.resolution import resolve_triggered_vote
from playlift.services.skip_vote import SkipVoteCoordinator
from playlift.services.store import KeyedCounterStore
from playlift.services.votes import VoteRepository

# rq workers import this module directly, outside the app
configure_logging()

async def _run(team_id: str, channel_id: str, vote_id: str) -> str:
    # each asyncio.run gets its own loop, so the job owns its client
    client = create_redis()
    try:
        store = KeyedCounterStore(client)
        coordinator = SkipVoteCoordinator(VoteRepository(store, settings.skip_vote_ttl_seconds))
        outcome = await resolve_triggered_vote(
            coordinator, ChannelRepository(store),
            SkipVoteTrigger(team_id=team_id, channel_id=channel_id, vote_id=vote_id),
        )
        return outcome.kind
    finally:
        await client.aclose()

def resolve_skip_vote(team_id: str, channel_id: str, vote_id: str) -> str:
    # RQ entry point (sync); StoreUnavailable fails the job so rq retries it
    return asyncio.run(_run(team_id, channel_id, vote_id))
