from __future__ import annotations
from fastapi import Depends
from playlift.config import settings
from playlift.redis_client import get_redis
from playlift.services.channels import ChannelRepository
from playlift.services.reactions import ReactionAliases
from playlift.services.skip_vote import SkipVoteCoordinator
from playlift.services.store import KeyedCounterStore
from playlift.services.trigger import DelayedTrigger, build_trigger
from playlift.services.votes import VoteRepository

def get_store() -> KeyedCounterStore:
    return KeyedCounterStore(get_redis())

def get_channels(store: KeyedCounterStore = Depends(get_store)) -> ChannelRepository:
    return ChannelRepository(store)

def get_coordinator(store: KeyedCounterStore = Depends(get_store)) -> SkipVoteCoordinator:
    return SkipVoteCoordinator(
        VoteRepository(store, settings.skip_vote_ttl_seconds),
        ReactionAliases.from_settings(settings),
    )

def get_trigger() -> DelayedTrigger:
    return build_trigger()
