from __future__ import annotations
import secrets
import time
import structlog
from playlift.schemas.vote import Polarity, VoteRecord
from playlift.services.store import KeyedCounterStore

log = structlog.get_logger()

# skipVote:<team>:<channel>:<voteId>          -> JSON metadata
# skipVoteUsers:<team>:<voteId>:<up|down>     -> set of user ids
SKIP_VOTE_PREFIX = "skipVote"
SKIP_VOTE_USERS_PREFIX = "skipVoteUsers"


def vote_key(team_id: str, channel_id: str, vote_id: str) -> str:
    return f"{SKIP_VOTE_PREFIX}:{team_id}:{channel_id}:{vote_id}"


def voters_key(team_id: str, vote_id: str, polarity: Polarity) -> str:
    return f"{SKIP_VOTE_USERS_PREFIX}:{team_id}:{vote_id}:{polarity.value}"


def new_vote_id() -> str:
    # millisecond timestamp keeps ids ordered; the suffix breaks same-ms ties
    return f"{time.time_ns() // 1_000_000}{secrets.token_hex(2)}"


class VoteRepository:
    def __init__(self, store: KeyedCounterStore, ttl_seconds: int):
        self.store = store
        self.ttl = ttl_seconds

    def _set_keys(self, team_id: str, vote_id: str) -> list[str]:
        return [voters_key(team_id, vote_id, p) for p in (Polarity.UP, Polarity.DOWN)]

    async def insert(self, vote: VoteRecord) -> bool:
        """Persist a fresh vote. False if the id is already taken in this channel."""
        return await self.store.set(
            vote_key(vote.team_id, vote.channel_id, vote.id), vote.metadata_json(),
            ttl=self.ttl, only_if_absent=True,
        )

    async def save(self, vote: VoteRecord) -> None:
        await self.store.set(vote_key(vote.team_id, vote.channel_id, vote.id), vote.metadata_json(), ttl=self.ttl)

    async def get(self, team_id: str, channel_id: str, vote_id: str) -> VoteRecord | None:
        raw = await self.store.get(vote_key(team_id, channel_id, vote_id))
        if raw is None:
            return None
        up_key, down_key = self._set_keys(team_id, vote_id)
        return VoteRecord.from_metadata(raw, await self.store.members(up_key), await self.store.members(down_key))

    async def add_voter(self, team_id: str, vote_id: str, polarity: Polarity, user_id: str) -> bool:
        return await self.store.add_member(voters_key(team_id, vote_id, polarity), user_id, ttl=self.ttl)

    async def remove_voter(self, team_id: str, vote_id: str, polarity: Polarity, user_id: str) -> bool:
        return await self.store.remove_member(voters_key(team_id, vote_id, polarity), user_id)

    async def count(self, team_id: str, vote_id: str, polarity: Polarity) -> int:
        return await self.store.cardinality(voters_key(team_id, vote_id, polarity))

    async def claim(self, team_id: str, channel_id: str, vote_id: str) -> VoteRecord | None:
        """
        Atomically remove the vote metadata and snapshot both voter sets.
        Returns None if the vote is gone (already claimed or expired).
        """
        raw, (up, down) = await self.store.pop_with_members(
            vote_key(team_id, channel_id, vote_id), self._set_keys(team_id, vote_id)
        )
        if raw is None:
            return None
        return VoteRecord.from_metadata(raw, up, down)

    async def delete_voters(self, team_id: str, vote_id: str) -> None:
        await self.store.delete(*self._set_keys(team_id, vote_id))

    async def delete(self, team_id: str, channel_id: str, vote_id: str) -> None:
        await self.store.delete(vote_key(team_id, channel_id, vote_id), *self._set_keys(team_id, vote_id))

    async def find_by_announcement_ref(self, team_id: str, channel_id: str, ref: str) -> VoteRecord | None:
        # a handful of votes per channel at most, so a prefix scan is fine
        prefix = f"{SKIP_VOTE_PREFIX}:{team_id}:{channel_id}:"
        for key in await self.store.scan_prefix(prefix):
            raw = await self.store.get(key)
            if raw is None:
                continue  # expired between scan and get
            vote = VoteRecord.model_validate_json(raw)
            if vote.announcement_ref == ref:
                return await self.get(team_id, channel_id, vote.id)
        return None
