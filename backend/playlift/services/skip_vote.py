from __future__ import annotations
from typing import Protocol
import structlog
from playlift.schemas.vote import (
    OutcomeKind, Polarity, ReactionEvent, ResolutionOutcome, TrackInfo, VoteRecord,
)
from playlift.services.reactions import ReactionAliases
from playlift.services.votes import VoteRepository, new_vote_id

log = structlog.get_logger()

_ID_ATTEMPTS = 3


class Announcer(Protocol):
    async def post(self, channel_id: str, text: str) -> str: ...


class Player(Protocol):
    async def skip_current_track(self) -> bool: ...


def decide(upvotes: int, downvotes: int) -> OutcomeKind:
    """Ties keep the track: skip only on a strict majority of downvotes."""
    return "skipped" if downvotes > upvotes else "kept"


def outcome_text(vote: VoteRecord, kind: OutcomeKind, *, skip_failed: bool = False) -> str:
    tally = f"(👍 {vote.upvotes} vs 👎 {vote.downvotes})"
    if kind == "kept":
        return f'🎵 The song was saved! "{vote.track_name}" will keep playing. {tally}'
    if skip_failed:
        return f'⚠️ Vote passed to skip "{vote.track_name}" by {vote.artist_name} {tally}, but Spotify did not skip it.'
    return f'⏭️ Song skipped: "{vote.track_name}" by {vote.artist_name} {tally}'


class SkipVoteCoordinator:
    """
    Creates skip votes, applies reactions and resolves them.
    Holds no state of its own: Redis is the only synchronization point, and
    removal of the vote metadata is what makes resolution happen once.
    """

    def __init__(self, votes: VoteRepository, aliases: ReactionAliases | None = None):
        self.votes = votes
        self.aliases = aliases or ReactionAliases.from_settings()

    async def create_vote(self, team_id: str, channel_id: str, track: TrackInfo, requested_by: str) -> VoteRecord:
        for _ in range(_ID_ATTEMPTS):
            vote = VoteRecord(
                id=new_vote_id(),
                team_id=team_id,
                channel_id=channel_id,
                track_name=track.track_name,
                artist_name=track.artist_name,
                requested_by=requested_by,
            )
            if await self.votes.insert(vote):
                log.info("skip_vote_created", team_id=team_id, channel_id=channel_id, vote_id=vote.id, track=vote.track_name)
                return vote
        raise RuntimeError("could not allocate a unique skip vote id")

    async def attach_announcement(self, vote: VoteRecord, ref: str) -> VoteRecord:
        vote.announcement_ref = ref
        await self.votes.save(vote)
        return vote

    async def abandon(self, vote: VoteRecord) -> None:
        """Drop a vote whose announcement or trigger could not be set up."""
        await self.votes.delete(vote.team_id, vote.channel_id, vote.id)
        log.info("skip_vote_abandoned", vote_id=vote.id)

    async def apply_reaction(self, team_id: str, vote_id: str, user_id: str, polarity: Polarity, added: bool) -> None:
        # No resolved check here: resolution freezes the tally on its own.
        if added:
            await self.votes.add_voter(team_id, vote_id, polarity, user_id)
        else:
            await self.votes.remove_voter(team_id, vote_id, polarity, user_id)

    async def find_vote_by_announcement_ref(self, team_id: str, channel_id: str, ref: str) -> VoteRecord | None:
        vote = await self.votes.find_by_announcement_ref(team_id, channel_id, ref)
        if vote is None or vote.resolved:
            return None
        return vote

    async def ingest_reaction(self, event: ReactionEvent) -> bool:
        """Map a raw reaction event onto a live vote. Returns True if it was applied."""
        polarity = self.aliases.polarity(event.reaction)
        if polarity is None:
            log.info("reaction_ignored", reason="unrecognised", reaction=event.reaction)
            return False
        vote = await self.find_vote_by_announcement_ref(event.team_id, event.channel_id, event.message_ref)
        if vote is None:
            log.info("reaction_ignored", reason="no_live_vote", message_ref=event.message_ref)
            return False
        await self.apply_reaction(event.team_id, vote.id, event.user_id, polarity, event.added)
        log.info(
            "reaction_applied", vote_id=vote.id, user_id=event.user_id,
            polarity=polarity.value, added=event.added,
        )
        return True

    async def resolve(
        self, team_id: str, channel_id: str, vote_id: str, *, announcer: Announcer, player: Player,
    ) -> ResolutionOutcome:
        # StoreUnavailable propagates: the trigger must be redelivered.
        vote = await self.votes.claim(team_id, channel_id, vote_id)
        if vote is None:
            log.info("skip_vote_noop", vote_id=vote_id, reason="absent")
            return ResolutionOutcome(kind="noop", vote_id=vote_id, reason="absent")
        if vote.resolved:
            await self.votes.delete_voters(team_id, vote_id)
            log.info("skip_vote_noop", vote_id=vote_id, reason="already_resolved")
            return ResolutionOutcome(kind="noop", vote_id=vote_id, reason="already_resolved")

        vote.resolved = True
        kind = decide(vote.upvotes, vote.downvotes)
        log.info(
            "skip_vote_tally", vote_id=vote_id, upvotes=vote.upvotes, downvotes=vote.downvotes,
            upvoters=sorted(vote.upvoters), downvoters=sorted(vote.downvoters), outcome=kind,
        )

        skip_failed = False
        if kind == "skipped":
            try:
                skip_failed = not await player.skip_current_track()
            except Exception as e:
                skip_failed = True
                log.error("skip_command_failed", vote_id=vote_id, error=str(e))
            if skip_failed:
                log.warning("skip_command_rejected", vote_id=vote_id)

        message = outcome_text(vote, kind, skip_failed=skip_failed)
        announced = False
        try:
            await announcer.post(channel_id, message)
            announced = True
        except Exception as e:
            log.error("skip_vote_announce_failed", vote_id=vote_id, error=str(e))

        try:
            await self.votes.delete_voters(team_id, vote_id)
        except Exception as e:
            # metadata is already gone, so the sets are inert and expire by TTL
            log.warning("skip_vote_cleanup_failed", vote_id=vote_id, error=str(e))

        log.info("skip_vote_resolved", vote_id=vote_id, outcome=kind, skip_failed=skip_failed, announced=announced)
        return ResolutionOutcome(
            kind=kind, vote_id=vote_id, upvotes=vote.upvotes, downvotes=vote.downvotes,
            skip_failed=skip_failed, announced=announced, message=message,
        )
