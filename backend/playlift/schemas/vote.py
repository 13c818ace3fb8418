from __future__ import annotations
from enum import Enum
from typing import Literal
from pydantic import BaseModel, Field

class Polarity(str, Enum):
    UP = "up"      # keep
    DOWN = "down"  # skip

OutcomeKind = Literal["skipped", "kept", "noop"]

class TrackInfo(BaseModel):
    track_name: str
    artist_name: str

class VoteRecord(BaseModel):
    """
    One in-flight skip vote.
    Metadata lives under a single JSON key; voter sets are stored as
    separate Redis sets and are never serialized with the metadata.
    """
    id: str
    team_id: str
    channel_id: str
    track_name: str
    artist_name: str
    requested_by: str
    announcement_ref: str | None = None
    resolved: bool = False
    upvoters: set[str] = Field(default_factory=set)
    downvoters: set[str] = Field(default_factory=set)

    @property
    def upvotes(self) -> int:
        return len(self.upvoters)

    @property
    def downvotes(self) -> int:
        return len(self.downvoters)

    def metadata_json(self) -> str:
        return self.model_dump_json(exclude={"upvoters", "downvoters"})

    @classmethod
    def from_metadata(cls, raw: str, upvoters: set[str] | None = None, downvoters: set[str] | None = None) -> VoteRecord:
        vote = cls.model_validate_json(raw)
        vote.upvoters = set(upvoters or ())
        vote.downvoters = set(downvoters or ())
        return vote

class ResolutionOutcome(BaseModel):
    kind: OutcomeKind
    vote_id: str
    reason: str | None = None      # why a resolution was a no-op
    upvotes: int = 0
    downvotes: int = 0
    skip_failed: bool = False
    announced: bool = False
    message: str | None = None

class SkipVoteTrigger(BaseModel):
    """Payload handed to the delayed trigger and delivered back verbatim."""
    team_id: str = Field(min_length=1)
    channel_id: str = Field(min_length=1)
    vote_id: str = Field(min_length=1)

class ReactionEvent(BaseModel):
    team_id: str
    channel_id: str
    message_ref: str
    user_id: str
    reaction: str
    added: bool
