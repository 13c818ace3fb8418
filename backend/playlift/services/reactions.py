from __future__ import annotations
from dataclasses import dataclass
from playlift.config import Settings, settings as default_settings
from playlift.schemas.vote import Polarity

@dataclass(frozen=True)
class ReactionAliases:
    """Emoji names recognised as an up (keep) or down (skip) vote."""
    up: frozenset[str]
    down: frozenset[str]

    @classmethod
    def from_settings(cls, s: Settings | None = None) -> ReactionAliases:
        s = s or default_settings
        return cls(up=s.up_reaction_set, down=s.down_reaction_set)

    def polarity(self, reaction: str | None) -> Polarity | None:
        if not reaction:
            return None
        # Slack appends skin tones as "+1::skin-tone-3"
        name = reaction.split("::", 1)[0]
        if name in self.up:
            return Polarity.UP
        if name in self.down:
            return Polarity.DOWN
        return None
