from __future__ import annotations
from playlift.schemas.channel import ChannelRecord, TeamInstall
from playlift.services.store import KeyedCounterStore

# team:<team>               -> TeamInstall JSON
# channel:<team>:<channel>  -> ChannelRecord JSON
# channelTeam:<channel>     -> team id
TEAM_PREFIX = "team"
CHANNEL_PREFIX = "channel"
CHANNEL_TEAM_PREFIX = "channelTeam"


class NotInstalled(Exception):
    pass


class ChannelRepository:
    def __init__(self, store: KeyedCounterStore):
        self.store = store

    async def get_team(self, team_id: str) -> TeamInstall | None:
        raw = await self.store.get(f"{TEAM_PREFIX}:{team_id}")
        return TeamInstall.model_validate_json(raw) if raw else None

    async def store_team(self, install: TeamInstall) -> None:
        await self.store.set(f"{TEAM_PREFIX}:{install.team_id}", install.model_dump_json())

    async def bot_token(self, team_id: str) -> str:
        team = await self.get_team(team_id)
        if team is None:
            raise NotInstalled("App not installed in this workspace. Please install at /slack/install")
        return team.bot_token

    async def get_channel(self, team_id: str, channel_id: str) -> ChannelRecord | None:
        raw = await self.store.get(f"{CHANNEL_PREFIX}:{team_id}:{channel_id}")
        return ChannelRecord.model_validate_json(raw) if raw else None

    async def set_channel(self, team_id: str, record: ChannelRecord) -> None:
        await self.store.set(f"{CHANNEL_PREFIX}:{team_id}:{record.slack_channel_id}", record.model_dump_json())

    async def update_channel(self, team_id: str, channel_id: str, **updates) -> ChannelRecord:
        current = await self.get_channel(team_id, channel_id) or ChannelRecord(slack_channel_id=channel_id)
        updated = current.model_copy(update=updates)
        await self.set_channel(team_id, updated)
        return updated

    async def set_channel_team(self, channel_id: str, team_id: str) -> None:
        await self.store.set(f"{CHANNEL_TEAM_PREFIX}:{channel_id}", team_id)

    async def get_channel_team(self, channel_id: str) -> str | None:
        return await self.store.get(f"{CHANNEL_TEAM_PREFIX}:{channel_id}")

    async def all_channels(self) -> dict[str, ChannelRecord]:
        """Debug dump keyed by "<team>:<channel>"."""
        out: dict[str, ChannelRecord] = {}
        for key in await self.store.scan_prefix(f"{CHANNEL_PREFIX}:"):
            raw = await self.store.get(key)
            if raw:
                out[key.removeprefix(f"{CHANNEL_PREFIX}:")] = ChannelRecord.model_validate_json(raw)
        return out
