from __future__ import annotations
import fakeredis
from redis.backoff import NoBackoff
from redis.retry import Retry
import pytest
import pytest_asyncio
from playlift.services.reactions import ReactionAliases
from playlift.services.skip_vote import SkipVoteCoordinator
from playlift.services.store import KeyedCounterStore
from playlift.services.votes import VoteRepository

TEAM = "T0001"
CHANNEL = "C0001"


class RecordingAnnouncer:
    def __init__(self, fail: bool = False):
        self.posts: list[tuple[str, str]] = []
        self.fail = fail

    async def post(self, channel_id: str, text: str) -> str:
        if self.fail:
            raise RuntimeError("slack is down")
        self.posts.append((channel_id, text))
        return f"{len(self.posts)}.000100"


class RecordingPlayer:
    def __init__(self, ok: bool = True, raises: bool = False):
        self.skips = 0
        self.ok = ok
        self.raises = raises

    async def skip_current_track(self) -> bool:
        self.skips += 1
        if self.raises:
            raise RuntimeError("spotify 502")
        return self.ok


class RecordingTrigger:
    def __init__(self):
        self.scheduled = []

    async def schedule(self, after_seconds, payload):
        self.scheduled.append((after_seconds, payload))
        return f"job-{len(self.scheduled)}"


@pytest.fixture
def fake_server():
    return fakeredis.FakeServer()


@pytest_asyncio.fixture
async def redis(fake_server):
    # no retries: outage tests should fail fast
    r = fakeredis.FakeAsyncRedis(server=fake_server, decode_responses=True, retry=Retry(NoBackoff(), 0))
    yield r
    await r.aclose()


@pytest.fixture
def store(redis):
    return KeyedCounterStore(redis)


@pytest.fixture
def votes(store):
    return VoteRepository(store, ttl_seconds=900)


@pytest.fixture
def aliases():
    return ReactionAliases(up=frozenset({"+1", "thumbsup", "thumbs_up"}), down=frozenset({"-1", "thumbsdown", "thumbs_down"}))


@pytest.fixture
def coordinator(votes, aliases):
    return SkipVoteCoordinator(votes, aliases)


@pytest.fixture
def announcer():
    return RecordingAnnouncer()


@pytest.fixture
def player():
    return RecordingPlayer()
