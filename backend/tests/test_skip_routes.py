from __future__ import annotations
import json
import time
from datetime import datetime, timedelta, timezone
import httpx
import jwt
import pytest
import pytest_asyncio
from httpx import AsyncClient
from conftest import CHANNEL, TEAM, RecordingTrigger
from playlift.config import settings
from playlift.deps import get_store, get_trigger
from playlift.main import app
from playlift.schemas.channel import ChannelRecord, SpotifyToken, TeamInstall
from playlift.schemas.vote import Polarity
from playlift.services.channels import ChannelRepository
from playlift.services.qstash import body_hash

SIGNING_KEY = "sig_test_current"


@pytest.fixture
def trigger():
    return RecordingTrigger()


@pytest_asyncio.fixture
async def client(store, trigger):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_trigger] = lambda: trigger
    async with AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def connected(store):
    channels = ChannelRepository(store)
    # non-xoxb token and the fake Spotify token keep both providers in mock mode
    await channels.store_team(TeamInstall(team_id=TEAM, team_name="Acme", bot_token="test-token", installed_at=datetime.now(timezone.utc)))
    await channels.set_channel(TEAM, ChannelRecord(
        slack_channel_id=CHANNEL,
        spotify=SpotifyToken(access_token="fake-access", expires_at=datetime.now(timezone.utc) + timedelta(hours=1)),
    ))
    return channels


def _sign(body: bytes, key: str = SIGNING_KEY) -> str:
    now = int(time.time())
    return jwt.encode(
        {"iss": "Upstash", "sub": "http://test/process-skip", "iat": now, "nbf": now - 1, "exp": now + 300, "body": body_hash(body)},
        key, algorithm="HS256",
    )


def _reaction(ts: str, user: str, reaction: str, added: bool = True) -> dict:
    return {
        "type": "event_callback",
        "team_id": TEAM,
        "event": {
            "type": "reaction_added" if added else "reaction_removed",
            "user": user,
            "reaction": reaction,
            "item": {"type": "message", "channel": CHANNEL, "ts": ts},
        },
    }


async def _start_vote(client, votes, trigger):
    r = await client.post("/skip", data={"channel_id": CHANNEL, "team_id": TEAM, "user_name": "alice"})
    assert r.status_code == 200, r.text
    assert "Skip vote started" in r.json()["text"]
    _, payload = trigger.scheduled[-1]
    vote = await votes.get(TEAM, CHANNEL, payload.vote_id)
    assert vote is not None and vote.announcement_ref
    return vote, payload


@pytest.mark.asyncio
async def test_skip_requires_install(client):
    r = await client.post("/skip", data={"channel_id": CHANNEL, "team_id": TEAM})
    assert r.status_code == 200
    assert "not installed" in r.json()["text"]


@pytest.mark.asyncio
async def test_skip_requires_connected_channel(client, store):
    await ChannelRepository(store).store_team(TeamInstall(team_id=TEAM, bot_token="test-token", installed_at=datetime.now(timezone.utc)))
    r = await client.post("/skip", data={"channel_id": CHANNEL, "team_id": TEAM})
    assert "not connected to Spotify" in r.json()["text"]


@pytest.mark.asyncio
async def test_skip_missing_fields(client):
    r = await client.post("/skip", data={"team_id": TEAM})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_full_vote_flow(client, connected, votes, trigger, monkeypatch):
    monkeypatch.setattr(settings, "qstash_current_signing_key", SIGNING_KEY)
    vote, payload = await _start_vote(client, votes, trigger)
    assert trigger.scheduled[-1][0] == settings.skip_vote_window_seconds
    assert vote.track_name == "Mock Song"

    ts = vote.announcement_ref
    for ev in (
        _reaction(ts, "U1", "-1"),
        _reaction(ts, "U2", "thumbsdown"),
        _reaction(ts, "U3", "+1"),
        _reaction(ts, "U2", "thumbsdown", added=False),
        _reaction(ts, "U4", "-1::skin-tone-3"),
        _reaction(ts, "U5", "tada"),
    ):
        r = await client.post("/emoji-callback", json=ev)
        assert r.status_code == 200

    assert await votes.count(TEAM, vote.id, Polarity.DOWN) == 2
    assert await votes.count(TEAM, vote.id, Polarity.UP) == 1

    body = payload.model_dump_json().encode()
    r = await client.post("/process-skip", content=body, headers={"Upstash-Signature": _sign(body), "Content-Type": "application/json"})
    assert r.status_code == 200
    assert r.json() == {"ok": True, "outcome": "skipped", "upvotes": 1, "downvotes": 2}
    assert await votes.get(TEAM, CHANNEL, vote.id) is None

    # duplicate delivery
    r = await client.post("/process-skip", content=body, headers={"Upstash-Signature": _sign(body), "Content-Type": "application/json"})
    assert r.status_code == 200
    assert r.json()["outcome"] == "noop"

    # reaction on the finished vote is acknowledged and ignored
    r = await client.post("/emoji-callback", json=_reaction(ts, "U9", "+1"))
    assert r.status_code == 200 and r.json()["applied"] is False


@pytest.mark.asyncio
async def test_unsigned_trigger_is_rejected_without_mutation(client, connected, votes, trigger, monkeypatch):
    monkeypatch.setattr(settings, "qstash_current_signing_key", SIGNING_KEY)
    vote, payload = await _start_vote(client, votes, trigger)
    body = payload.model_dump_json().encode()

    r = await client.post("/process-skip", content=body)
    assert r.status_code == 401
    r = await client.post("/process-skip", content=body, headers={"Upstash-Signature": _sign(body, key="forged")})
    assert r.status_code == 401
    tampered = json.dumps({"team_id": TEAM, "channel_id": CHANNEL, "vote_id": "other"}).encode()
    r = await client.post("/process-skip", content=tampered, headers={"Upstash-Signature": _sign(body)})
    assert r.status_code == 401

    assert await votes.get(TEAM, CHANNEL, vote.id) is not None


@pytest.mark.asyncio
async def test_trigger_store_outage_is_retryable(client, connected, votes, trigger, fake_server):
    vote, payload = await _start_vote(client, votes, trigger)
    body = payload.model_dump_json().encode()

    fake_server.connected = False
    r = await client.post("/process-skip", content=body)
    assert r.status_code == 503
    fake_server.connected = True

    r = await client.post("/process-skip", content=body)
    assert r.status_code == 200 and r.json()["outcome"] == "kept"


@pytest.mark.asyncio
async def test_reaction_store_outage_is_retryable(client, connected, votes, trigger, fake_server):
    vote, _ = await _start_vote(client, votes, trigger)
    ev = _reaction(vote.announcement_ref, "U1", "-1")

    fake_server.connected = False
    r = await client.post("/emoji-callback", json=ev)
    assert r.status_code == 503
    fake_server.connected = True

    # Slack redelivers the event once the store is back
    r = await client.post("/emoji-callback", json=ev)
    assert r.status_code == 200 and r.json()["applied"] is True
    assert await votes.count(TEAM, vote.id, Polarity.DOWN) == 1


@pytest.mark.asyncio
async def test_reaction_with_malformed_fields_is_rejected(client, connected, votes, trigger):
    vote, _ = await _start_vote(client, votes, trigger)
    ev = _reaction(vote.announcement_ref, "U1", "+1")
    ev["event"]["user"] = None
    r = await client.post("/emoji-callback", json=ev)
    assert r.status_code == 400

    ev = _reaction(vote.announcement_ref, "U1", "+1")
    ev["event"]["item"]["ts"] = {"nested": True}
    r = await client.post("/emoji-callback", json=ev)
    assert r.status_code == 400
    assert await votes.count(TEAM, vote.id, Polarity.UP) == 0


@pytest.mark.asyncio
async def test_trigger_bad_payload(client):
    r = await client.post("/process-skip", content=b'{"vote_id": ""}')
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_url_verification(client):
    r = await client.post("/emoji-callback", json={"type": "url_verification", "challenge": "xyz"})
    assert r.status_code == 200 and r.text == "xyz"


@pytest.mark.asyncio
async def test_reaction_on_untracked_message_is_ignored(client, connected):
    r = await client.post("/emoji-callback", json=_reaction("123.456", "U1", "+1"))
    assert r.status_code == 200 and r.json()["applied"] is False
    ev = _reaction("123.456", "U1", "+1")
    ev["event"]["item"]["type"] = "file"
    r = await client.post("/emoji-callback", json=ev)
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_connect_and_spotify_callback(client, store):
    channels = ChannelRepository(store)
    await channels.store_team(TeamInstall(team_id=TEAM, bot_token="test-token", installed_at=datetime.now(timezone.utc)))

    r = await client.post("/connect", data={"channel_id": CHANNEL, "team_id": TEAM})
    assert "accounts.spotify.com/authorize" in r.json()["text"]
    assert await channels.get_channel_team(CHANNEL) == TEAM

    r = await client.get("/spotify-callback", params={"code": "abc", "state": CHANNEL})
    assert r.status_code == 200
    ch = await channels.get_channel(TEAM, CHANNEL)
    assert ch.spotify is not None and ch.spotify.access_token == "fake-access"


@pytest.mark.asyncio
async def test_add_song(client, connected):
    r = await client.post("/add-song", data={"channel_id": CHANNEL, "team_id": TEAM, "text": "Song A - Artist A", "user_name": "bob"})
    assert r.json()["text"] == "Song added!"
    r = await client.post("/add-song", data={"channel_id": CHANNEL, "team_id": TEAM, "text": "no dash here"})
    assert "Could not parse" in r.json()["text"]


@pytest.mark.asyncio
async def test_store_dump(client, connected):
    r = await client.get("/_store")
    assert r.status_code == 200
    assert f"{TEAM}:{CHANNEL}" in r.json()["channels"]
