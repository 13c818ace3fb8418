from __future__ import annotations
import pytest
from playlift.services import spotify


@pytest.mark.parametrize("text,expected", [
    ("Song - Artist", ("Song", "Artist")),
    ('"Song" - "Artist"', ("Song", "Artist")),
    ("Song -Artist", ("Song", "Artist")),
    ("Bohemian Rhapsody - Queen", ("Bohemian Rhapsody", "Queen")),
    ("Song - Jay-Z", ("Song", "Jay-Z")),
])
def test_parse_song_text(text, expected):
    assert spotify.parse_song_text(text) == expected


@pytest.mark.parametrize("text", ["just a title", " - Artist", "Song - ", ""])
def test_parse_song_text_rejects(text):
    assert spotify.parse_song_text(text) is None


def test_auth_url_carries_channel_state():
    url = spotify.generate_auth_url("C123")
    assert url.startswith("https://accounts.spotify.com/authorize?")
    assert "state=C123" in url
    assert "user-modify-playback-state" in url


@pytest.mark.asyncio
async def test_skip_without_token_reports_failure():
    assert await spotify.SpotifyPlayer(None).skip_current_track() is False
    assert await spotify.SpotifyPlayer(spotify.MOCK_ACCESS_TOKEN).skip_current_track() is True
