from fastapi.testclient import TestClient
from playlift.main import app

client = TestClient(app)

def test_health_ok():
    r = client.get("/health")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "ok"
    assert "request_id" in data
    assert r.headers["X-Request-ID"]

def test_request_id_is_echoed():
    r = client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert r.headers["X-Request-ID"] == "abc-123"
    assert r.json()["request_id"] == "abc-123"

def test_version_ok():
    r = client.get("/version")
    assert r.status_code == 200
    data = r.json()
    assert "version" in data and "git_sha" in data

def test_slack_install_redirects():
    r = client.get("/slack/install", follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["location"].startswith("https://slack.com/oauth/v2/authorize?")
    assert "reactions%3Aread" in r.headers["location"]
