from __future__ import annotations
from html import escape
import structlog
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import HTMLResponse, RedirectResponse
from playlift.deps import get_channels
from playlift.services import slack
from playlift.services.channels import ChannelRepository
from playlift.services.store import StoreUnavailable

router = APIRouter(prefix="/slack", tags=["slack"])
log = structlog.get_logger()

_SUCCESS_PAGE = """<!DOCTYPE html>
<html>
  <head>
    <title>Installation Successful</title>
    <style>
      body {{ font-family: system-ui; max-width: 600px; margin: 100px auto; text-align: center; }}
      h1 {{ color: #2eb886; }}
    </style>
  </head>
  <body>
    <h1>✅ Installation Successful!</h1>
    <p>Slack Playlift has been installed to <strong>{team}</strong></p>
    <p>You can now use slash commands in your Slack workspace:</p>
    <ul style="text-align: left; display: inline-block;">
      <li><code>/connect</code> - Connect a channel to Spotify</li>
      <li><code>/add-song Song - Artist</code> - Add a song to the queue</li>
      <li><code>/skip</code> - Vote to skip the current song</li>
    </ul>
    <p style="margin-top: 40px; color: #666;">You can close this window.</p>
  </body>
</html>"""

@router.get("/install")
async def install():
    return RedirectResponse(slack.install_url(), status_code=302)

@router.get("/oauth/callback", response_class=HTMLResponse)
async def oauth_callback(
    code: str | None = None,
    error: str | None = None,
    state: str | None = None,
    channels: ChannelRepository = Depends(get_channels),
):
    if error:
        log.warning("slack_oauth_denied", error=error)
        raise HTTPException(status_code=400, detail=f"Installation failed: {error}")
    if not code:
        raise HTTPException(status_code=400, detail="Missing authorization code")
    try:
        install = await slack.exchange_code(code)
        await channels.store_team(install)
    except (slack.SlackError, StoreUnavailable) as e:
        log.error("slack_oauth_failed", error=str(e))
        raise HTTPException(status_code=500, detail=f"Installation failed: {e}")
    log.info("slack_installed", team_id=install.team_id, team_name=install.team_name)
    return HTMLResponse(_SUCCESS_PAGE.format(team=escape(install.team_name or install.team_id)))
