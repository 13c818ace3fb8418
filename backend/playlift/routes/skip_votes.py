from __future__ import annotations
import json
import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError
from playlift.config import settings
from playlift.deps import get_channels, get_coordinator
from playlift.schemas.vote import ReactionEvent, SkipVoteTrigger
from playlift.services.channels import ChannelRepository
from playlift.services.qstash import TriggerSignatureError, verify_signature
from playlift.services.resolution import resolve_triggered_vote
from playlift.services.skip_vote import SkipVoteCoordinator
from playlift.services.store import StoreUnavailable

router = APIRouter(tags=["skip-votes"])
log = structlog.get_logger()

REACTION_EVENTS = {"reaction_added": True, "reaction_removed": False}

@router.post("/process-skip")
async def process_skip(
    request: Request,
    upstash_signature: str | None = Header(None, alias="Upstash-Signature"),
    coordinator: SkipVoteCoordinator = Depends(get_coordinator),
    channels: ChannelRepository = Depends(get_channels),
):
    body = await request.body()
    if settings.trigger_signing_enabled:
        try:
            verify_signature(
                upstash_signature, body,
                current_key=settings.qstash_current_signing_key,
                next_key=settings.qstash_next_signing_key,
            )
        except TriggerSignatureError as e:
            log.warning("trigger_rejected", error=str(e))
            raise HTTPException(status_code=401, detail="Unauthorized: invalid signature")
    else:
        log.warning("trigger_signature_skipped", reason="signing keys not configured")

    try:
        trigger = SkipVoteTrigger.model_validate_json(body)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid trigger payload")

    try:
        outcome = await resolve_triggered_vote(coordinator, channels, trigger)
    except StoreUnavailable as e:
        # non-2xx makes QStash redeliver; resolution is idempotent
        log.error("resolve_store_unavailable", vote_id=trigger.vote_id, error=str(e))
        raise HTTPException(status_code=503, detail="Store unavailable, retry later")
    return {"ok": True, "outcome": outcome.kind, "upvotes": outcome.upvotes, "downvotes": outcome.downvotes}

@router.post("/emoji-callback")
async def emoji_callback(request: Request, coordinator: SkipVoteCoordinator = Depends(get_coordinator)):
    try:
        payload = await request.json()
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Invalid JSON")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid event payload")

    if payload.get("type") == "url_verification":
        log.info("slack_url_verification")
        return PlainTextResponse(str(payload.get("challenge", "")))
    if payload.get("type") != "event_callback":
        return {"ok": True}

    ev = payload.get("event") or {}
    added = REACTION_EVENTS.get(ev.get("type"))
    item = ev.get("item") or {}
    # only reactions on messages (not files) can be votes
    if added is None or item.get("type") != "message":
        return {"ok": True}

    try:
        event = ReactionEvent(
            team_id=payload.get("team_id", ""),
            channel_id=item.get("channel", ""),
            message_ref=item.get("ts", ""),
            user_id=ev.get("user", ""),
            reaction=ev.get("reaction", ""),
            added=added,
        )
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid reaction event")
    if not (event.team_id and event.channel_id and event.message_ref and event.user_id):
        log.info("reaction_ignored", reason="incomplete_event")
        return {"ok": True}

    try:
        applied = await coordinator.ingest_reaction(event)
    except StoreUnavailable as e:
        log.error("reaction_store_unavailable", error=str(e))
        raise HTTPException(status_code=503, detail="Store unavailable, retry later")
    return {"ok": True, "applied": applied}
