from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException, Request
from datetime import datetime, timezone
from playlift.config import settings
from playlift.deps import get_channels
from playlift.services.channels import ChannelRepository
from playlift.services.store import StoreUnavailable

router = APIRouter()

@router.get("/")
async def root():
    return {"message": f"{settings.app_display_name} running"}

@router.get("/health")
async def health(request: Request):
    return {
        "status": "ok",
        "env": settings.environment,
        "time": datetime.now(timezone.utc).isoformat(),
        "request_id": request.headers.get("x-request-id") or request.state.request_id,
    }

@router.get("/version")
async def version():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "git_sha": settings.git_sha,
        "build": "docker",
    }

@router.get("/_store")
async def dump_store(channels: ChannelRepository = Depends(get_channels)):
    # dev/debug only
    if settings.environment != "dev":
        raise HTTPException(status_code=404, detail="Not Found")
    try:
        records = await channels.all_channels()
    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"channels": {k: v.model_dump(mode="json") for k, v in records.items()}}
