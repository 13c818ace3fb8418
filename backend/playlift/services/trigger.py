from __future__ import annotations
import asyncio
from datetime import timedelta
from typing import Protocol
import httpx
import structlog
from redis import Redis
from rq import Queue, Retry
from playlift.config import settings
from playlift.jobs.resolve_skip_vote import resolve_skip_vote
from playlift.schemas.vote import SkipVoteTrigger

log = structlog.get_logger()


class TriggerError(Exception):
    pass


class DelayedTrigger(Protocol):
    async def schedule(self, after_seconds: int, payload: SkipVoteTrigger) -> str: ...


class QStashTrigger:
    """Publishes the payload to QStash, which POSTs it back to /process-skip after the delay."""

    def __init__(self, token: str, callback_url: str, qstash_url: str | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.token = token
        self.callback_url = callback_url
        self.qstash_url = (qstash_url or settings.qstash_url).rstrip("/")
        self._transport = transport

    async def schedule(self, after_seconds: int, payload: SkipVoteTrigger) -> str:
        try:
            async with httpx.AsyncClient(timeout=settings.http_timeout_seconds, transport=self._transport) as client:
                r = await client.post(
                    f"{self.qstash_url}/v2/publish/{self.callback_url}",
                    content=payload.model_dump_json(),
                    headers={
                        "Authorization": f"Bearer {self.token}",
                        "Content-Type": "application/json",
                        "Upstash-Delay": f"{int(after_seconds)}s",
                    },
                )
                r.raise_for_status()
        except httpx.HTTPError as e:
            raise TriggerError(f"QStash publish failed: {e}") from e
        job_id = r.json().get("messageId", "")
        log.info("trigger_scheduled", backend="qstash", job_id=job_id, vote_id=payload.vote_id, delay=after_seconds)
        return job_id


# RQ queue (lazy single instance); rq needs a sync client
_queue: Queue | None = None

def default_queue() -> Queue:
    global _queue
    if _queue is None:
        _queue = Queue("default", connection=Redis.from_url(
            settings.redis_url,
            socket_timeout=settings.redis_socket_timeout_seconds,
            socket_connect_timeout=settings.redis_connect_timeout_seconds,
        ))
    return _queue


class RQTrigger:
    """Fallback when QStash is not configured: needs `rq worker --with-scheduler`."""

    def __init__(self, queue: Queue | None = None):
        self._queue = queue

    async def schedule(self, after_seconds: int, payload: SkipVoteTrigger) -> str:
        queue = self._queue or default_queue()
        try:
            job = await asyncio.to_thread(
                queue.enqueue_in,
                timedelta(seconds=after_seconds),
                resolve_skip_vote,
                payload.team_id, payload.channel_id, payload.vote_id,
                retry=Retry(max=3, interval=[5, 15, 30]),
            )
        except Exception as e:
            raise TriggerError(f"RQ enqueue failed: {e}") from e
        log.info("trigger_scheduled", backend="rq", job_id=job.id, vote_id=payload.vote_id, delay=after_seconds)
        return job.id


def build_trigger() -> DelayedTrigger:
    if settings.qstash_token:
        return QStashTrigger(settings.qstash_token, f"{settings.base_url.rstrip('/')}/process-skip")
    return RQTrigger()
