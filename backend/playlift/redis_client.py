from __future__ import annotations
import structlog
from redis.asyncio import Redis
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError, TimeoutError as RedisTimeoutError
from redis.retry import Retry
from playlift.config import settings

log = structlog.get_logger()

# One client (and connection pool) per process, created on first use.
_client: Redis | None = None

def create_redis(url: str | None = None) -> Redis:
    url = url or settings.redis_url
    log.info("redis_connect", socket_timeout=settings.redis_socket_timeout_seconds)
    return Redis.from_url(
        url,
        decode_responses=True,
        socket_timeout=settings.redis_socket_timeout_seconds,
        socket_connect_timeout=settings.redis_connect_timeout_seconds,
        retry=Retry(ExponentialBackoff(cap=2, base=0.05), retries=3),
        retry_on_error=[RedisConnectionError, RedisTimeoutError],
        health_check_interval=30,
    )

def get_redis() -> Redis:
    global _client
    if _client is None:
        _client = create_redis()
    return _client

async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
        log.info("redis_closed")
