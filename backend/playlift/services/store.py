from __future__ import annotations
from typing import Awaitable, TypeVar
import structlog
from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError, TimeoutError as RedisTimeoutError

log = structlog.get_logger()

T = TypeVar("T")


class StoreUnavailable(Exception):
    """Transient store fault (connectivity, timeout). Retryable; never means "not found"."""


class KeyedCounterStore:
    """
    Thin adapter over Redis for the operations vote state needs:
    TTL'd string keys, TTL'd sets, prefix scans and one atomic
    fetch-and-delete. Absent keys come back as None / empty, never as errors.
    """

    def __init__(self, redis: Redis):
        self._r = redis

    async def _call(self, op: str, pending: Awaitable[T]) -> T:
        try:
            return await pending
        except (RedisConnectionError, RedisTimeoutError) as e:
            log.warning("store_unavailable", op=op, error=str(e))
            raise StoreUnavailable(f"{op}: {e}") from e

    # ---------- strings ----------

    async def get(self, key: str) -> str | None:
        return await self._call("get", self._r.get(key))

    async def set(self, key: str, value: str, *, ttl: int | None = None, only_if_absent: bool = False) -> bool:
        """Write (refreshing the TTL). Returns False only when only_if_absent and the key exists."""
        ok = await self._call("set", self._r.set(key, value, ex=ttl, nx=only_if_absent))
        return bool(ok)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self._call("delete", self._r.delete(*keys)))

    async def ttl(self, key: str) -> int:
        return int(await self._call("ttl", self._r.ttl(key)))

    # ---------- sets ----------

    async def add_member(self, key: str, member: str, *, ttl: int | None = None) -> bool:
        async with self._r.pipeline(transaction=True) as pipe:
            pipe.sadd(key, member)
            if ttl:
                pipe.expire(key, ttl)
            added, *_ = await self._call("add_member", pipe.execute())
        return bool(added)

    async def remove_member(self, key: str, member: str) -> bool:
        return bool(await self._call("remove_member", self._r.srem(key, member)))

    async def members(self, key: str) -> set[str]:
        return set(await self._call("members", self._r.smembers(key)))

    async def cardinality(self, key: str) -> int:
        return int(await self._call("cardinality", self._r.scard(key)))

    # ---------- scans ----------

    async def scan_prefix(self, prefix: str) -> list[str]:
        """Live keys starting with prefix. Read-only; only for small, bounded keyspaces."""
        async def _scan() -> list[str]:
            return [k async for k in self._r.scan_iter(match=f"{prefix}*", count=100)]
        return await self._call("scan_prefix", _scan())

    # ---------- atomic ----------

    async def pop_with_members(self, key: str, set_keys: list[str]) -> tuple[str | None, list[set[str]]]:
        """
        GETDEL key and SMEMBERS each set key in one MULTI/EXEC.
        Of any number of concurrent callers only one gets the value back;
        the sets are read at the same instant the key disappears.
        """
        async with self._r.pipeline(transaction=True) as pipe:
            pipe.getdel(key)
            for sk in set_keys:
                pipe.smembers(sk)
            value, *sets = await self._call("pop_with_members", pipe.execute())
        return value, [set(s or ()) for s in sets]
