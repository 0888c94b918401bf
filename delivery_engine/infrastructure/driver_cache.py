"""
Redis-cached driver directory snapshot.

Locate queries are read-heavy, so the list of available drivers is cached
in Redis as a JSON snapshot for a few seconds.  The cache key embeds a
version counter; every claim / release bumps the counter (``INCR`` is
atomic), which makes all replicas miss on their next read instead of
serving a snapshot that still lists a driver who was just taken.

Staleness is bounded by the TTL, for availability changes as well as for
location changes written by the external driver service.  The version is
bumped before the surrounding transaction commits, so a concurrent miss can
still cache the pre-commit state under the new version until it expires.
``accept`` never trusts the snapshot: the conditional claim re-checks
availability in the database.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

import redis.asyncio as aioredis

from delivery_engine.domain.entities import Driver
from delivery_engine.domain.ports import DriverDirectory

logger = logging.getLogger(__name__)

VERSION_KEY = "drivers:available:version"
SNAPSHOT_KEY = "drivers:available:v{version}"


class CachedDriverDirectory(DriverDirectory):
    def __init__(
        self,
        inner: DriverDirectory,
        client: aioredis.Redis,
        ttl_seconds: int = 5,
    ):
        self.inner = inner
        self.redis = client
        self.ttl = ttl_seconds

    async def snapshot_version(self) -> int:
        return int(await self.redis.get(VERSION_KEY) or 0)

    async def list_available(self) -> list[Driver]:
        key = SNAPSHOT_KEY.format(version=await self.snapshot_version())
        cached = await self.redis.get(key)
        if cached is not None:
            logger.debug("Driver snapshot hit (%s)", key)
            return [Driver.from_dict(item) for item in json.loads(cached)]

        logger.debug("Driver snapshot miss (%s)", key)
        drivers = await self.inner.list_available()
        await self.redis.set(
            key, json.dumps([d.to_dict() for d in drivers]), ex=self.ttl
        )
        return drivers

    async def get(self, driver_id: int) -> Optional[Driver]:
        return await self.inner.get(driver_id)

    async def claim(self, driver_id: int) -> bool:
        claimed = await self.inner.claim(driver_id)
        if claimed:
            await self.invalidate()
        return claimed

    async def release(self, driver_id: int, completed_delivery: bool = False) -> None:
        await self.inner.release(driver_id, completed_delivery=completed_delivery)
        await self.invalidate()

    async def invalidate(self) -> int:
        """Start a new snapshot version.  Returns the new version number."""
        return await self.redis.incr(VERSION_KEY)
