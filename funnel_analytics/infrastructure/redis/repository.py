import json
from datetime import datetime
from typing import Any, Dict, Optional

from redis.asyncio import Redis

from funnel_analytics.domain.models import Snapshot
from funnel_analytics.domain.time_range import ResolvedWindow
from shared.constants import RedisKeys

from .serialization import dump_block, load_block


class SnapshotRepository:
    """Redis mirror of the current snapshot.

    Notes:
        - One hash of serialized blocks and one metadata hash per window.
        - A sorted-set index ordered by generation time gives the latest window.
        - Retention is bounded by ``retention_count`` windows.
        - Every write publishes a small update message for dashboard clients.
    """

    def __init__(self, redis: Redis, retention_count: int, hash_ttl: int):
        self.r = redis
        self.retention_count = retention_count
        self.hash_ttl = hash_ttl

    async def store_snapshot(self, snapshot: Snapshot):
        window_key = snapshot.window.key
        blocks_key = RedisKeys.blocks_key(window_key)
        meta_key = RedisKeys.meta_key(window_key)

        pipe = self.r.pipeline(transaction=True)
        pipe.delete(blocks_key)
        if snapshot.blocks:
            pipe.hset(
                blocks_key,
                mapping={name: dump_block(b) for name, b in snapshot.blocks.items()},
            )
        pipe.hset(meta_key, mapping=self._meta(snapshot))
        pipe.expire(blocks_key, self.hash_ttl)
        pipe.expire(meta_key, self.hash_ttl)
        pipe.zadd(
            RedisKeys.SNAPSHOT_INDEX,
            {window_key: snapshot.generated_at.timestamp()},
        )
        await pipe.execute()
        await self._trim_index()
        await self.publish_update(
            {
                "window": window_key,
                "blocks": sorted(snapshot.blocks),
                "sequence": snapshot.sequence,
            }
        )

    async def store_block(self, snapshot: Snapshot, block_name: str):
        """Write one block of ``snapshot`` (already stored) plus its metadata."""
        window_key = snapshot.window.key
        pipe = self.r.pipeline(transaction=True)
        pipe.hset(
            RedisKeys.blocks_key(window_key),
            block_name,
            dump_block(snapshot.blocks[block_name]),
        )
        pipe.hset(RedisKeys.meta_key(window_key), mapping=self._meta(snapshot))
        pipe.expire(RedisKeys.blocks_key(window_key), self.hash_ttl)
        pipe.expire(RedisKeys.meta_key(window_key), self.hash_ttl)
        await pipe.execute()
        await self.publish_update(
            {
                "window": window_key,
                "blocks": [block_name],
                "sequence": snapshot.block_sequences.get(block_name, 0),
            }
        )

    async def load_latest(self) -> Optional[Snapshot]:
        ids = await self.r.zrevrange(RedisKeys.SNAPSHOT_INDEX, 0, 0)
        if not ids:
            return None
        window_key = ids[0]
        meta = await self.r.hgetall(RedisKeys.meta_key(window_key))
        if not meta:
            return None
        raw_blocks = await self.r.hgetall(RedisKeys.blocks_key(window_key))
        return Snapshot(
            window=ResolvedWindow.model_validate_json(meta["window"]),
            generated_at=datetime.fromisoformat(meta["generated_at"]),
            blocks={name: load_block(name, raw) for name, raw in raw_blocks.items()},
            errors=json.loads(meta.get("errors", "{}")),
            sequence=int(meta.get("sequence", 0)),
            event_count=int(meta.get("event_count", 0)),
            block_sequences=json.loads(meta.get("block_sequences", "{}")),
        )

    async def publish_update(self, payload: Dict[str, Any]):
        await self.r.publish(RedisKeys.PUBSUB_CHANNEL_UPDATES, json.dumps(payload))

    @staticmethod
    def _meta(snapshot: Snapshot) -> Dict[str, str]:
        return {
            "window": snapshot.window.model_dump_json(),
            "generated_at": snapshot.generated_at.isoformat(),
            "sequence": str(snapshot.sequence),
            "event_count": str(snapshot.event_count),
            "errors": json.dumps(snapshot.errors),
            "block_sequences": json.dumps(snapshot.block_sequences),
        }

    async def _trim_index(self):
        size = await self.r.zcard(RedisKeys.SNAPSHOT_INDEX)
        if size > self.retention_count:
            excess = size - self.retention_count
            await self.r.zremrangebyrank(RedisKeys.SNAPSHOT_INDEX, 0, excess - 1)
