from __future__ import annotations

import asyncio
from typing import Callable, Optional, Sequence

from funnel_analytics.core.config import settings
from funnel_analytics.core.errors import StaleWindowError
from funnel_analytics.core.logger import get_logger
from funnel_analytics.core.metrics import DISCARDED_RESULTS
from funnel_analytics.domain.models import MetricBlock, Snapshot
from funnel_analytics.domain.time_range import ResolvedWindow
from funnel_analytics.infrastructure.redis.repository import SnapshotRepository

logger = get_logger("snapshot_cache")

Derive = Callable[[Snapshot], Snapshot]


class SnapshotCache:
    """Holds the current snapshot and serialises writes to it.

    Reads are lock-free: writers build a new ``Snapshot`` and swap the
    reference, so ``get`` never observes a half-applied write.

    Writes carry the sequence number the request was issued with. A result
    whose request is older than what the cache already reflects is discarded
    (last writer wins by request order, not completion order):
        - a full snapshot older than the current full snapshot is dropped;
        - a block older than the current full snapshot or than the last write
          of that block is dropped;
        - a full snapshot for the current window keeps blocks that newer
          partial refreshes already wrote.

    ``derive`` recomputes cross-cutting blocks after every write, inside the
    lock. ``repository`` mirrors applied writes to Redis after the lock is
    released; mirror writes run in apply order and each is bounded by
    ``mirror_timeout``.
    """

    def __init__(
        self,
        repository: Optional[SnapshotRepository] = None,
        derive: Optional[Derive] = None,
        mirror_timeout: Optional[float] = None,
    ):
        self.repo = repository
        self.derive = derive
        self.mirror_timeout = (
            settings.redis_mirror_timeout_seconds
            if mirror_timeout is None
            else mirror_timeout
        )
        self._current: Optional[Snapshot] = None
        self._lock = asyncio.Lock()
        self._mirror_lock = asyncio.Lock()

    def get(self) -> Optional[Snapshot]:
        return self._current

    async def replace_all(self, snapshot: Snapshot) -> bool:
        async with self._lock:
            current = self._current
            if current is not None and snapshot.sequence < current.sequence:
                self._discard("superseded", snapshot.window, snapshot.sequence)
                return False

            if current is not None and current.window == snapshot.window:
                for name, sequence in current.block_sequences.items():
                    if sequence > snapshot.sequence and name in current.blocks:
                        snapshot = snapshot.with_block(current.blocks[name], sequence)

            self._current = applied = self._derived(snapshot)
        await self._mirror(applied)
        return True

    async def replace_block(
        self, window: ResolvedWindow, block: MetricBlock, sequence: int
    ) -> bool:
        return await self.replace_blocks(window, [block], sequence)

    async def replace_blocks(
        self, window: ResolvedWindow, blocks: Sequence[MetricBlock], sequence: int
    ) -> bool:
        """Swap in ``blocks`` computed over ``window``; all or nothing.

        Raises StaleWindowError (cache untouched) if the cached snapshot was
        computed over a different window.
        """
        async with self._lock:
            current = self._current
            if current is None or current.window != window:
                self._discard("stale_window", window, sequence)
                raise StaleWindowError(
                    current.window.key if current else None, window.key
                )

            if sequence < current.sequence or any(
                sequence < current.block_sequences.get(b.name, 0) for b in blocks
            ):
                self._discard("superseded", window, sequence)
                return False

            updated = current
            for block in blocks:
                updated = updated.with_block(block, sequence)
            self._current = applied = self._derived(updated)
        await self._mirror(applied, [b.name for b in blocks])
        return True

    async def warm(self) -> Optional[Snapshot]:
        """Load the latest mirrored snapshot when the cache is empty."""
        if self.repo is None or self._current is not None:
            return self._current
        snapshot = await self.repo.load_latest()
        if snapshot is not None:
            async with self._lock:
                if self._current is None:
                    # sequences restart per process; the mirror predates every request
                    self._current = snapshot.model_copy(
                        update={
                            "sequence": 0,
                            "block_sequences": dict.fromkeys(snapshot.block_sequences, 0),
                        }
                    )
                    logger.info(
                        "snapshot_cache_warmed",
                        extra={"window": snapshot.window.key, "blocks": len(snapshot.blocks)},
                    )
        return self._current

    def _derived(self, snapshot: Snapshot) -> Snapshot:
        return self.derive(snapshot) if self.derive else snapshot

    def _discard(self, reason: str, window: ResolvedWindow, sequence: int) -> None:
        DISCARDED_RESULTS.labels(reason).inc()
        logger.warning(
            "snapshot_write_discarded",
            extra={"reason": reason, "window": window.key, "sequence": sequence},
        )

    async def _mirror(self, snapshot: Snapshot, block_names: Sequence[str] = ()):
        if self.repo is None:
            return
        try:
            await asyncio.wait_for(
                self._write_mirror(snapshot, block_names), self.mirror_timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "snapshot_mirror_timeout",
                extra={"window": snapshot.window.key, "timeout": self.mirror_timeout},
            )
        except Exception as e:
            logger.warning(
                "snapshot_mirror_failed",
                extra={"window": snapshot.window.key, "error": str(e)},
            )

    async def _write_mirror(self, snapshot: Snapshot, block_names: Sequence[str]):
        async with self._mirror_lock:
            latest = self._current
            if latest is not snapshot:
                # a newer write was applied meanwhile; mirror the whole current state
                await self.repo.store_snapshot(latest)
            elif not block_names:
                await self.repo.store_snapshot(snapshot)
            else:
                # derived blocks change along with any written block
                derived = set(snapshot.blocks) - set(snapshot.block_sequences)
                for name in sorted(set(block_names) | derived):
                    await self.repo.store_block(snapshot, name)
