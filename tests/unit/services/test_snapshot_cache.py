import asyncio
from datetime import datetime, timedelta, timezone

import fakeredis.aioredis
import pytest

from funnel_analytics.core.errors import StaleWindowError
from funnel_analytics.domain.models import MetricBlock, Snapshot
from funnel_analytics.domain.time_range import TimeRange, resolve
from funnel_analytics.infrastructure.redis.repository import SnapshotRepository
from funnel_analytics.services.orchestrator import derive_overview
from funnel_analytics.services.snapshot_cache import SnapshotCache


def _block(name, **data):
    return MetricBlock(name=name, data=data)


def _snapshot(window, sequence, **blocks):
    return Snapshot(
        window=window,
        generated_at=datetime(2026, 10, 2, tzinfo=timezone.utc),
        blocks={name: _block(name, **data) for name, data in blocks.items()},
        sequence=sequence,
        block_sequences=dict.fromkeys(blocks, sequence),
    )


@pytest.fixture
def other_window(window):
    return resolve(
        TimeRange.custom(window.start - timedelta(days=7), window.end - timedelta(days=7))
    )


@pytest.mark.asyncio
async def test_replace_block_after_replace_all(window):
    cache = SnapshotCache()
    await cache.replace_all(_snapshot(window, 1, signups={"v": 1}, surveySteps={"v": 1}))

    assert await cache.replace_block(window, _block("surveySteps", v=2), 2)

    current = cache.get()
    assert current.block("surveySteps")["v"] == 2
    assert current.block("signups")["v"] == 1
    assert current.sequence == 1


@pytest.mark.asyncio
async def test_stale_window_block_is_rejected(window, other_window):
    cache = SnapshotCache()
    await cache.replace_all(_snapshot(window, 1, surveySteps={"v": 1}))
    before = cache.get()

    with pytest.raises(StaleWindowError):
        await cache.replace_block(other_window, _block("surveySteps", v=2), 2)

    assert cache.get() is before


@pytest.mark.asyncio
async def test_replace_block_on_empty_cache_is_stale(window):
    cache = SnapshotCache()
    with pytest.raises(StaleWindowError):
        await cache.replace_block(window, _block("surveySteps", v=1), 1)
    assert cache.get() is None


@pytest.mark.asyncio
async def test_older_full_snapshot_is_discarded(window, other_window):
    cache = SnapshotCache()
    await cache.replace_all(_snapshot(other_window, 3, signups={"v": 3}))

    assert not await cache.replace_all(_snapshot(window, 2, signups={"v": 2}))
    assert cache.get().window == other_window


@pytest.mark.asyncio
async def test_older_block_is_discarded(window):
    cache = SnapshotCache()
    await cache.replace_all(_snapshot(window, 1, surveySteps={"v": 1}))
    await cache.replace_block(window, _block("surveySteps", v=3), 3)

    assert not await cache.replace_block(window, _block("surveySteps", v=2), 2)
    assert cache.get().block("surveySteps")["v"] == 3


@pytest.mark.asyncio
async def test_full_refresh_keeps_newer_partial_block(window):
    cache = SnapshotCache()
    await cache.replace_all(_snapshot(window, 1, signups={"v": 1}, surveySteps={"v": 1}))
    # request 3 (partial) completes before request 2 (full)
    await cache.replace_block(window, _block("surveySteps", v=3), 3)
    assert await cache.replace_all(
        _snapshot(window, 2, signups={"v": 2}, surveySteps={"v": 2})
    )

    current = cache.get()
    assert current.block("signups")["v"] == 2
    assert current.block("surveySteps")["v"] == 3
    assert current.block_sequences["surveySteps"] == 3


@pytest.mark.asyncio
async def test_replace_blocks_is_all_or_nothing(window):
    cache = SnapshotCache()
    await cache.replace_all(_snapshot(window, 1, signups={"v": 1}, surveySteps={"v": 1}))
    await cache.replace_block(window, _block("signups", v=5), 5)

    applied = await cache.replace_blocks(
        window, [_block("signups", v=4), _block("surveySteps", v=4)], 4
    )

    assert not applied
    assert cache.get().block("surveySteps")["v"] == 1


@pytest.mark.asyncio
async def test_derive_runs_after_every_write(window):
    cache = SnapshotCache(derive=derive_overview)
    await cache.replace_all(
        _snapshot(
            window,
            1,
            surveyFunnel={"uniqueUsers": 10},
            signups={"uniqueTotalSignups": 2, "signupClicks": 4},
        )
    )
    assert cache.get().block("overview")["conversionRate"].formatted == "20%"

    await cache.replace_block(
        window, _block("signups", uniqueTotalSignups=5, signupClicks=6), 2
    )
    overview = cache.get().block("overview")
    assert overview["conversionRate"].formatted == "50%"
    assert overview["signupClicks"] == 6


@pytest.mark.asyncio
async def test_mirror_and_warm(window):
    r = fakeredis.aioredis.FakeRedis(decode_responses=True)
    repo = SnapshotRepository(r, retention_count=5, hash_ttl=60)
    cache = SnapshotCache(repo, derive=derive_overview)
    await cache.replace_all(_snapshot(window, 4, surveyFunnel={"uniqueUsers": 3}))
    await cache.replace_block(window, _block("surveyFunnel", uniqueUsers=7), 5)

    warmed = SnapshotCache(repo)
    snapshot = await warmed.warm()

    assert snapshot.window == window
    assert snapshot.block("surveyFunnel")["uniqueUsers"] == 7
    assert snapshot.block("overview")["uniqueUsers"] == 7
    # restarted process numbers requests from scratch
    assert snapshot.sequence == 0
    assert await warmed.replace_block(window, _block("surveyFunnel", uniqueUsers=8), 1)


@pytest.mark.asyncio
async def test_mirror_failure_keeps_cache_write(window):
    class BrokenRepo:
        async def store_snapshot(self, snapshot):
            raise ConnectionError("redis down")

    cache = SnapshotCache(BrokenRepo())  # type: ignore[arg-type]
    assert await cache.replace_all(_snapshot(window, 1, signups={"v": 1}))
    assert cache.get().block("signups")["v"] == 1


class HungRepo:
    """Mirror whose writes never complete."""

    def __init__(self):
        self.released = asyncio.Event()

    async def store_snapshot(self, snapshot):
        await self.released.wait()

    async def store_block(self, snapshot, name):
        await self.released.wait()


@pytest.mark.asyncio
async def test_hung_mirror_does_not_block_writes(window):
    cache = SnapshotCache(HungRepo(), mirror_timeout=0.05)  # type: ignore[arg-type]
    first = asyncio.create_task(
        cache.replace_all(_snapshot(window, 1, surveySteps={"v": 1}))
    )
    await asyncio.sleep(0)
    assert cache.get() is not None

    applied = await asyncio.wait_for(
        cache.replace_block(window, _block("surveySteps", v=2), 2), timeout=1
    )

    assert applied
    assert cache.get().block("surveySteps")["v"] == 2
    assert await asyncio.wait_for(first, timeout=1)


@pytest.mark.asyncio
async def test_late_mirror_writes_latest_state(window):
    r = fakeredis.aioredis.FakeRedis(decode_responses=True)
    repo = SnapshotRepository(r, retention_count=5, hash_ttl=60)
    cache = SnapshotCache(repo)

    await asyncio.gather(
        cache.replace_all(_snapshot(window, 1, signups={"v": 1}, surveySteps={"v": 1})),
        cache.replace_block(window, _block("surveySteps", v=2), 2),
    )

    mirrored = await repo.load_latest()
    assert mirrored.block("surveySteps")["v"] == 2
