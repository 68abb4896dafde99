"""Tests for the session retention sweeper."""

import asyncio
from uuid import uuid4

from warden.core.modules.session.models import Session
from warden.utils import now_ms

DAY_MS = 24 * 60 * 60 * 1000


async def add_session(core, *, is_terminated: bool, days_idle: int) -> Session:
    session = Session(
        user_id=uuid4(),
        token=f"token-{uuid4()}",
        is_terminated=is_terminated,
        last_active=now_ms() - days_idle * DAY_MS,
        expires_at=now_ms() + DAY_MS,
    )
    return await core.services.session.create(session)


class TestSweepOnce:
    async def test_deletes_only_old_terminated_sessions(self, core):
        old_terminated = await add_session(core, is_terminated=True, days_idle=31)
        recent_terminated = await add_session(core, is_terminated=True, days_idle=5)
        old_live = await add_session(core, is_terminated=False, days_idle=40)

        assert await core.services.sweeper.sweep_once() == 1

        assert await core.services.session.get_session(old_terminated.id) is None
        assert await core.services.session.get_session(recent_terminated.id) is not None
        assert await core.services.session.get_session(old_live.id) is not None

    async def test_failure_is_isolated(self, core, monkeypatch):
        await add_session(core, is_terminated=True, days_idle=31)
        calls = 0
        original = core.services.session.delete_terminated_older_than

        async def flaky(cutoff_ms):
            nonlocal calls
            calls += 1
            if calls == 1:
                raise ConnectionError("store unreachable")
            return await original(cutoff_ms)

        monkeypatch.setattr(core.services.session, "delete_terminated_older_than", flaky)

        assert await core.services.sweeper.sweep_once() is None
        assert await core.services.sweeper.sweep_once() == 1

    async def test_overlapping_run_is_skipped(self, core, monkeypatch):
        release = asyncio.Event()

        async def slow(cutoff_ms):
            await release.wait()
            return 0

        monkeypatch.setattr(core.services.session, "delete_terminated_older_than", slow)

        first = asyncio.create_task(core.services.sweeper.sweep_once())
        await asyncio.sleep(0)
        assert await core.services.sweeper.sweep_once() is None

        release.set()
        assert await first == 0


class TestLoop:
    async def test_loop_runs_and_stops(self, core, monkeypatch):
        sweeps = 0

        async def counting_sweep(at_ms=None):
            nonlocal sweeps
            sweeps += 1
            return 0

        sweeper = core.services.sweeper
        monkeypatch.setattr(sweeper, "sweep_once", counting_sweep)
        monkeypatch.setattr(type(sweeper), "interval_seconds", property(lambda self: 0.01))

        await sweeper.on_start()
        await asyncio.sleep(0.05)
        await sweeper.on_stop()

        assert sweeps >= 1
        assert sweeper._task is None

    async def test_disabled_with_zero_interval(self, core):
        # The test config sets the interval to zero
        await core.services.sweeper.on_start()
        assert core.services.sweeper._task is None
