"""Tests for the adaptive refresh scheduler."""

import asyncio

import pytest

from conftest import LEAGUE, FakeAdapter
from warroom.errors import DecodingError, RateLimited
from warroom.game_status import GameStatusSummary
from warroom.models import PlatformSource, RefreshEvent
from warroom.scheduler import CadenceState, RefreshScheduler
from warroom.store import MatchupDataStore


class ScriptedGameStatus:
    """Returns (or raises) the scripted poll results in order; the last one repeats."""

    def __init__(self, *results):
        self.results = list(results) or [GameStatusSummary()]
        self.polls = 0

    async def live_games(self):
        self.polls += 1
        result = self.results[min(self.polls - 1, len(self.results) - 1)]
        if isinstance(result, Exception):
            raise result
        return result


class RecordingStore:
    """Records refresh calls and cadence updates."""

    def __init__(self, events=()):
        self.events = list(events)
        self.refreshes = []
        self.cadence = None

    async def refresh(self, league=None, force=False):
        self.refreshes.append((league, force))
        return list(self.events)

    def set_cadence(self, cadence, league=None):
        self.cadence = cadence


LIVE = GameStatusSummary(live=2)
QUIET = GameStatusSummary(live=0)


def _scheduler(store, game_status, **kwargs):
    kwargs.setdefault('live_interval', 15.0)
    kwargs.setdefault('idle_interval', 300.0)
    kwargs.setdefault('starting_soon_interval', 60.0)
    kwargs.setdefault('max_backoff', 8)
    return RefreshScheduler(store, game_status, **kwargs)


class TestTransitions:
    """Tests for Idle <-> Live cadence switching."""

    @pytest.mark.anyio
    async def test_idle_to_live(self):
        """Test the first poll that sees a live game switches to the live cadence and refreshes."""
        store = RecordingStore()
        scheduler = _scheduler(store, ScriptedGameStatus(LIVE))

        result = await scheduler.tick()

        assert result.transitioned
        assert result.state is CadenceState.LIVE
        assert result.interval == 15.0
        assert store.refreshes == [(None, True)]
        assert store.cadence == 15.0

    @pytest.mark.anyio
    async def test_live_to_idle_after_quiet_cycle(self):
        """Test one quiet poll returns the scheduler to the idle cadence."""
        scheduler = _scheduler(RecordingStore(), ScriptedGameStatus(LIVE, QUIET))

        await scheduler.tick()
        result = await scheduler.tick()

        assert result.transitioned
        assert result.state is CadenceState.IDLE
        assert result.interval == 300.0

    @pytest.mark.anyio
    async def test_idle_after_several_cycles(self):
        """Test Live -> Idle can require several consecutive quiet polls."""
        scheduler = _scheduler(
            RecordingStore(), ScriptedGameStatus(LIVE, QUIET, QUIET), idle_after_cycles=2
        )

        await scheduler.tick()
        assert (await scheduler.tick()).state is CadenceState.LIVE
        assert (await scheduler.tick()).state is CadenceState.IDLE

    @pytest.mark.anyio
    async def test_starting_soon_cadence(self):
        """Test the idle cadence tightens when a game kicks off soon."""
        scheduler = _scheduler(RecordingStore(), ScriptedGameStatus(GameStatusSummary(starting_soon=True)))
        result = await scheduler.tick()
        assert result.state is CadenceState.IDLE
        assert result.interval == 60.0

    @pytest.mark.anyio
    async def test_poll_failure_keeps_state(self):
        """Test a failed game-status poll keeps the state and still refreshes."""
        store = RecordingStore()
        scheduler = _scheduler(store, ScriptedGameStatus(LIVE, DecodingError('bad scoreboard')))

        await scheduler.tick()
        result = await scheduler.tick()

        assert result.state is CadenceState.LIVE
        assert not result.transitioned
        assert len(store.refreshes) == 2


class TestInactive:
    """Tests for the consumer-inactive pause."""

    @pytest.mark.anyio
    async def test_inactive_tick_skipped(self):
        """Test no poll and no refresh happen while the consumer is inactive."""
        store = RecordingStore()
        game_status = ScriptedGameStatus(LIVE)
        scheduler = _scheduler(store, game_status, is_active=lambda: False)

        result = await scheduler.tick()

        assert result.skipped
        assert game_status.polls == 0
        assert store.refreshes == []


class TestBackoff:
    """Tests for rate-limit backoff."""

    @pytest.mark.anyio
    async def test_backoff_doubles_and_caps(self):
        """Test repeated rate limiting doubles the interval up to the cap."""
        scheduler = _scheduler(RecordingStore(), ScriptedGameStatus(RateLimited()), max_backoff=4)

        intervals = [(await scheduler.tick()).interval for _ in range(4)]

        assert intervals == [600.0, 1200.0, 1200.0, 1200.0]

    @pytest.mark.anyio
    async def test_rate_limited_refresh_counts(self):
        """Test a rate-limited refresh event also backs off."""
        event = RefreshEvent(league=LEAGUE, week=3, error=RateLimited())
        scheduler = _scheduler(RecordingStore([event]), ScriptedGameStatus(LIVE))

        result = await scheduler.tick()

        assert result.rate_limited
        assert result.interval == 30.0

    @pytest.mark.anyio
    async def test_clean_tick_resets(self):
        """Test one clean tick resets the backoff."""
        scheduler = _scheduler(RecordingStore(), ScriptedGameStatus(RateLimited(), RateLimited(), QUIET))

        await scheduler.tick()
        await scheduler.tick()
        result = await scheduler.tick()

        assert scheduler.backoff == 1
        assert result.interval == 300.0


class TestManualRefresh:
    """Tests for user-triggered refresh."""

    @pytest.mark.anyio
    async def test_manual_refresh_is_throttled(self):
        """Test two manual refreshes in quick succession hit the platform once."""
        adapter = FakeAdapter()
        store = MatchupDataStore({PlatformSource.A: adapter}, throttle_interval=2.0)
        store.track(LEAGUE, 3)
        scheduler = _scheduler(store, ScriptedGameStatus())

        first = await scheduler.manual_refresh(LEAGUE)
        second = await scheduler.manual_refresh(LEAGUE)

        assert adapter.calls == 1
        assert first[0].snapshots == second[0].snapshots


class TestRun:
    """Tests for the scheduler loop."""

    @pytest.mark.anyio
    async def test_run_until_stopped(self):
        """Test the loop ticks, waits out the interval and stops when asked."""
        stop = asyncio.Event()
        slept = []

        async def sleep(interval):
            slept.append(interval)
            stop.set()

        store = RecordingStore()
        scheduler = _scheduler(store, ScriptedGameStatus(LIVE), sleep=sleep)

        await asyncio.wait_for(scheduler.run(stop), timeout=1)

        assert len(store.refreshes) == 1
        assert slept == [15.0]

    @pytest.mark.anyio
    async def test_manual_refresh_restarts_wait(self):
        """Test each manual refresh during a wait starts a fresh full interval."""
        stop = asyncio.Event()
        slept = []

        async def sleep(interval):
            slept.append(interval)
            await asyncio.Event().wait()

        async def settle():
            for _ in range(10):
                await asyncio.sleep(0)

        store = RecordingStore()
        scheduler = _scheduler(store, ScriptedGameStatus(LIVE), sleep=sleep)
        runner = asyncio.ensure_future(scheduler.run(stop))
        await settle()

        for _ in range(3):
            await scheduler.manual_refresh(LEAGUE)
            await settle()

        stop.set()
        await asyncio.wait_for(runner, timeout=1)

        assert slept == [15.0] * 4
        assert len(store.refreshes) == 4
