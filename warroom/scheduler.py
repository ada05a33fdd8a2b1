"""Adaptive refresh scheduler: poll fast while games are live, slow otherwise."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .constants import IDLE_INTERVAL, LIVE_INTERVAL, MAX_BACKOFF_MULTIPLIER, STARTING_SOON_INTERVAL
from .errors import RateLimited, WarRoomError
from .game_status import GameStatusSource, GameStatusSummary
from .models import LeagueRef, RefreshEvent
from .store import MatchupDataStore

logger = logging.getLogger('warroom.scheduler')


class CadenceState(Enum):
    IDLE = 'idle'
    LIVE = 'live'


@dataclass
class TickResult:
    """What a single scheduler tick did."""

    skipped: bool = False
    state: CadenceState = CadenceState.IDLE
    transitioned: bool = False
    rate_limited: bool = False
    interval: float = 0.0
    events: list[RefreshEvent] = field(default_factory=list)


class RefreshScheduler:
    """
    Drives ``store.refresh(None, force=True)`` on a cadence chosen from
    live-game state.

    Idle -> Live happens on the first poll that sees a live game, and that
    tick refreshes immediately. Live -> Idle waits for ``idle_after_cycles``
    consecutive polls with nothing live. While the consumer is inactive,
    ticks are skipped outright. Repeated rate limiting doubles the interval
    up to ``max_backoff`` times; one clean tick resets it.
    """

    def __init__(
        self,
        store: MatchupDataStore,
        game_status: GameStatusSource,
        *,
        live_interval: float = LIVE_INTERVAL,
        idle_interval: float = IDLE_INTERVAL,
        starting_soon_interval: float = STARTING_SOON_INTERVAL,
        max_backoff: int = MAX_BACKOFF_MULTIPLIER,
        idle_after_cycles: int = 1,
        is_active: Callable[[], bool] = lambda: True,
        sleep: Callable[[float], Awaitable] = asyncio.sleep,
    ):
        self.store = store
        self.game_status = game_status
        self.live_interval = live_interval
        self.idle_interval = idle_interval
        self.starting_soon_interval = starting_soon_interval
        self.max_backoff = max_backoff
        self.idle_after_cycles = idle_after_cycles
        self.is_active = is_active
        self._sleep = sleep

        self.state = CadenceState.IDLE
        self.backoff = 1
        self._quiet_polls = 0
        self._starting_soon = False
        self._wake = asyncio.Event()

    @property
    def current_interval(self) -> float:
        if self.state is CadenceState.LIVE:
            base = self.live_interval
        elif self._starting_soon:
            base = self.starting_soon_interval
        else:
            base = self.idle_interval
        return base * self.backoff

    async def tick(self) -> TickResult:
        """Run one scheduling cycle."""
        if not self.is_active():
            logger.debug('Consumer inactive; skipping tick')
            return TickResult(skipped=True, state=self.state, interval=self.current_interval)

        rate_limited = False
        summary: Optional[GameStatusSummary] = None
        try:
            summary = await self.game_status.live_games()
        except RateLimited:
            rate_limited = True
            logger.warning('Game status poll rate limited')
        except WarRoomError as e:
            logger.warning(f'Game status poll failed: {e}')

        transitioned = False
        if summary is not None:
            transitioned = self._update_state(summary)

        events = await self.store.refresh(None, force=True)
        if any(isinstance(event.error, RateLimited) for event in events):
            rate_limited = True

        self._update_backoff(rate_limited)
        self.store.set_cadence(self.current_interval)

        return TickResult(
            state=self.state,
            transitioned=transitioned,
            rate_limited=rate_limited,
            interval=self.current_interval,
            events=events,
        )

    async def manual_refresh(self, league: Optional[LeagueRef] = None) -> list[RefreshEvent]:
        """
        User-triggered refresh. Ignores the cadence but not the store's
        force-refresh throttle, and restarts the countdown to the next tick.
        """
        events = await self.store.refresh(league, force=True)
        self._wake.set()
        return events

    async def run(self, stop: asyncio.Event) -> None:
        """Tick, then wait out the current interval, until ``stop`` is set."""
        logger.info(f'Refresh scheduler started ({self.state.value}, {self.current_interval:.0f}s)')
        while not stop.is_set():
            await self.tick()
            await self._wait(stop)
        logger.info('Refresh scheduler stopped')

    async def _wait(self, stop: asyncio.Event) -> None:
        """Sleep one interval; a manual refresh restarts the countdown."""
        while True:
            self._wake.clear()
            waiters = {
                asyncio.ensure_future(self._sleep(self.current_interval)),
                asyncio.ensure_future(stop.wait()),
                asyncio.ensure_future(self._wake.wait()),
            }
            _, pending = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()
            if stop.is_set() or not self._wake.is_set():
                return

    def _update_state(self, summary: GameStatusSummary) -> bool:
        self._starting_soon = summary.starting_soon

        if summary.any_live:
            self._quiet_polls = 0
            if self.state is CadenceState.IDLE:
                self.state = CadenceState.LIVE
                logger.info(f'{summary.live} live game(s); switching to {self.live_interval:.0f}s cadence')
                return True
            return False

        self._quiet_polls += 1
        if self.state is CadenceState.LIVE and self._quiet_polls >= self.idle_after_cycles:
            self.state = CadenceState.IDLE
            logger.info(f'No live games; switching to {self.current_interval:.0f}s cadence')
            return True
        return False

    def _update_backoff(self, rate_limited: bool) -> None:
        if rate_limited:
            self.backoff = min(self.backoff * 2, self.max_backoff)
            logger.warning(f'Rate limited; refresh interval now {self.current_interval:.0f}s')
        else:
            self.backoff = 1
