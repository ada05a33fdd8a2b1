"""Matchup data store: TTL cache, single-flight fetches and forced refresh."""

import asyncio
import dataclasses
import logging
import time
from collections import defaultdict
from collections.abc import Awaitable, Callable, Hashable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Optional

from .base_adapter import BaseAdapter
from .constants import (
    CHANGED_POINTS_THRESHOLD,
    DEFAULT_TTL,
    FETCH_TIMEOUT,
    FORCE_REFRESH_THROTTLE,
    LEAGUE_INFO_TTL,
)
from .errors import DecodingError, NetworkError, NoDataAvailable, RateLimited, SnapshotNotFound
from .models import (
    CanonicalPlayerID,
    LeagueInfo,
    LeagueKey,
    LeagueRef,
    MatchupSnapshot,
    PlatformSource,
    RawStatRecord,
    RefreshEvent,
    RefreshState,
    SnapshotID,
)
from .validators import validate_snapshot

logger = logging.getLogger('warroom.store')

FETCH_ERRORS = (NetworkError, DecodingError)


@dataclass(frozen=True)
class _Cached:
    value: Any
    fetched_at: float


def changed_players(
    old: Iterable[MatchupSnapshot], new: Iterable[MatchupSnapshot]
) -> frozenset:
    """Players whose points moved by more than the change threshold between two fetches."""
    before = {entry.player_id: entry.scored_points for snapshot in old for entry in snapshot.iter_entries()}
    changed = set()
    for snapshot in new:
        for entry in snapshot.iter_entries():
            previous = before.get(entry.player_id)
            if previous is not None and abs(entry.scored_points - previous) > CHANGED_POINTS_THRESHOLD:
                changed.add(entry.player_id)
    return frozenset(changed)


class Subscription:
    """
    Async iterator of RefreshEvents for one league.

    Example:
        async with store.subscribe(league) as events:
            async for event in events:
                render(event.snapshots, stale=event.is_stale)
    """

    _CLOSED = object()

    def __init__(self, store: 'MatchupDataStore', league: LeagueRef):
        self.league = league
        self._store = store
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def push(self, event: RefreshEvent) -> None:
        if not self._closed:
            self._queue.put_nowait(event)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._store._unsubscribe(self)
        self._queue.put_nowait(self._CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        return self._queue.qsize()

    def __aiter__(self) -> 'Subscription':
        return self

    async def __anext__(self) -> RefreshEvent:
        item = await self._queue.get()
        if item is self._CLOSED:
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> 'Subscription':
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()


class MatchupDataStore:
    """
    Single owner of every cached matchup snapshot.

    The unit a platform returns is a league-week, so that is what gets
    fetched and cached; ``get`` picks one snapshot out of it. Concurrent
    requests for the same key share one in-flight task. Each key carries a
    generation number: a fetch only writes to the cache if the generation it
    started under is still current, so invalidation or a week change while a
    fetch is outstanding leaves the cache untouched by the late result.

    Fetch failures never evict cached data. When a cached value exists it is
    served (and the error is recorded on the league's RefreshState and pushed
    to subscribers); only when nothing is cached does the caller see
    NoDataAvailable, or RateLimited so it can back off.
    """

    def __init__(
        self,
        adapters: Mapping[PlatformSource, BaseAdapter],
        *,
        default_ttl: float = DEFAULT_TTL,
        throttle_interval: float = FORCE_REFRESH_THROTTLE,
        fetch_timeout: float = FETCH_TIMEOUT,
        league_info_ttl: float = LEAGUE_INFO_TTL,
        clock: Callable[[], float] = time.time,
    ):
        self._adapters = dict(adapters)
        self.default_ttl = default_ttl
        self.throttle_interval = throttle_interval
        self.fetch_timeout = fetch_timeout
        self.league_info_ttl = league_info_ttl
        self.clock = clock

        self._matchups: dict[LeagueKey, _Cached] = {}
        self._box_scores: dict[SnapshotID, _Cached] = {}
        self._league_info: dict[LeagueRef, _Cached] = {}

        # key -> (task, generation the task was started under)
        self._inflight: dict[Hashable, tuple[asyncio.Task, int]] = {}
        self._generations: defaultdict[Hashable, int] = defaultdict(int)

        self._tracked: dict[LeagueRef, int] = {}
        self._states: dict[LeagueRef, RefreshState] = {}
        self._last_forced: dict[LeagueRef, float] = {}
        self._subscribers: defaultdict[LeagueRef, list[Subscription]] = defaultdict(list)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get(
        self, snapshot_id: SnapshotID, max_staleness: Optional[float] = None
    ) -> MatchupSnapshot:
        """
        One matchup snapshot, at most ``max_staleness`` seconds old when the
        platform is reachable (default: the store TTL).

        Raises:
            SnapshotNotFound: The league-week has no such matchup
            RateLimited: Rate limited and nothing cached
            NoDataAvailable: Fetch failed and nothing cached
        """
        snapshots = await self.get_league_matchups(snapshot_id.league, snapshot_id.week, max_staleness)
        for snapshot in snapshots:
            if snapshot.snapshot_id.matchup_id == snapshot_id.matchup_id:
                return snapshot
        raise SnapshotNotFound(
            f'matchup {snapshot_id.matchup_id} not found in {snapshot_id.league} week {snapshot_id.week}'
        )

    async def get_league_matchups(
        self, league: LeagueRef, week: int, max_staleness: Optional[float] = None
    ) -> list[MatchupSnapshot]:
        """Every matchup of a league-week, under the same staleness and error policy as get()."""
        self._tracked.setdefault(league, week)
        key = LeagueKey(league.league_id, league.source, week)
        staleness = self.default_ttl if max_staleness is None else max_staleness

        cached = self._matchups.get(key)
        if cached is not None and self.clock() - cached.fetched_at <= staleness:
            logger.debug(f'Cache hit for {league} week {week}')
            return list(cached.value)

        try:
            return list(await self._fetch_league_week(key))
        except FETCH_ERRORS as e:
            return list(self._fallback(key, self._matchups.get(key), e))

    async def get_box_score(
        self, snapshot_id: SnapshotID, max_staleness: Optional[float] = None
    ) -> dict[CanonicalPlayerID, RawStatRecord]:
        """Raw per-player stats for one matchup, cached and deduplicated like matchups."""
        staleness = self.default_ttl if max_staleness is None else max_staleness
        cached = self._box_scores.get(snapshot_id)
        if cached is not None and self.clock() - cached.fetched_at <= staleness:
            return dict(cached.value)

        adapter = self._adapter(snapshot_id.source)

        def commit(records):
            self._box_scores[snapshot_id] = _Cached(dict(records), self.clock())

        try:
            records = await self._single_flight(
                ('box_score', snapshot_id),
                lambda: adapter.fetch_box_score(
                    snapshot_id.league_id, snapshot_id.matchup_id, snapshot_id.week
                ),
                commit,
            )
        except FETCH_ERRORS as e:
            return dict(self._fallback(snapshot_id, self._box_scores.get(snapshot_id), e))
        return dict(records)

    async def get_league_info(
        self, league: LeagueRef, max_staleness: Optional[float] = None
    ) -> LeagueInfo:
        staleness = self.league_info_ttl if max_staleness is None else max_staleness
        cached = self._league_info.get(league)
        if cached is not None and self.clock() - cached.fetched_at <= staleness:
            return cached.value

        adapter = self._adapter(league.source)

        def commit(info):
            self._league_info[league] = _Cached(info, self.clock())

        try:
            return await self._single_flight(
                ('league_info', league), lambda: adapter.fetch_league(league.league_id), commit
            )
        except FETCH_ERRORS as e:
            return self._fallback(league, self._league_info.get(league), e)

    def peek(self, league: LeagueRef, week: int) -> Optional[list[MatchupSnapshot]]:
        """Cached snapshots for a league-week without fetching, however old."""
        cached = self._matchups.get(LeagueKey(league.league_id, league.source, week))
        return list(cached.value) if cached is not None else None

    def last_error(self, league: LeagueRef) -> Optional[Exception]:
        """Error from the most recent failed fetch of this league, cleared on success."""
        state = self._states.get(league)
        return state.last_error if state is not None else None

    def refresh_state(self, league: LeagueRef) -> RefreshState:
        state = self._state(league)
        state.in_flight = any(
            isinstance(key, LeagueKey) and key.league == league for key in self._inflight
        )
        return state

    def tracked_leagues(self) -> dict[LeagueRef, int]:
        return dict(self._tracked)

    # ------------------------------------------------------------------
    # Refresh / invalidation
    # ------------------------------------------------------------------

    def track(self, league: LeagueRef, week: int) -> None:
        """
        Make ``week`` the current week for a league.

        Switching weeks bumps the old week's generation, so a fetch for it
        that is still outstanding completes for its waiters but is not cached.
        """
        previous = self._tracked.get(league)
        if previous is not None and previous != week:
            self._generations[LeagueKey(league.league_id, league.source, previous)] += 1
            logger.debug(f'{league} moved from week {previous} to week {week}')
        self._tracked[league] = week
        self._state(league)

    def untrack(self, league: LeagueRef) -> None:
        self._tracked.pop(league, None)

    async def refresh(
        self, league: Optional[LeagueRef] = None, force: bool = False
    ) -> list[RefreshEvent]:
        """
        Refresh one league, or every tracked league when ``league`` is None.

        Leagues are fetched concurrently. Without ``force`` a league whose
        cache is still within the default TTL is left alone. With ``force``
        staleness is ignored, but a second forced refresh of the same league
        inside the throttle interval is a no-op that reports the current
        cached value.

        Fetch errors do not raise; they come back on the returned events.
        """
        if league is not None:
            if league not in self._tracked:
                logger.warning(f'Refresh requested for untracked league {league}')
                return []
            leagues = [league]
        else:
            leagues = list(self._tracked)

        events = await asyncio.gather(*(self._refresh_one(ref, force) for ref in leagues))
        return list(events)

    def invalidate(self, league: LeagueRef, week: Optional[int] = None) -> None:
        """Drop cached matchups for a league (one week or all) and orphan their in-flight fetches."""
        for key in list(self._matchups):
            if key.league == league and (week is None or key.week == week):
                del self._matchups[key]
        for key in set(self._generations) | set(self._inflight):
            if isinstance(key, LeagueKey) and key.league == league and (week is None or key.week == week):
                self._generations[key] += 1
        for snapshot_id in list(self._box_scores):
            if snapshot_id.league == league and (week is None or snapshot_id.week == week):
                del self._box_scores[snapshot_id]
        self._league_info.pop(league, None)

    def clear(self) -> None:
        """Drop every cache entry; outstanding fetches will not be committed."""
        for key in set(self._generations) | set(self._inflight):
            self._generations[key] += 1
        self._matchups.clear()
        self._box_scores.clear()
        self._league_info.clear()
        self._last_forced.clear()

    def set_cadence(self, cadence: float, league: Optional[LeagueRef] = None) -> None:
        leagues = [league] if league is not None else list(self._tracked)
        for ref in leagues:
            self._state(ref).cadence = cadence

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, league: LeagueRef) -> Subscription:
        """
        Stream of RefreshEvents for a league. The current cached state, if
        any, is delivered first.
        """
        subscription = Subscription(self, league)
        self._subscribers[league].append(subscription)

        week = self._tracked.get(league)
        if week is not None:
            cached = self._matchups.get(LeagueKey(league.league_id, league.source, week))
            if cached is not None:
                subscription.push(self._current_event(league, week))
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        subscribers = self._subscribers.get(subscription.league, [])
        if subscription in subscribers:
            subscribers.remove(subscription)

    def _emit(self, event: RefreshEvent) -> None:
        for subscription in list(self._subscribers.get(event.league, [])):
            subscription.push(event)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _adapter(self, source: PlatformSource) -> BaseAdapter:
        try:
            return self._adapters[source]
        except KeyError:
            raise ValueError(f'No adapter registered for platform {source.value}') from None

    def _state(self, league: LeagueRef) -> RefreshState:
        state = self._states.get(league)
        if state is None:
            state = RefreshState(cadence=self.default_ttl)
            self._states[league] = state
        return state

    def _current_event(self, league: LeagueRef, week: int) -> RefreshEvent:
        cached = self._matchups.get(LeagueKey(league.league_id, league.source, week))
        state = self._state(league)
        return RefreshEvent(
            league=league,
            week=week,
            snapshots=tuple(cached.value) if cached is not None else (),
            error=state.last_error,
            is_stale=state.last_error is not None,
            emitted_at=self.clock(),
        )

    async def _refresh_one(self, league: LeagueRef, force: bool) -> RefreshEvent:
        week = self._tracked[league]
        key = LeagueKey(league.league_id, league.source, week)
        now = self.clock()

        if force:
            last = self._last_forced.get(league)
            if last is not None and now - last < self.throttle_interval:
                logger.debug(f'Forced refresh of {league} throttled ({now - last:.2f}s since last)')
                return self._current_event(league, week)
            self._last_forced[league] = now
            self._state(league).last_error = None
        else:
            cached = self._matchups.get(key)
            if cached is not None and now - cached.fetched_at <= self.default_ttl:
                return self._current_event(league, week)

        try:
            snapshots = await self._fetch_league_week(key)
        except FETCH_ERRORS as e:
            cached = self._matchups.get(key)
            return RefreshEvent(
                league=league,
                week=week,
                snapshots=tuple(cached.value) if cached is not None else (),
                error=e,
                is_stale=cached is not None,
                emitted_at=self.clock(),
            )
        return RefreshEvent(league=league, week=week, snapshots=tuple(snapshots), emitted_at=self.clock())

    async def _fetch_league_week(self, key: LeagueKey) -> tuple[MatchupSnapshot, ...]:
        adapter = self._adapter(key.source)

        async def fetch():
            return await adapter.fetch_matchups(key.league_id, key.week)

        def commit(snapshots):
            self._commit_league_week(key, snapshots)

        def failed(error):
            self._record_failure(key, error)

        return await self._single_flight(key, fetch, commit, failed, stamp=True)

    async def _single_flight(
        self,
        key: Hashable,
        fetch: Callable[[], Awaitable],
        commit: Callable[[Any], None],
        on_failure: Optional[Callable[[Exception], None]] = None,
        stamp: bool = False,
    ):
        generation = self._generations[key]
        task, started_under = self._inflight.get(key, (None, None))
        if task is None or started_under != generation:
            # a superseded fetch keeps running for its own waiters but is never joined
            task = asyncio.ensure_future(
                self._run_fetch(key, generation, fetch, commit, on_failure, stamp)
            )
            self._inflight[key] = (task, generation)
            task.add_done_callback(lambda done, k=key: self._fetch_done(k, done))
        else:
            logger.debug(f'Joining in-flight fetch for {key}')
        # shield: a cancelled waiter must not cancel the fetch other waiters share
        return await asyncio.shield(task)

    def _fetch_done(self, key: Hashable, task: asyncio.Task) -> None:
        current = self._inflight.get(key)
        if current is not None and current[0] is task:
            del self._inflight[key]
        if not task.cancelled():
            # mark retrieved; waiters that were cancelled never see it
            task.exception()

    async def _run_fetch(self, key, generation, fetch, commit, on_failure, stamp):
        logger.debug(f'Fetching {key}')
        try:
            try:
                result = await asyncio.wait_for(fetch(), timeout=self.fetch_timeout)
            except asyncio.TimeoutError as e:
                raise NetworkError(f'fetch for {key} timed out after {self.fetch_timeout}s') from e
        except FETCH_ERRORS as e:
            if on_failure is not None and self._generations[key] == generation:
                on_failure(e)
            raise

        if stamp:
            fetched_at = self.clock()
            result = tuple(dataclasses.replace(item, fetched_at=fetched_at) for item in result)

        if self._generations[key] == generation:
            commit(result)
        else:
            logger.debug(f'Discarding superseded result for {key}')
        return result

    def _commit_league_week(self, key: LeagueKey, snapshots: tuple[MatchupSnapshot, ...]) -> None:
        previous = self._matchups.get(key)
        fetched_at = snapshots[0].fetched_at if snapshots else self.clock()
        self._matchups[key] = _Cached(snapshots, fetched_at)

        state = self._state(key.league)
        state.last_fetch = fetched_at
        state.last_error = None

        for snapshot in snapshots:
            for warning in validate_snapshot(snapshot):
                logger.warning(f'{key.league} week {key.week}: {warning}')

        changed = changed_players(previous.value, snapshots) if previous is not None else frozenset()
        logger.info(
            f'Refreshed {key.league} week {key.week}: {len(snapshots)} matchups, '
            f'{len(changed)} players changed'
        )
        self._emit(
            RefreshEvent(
                league=key.league,
                week=key.week,
                snapshots=snapshots,
                emitted_at=fetched_at,
                changed_players=changed,
            )
        )

    def _record_failure(self, key: LeagueKey, error: Exception) -> None:
        state = self._state(key.league)
        state.last_error = error
        cached = self._matchups.get(key)
        if isinstance(error, RateLimited):
            logger.warning(f'Rate limited refreshing {key.league} week {key.week}')
        elif cached is not None:
            logger.warning(f'Serving stale data for {key.league} week {key.week}: {error}')
        else:
            logger.warning(f'Fetch failed for {key.league} week {key.week} with nothing cached: {error}')
        self._emit(
            RefreshEvent(
                league=key.league,
                week=key.week,
                snapshots=tuple(cached.value) if cached is not None else (),
                error=error,
                is_stale=cached is not None,
                emitted_at=self.clock(),
            )
        )

    def _fallback(self, what, cached: Optional[_Cached], error: Exception):
        """Serve the cached value for a failed fetch, or raise if there is none."""
        if cached is not None:
            return cached.value
        if isinstance(error, RateLimited):
            raise error
        raise NoDataAvailable(f'no data available for {what}: {error}') from error
