"""Live-game detection feeding the refresh scheduler."""

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from .constants import LIVE_GAME_MARKERS, STARTING_SOON_WINDOW
from .errors import DecodingError
from .http_client import PlatformHTTPClient
from .models import MatchupStatus

logger = logging.getLogger('warroom.game_status')


@dataclass(frozen=True)
class GameStatusSummary:
    """What one game-status poll saw."""

    live: int = 0
    starting_soon: bool = False

    @property
    def any_live(self) -> bool:
        return self.live > 0


class GameStatusSource(Protocol):
    async def live_games(self) -> GameStatusSummary: ...


def is_live_status(state: Optional[str], detail: Optional[str] = None) -> bool:
    """
    True if a game is being played.

    ``state`` ('pre', 'in', 'post') is authoritative when present; otherwise
    the free-text detail is checked for a quarter, overtime or halftime marker.
    """
    state = (state or '').strip().lower()
    if state == 'in':
        return True
    if state in ('pre', 'post'):
        return False

    detail = (detail or '').strip().lower()
    if not detail or 'final' in detail:
        return False
    return any(marker in detail for marker in LIVE_GAME_MARKERS)


def parse_kickoff(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    text = value.replace('Z', '+00:00')
    try:
        kickoff = datetime.fromisoformat(text)
    except ValueError:
        return None
    if kickoff.tzinfo is None:
        kickoff = kickoff.replace(tzinfo=timezone.utc)
    return kickoff


class ScoreboardClient:
    """
    Polls a league-wide scoreboard feed.

    Expected payload::

        {"events": [{"date": "2026-09-13T17:00Z",
                     "status": {"type": {"state": "in", "shortDetail": "8:21 - 3rd"}}}]}
    """

    def __init__(
        self,
        http: PlatformHTTPClient,
        path: str = '',
        clock: Callable[[], float] = time.time,
        starting_soon_window: float = STARTING_SOON_WINDOW,
    ):
        self.http = http
        self.path = path
        self.clock = clock
        self.starting_soon_window = starting_soon_window

    async def live_games(self) -> GameStatusSummary:
        payload = await self.http.get_json(self.path)
        if not isinstance(payload, Mapping):
            raise DecodingError(f'scoreboard payload is {type(payload).__name__}, expected object')

        now = datetime.fromtimestamp(self.clock(), tz=timezone.utc)
        live = 0
        starting_soon = False
        for event in payload.get('events') or []:
            if not isinstance(event, Mapping):
                continue
            status_type = ((event.get('status') or {}).get('type')) or {}
            state = status_type.get('state')
            if is_live_status(state, status_type.get('shortDetail') or status_type.get('detail')):
                live += 1
                continue
            if (state or '').lower() == 'pre':
                kickoff = parse_kickoff(event.get('date'))
                if kickoff is not None:
                    until = (kickoff - now).total_seconds()
                    if 0 <= until <= self.starting_soon_window:
                        starting_soon = True

        logger.debug(f'Scoreboard: {live} live, starting soon={starting_soon}')
        return GameStatusSummary(live=live, starting_soon=starting_soon)


class SnapshotGameStatus:
    """Treats any cached LIVE matchup in a tracked league as a live game."""

    def __init__(self, store):
        self.store = store

    async def live_games(self) -> GameStatusSummary:
        live = 0
        for league, week in self.store.tracked_leagues().items():
            for snapshot in self.store.peek(league, week) or []:
                if snapshot.status is MatchupStatus.LIVE:
                    live += 1
        return GameStatusSummary(live=live)
