"""Shared fixtures: identity rows, fake adapters and a controllable clock."""

import asyncio

import pytest

from warroom.errors import SnapshotNotFound
from warroom.identity import IdentityMapper
from warroom.models import (
    LeagueInfo,
    LeagueRef,
    LeagueStatus,
    MatchupSnapshot,
    MatchupStatus,
    PlatformSource,
    RawStatRecord,
    RosterEntry,
    SnapshotID,
    TeamSnapshot,
)

IDENTITY_ROWS = [
    {
        'canonical_id': '00-0033873',
        'name': 'Patrick Mahomes',
        'position': 'QB',
        'team': 'KC',
        'platform_a_ids': ['4046'],
        'platform_b_ids': ['3139477'],
    },
    {
        'canonical_id': '00-0036322',
        'name': 'Justin Jefferson',
        'position': 'WR',
        'team': 'MIN',
        'platform_a_ids': ['6794'],
        'platform_b_ids': ['4262921'],
    },
    {
        'canonical_id': '00-0030506',
        'name': 'Travis Kelce',
        'position': 'TE',
        'team': 'KC',
        'platform_a_ids': ['1466'],
        'platform_b_ids': ['15847'],
    },
    {
        'canonical_id': '00-0034857',
        'name': 'Josh Allen',
        'position': 'QB',
        'team': 'BUF',
        'platform_a_ids': ['4984'],
        'platform_b_ids': ['3918298'],
    },
]

LEAGUE = LeagueRef('1048293', PlatformSource.A)


@pytest.fixture
def anyio_backend():
    return 'asyncio'


@pytest.fixture
def identity():
    return IdentityMapper.from_rows(IDENTITY_ROWS)


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


def make_snapshot(
    matchup_id='1',
    home_score=100.0,
    away_score=90.0,
    status=MatchupStatus.LIVE,
    week=3,
    league=LEAGUE,
    home_points=None,
):
    """A two-team snapshot with one starter per side."""
    home_points = home_score if home_points is None else home_points
    home = TeamSnapshot(
        team_id=f'{league.source.value}:{matchup_id}-home',
        name='Home',
        score=home_score,
        projected_score=home_score,
        entries=(RosterEntry('00-0036322', True, 'WR', points=home_points),),
    )
    away = TeamSnapshot(
        team_id=f'{league.source.value}:{matchup_id}-away',
        name='Away',
        score=away_score,
        projected_score=away_score,
        entries=(RosterEntry('00-0033873', True, 'QB', points=away_score),),
    )
    return MatchupSnapshot(
        snapshot_id=SnapshotID(league.league_id, matchup_id, league.source, week),
        home=home,
        away=away,
        status=status,
    )


class FakeAdapter:
    """
    Stand-in for a platform adapter.

    ``results`` is consumed one per fetch_matchups call; an Exception in the
    list is raised instead of returned. The last result repeats.
    """

    def __init__(self, results=None, delay: float = 0.0, gate: asyncio.Event = None, info=None):
        self.results = list(results or [[make_snapshot()]])
        self.delay = delay
        self.gate = gate
        self.info = info
        self.calls = 0
        self.box_score_calls = 0
        self.league_calls = 0
        self.box_scores = {}

    async def fetch_matchups(self, league_id, week):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        index = min(self.calls - 1, len(self.results) - 1)
        result = self.results[index]
        if isinstance(result, Exception):
            raise result
        return [
            MatchupSnapshot(
                snapshot_id=SnapshotID(league_id, s.snapshot_id.matchup_id, s.snapshot_id.source, week),
                home=s.home,
                away=s.away,
                status=s.status,
            )
            for s in result
        ]

    async def fetch_box_score(self, league_id, matchup_id, week):
        self.box_score_calls += 1
        if matchup_id not in self.box_scores:
            raise SnapshotNotFound(matchup_id)
        return dict(self.box_scores[matchup_id])

    async def fetch_league(self, league_id):
        self.league_calls += 1
        if self.info is not None:
            return self.info
        return LeagueInfo(
            league_id=league_id,
            source=PlatformSource.A,
            name='Test League',
            season=2026,
            status=LeagueStatus.IN_SEASON,
            total_teams=2,
            current_week=3,
        )

    def set_box_score(self, matchup_id, *records: RawStatRecord):
        self.box_scores[matchup_id] = {record.player_id: record for record in records}
