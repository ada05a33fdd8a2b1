"""Tests for the Platform A and Platform B adapters against canned payloads."""

import httpx
import pytest

from conftest import IDENTITY_ROWS
from warroom.base_adapter import derive_matchup_status, resolve_league_status
from warroom.errors import DecodingError, SnapshotNotFound
from warroom.http_client import PlatformHTTPClient
from warroom.identity import IdentityMapper
from warroom.models import LeagueStatus, MatchupStatus, PlatformSource, StatSource
from warroom.platform_a import PlatformAAdapter
from warroom.platform_b import PlatformBAdapter, platform_b_league_status, slot_name
from warroom.schemas import PlatformBDraftDetail, PlatformBStatus

SEASON = 2026
WEEK = 3

# =============================================================================
# Platform A fixtures
# =============================================================================

A_LEAGUE = {
    'league_id': '1048293',
    'name': 'Chopping Block',
    'season': '2026',
    'status': 'in_season',
    'total_rosters': 3,
    'settings': {'leg': 3, 'playoff_week_start': 15, 'type': 0},
    'scoring_settings': {'rec': 1.0, 'rec_yd': 0.1, 'rec_td': 6.0, 'pass_yd': 0.04, 'pass_td': 4.0},
    'roster_positions': ['QB', 'WR', 'TE', 'BN'],
}

A_MATCHUPS = [
    {
        'roster_id': 1,
        'matchup_id': 1,
        'points': 45.5,
        'projected_points': 60.0,
        'starters': ['4046', '6794', '0'],
        'players': ['4046', '6794', '1466'],
        'players_points': {'4046': 25.5, '6794': 20.0, '1466': 8.0},
    },
    {
        'roster_id': 2,
        'matchup_id': 1,
        'points': 30.0,
        'projected_points': 55.0,
        'starters': ['4984', '99999'],
        'players': ['4984', '99999'],
        'players_points': {'4984': 30.0, '99999': 0.0},
    },
    {
        'roster_id': 3,
        'matchup_id': None,
        'points': 12.0,
        'starters': ['55555'],
        'players': ['55555'],
        'players_points': {'55555': 12.0},
    },
    {'roster_id': 'not-a-roster'},
]

A_ROSTERS = [
    {'roster_id': 1, 'owner_id': 'u1'},
    {'roster_id': 2, 'owner_id': 'u2'},
    {'roster_id': 3, 'owner_id': None, 'metadata': {'team_name': 'Orphans'}},
]

A_USERS = [
    {'user_id': 'u1', 'display_name': 'alice', 'metadata': {'team_name': 'Gridiron Ghosts'}},
    {'user_id': 'u2', 'display_name': 'bob', 'metadata': {}},
]

A_STATS = {
    '6794': {'rec': 5, 'rec_yd': 80, 'rec_td': 1, 'gp': 1, 'note': 'x'},
    '4046': {'pass_yd': 300, 'pass_td': 2},
}


def platform_a_routes(overrides=None):
    routes = {
        '/v1/league/1048293': A_LEAGUE,
        f'/v1/league/1048293/matchups/{WEEK}': A_MATCHUPS,
        '/v1/league/1048293/rosters': A_ROSTERS,
        '/v1/league/1048293/users': A_USERS,
        f'/v1/stats/nfl/regular/{SEASON}/{WEEK}': A_STATS,
    }
    routes.update(overrides or {})

    def handler(request):
        if request.url.path not in routes:
            return httpx.Response(404)
        return httpx.Response(200, json=routes[request.url.path])

    return handler


@pytest.fixture
def platform_a(identity):
    def build(overrides=None):
        http = PlatformHTTPClient('https://a.test/v1', transport=httpx.MockTransport(platform_a_routes(overrides)))
        return PlatformAAdapter(http, identity, SEASON, clock=lambda: 500.0)

    return build


# =============================================================================
# Platform B fixtures
# =============================================================================


def _b_player(player_id, actual, projected=None, stats=None):
    lines = [{'scoringPeriodId': WEEK, 'statSourceId': 0, 'appliedTotal': actual, 'stats': stats or {}}]
    if projected is not None:
        lines.append({'scoringPeriodId': WEEK, 'statSourceId': 1, 'appliedTotal': projected, 'stats': {}})
    return {'player': {'id': player_id, 'stats': lines}}


B_LEAGUE = {
    'id': 88412,
    'seasonId': 2026,
    'settings': {
        'name': 'Office League',
        'size': 4,
        'scoringSettings': {
            'scoringItems': [
                {'statId': 41, 'points': 1.0},
                {'statId': 42, 'points': 0.1},
                {'statId': 43, 'points': 6.0},
            ]
        },
        'scheduleSettings': {'playoffMatchupPeriodStart': 14},
    },
    'status': {'currentMatchupPeriod': 3, 'isActive': True},
    'draftDetail': {'inProgress': False, 'completeDate': 1756000000000},
    'members': [{'id': '{M1}', 'firstName': 'Ann', 'lastName': 'Lee', 'displayName': 'annl'}],
    'teams': [
        {
            'id': 1,
            'name': 'Blitz',
            'primaryOwner': '{M1}',
            'roster': {
                'entries': [
                    {
                        'playerId': 4262921,
                        'lineupSlotId': 4,
                        'playerPoolEntry': _b_player(4262921, 19.0, 15.2, {'41': 5, '42': 80, '43': 1}),
                    },
                    {'playerId': 15847, 'lineupSlotId': 20, 'playerPoolEntry': _b_player(15847, 7.0)},
                ]
            },
        },
        {
            'id': 2,
            'location': 'River',
            'nickname': 'Hawks',
            'roster': {
                'entries': [
                    {'playerId': 3139477, 'lineupSlotId': 0, 'playerPoolEntry': _b_player(3139477, 22.4, 20.0)},
                ]
            },
        },
        {'id': 'not-a-team'},
    ],
    'schedule': [
        {
            'id': 10,
            'matchupPeriodId': 3,
            'winner': 'UNDECIDED',
            'home': {'teamId': 1, 'totalPoints': 19.0},
            'away': {'teamId': 2, 'totalPoints': 22.4},
        },
        {
            'id': 5,
            'matchupPeriodId': 2,
            'winner': 'HOME',
            'home': {'teamId': 1, 'totalPoints': 101.0},
            'away': {'teamId': 2, 'totalPoints': 90.0},
        },
        {'id': 11, 'matchupPeriodId': 3, 'home': {'teamId': 3}},
    ],
}


@pytest.fixture
def platform_b(identity):
    requests = []

    def build(payload=B_LEAGUE, status=200):
        def handler(request):
            requests.append(request)
            return httpx.Response(status, json=payload)

        http = PlatformHTTPClient('https://b.test/ffl', transport=httpx.MockTransport(handler))
        adapter = PlatformBAdapter(http, identity, SEASON, clock=lambda: 500.0)
        adapter.requests = requests
        return adapter

    return build


# =============================================================================
# Tests
# =============================================================================


class TestPlatformAMatchups:
    """Tests for Platform A matchup normalization."""

    @pytest.mark.anyio
    async def test_pairs_rosters_by_matchup_id(self, platform_a):
        """Test two rosters sharing a matchup id become one head-to-head snapshot."""
        snapshots = await platform_a().fetch_matchups('1048293', WEEK)

        assert [s.snapshot_id.matchup_id for s in snapshots] == ['1', 'solo-3']
        head_to_head = snapshots[0]
        assert head_to_head.home.team_id == 'A:1'
        assert head_to_head.away.team_id == 'A:2'
        assert head_to_head.status is MatchupStatus.LIVE
        assert head_to_head.fetched_at == 500.0

    @pytest.mark.anyio
    async def test_players_resolved_to_canonical_ids(self, platform_a):
        """Test roster entries carry canonical ids, with a fallback for unknown players."""
        snapshots = await platform_a().fetch_matchups('1048293', WEEK)
        home, away = snapshots[0].home, snapshots[0].away

        assert home.player_ids == ['00-0033873', '00-0036322', '00-0030506']
        assert 'A:99999' in away.player_ids

    @pytest.mark.anyio
    async def test_starters_and_bench(self, platform_a):
        """Test starter slots follow roster positions and empty slots are skipped."""
        home = (await platform_a().fetch_matchups('1048293', WEEK))[0].home

        assert [(e.lineup_slot, e.is_starter) for e in home.entries] == [
            ('QB', True),
            ('WR', True),
            ('BN', False),
        ]
        assert home.entry_for('00-0036322').points == 20.0

    @pytest.mark.anyio
    async def test_missing_player_points_stay_none(self, platform_a):
        """Test entries without per-player points carry None, not zero."""
        matchups = [{k: v for k, v in m.items() if k != 'players_points'} for m in A_MATCHUPS]
        adapter = platform_a({f'/v1/league/1048293/matchups/{WEEK}': matchups})

        home = (await adapter.fetch_matchups('1048293', WEEK))[0].home

        assert all(entry.points is None for entry in home.entries)
        assert home.score == 45.5

    @pytest.mark.anyio
    async def test_team_names(self, platform_a):
        """Test team names come from user metadata, display name, then roster metadata."""
        snapshots = await platform_a().fetch_matchups('1048293', WEEK)

        assert snapshots[0].home.name == 'Gridiron Ghosts'
        assert snapshots[0].home.owner_name == 'alice'
        assert snapshots[0].away.name == 'bob'
        assert snapshots[1].home.name == 'Orphans'
        assert snapshots[1].away is None

    @pytest.mark.anyio
    async def test_oversized_matchup_skipped(self, platform_a):
        """Test a matchup id shared by three rosters is skipped, not fatal."""
        records = [dict(record, matchup_id=1) for record in A_MATCHUPS[:3]]
        adapter = platform_a({f'/v1/league/1048293/matchups/{WEEK}': records})

        assert await adapter.fetch_matchups('1048293', WEEK) == []

    @pytest.mark.anyio
    async def test_non_list_payload_is_decoding_error(self, platform_a):
        """Test a matchups payload that is not a list fails the fetch."""
        adapter = platform_a({f'/v1/league/1048293/matchups/{WEEK}': {'error': 'nope'}})
        with pytest.raises(DecodingError):
            await adapter.fetch_matchups('1048293', WEEK)

    @pytest.mark.anyio
    async def test_past_week_is_final(self, platform_a):
        """Test matchups before the current week are final."""
        adapter = platform_a({'/v1/league/1048293/matchups/2': A_MATCHUPS})
        snapshots = await adapter.fetch_matchups('1048293', 2)
        assert {s.status for s in snapshots} == {MatchupStatus.FINAL}


class TestPlatformALeague:
    """Tests for Platform A league metadata and box scores."""

    @pytest.mark.anyio
    async def test_league_info(self, platform_a):
        """Test league fields and scoring ruleset are normalized."""
        info = await platform_a().fetch_league('1048293')

        assert info.name == 'Chopping Block'
        assert info.status is LeagueStatus.IN_SEASON
        assert info.current_week == 3
        assert info.season == 2026
        assert not info.is_battle_royale
        assert info.scoring_ruleset['rec'] == 1.0
        assert info.scoring_basis == 'PPR'

    @pytest.mark.anyio
    async def test_battle_royale_flag(self, platform_a):
        """Test league type 3 marks a battle-royale league."""
        league = dict(A_LEAGUE, settings={'leg': 3, 'type': 3})
        info = await platform_a({'/v1/league/1048293': league}).fetch_league('1048293')
        assert info.is_battle_royale

    @pytest.mark.anyio
    async def test_scoring_settings(self, platform_a):
        """Test the scoring settings operation returns the canonical ruleset."""
        ruleset = await platform_a().fetch_scoring_settings('1048293')
        assert ruleset == {'rec': 1.0, 'rec_yd': 0.1, 'rec_td': 6.0, 'pass_yd': 0.04, 'pass_td': 4.0}

    @pytest.mark.anyio
    async def test_box_score(self, platform_a):
        """Test box score stats are keyed by canonical id with numeric values only."""
        records = await platform_a().fetch_box_score('1048293', '1', WEEK)

        jefferson = records['00-0036322']
        assert jefferson.stats == {'rec': 5.0, 'rec_yd': 80.0, 'rec_td': 1.0, 'gp': 1.0}
        assert jefferson.stat_source is StatSource.LIVE
        assert records['A:99999'].stats == {}

    @pytest.mark.anyio
    async def test_box_score_secondary_platform_id(self):
        """Test a player rostered under a secondary platform id still gets the feed's stats."""
        rows = [dict(row) for row in IDENTITY_ROWS]
        for row in rows:
            if row['canonical_id'] == '00-0036322':
                row['platform_a_ids'] = ['1111', '6794']
        identity = IdentityMapper.from_rows(rows)
        http = PlatformHTTPClient('https://a.test/v1', transport=httpx.MockTransport(platform_a_routes()))
        adapter = PlatformAAdapter(http, identity, SEASON, clock=lambda: 500.0)

        snapshots = await adapter.fetch_matchups('1048293', WEEK)
        records = await adapter.fetch_box_score('1048293', '1', WEEK)

        assert snapshots[0].home.entry_for('00-0036322').platform_id == '6794'
        assert identity.reverse('00-0036322', PlatformSource.A) == '1111'
        assert records['00-0036322'].stats == {'rec': 5.0, 'rec_yd': 80.0, 'rec_td': 1.0, 'gp': 1.0}

    @pytest.mark.anyio
    async def test_box_score_unknown_matchup(self, platform_a):
        """Test a missing matchup id raises SnapshotNotFound."""
        with pytest.raises(SnapshotNotFound):
            await platform_a().fetch_box_score('1048293', '42', WEEK)


class TestPlatformBMatchups:
    """Tests for Platform B matchup normalization."""

    @pytest.mark.anyio
    async def test_schedule_filtered_to_week(self, platform_b):
        """Test only schedule entries for the requested period become snapshots."""
        snapshots = await platform_b().fetch_matchups('88412', WEEK)
        assert [s.snapshot_id.matchup_id for s in snapshots] == ['10', '11']

    @pytest.mark.anyio
    async def test_request_views(self, platform_b):
        """Test the request path and view parameters."""
        adapter = platform_b()
        await adapter.fetch_matchups('88412', WEEK)

        request = adapter.requests[0]
        assert request.url.path == '/ffl/seasons/2026/segments/0/leagues/88412'
        assert 'mMatchupScore' in request.url.params.get_list('view')
        assert request.url.params['scoringPeriodId'] == '3'

    @pytest.mark.anyio
    async def test_teams_and_players(self, platform_b):
        """Test teams, owners, slots and points are normalized."""
        snapshot = (await platform_b().fetch_matchups('88412', WEEK))[0]
        home, away = snapshot.home, snapshot.away

        assert home.team_id == 'B:1'
        assert home.name == 'Blitz'
        assert home.owner_name == 'Ann Lee'
        assert home.score == 19.0
        assert [(e.player_id, e.lineup_slot, e.is_starter) for e in home.entries] == [
            ('00-0036322', 'WR', True),
            ('00-0030506', 'BN', False),
        ]
        assert home.projected_score == 15.2
        assert away.name == 'River Hawks'
        assert away.entries[0].points == 22.4
        assert snapshot.status is MatchupStatus.LIVE

    @pytest.mark.anyio
    async def test_unknown_team_uses_fallback_name(self, platform_b):
        """Test a schedule side with no team record still yields a snapshot."""
        bye = (await platform_b().fetch_matchups('88412', WEEK))[1]
        assert bye.home.name == 'Team 3'
        assert bye.away is None
        assert bye.status is MatchupStatus.SCHEDULED

    @pytest.mark.anyio
    async def test_decided_matchup_is_final(self, platform_b):
        """Test a matchup with a winner is final."""
        snapshots = await platform_b().fetch_matchups('88412', 2)
        assert [s.status for s in snapshots] == [MatchupStatus.FINAL]

    @pytest.mark.anyio
    async def test_invalid_payload(self, platform_b):
        """Test a league payload missing its id is a DecodingError."""
        with pytest.raises(DecodingError):
            await platform_b({'teams': []}).fetch_matchups('88412', WEEK)

    @pytest.mark.anyio
    async def test_box_score(self, platform_b):
        """Test box score stats keep Platform B numeric ids."""
        records = await platform_b().fetch_box_score('88412', '10', WEEK)

        assert records['00-0036322'].stats == {'41': 5.0, '42': 80.0, '43': 1.0}
        assert set(records) == {'00-0036322', '00-0030506', '00-0033873'}


class TestPlatformBLeague:
    """Tests for Platform B league metadata."""

    @pytest.mark.anyio
    async def test_league_info(self, platform_b):
        """Test league metadata and converted ruleset."""
        info = await platform_b().fetch_league('88412')

        assert info.league_id == '88412'
        assert info.name == 'Office League'
        assert info.status is LeagueStatus.IN_SEASON
        assert info.playoff_week_start == 14
        assert info.is_playoffs(14)
        assert info.scoring_ruleset == {'rec': 1.0, 'rec_yd': 0.1, 'rec_td': 6.0}

    def test_draft_in_progress_wins(self):
        """Test an active draft beats every other signal."""
        status = PlatformBStatus(current_matchup_period=5, is_active=False)
        draft = PlatformBDraftDetail(in_progress=True, complete_date=123)
        assert platform_b_league_status(status, draft) is LeagueStatus.DRAFTING

    def test_completed_draft(self):
        """Test a completed draft is in season until the period counter resets."""
        draft = PlatformBDraftDetail(in_progress=False, complete_date=123)
        assert platform_b_league_status(PlatformBStatus(current_matchup_period=3), draft) is LeagueStatus.IN_SEASON
        assert platform_b_league_status(PlatformBStatus(current_matchup_period=0), draft) is LeagueStatus.COMPLETE

    def test_active_flag(self):
        """Test the active flag decides when there is no draft information."""
        assert platform_b_league_status(None, None) is LeagueStatus.PRE_DRAFT
        assert platform_b_league_status(PlatformBStatus(is_active=False), None) is LeagueStatus.COMPLETE
        assert (
            platform_b_league_status(PlatformBStatus(is_active=True, current_matchup_period=0), None)
            is LeagueStatus.DRAFTING
        )
        assert (
            platform_b_league_status(PlatformBStatus(is_active=True, current_matchup_period=2), None)
            is LeagueStatus.IN_SEASON
        )

    def test_slot_names(self):
        """Test lineup slot ids map to names with a fallback for unknown ids."""
        assert slot_name(23) == 'FLEX'
        assert slot_name(None) == 'BN'
        assert slot_name(99) == 'SLOT_99'


class TestStatusHelpers:
    """Tests for shared status derivation."""

    def test_league_status_order(self):
        """Test draft-in-progress beats every other signal."""
        assert resolve_league_status(draft_in_progress=True, complete=True) is LeagueStatus.DRAFTING
        assert resolve_league_status(complete=True, in_season=True) is LeagueStatus.COMPLETE
        assert resolve_league_status() is LeagueStatus.PRE_DRAFT

    def test_matchup_status(self):
        """Test scheduled, live and final derivation."""
        assert derive_matchup_status(3, 3, (0.0, 0.0)) is MatchupStatus.SCHEDULED
        assert derive_matchup_status(3, 3, (12.5, 0.0)) is MatchupStatus.LIVE
        assert derive_matchup_status(2, 3, (0.0,)) is MatchupStatus.FINAL
        assert derive_matchup_status(4, 3, (5.0,)) is MatchupStatus.SCHEDULED
        assert derive_matchup_status(3, 3, (5.0,), decided=True) is MatchupStatus.FINAL
