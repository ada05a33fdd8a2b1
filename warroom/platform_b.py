"""Platform B adapter: schedule-keyed leagues with numeric stat ids."""

import logging
from typing import Optional

from .base_adapter import BaseAdapter, derive_matchup_status
from .constants import (
    BENCH_SLOT,
    DEFAULT_PLAYOFF_WEEK_START,
    PLATFORM_B_ACTUAL_STATS,
    PLATFORM_B_LINEUP_SLOTS,
    PLATFORM_B_NON_STARTER_SLOTS,
    PLATFORM_B_PROJECTED_STATS,
    PLATFORM_B_UNDECIDED,
)
from .errors import SnapshotNotFound
from .models import (
    CanonicalPlayerID,
    LeagueInfo,
    LeagueStatus,
    MatchupSnapshot,
    PlatformSource,
    RawStatRecord,
    RosterEntry,
    SnapshotID,
    StatSource,
    TeamSnapshot,
)
from .schemas import (
    PlatformBDraftDetail,
    PlatformBLeague,
    PlatformBMember,
    PlatformBPlayer,
    PlatformBPlayerStats,
    PlatformBRosterEntry,
    PlatformBScheduleItem,
    PlatformBStatus,
    PlatformBTeam,
)
from .scoring_rules import convert_platform_b_items, describe_basis
from .utils import safe_float

logger = logging.getLogger('warroom.adapters.platform_b')

LEAGUE_VIEWS = ('mSettings', 'mTeam', 'mStatus')
MATCHUP_VIEWS = ('mMatchupScore', 'mLiveScoring', 'mRoster', 'mTeam', 'mSettings', 'mStatus')


def platform_b_league_status(
    status: Optional[PlatformBStatus], draft: Optional[PlatformBDraftDetail]
) -> LeagueStatus:
    """
    Map Platform B's draft and status flags onto the canonical status.

    Priority: a draft in progress wins; a completed draft means in season
    (or complete once the matchup period counter is back at zero); then the
    ``isActive`` flag and the current matchup period decide.
    """
    period = (status.current_matchup_period if status else None) or 0
    is_active = status.is_active if status else None

    if draft is not None and draft.in_progress:
        return LeagueStatus.DRAFTING
    if draft is not None and (draft.complete_date or 0) > 0:
        return LeagueStatus.IN_SEASON if period > 0 else LeagueStatus.COMPLETE
    if is_active is None:
        return LeagueStatus.PRE_DRAFT
    if not is_active:
        return LeagueStatus.COMPLETE
    if period == 0:
        return LeagueStatus.DRAFTING
    return LeagueStatus.IN_SEASON


def week_stats(
    player: Optional[PlatformBPlayer], week: int, stat_source_id: int
) -> Optional[PlatformBPlayerStats]:
    """The stat line for one scoring period and source (actual or projected)."""
    if player is None:
        return None
    for line in player.stats:
        if line.scoring_period_id == week and line.stat_source_id == stat_source_id:
            return line
    return None


def entry_player(roster_entry: PlatformBRosterEntry) -> tuple[Optional[int], Optional[PlatformBPlayer]]:
    """Platform player id and player record for a roster entry; the id may come from either."""
    player = roster_entry.player_pool_entry.player if roster_entry.player_pool_entry else None
    if roster_entry.player_id is not None:
        return roster_entry.player_id, player
    return (player.id if player else None), player


def slot_name(slot_id: Optional[int]) -> str:
    if slot_id is None:
        return BENCH_SLOT
    return PLATFORM_B_LINEUP_SLOTS.get(slot_id, f'SLOT_{slot_id}')


class PlatformBAdapter(BaseAdapter):
    """
    Adapter for Platform B.

    One league request (filtered by ``view`` parameters) carries the teams,
    their rosters with per-player stat lines, and the season schedule.
    Matchups are schedule entries for the requested matchup period.
    """

    source = PlatformSource.B

    def league_path(self, league_id: str) -> str:
        return f'/seasons/{self.season}/segments/0/leagues/{league_id}'

    async def fetch_league(self, league_id: str) -> LeagueInfo:
        payload = await self.http.get_json(
            self.league_path(league_id), params=[('view', view) for view in LEAGUE_VIEWS]
        )
        league = self.parse_payload(PlatformBLeague, payload, 'league')
        return self._league_info(league)

    async def fetch_matchups(self, league_id: str, week: int) -> list[MatchupSnapshot]:
        league, teams, schedule = await self._fetch_week(league_id, week)
        info = self._league_info(league)
        owners = self._owner_names(league.members)

        fetched_at = self.clock()
        snapshots = []
        for item in schedule:
            try:
                home = self._team(teams.get(item.home.team_id), item.home, week, owners)
                away = None
                if item.away is not None:
                    away = self._team(teams.get(item.away.team_id), item.away, week, owners)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f'Skipping malformed matchup {item.id} in league {league_id}: {e}')
                continue

            scores = (home.score,) if away is None else (home.score, away.score)
            status = derive_matchup_status(
                week,
                info.current_week,
                scores,
                decided=bool(item.winner) and item.winner != PLATFORM_B_UNDECIDED,
                league_complete=info.status is LeagueStatus.COMPLETE,
            )
            snapshots.append(
                MatchupSnapshot(
                    snapshot_id=SnapshotID(league_id, str(item.id), self.source, week),
                    home=home,
                    away=away,
                    status=status,
                    fetched_at=fetched_at,
                )
            )

        logger.debug(f'Platform B league {league_id} week {week}: {len(snapshots)} matchups')
        return snapshots

    async def fetch_box_score(
        self, league_id: str, matchup_id: str, week: int
    ) -> dict[CanonicalPlayerID, RawStatRecord]:
        _, teams, schedule = await self._fetch_week(league_id, week)
        item = next((s for s in schedule if str(s.id) == str(matchup_id)), None)
        if item is None:
            raise SnapshotNotFound(f'matchup {matchup_id} not found in league {league_id} week {week}')

        decided = bool(item.winner) and item.winner != PLATFORM_B_UNDECIDED
        stat_source = StatSource.FINAL if decided else StatSource.LIVE

        team_ids = [item.home.team_id] + ([item.away.team_id] if item.away else [])
        records = {}
        for team_id in team_ids:
            team = teams.get(team_id)
            if team is None or team.roster is None:
                continue
            for roster_entry in team.roster.entries:
                platform_id, player = entry_player(roster_entry)
                if platform_id is None:
                    continue
                line = week_stats(player, week, PLATFORM_B_ACTUAL_STATS)
                stats = {}
                if line is not None:
                    stats = {k: safe_float(v) for k, v in line.stats.items() if v is not None}
                canonical = self.resolve_player(platform_id)
                records[canonical] = RawStatRecord(
                    player_id=canonical,
                    source=self.source,
                    week=week,
                    stats=stats,
                    stat_source=stat_source,
                )
        return records

    async def _fetch_week(
        self, league_id: str, week: int
    ) -> tuple[PlatformBLeague, dict[int, PlatformBTeam], list[PlatformBScheduleItem]]:
        params = [('view', view) for view in MATCHUP_VIEWS]
        params.append(('scoringPeriodId', str(week)))
        payload = await self.http.get_json(self.league_path(league_id), params=params)

        league = self.parse_payload(PlatformBLeague, self.expect_mapping(payload, 'league'), 'league')
        teams = {t.id: t for t in self.parse_records(PlatformBTeam, league.teams, 'team')}
        schedule = [
            item
            for item in self.parse_records(PlatformBScheduleItem, league.schedule, 'schedule')
            if item.matchup_period_id == week
        ]
        return league, teams, schedule

    def _league_info(self, league: PlatformBLeague) -> LeagueInfo:
        settings = league.settings
        ruleset = None
        playoff_start = None
        if settings is not None:
            if settings.scoring_settings is not None:
                ruleset = convert_platform_b_items(
                    (item.stat_id, item.points) for item in settings.scoring_settings.scoring_items
                ) or None
            if settings.schedule_settings is not None:
                playoff_start = settings.schedule_settings.playoff_start

        return LeagueInfo(
            league_id=str(league.id),
            source=self.source,
            name=(settings.name if settings else None) or '',
            season=league.season_id or self.season,
            status=platform_b_league_status(league.status, league.draft_detail),
            total_teams=(settings.size if settings else None) or len(league.teams),
            current_week=(league.status.current_matchup_period if league.status else None) or 0,
            playoff_week_start=playoff_start or DEFAULT_PLAYOFF_WEEK_START,
            is_battle_royale=bool(settings and settings.is_chopped),
            scoring_ruleset=ruleset,
            scoring_basis=describe_basis(ruleset) if ruleset else '',
        )

    def _owner_names(self, members: list[PlatformBMember]) -> dict[str, str]:
        names = {}
        for member in members:
            full = f'{member.first_name or ""} {member.last_name or ""}'.strip()
            names[member.id] = full or member.display_name or ''
        return names

    def _team(self, team: Optional[PlatformBTeam], side, week: int, owners: dict[str, str]) -> TeamSnapshot:
        entries: list[RosterEntry] = []
        actual_total = 0.0
        projected_total = 0.0

        if team is not None and team.roster is not None:
            for roster_entry in team.roster.entries:
                platform_id, player = entry_player(roster_entry)
                if platform_id is None:
                    continue

                slot_id = roster_entry.lineup_slot_id
                is_starter = slot_id is not None and slot_id not in PLATFORM_B_NON_STARTER_SLOTS
                actual = week_stats(player, week, PLATFORM_B_ACTUAL_STATS)
                projected = week_stats(player, week, PLATFORM_B_PROJECTED_STATS)
                points = actual.applied_total if actual else None
                projected_points = safe_float(projected.applied_total if projected else None)

                if is_starter:
                    actual_total += safe_float(points)
                    projected_total += projected_points
                entries.append(
                    self.build_entry(platform_id, is_starter, slot_name(slot_id), points, projected_points)
                )

        name = None
        owner = None
        if team is not None:
            name = team.name or f'{team.location or ""} {team.nickname or ""}'.strip()
            owner = owners.get(team.primary_owner or '')

        score = side.total_points if side.total_points is not None else actual_total
        projected_score = (
            side.total_projected_points if side.total_projected_points is not None else projected_total
        )
        return self.build_team(
            side.team_id,
            name,
            owner,
            score,
            projected_score,
            entries,
            fallback_name=f'Team {side.team_id}',
        )
