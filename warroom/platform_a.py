"""Platform A adapter: roster-keyed leagues with string stat keys."""

import asyncio
import logging
from collections import defaultdict
from typing import Optional

from .base_adapter import BaseAdapter, derive_matchup_status, resolve_league_status
from .constants import (
    BENCH_SLOT,
    DEFAULT_PLAYOFF_WEEK_START,
    PLATFORM_A_BATTLE_ROYALE_TYPE,
    PLATFORM_A_STATUSES,
)
from .errors import SnapshotNotFound
from .models import (
    CanonicalPlayerID,
    LeagueInfo,
    LeagueStatus,
    MatchupSnapshot,
    MatchupStatus,
    PlatformSource,
    RawStatRecord,
    SnapshotID,
    StatSource,
)
from .schemas import PlatformALeague, PlatformAMatchup, PlatformARoster, PlatformAUser
from .scoring_rules import describe_basis
from .stat_dictionary import canonicalize
from .utils import safe_float

logger = logging.getLogger('warroom.adapters.platform_a')

NON_STARTER_POSITIONS = frozenset({'BN', 'IR', 'TAXI'})
EMPTY_SLOT = '0'


def solo_matchup_id(roster_id: int) -> str:
    return f'solo-{roster_id}'


class PlatformAAdapter(BaseAdapter):
    """
    Adapter for Platform A.

    Matchups arrive as one record per roster; two rosters sharing a
    ``matchup_id`` play each other. Rosters without a ``matchup_id`` (byes,
    battle-royale leagues) become single-team snapshots.
    """

    source = PlatformSource.A

    async def fetch_league(self, league_id: str) -> LeagueInfo:
        payload = await self.http.get_json(f'/league/{league_id}')
        return self._league_info(self.parse_payload(PlatformALeague, payload, 'league'))

    async def fetch_matchups(self, league_id: str, week: int) -> list[MatchupSnapshot]:
        league_payload, matchups_payload, rosters_payload, users_payload = await asyncio.gather(
            self.http.get_json(f'/league/{league_id}'),
            self.http.get_json(f'/league/{league_id}/matchups/{week}'),
            self.http.get_json(f'/league/{league_id}/rosters'),
            self.http.get_json(f'/league/{league_id}/users'),
        )
        league = self.parse_payload(PlatformALeague, league_payload, 'league')
        info = self._league_info(league)
        records = self.parse_records(PlatformAMatchup, matchups_payload, 'matchup')
        rosters = {r.roster_id: r for r in self.parse_records(PlatformARoster, rosters_payload, 'roster')}
        users = {u.user_id: u for u in self.parse_records(PlatformAUser, users_payload, 'user')}

        starter_slots = [p for p in league.roster_positions if p not in NON_STARTER_POSITIONS]

        grouped: dict[str, list[PlatformAMatchup]] = defaultdict(list)
        for record in records:
            if record.matchup_id is None:
                grouped[solo_matchup_id(record.roster_id)].append(record)
            else:
                grouped[str(record.matchup_id)].append(record)

        fetched_at = self.clock()
        snapshots = []
        for matchup_id, sides in grouped.items():
            sides.sort(key=lambda r: r.roster_id)
            if len(sides) > 2:
                logger.warning(
                    f'Skipping matchup {matchup_id} in league {league_id}: {len(sides)} rosters share it'
                )
                continue

            teams = [self._team(side, rosters, users, starter_slots) for side in sides]
            status = derive_matchup_status(
                week,
                info.current_week,
                tuple(team.score for team in teams),
                league_complete=info.status is LeagueStatus.COMPLETE,
            )
            snapshots.append(
                MatchupSnapshot(
                    snapshot_id=SnapshotID(league_id, matchup_id, self.source, week),
                    home=teams[0],
                    away=teams[1] if len(teams) > 1 else None,
                    status=status,
                    fetched_at=fetched_at,
                )
            )

        snapshots.sort(key=lambda s: s.snapshot_id.matchup_id)
        logger.debug(f'Platform A league {league_id} week {week}: {len(snapshots)} matchups')
        return snapshots

    async def fetch_box_score(
        self, league_id: str, matchup_id: str, week: int
    ) -> dict[CanonicalPlayerID, RawStatRecord]:
        snapshots, feed = await asyncio.gather(
            self.fetch_matchups(league_id, week),
            self.http.get_json(f'/stats/nfl/regular/{self.season}/{week}'),
        )
        matchup = next((s for s in snapshots if s.snapshot_id.matchup_id == matchup_id), None)
        if matchup is None:
            raise SnapshotNotFound(f'matchup {matchup_id} not found in league {league_id} week {week}')
        feed = self.expect_mapping(feed, 'stats')

        stat_source = StatSource.FINAL if matchup.status is MatchupStatus.FINAL else StatSource.LIVE
        records = {}
        for entry in matchup.iter_entries():
            platform_id = entry.platform_id or self.identity.reverse(entry.player_id, self.source)
            raw = feed.get(platform_id) if platform_id else None
            stats = {}
            if isinstance(raw, dict):
                stats = {
                    key: safe_float(value)
                    for key, value in raw.items()
                    if isinstance(value, (int, float)) and not isinstance(value, bool)
                }
            records[entry.player_id] = RawStatRecord(
                player_id=entry.player_id,
                source=self.source,
                week=week,
                stats=stats,
                stat_source=stat_source,
            )
        return records

    def _league_info(self, league: PlatformALeague) -> LeagueInfo:
        status_name = PLATFORM_A_STATUSES.get((league.status or '').lower())
        status = resolve_league_status(
            draft_in_progress=status_name == 'DRAFTING',
            complete=status_name == 'COMPLETE',
            in_season=status_name == 'IN_SEASON',
            pre_draft=status_name == 'PRE_DRAFT',
        )

        settings = league.settings
        ruleset: Optional[dict[str, float]] = None
        if league.scoring_settings:
            ruleset = canonicalize(
                {k: v for k, v in league.scoring_settings.items() if v is not None},
                self.source,
                combine=False,
            ) or None

        try:
            season = int(league.season) if league.season else self.season
        except ValueError:
            season = self.season

        return LeagueInfo(
            league_id=league.league_id,
            source=self.source,
            name=league.name or '',
            season=season,
            status=status,
            total_teams=league.total_rosters or 0,
            current_week=settings.leg or 0,
            playoff_week_start=settings.playoff_week_start or DEFAULT_PLAYOFF_WEEK_START,
            is_battle_royale=(
                settings.type == PLATFORM_A_BATTLE_ROYALE_TYPE or bool(settings.is_chopped)
            ),
            scoring_ruleset=ruleset,
            scoring_basis=describe_basis(ruleset) if ruleset else '',
        )

    def _team(
        self,
        record: PlatformAMatchup,
        rosters: dict[int, PlatformARoster],
        users: dict[str, PlatformAUser],
        starter_slots: list[str],
    ):
        points = record.players_points or {}
        starters = record.starters or []

        entries = []
        for index, player_id in enumerate(starters):
            if not player_id or player_id == EMPTY_SLOT:
                continue
            slot = starter_slots[index] if index < len(starter_slots) else 'FLEX'
            entries.append(self.build_entry(player_id, True, slot, points.get(player_id)))

        starter_set = set(starters)
        for player_id in record.players or []:
            if player_id in starter_set:
                continue
            entries.append(self.build_entry(player_id, False, BENCH_SLOT, points.get(player_id)))

        roster = rosters.get(record.roster_id)
        user = users.get(roster.owner_id) if roster and roster.owner_id else None
        team_name = None
        owner_name = None
        if user is not None:
            owner_name = user.display_name
            team_name = (user.metadata or {}).get('team_name') or user.display_name
        if not team_name and roster is not None:
            team_name = (roster.metadata or {}).get('team_name')

        return self.build_team(
            record.roster_id,
            team_name,
            owner_name,
            record.points,
            record.projected_points,
            entries,
            fallback_name=f'Manager {record.roster_id}',
        )
