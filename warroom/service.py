"""Consumer-facing query surface over the matchup store and the derived views."""

import logging
from collections.abc import Callable, Iterable
from typing import Optional

import httpx

from .config import get_config
from .constants import DISCREPANCY_EPSILON
from .elimination import EliminationTracker, TeamWeekScore, compute_rankings
from .errors import SnapshotNotFound
from .game_status import GameStatusSource, ScoreboardClient, SnapshotGameStatus
from .http_client import PlatformHTTPClient
from .identity import IdentityMapper
from .models import (
    CanonicalPlayerID,
    LeagueInfo,
    LeagueRef,
    MatchupSnapshot,
    MatchupStatus,
    PlatformSource,
    RawStatRecord,
    ScoreBreakdown,
    TeamRanking,
    TeamSnapshot,
)
from .platform_a import PlatformAAdapter
from .platform_b import PlatformBAdapter
from .scheduler import RefreshScheduler
from .schemas import EliminationSettings, WarRoomConfig
from .scoring import compute_breakdown
from .scoring_rules import ScoringRuleBook
from .store import MatchupDataStore, Subscription
from .utils import data_path
from .validators import validate_breakdown, validate_rankings

logger = logging.getLogger('warroom.service')


def implicitly_eliminated(teams: Iterable[TeamSnapshot]) -> set[str]:
    """
    Teams a battle-royale platform has already emptied: no roster and no
    points while other teams still field players.
    """
    teams = list(teams)
    if not any(team.entries for team in teams):
        return set()
    return {team.team_id for team in teams if not team.entries and team.score == 0}


class WarRoomService:
    """
    The four operations the presentation layer uses: get_matchup,
    get_breakdown, get_rankings and subscribe.

    Holds no cache of its own beyond the elimination trackers; all matchup
    data comes from the injected MatchupDataStore.
    """

    def __init__(
        self,
        store: MatchupDataStore,
        rule_book: ScoringRuleBook,
        *,
        elimination_settings: Optional[EliminationSettings] = None,
        tracker_factory: Callable[[EliminationSettings], EliminationTracker] = EliminationTracker,
        epsilon: float = DISCREPANCY_EPSILON,
        http_clients: Iterable[PlatformHTTPClient] = (),
    ):
        self.store = store
        self.rule_book = rule_book
        self.elimination_settings = elimination_settings or EliminationSettings()
        self.epsilon = epsilon
        self._tracker_factory = tracker_factory
        self._trackers: dict[LeagueRef, EliminationTracker] = {}
        self._http_clients = list(http_clients)

    def track(self, league: LeagueRef, week: int) -> None:
        self.store.track(league, week)

    async def get_league(self, league: LeagueRef) -> LeagueInfo:
        """League metadata; registers the league's ruleset with the rule book as a side effect."""
        info = await self.store.get_league_info(league)
        self.rule_book.register(league.league_id, league.source, info.scoring_ruleset, info.scoring_basis)
        return info

    async def get_matchups(
        self, league: LeagueRef, week: int, max_staleness: Optional[float] = None
    ) -> list[MatchupSnapshot]:
        return await self.store.get_league_matchups(league, week, max_staleness)

    async def get_matchup(
        self,
        league: LeagueRef,
        week: int,
        matchup_id: Optional[str] = None,
        max_staleness: Optional[float] = None,
    ) -> MatchupSnapshot:
        """
        One matchup of a league-week: the one with ``matchup_id``, or the
        first of the week when no id is given.
        """
        snapshots = await self.get_matchups(league, week, max_staleness)
        for snapshot in snapshots:
            if matchup_id is None or snapshot.snapshot_id.matchup_id == matchup_id:
                return snapshot
        what = f'matchup {matchup_id}' if matchup_id else 'matchups'
        raise SnapshotNotFound(f'no {what} in {league} week {week}')

    async def get_breakdown(
        self, player_id: CanonicalPlayerID, league: LeagueRef, week: int
    ) -> ScoreBreakdown:
        """
        How a rostered player's points for the week were derived.

        The player's points as reported in the matchup snapshot, when the
        platform reported any, are the authoritative total; the league's rules
        (or the fallback chain) produce the itemized lines.

        Raises:
            SnapshotNotFound: The player is not on any roster in the league-week
        """
        located = None
        for snapshot in await self.get_matchups(league, week):
            found = snapshot.find_player(player_id)
            if found is not None:
                located = (snapshot, found[1])
                break
        if located is None:
            raise SnapshotNotFound(f'{player_id} is not rostered in {league} week {week}')
        snapshot, entry = located

        info = await self.get_league(league)
        box_score = await self.store.get_box_score(snapshot.snapshot_id)
        raw = box_score.get(player_id) or RawStatRecord(player_id=player_id, source=league.source, week=week)

        breakdown = compute_breakdown(
            raw,
            self.rule_book.ruleset_for(league.league_id, league.source),
            entry.points,
            player_id=player_id,
            week=week,
            battle_royale=info.is_battle_royale,
            legacy_table=self.rule_book.legacy_table_for(league.source),
            epsilon=self.epsilon,
        )
        for warning in validate_breakdown(breakdown):
            logger.debug(warning)
        return breakdown

    async def get_rankings(self, league: LeagueRef, week: int) -> list[TeamRanking]:
        """
        Battle-royale standings for a league-week.

        When every matchup of the week is final the week is recorded, so
        its bottom team(s) are eliminated for all later weeks.
        """
        snapshots = await self.get_matchups(league, week)
        tracker = self.tracker(league)

        teams: dict[str, TeamSnapshot] = {}
        for snapshot in snapshots:
            for team in snapshot.teams:
                teams.setdefault(team.team_id, team)

        scores = [
            TeamWeekScore(
                team_id=team.team_id,
                raw_score=team.score,
                projected_score=team.projected_score,
                variance_history=tracker.score_history(team.team_id, before_week=week),
            )
            for team in teams.values()
        ]
        eliminated = set(tracker.eliminated_before(week)) | implicitly_eliminated(teams.values())
        rankings = compute_rankings(scores, week, eliminated, self.elimination_settings)

        for warning in validate_rankings(rankings):
            logger.warning(f'{league} week {week}: {warning}')

        if snapshots and all(s.status is MatchupStatus.FINAL for s in snapshots):
            out = tracker.record_week(week, rankings)
            if out:
                logger.info(f'{league} week {week} eliminated: {", ".join(r.team_id for r in out)}')
        return rankings

    def tracker(self, league: LeagueRef) -> EliminationTracker:
        tracker = self._trackers.get(league)
        if tracker is None:
            tracker = self._tracker_factory(self.elimination_settings)
            self._trackers[league] = tracker
        return tracker

    def subscribe(self, league: LeagueRef) -> Subscription:
        return self.store.subscribe(league)

    def add_http_client(self, client: PlatformHTTPClient) -> None:
        """Close this client along with the service."""
        self._http_clients.append(client)

    async def aclose(self) -> None:
        for client in self._http_clients:
            await client.aclose()


def build_service(
    config: Optional[WarRoomConfig] = None,
    *,
    identity: Optional[IdentityMapper] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> WarRoomService:
    """
    Wire adapters, store and rule book from configuration.

    Args:
        config: Configuration (default: get_config())
        identity: Identity mapper (default: loaded from the configured dataset)
        transport: httpx transport override, e.g. httpx.MockTransport in tests

    Returns:
        A ready WarRoomService; call ``aclose()`` when done
    """
    config = config or get_config()
    identity = identity or IdentityMapper.from_file(data_path(config.identity_dataset))

    clients = []
    adapters = {}
    for source, adapter_class in ((PlatformSource.A, PlatformAAdapter), (PlatformSource.B, PlatformBAdapter)):
        settings = config.platforms[source.value]
        client = PlatformHTTPClient(
            settings.base_url,
            timeout=config.cache.fetch_timeout,
            headers=settings.headers,
            cookies=settings.cookies,
            transport=transport,
        )
        clients.append(client)
        adapters[source] = adapter_class(client, identity, config.season)

    store = MatchupDataStore(
        adapters,
        default_ttl=config.cache.default_ttl,
        throttle_interval=config.cache.force_refresh_throttle,
        fetch_timeout=config.cache.fetch_timeout,
        league_info_ttl=config.cache.league_info_ttl,
    )
    rule_book = ScoringRuleBook(
        {PlatformSource(platform): table for platform, table in config.scoring.legacy_tables.items()}
    )
    return WarRoomService(
        store,
        rule_book,
        elimination_settings=config.elimination,
        epsilon=config.scoring.discrepancy_epsilon,
        http_clients=clients,
    )


def build_scheduler(
    service: WarRoomService,
    config: Optional[WarRoomConfig] = None,
    *,
    game_status: Optional[GameStatusSource] = None,
    is_active: Callable[[], bool] = lambda: True,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> RefreshScheduler:
    """Scheduler for a service; live games come from the scoreboard feed when one is configured."""
    config = config or get_config()
    if game_status is None:
        if config.scoreboard_url:
            client = PlatformHTTPClient(
                config.scoreboard_url, timeout=config.cache.fetch_timeout, transport=transport
            )
            service.add_http_client(client)
            game_status = ScoreboardClient(client)
        else:
            game_status = SnapshotGameStatus(service.store)

    cadence = config.cadence
    return RefreshScheduler(
        service.store,
        game_status,
        live_interval=cadence.live_interval,
        idle_interval=cadence.idle_interval,
        starting_soon_interval=cadence.starting_soon_interval,
        max_backoff=cadence.max_backoff,
        idle_after_cycles=cadence.idle_after_cycles,
        is_active=is_active,
    )
