"""Data models for normalized league, matchup, scoring and ranking data."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional

from .constants import DEFAULT_PLAYOFF_WEEK_START, DISCREPANCY_EPSILON

CanonicalPlayerID = str
ScoringRuleset = Mapping[str, float]


class PlatformSource(Enum):
    """Which external platform a record came from."""

    A = 'A'
    B = 'B'


class StatSource(Enum):
    LIVE = 'live'
    PROJECTED = 'projected'
    FINAL = 'final'


class MatchupStatus(Enum):
    SCHEDULED = 'scheduled'
    LIVE = 'live'
    FINAL = 'final'


class LeagueStatus(Enum):
    PRE_DRAFT = 'pre_draft'
    DRAFTING = 'drafting'
    IN_SEASON = 'in_season'
    COMPLETE = 'complete'


class EliminationStatus(Enum):
    CHAMPION = 'champion'
    SAFE = 'safe'
    WARNING = 'warning'
    DANGER = 'danger'
    CRITICAL = 'critical'
    ELIMINATED = 'eliminated'


class RuleSource(Enum):
    """Which step of the scoring fallback chain produced a breakdown."""

    LEAGUE_RULESET = 'league_ruleset'
    BATTLE_ROYALE_TABLE = 'battle_royale_table'
    LEGACY_TABLE = 'legacy_table'
    REPORTED_TOTAL = 'reported_total'
    STANDARD_ESTIMATE = 'standard_estimate'

    @property
    def confidence(self) -> str:
        if self in (RuleSource.LEAGUE_RULESET, RuleSource.BATTLE_ROYALE_TABLE):
            return 'high'
        if self is RuleSource.LEGACY_TABLE:
            return 'low'
        return 'estimate'

    @property
    def is_computed(self) -> bool:
        """True when the breakdown was derived from a points-per-unit table."""
        return self in (
            RuleSource.LEAGUE_RULESET,
            RuleSource.BATTLE_ROYALE_TABLE,
            RuleSource.LEGACY_TABLE,
        )


@dataclass(frozen=True)
class LeagueRef:
    """A league on one platform."""

    league_id: str
    source: PlatformSource

    def __str__(self) -> str:
        return f'{self.source.value}:{self.league_id}'


@dataclass(frozen=True)
class LeagueKey:
    """A league-week: the unit a platform fetch returns."""

    league_id: str
    source: PlatformSource
    week: int

    @property
    def league(self) -> LeagueRef:
        return LeagueRef(self.league_id, self.source)


@dataclass(frozen=True)
class SnapshotID:
    """Identifies one matchup snapshot: (league, matchup, platform, week)."""

    league_id: str
    matchup_id: str
    source: PlatformSource
    week: int

    @property
    def league(self) -> LeagueRef:
        return LeagueRef(self.league_id, self.source)


@dataclass(frozen=True)
class RawStatRecord:
    """Platform-native stats for one player in one scoring period."""

    player_id: CanonicalPlayerID
    source: PlatformSource
    week: int
    stats: Mapping[str, float] = field(default_factory=dict)
    stat_source: StatSource = StatSource.LIVE


@dataclass(frozen=True)
class RosterEntry:
    """
    A player on a fantasy team for one week.

    ``points`` is None when the platform did not report the player's points;
    ``platform_id`` is the id the platform rostered the player under.
    """

    player_id: CanonicalPlayerID
    is_starter: bool
    lineup_slot: str
    points: Optional[float] = None
    projected_points: float = 0.0
    platform_id: str = ''

    @property
    def scored_points(self) -> float:
        return self.points if self.points is not None else 0.0


@dataclass(frozen=True)
class TeamSnapshot:
    """One fantasy team as seen in a single fetch."""

    team_id: str
    name: str = ''
    owner_name: str = ''
    score: float = 0.0
    projected_score: float = 0.0
    entries: tuple[RosterEntry, ...] = ()

    @property
    def starters(self) -> tuple[RosterEntry, ...]:
        return tuple(e for e in self.entries if e.is_starter)

    @property
    def player_ids(self) -> list[CanonicalPlayerID]:
        return [e.player_id for e in self.entries]

    def entry_for(self, player_id: CanonicalPlayerID) -> Optional[RosterEntry]:
        for entry in self.entries:
            if entry.player_id == player_id:
                return entry
        return None


@dataclass(frozen=True)
class MatchupSnapshot:
    """
    Immutable, timestamped view of one matchup.

    ``away`` is None for bye weeks and for battle-royale leagues where a team
    has no head-to-head opponent.
    """

    snapshot_id: SnapshotID
    home: TeamSnapshot
    away: Optional[TeamSnapshot] = None
    status: MatchupStatus = MatchupStatus.SCHEDULED
    fetched_at: float = 0.0

    @property
    def teams(self) -> tuple[TeamSnapshot, ...]:
        if self.away is None:
            return (self.home,)
        return (self.home, self.away)

    def team(self, team_id: str) -> Optional[TeamSnapshot]:
        for team in self.teams:
            if team.team_id == team_id:
                return team
        return None

    def find_player(
        self, player_id: CanonicalPlayerID
    ) -> Optional[tuple[TeamSnapshot, RosterEntry]]:
        """Locate a player's team and roster entry in this matchup."""
        for team in self.teams:
            entry = team.entry_for(player_id)
            if entry is not None:
                return team, entry
        return None

    def iter_entries(self) -> Iterator[RosterEntry]:
        for team in self.teams:
            yield from team.entries


@dataclass(frozen=True)
class LeagueInfo:
    """League metadata normalized from either platform."""

    league_id: str
    source: PlatformSource
    name: str = ''
    season: int = 0
    status: LeagueStatus = LeagueStatus.PRE_DRAFT
    total_teams: int = 0
    current_week: int = 0
    playoff_week_start: int = DEFAULT_PLAYOFF_WEEK_START
    is_battle_royale: bool = False
    scoring_ruleset: Optional[ScoringRuleset] = None
    scoring_basis: str = ''

    @property
    def ref(self) -> LeagueRef:
        return LeagueRef(self.league_id, self.source)

    def is_playoffs(self, week: int) -> bool:
        return week >= self.playoff_week_start


@dataclass(frozen=True)
class ScoreBreakdownItem:
    """One line of a score breakdown: raw value times points per unit."""

    stat_key: str
    display_name: str
    raw_value: float
    points_per_unit: float
    total_points: float


@dataclass(frozen=True)
class ScoreBreakdown:
    """
    How a player's score was derived.

    ``total_score`` is the figure to display. It is the platform-reported
    total whenever the platform reported one; ``computed_total`` is what the
    resolved scoring table produced and is kept alongside for comparison.
    """

    player_id: CanonicalPlayerID
    week: int
    items: tuple[ScoreBreakdownItem, ...]
    total_score: float
    rule_source: RuleSource
    computed_total: Optional[float] = None
    reported_total: Optional[float] = None
    epsilon: float = DISCREPANCY_EPSILON

    @property
    def items_total(self) -> float:
        return sum(item.total_points for item in self.items)

    @property
    def discrepancy(self) -> Optional[float]:
        """Computed minus reported total, when both exist."""
        if self.computed_total is None or self.reported_total is None:
            return None
        return self.computed_total - self.reported_total

    @property
    def has_discrepancy(self) -> bool:
        diff = self.discrepancy
        return diff is not None and abs(diff) > self.epsilon

    @property
    def is_estimate(self) -> bool:
        return not self.rule_source.is_computed

    @property
    def confidence(self) -> str:
        return self.rule_source.confidence


@dataclass(frozen=True)
class TeamRanking:
    """A team's standing for one week of a battle-royale league."""

    team_id: str
    week: int
    raw_score: float
    rank: int
    status: EliminationStatus
    survival_probability: float
    projected_score: float = 0.0
    safety_margin: float = 0.0

    @property
    def is_alive(self) -> bool:
        return self.status is not EliminationStatus.ELIMINATED


@dataclass(frozen=True)
class EliminationRecord:
    """The team that went out in a given week."""

    team_id: str
    week: int
    score: float
    margin: float = 0.0
    was_tie: bool = False


@dataclass
class RefreshState:
    """Per-league refresh bookkeeping owned by the matchup store."""

    cadence: float
    last_fetch: Optional[float] = None
    in_flight: bool = False
    last_error: Optional[Exception] = None
    generation: int = 0

    @property
    def is_stale(self) -> bool:
        return self.last_error is not None


@dataclass(frozen=True)
class RefreshEvent:
    """Delivered to subscribers after every fetch attempt for a league-week."""

    league: LeagueRef
    week: int
    snapshots: tuple[MatchupSnapshot, ...] = ()
    error: Optional[Exception] = None
    is_stale: bool = False
    emitted_at: float = 0.0
    changed_players: frozenset = frozenset()

    @property
    def ok(self) -> bool:
        return self.error is None
