"""Pydantic schemas for configuration, bundled datasets and platform payloads."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

# =============================================================================
# Configuration (data/warroom_config.json)
# =============================================================================


class CacheSettings(BaseModel):
    """Matchup store timing."""

    default_ttl: float = Field(default=300.0, gt=0)
    force_refresh_throttle: float = Field(default=2.0, ge=0)
    fetch_timeout: float = Field(default=10.0, gt=0)
    league_info_ttl: float = Field(default=3600.0, gt=0)

    class Config:
        extra = 'forbid'


class CadenceSettings(BaseModel):
    """Refresh scheduler cadences, in seconds."""

    live_interval: float = Field(default=15.0, gt=0)
    idle_interval: float = Field(default=300.0, gt=0)
    starting_soon_interval: float = Field(default=60.0, gt=0)
    max_backoff: int = Field(default=8, ge=1)
    idle_after_cycles: int = Field(default=1, ge=1)

    @model_validator(mode='after')
    def validate_ordering(self):
        """Live polling must never be slower than idle polling."""
        if self.live_interval > self.idle_interval:
            raise ValueError(
                f'live_interval ({self.live_interval}) exceeds idle_interval ({self.idle_interval})'
            )
        return self

    class Config:
        extra = 'forbid'


class EliminationSettings(BaseModel):
    """Weights and thresholds for the survival calculator."""

    double_elimination_threshold: int = Field(default=32, ge=2)
    season_weeks: int = Field(default=17, ge=1)
    projection_weight: float = Field(default=0.3, ge=0)
    consistency_weight: float = Field(default=0.2, ge=0)
    weeks_remaining_weight: float = Field(default=0.2, ge=0)
    default_std_dev: float = Field(default=10.0, gt=0)

    class Config:
        extra = 'forbid'
        frozen = True


class ScoringSettings(BaseModel):
    discrepancy_epsilon: float = Field(default=0.01, ge=0)
    legacy_tables: dict[str, dict[str, float]] = Field(default_factory=dict)

    @field_validator('legacy_tables')
    @classmethod
    def validate_platforms(cls, v):
        """Legacy tables are keyed by platform letter."""
        for platform in v:
            if platform not in ('A', 'B'):
                raise ValueError(f'Invalid platform for legacy table: {platform}')
        return v

    class Config:
        extra = 'forbid'


class PlatformSettings(BaseModel):
    """Connection details for one platform API."""

    base_url: str = Field(..., min_length=1)
    headers: dict[str, str] = Field(default_factory=dict)
    cookies: dict[str, str] = Field(default_factory=dict)

    @field_validator('base_url')
    @classmethod
    def validate_scheme(cls, v):
        """Platform APIs are consumed over HTTP(S) only."""
        if not v.startswith(('https://', 'http://')):
            raise ValueError(f'base_url must be http(s): {v}')
        return v.rstrip('/')

    class Config:
        extra = 'forbid'


class WarRoomConfig(BaseModel):
    """Complete warroom_config.json file structure."""

    season: int = Field(..., ge=2000, le=2100)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    cadence: CadenceSettings = Field(default_factory=CadenceSettings)
    elimination: EliminationSettings = Field(default_factory=EliminationSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    platforms: dict[str, PlatformSettings]
    scoreboard_url: Optional[str] = None
    identity_dataset: str = 'player_ids.json'

    @field_validator('platforms')
    @classmethod
    def validate_platforms(cls, v):
        """Both platforms must be configured."""
        missing = {'A', 'B'} - set(v)
        if missing:
            raise ValueError(f'Missing platform settings: {", ".join(sorted(missing))}')
        return v

    class Config:
        extra = 'forbid'


# =============================================================================
# Canonical identity dataset (data/player_ids.json)
# =============================================================================


class PlayerIdentity(BaseModel):
    """One real-world player and their ids on each platform."""

    canonical_id: str = Field(..., min_length=1)
    name: str = ''
    position: str = ''
    team: str = ''
    platform_a_ids: list[str] = Field(default_factory=list)
    platform_b_ids: list[str] = Field(default_factory=list)

    @field_validator('platform_a_ids', 'platform_b_ids', mode='before')
    @classmethod
    def coerce_ids(cls, v):
        """Accept a bare id or ints in place of a list of strings."""
        if v is None:
            return []
        if isinstance(v, (str, int)):
            v = [v]
        return [str(item) for item in v]

    class Config:
        extra = 'forbid'
        frozen = True


class IdentityDataset(BaseModel):
    """Complete player_ids.json file structure."""

    version: int = 1
    players: list[PlayerIdentity]

    @model_validator(mode='after')
    def validate_unique(self):
        """Canonical ids are unique and each platform id maps to one player."""
        seen_canonical: set[str] = set()
        owners: dict[tuple[str, str], str] = {}
        for player in self.players:
            if player.canonical_id in seen_canonical:
                raise ValueError(f'Duplicate canonical id: {player.canonical_id}')
            seen_canonical.add(player.canonical_id)

            for platform, ids in (('A', player.platform_a_ids), ('B', player.platform_b_ids)):
                for platform_id in ids:
                    owner = owners.setdefault((platform, platform_id), player.canonical_id)
                    if owner != player.canonical_id:
                        raise ValueError(
                            f'Platform {platform} id {platform_id} maps to both '
                            f'{owner} and {player.canonical_id}'
                        )
        return self

    class Config:
        extra = 'forbid'


# =============================================================================
# Platform A payloads (roster-keyed)
# =============================================================================


class PlatformALeagueSettings(BaseModel):
    type: Optional[int] = None
    is_chopped: Optional[int] = None
    playoff_week_start: Optional[int] = None
    leg: Optional[int] = None

    class Config:
        extra = 'ignore'


class PlatformALeague(BaseModel):
    league_id: str
    name: Optional[str] = None
    season: Optional[str] = None
    status: Optional[str] = None
    total_rosters: Optional[int] = None
    settings: PlatformALeagueSettings = Field(default_factory=PlatformALeagueSettings)
    scoring_settings: Optional[dict[str, Optional[float]]] = None
    roster_positions: list[str] = Field(default_factory=list)

    class Config:
        extra = 'ignore'


class PlatformAUser(BaseModel):
    user_id: str
    display_name: Optional[str] = None
    metadata: Optional[dict[str, Optional[str]]] = None

    class Config:
        extra = 'ignore'


class PlatformARoster(BaseModel):
    roster_id: int
    owner_id: Optional[str] = None
    players: Optional[list[str]] = None
    metadata: Optional[dict[str, Optional[str]]] = None

    class Config:
        extra = 'ignore'


class PlatformAMatchup(BaseModel):
    roster_id: int
    matchup_id: Optional[int] = None
    points: Optional[float] = None
    projected_points: Optional[float] = None
    starters: Optional[list[str]] = None
    players: Optional[list[str]] = None
    players_points: Optional[dict[str, Optional[float]]] = None

    class Config:
        extra = 'ignore'


# =============================================================================
# Platform B payloads (schedule-keyed)
# =============================================================================


class PlatformBScoringItem(BaseModel):
    stat_id: int = Field(..., alias='statId')
    points: float = 0.0

    class Config:
        extra = 'ignore'
        populate_by_name = True


class PlatformBScoringSettings(BaseModel):
    scoring_items: list[PlatformBScoringItem] = Field(default_factory=list, alias='scoringItems')

    class Config:
        extra = 'ignore'
        populate_by_name = True


class PlatformBScheduleSettings(BaseModel):
    playoff_start: Optional[int] = Field(default=None, alias='playoffMatchupPeriodStart')

    class Config:
        extra = 'ignore'
        populate_by_name = True


class PlatformBSettings(BaseModel):
    name: Optional[str] = None
    size: Optional[int] = None
    is_chopped: Optional[bool] = Field(default=None, alias='isGuillotine')
    scoring_settings: Optional[PlatformBScoringSettings] = Field(
        default=None, alias='scoringSettings'
    )
    schedule_settings: Optional[PlatformBScheduleSettings] = Field(
        default=None, alias='scheduleSettings'
    )

    class Config:
        extra = 'ignore'
        populate_by_name = True


class PlatformBStatus(BaseModel):
    current_matchup_period: Optional[int] = Field(default=None, alias='currentMatchupPeriod')
    is_active: Optional[bool] = Field(default=None, alias='isActive')

    class Config:
        extra = 'ignore'
        populate_by_name = True


class PlatformBDraftDetail(BaseModel):
    in_progress: Optional[bool] = Field(default=None, alias='inProgress')
    complete_date: Optional[int] = Field(default=None, alias='completeDate')

    class Config:
        extra = 'ignore'
        populate_by_name = True


class PlatformBPlayerStats(BaseModel):
    scoring_period_id: Optional[int] = Field(default=None, alias='scoringPeriodId')
    stat_source_id: Optional[int] = Field(default=None, alias='statSourceId')
    applied_total: Optional[float] = Field(default=None, alias='appliedTotal')
    stats: dict[str, Optional[float]] = Field(default_factory=dict)

    class Config:
        extra = 'ignore'
        populate_by_name = True


class PlatformBPlayer(BaseModel):
    id: int
    full_name: Optional[str] = Field(default=None, alias='fullName')
    stats: list[PlatformBPlayerStats] = Field(default_factory=list)

    class Config:
        extra = 'ignore'
        populate_by_name = True


class PlatformBPlayerPoolEntry(BaseModel):
    player: PlatformBPlayer

    class Config:
        extra = 'ignore'


class PlatformBRosterEntry(BaseModel):
    player_id: Optional[int] = Field(default=None, alias='playerId')
    lineup_slot_id: Optional[int] = Field(default=None, alias='lineupSlotId')
    player_pool_entry: Optional[PlatformBPlayerPoolEntry] = Field(
        default=None, alias='playerPoolEntry'
    )

    class Config:
        extra = 'ignore'
        populate_by_name = True


class PlatformBRoster(BaseModel):
    entries: list[PlatformBRosterEntry] = Field(default_factory=list)

    class Config:
        extra = 'ignore'


class PlatformBTeam(BaseModel):
    id: int
    name: Optional[str] = None
    location: Optional[str] = None
    nickname: Optional[str] = None
    primary_owner: Optional[str] = Field(default=None, alias='primaryOwner')
    roster: Optional[PlatformBRoster] = None

    class Config:
        extra = 'ignore'
        populate_by_name = True


class PlatformBMember(BaseModel):
    id: str
    display_name: Optional[str] = Field(default=None, alias='displayName')
    first_name: Optional[str] = Field(default=None, alias='firstName')
    last_name: Optional[str] = Field(default=None, alias='lastName')

    class Config:
        extra = 'ignore'
        populate_by_name = True


class PlatformBMatchupSide(BaseModel):
    team_id: int = Field(..., alias='teamId')
    total_points: Optional[float] = Field(default=None, alias='totalPoints')
    total_projected_points: Optional[float] = Field(default=None, alias='totalProjectedPoints')

    class Config:
        extra = 'ignore'
        populate_by_name = True


class PlatformBScheduleItem(BaseModel):
    id: int
    matchup_period_id: int = Field(..., alias='matchupPeriodId')
    winner: Optional[str] = None
    home: PlatformBMatchupSide
    away: Optional[PlatformBMatchupSide] = None

    class Config:
        extra = 'ignore'
        populate_by_name = True


class PlatformBLeague(BaseModel):
    """
    League payload. Which sections are populated depends on the ``view``
    parameters of the request, so every section is optional.
    """

    id: int
    season_id: Optional[int] = Field(default=None, alias='seasonId')
    settings: Optional[PlatformBSettings] = None
    status: Optional[PlatformBStatus] = None
    draft_detail: Optional[PlatformBDraftDetail] = Field(default=None, alias='draftDetail')
    teams: list[dict] = Field(default_factory=list)
    members: list[PlatformBMember] = Field(default_factory=list)
    schedule: list[dict] = Field(default_factory=list)

    class Config:
        extra = 'ignore'
        populate_by_name = True
