"""Base platform adapter with shared normalization logic."""

import abc
import logging
import time
from collections.abc import Callable, Mapping
from typing import Any, Optional

from pydantic import ValidationError

from .constants import BENCH_SLOT
from .errors import DecodingError
from .http_client import PlatformHTTPClient
from .identity import IdentityMapper
from .models import (
    CanonicalPlayerID,
    LeagueInfo,
    LeagueStatus,
    MatchupSnapshot,
    MatchupStatus,
    PlatformSource,
    RawStatRecord,
    RosterEntry,
    ScoringRuleset,
    TeamSnapshot,
)
from .utils import safe_float

logger = logging.getLogger('warroom.adapters')


def resolve_league_status(
    draft_in_progress: bool = False,
    complete: bool = False,
    in_season: bool = False,
    pre_draft: bool = False,
    default: LeagueStatus = LeagueStatus.PRE_DRAFT,
) -> LeagueStatus:
    """
    Collapse a platform's status signals into one canonical status.

    Signals are checked in a fixed order and the first that is set wins, so
    an explicit draft-in-progress flag always beats a generic "active" flag.
    """
    if draft_in_progress:
        return LeagueStatus.DRAFTING
    if complete:
        return LeagueStatus.COMPLETE
    if in_season:
        return LeagueStatus.IN_SEASON
    if pre_draft:
        return LeagueStatus.PRE_DRAFT
    return default


def derive_matchup_status(
    week: int,
    current_week: int,
    scores: tuple[float, ...],
    decided: bool = False,
    league_complete: bool = False,
) -> MatchupStatus:
    """Scheduled, live or final, from the league calendar and the scores so far."""
    if league_complete or decided or (current_week and week < current_week):
        return MatchupStatus.FINAL
    if week > current_week > 0:
        return MatchupStatus.SCHEDULED
    if any(score > 0 for score in scores):
        return MatchupStatus.LIVE
    return MatchupStatus.SCHEDULED


class BaseAdapter(abc.ABC):
    """
    Base class for platform adapters.

    Adapters are stateless fetch-and-transform objects: they pull raw
    payloads through a PlatformHTTPClient and turn them into normalized
    snapshots, resolving every player through the IdentityMapper. Subclasses
    implement the four fetch operations for their platform's payload shapes.
    """

    source: PlatformSource

    def __init__(
        self,
        http: PlatformHTTPClient,
        identity: IdentityMapper,
        season: int,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize adapter.

        Args:
            http: Client bound to the platform's base URL
            identity: Canonical identity mapper
            season: Season year used to build endpoint paths
            clock: Timestamp source for fetched snapshots
        """
        self.http = http
        self.identity = identity
        self.season = season
        self.clock = clock

    @abc.abstractmethod
    async def fetch_league(self, league_id: str) -> LeagueInfo:
        """League metadata, status and (when exposed) scoring ruleset."""

    @abc.abstractmethod
    async def fetch_matchups(self, league_id: str, week: int) -> list[MatchupSnapshot]:
        """All matchups of one league-week, fully normalized."""

    @abc.abstractmethod
    async def fetch_box_score(
        self, league_id: str, matchup_id: str, week: int
    ) -> dict[CanonicalPlayerID, RawStatRecord]:
        """Raw stats for every player in one matchup."""

    async def fetch_scoring_settings(self, league_id: str) -> Optional[ScoringRuleset]:
        """Canonical scoring ruleset, or None when the platform exposes none."""
        league = await self.fetch_league(league_id)
        return league.scoring_ruleset

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def resolve_player(self, platform_id: str | int) -> CanonicalPlayerID:
        return self.identity.resolve(platform_id, self.source)

    def resolve_team(self, platform_team_id: str | int) -> str:
        return self.identity.team_id(platform_team_id, self.source)

    def build_team(
        self,
        platform_team_id: str | int,
        name: Optional[str],
        owner_name: Optional[str],
        score: Any,
        projected_score: Any,
        entries: list[RosterEntry],
        fallback_name: Optional[str] = None,
    ) -> TeamSnapshot:
        """Assemble a TeamSnapshot, substituting defaults for missing fields."""
        display = (name or '').strip() or fallback_name or ''
        return TeamSnapshot(
            team_id=self.resolve_team(platform_team_id),
            name=display,
            owner_name=(owner_name or '').strip(),
            score=safe_float(score),
            projected_score=safe_float(projected_score),
            entries=tuple(entries),
        )

    def build_entry(
        self,
        platform_player_id: str | int,
        is_starter: bool,
        lineup_slot: Optional[str],
        points: Any = None,
        projected_points: Any = None,
    ) -> RosterEntry:
        """Roster entry; missing points stay None so they never pose as a reported total."""
        return RosterEntry(
            player_id=self.resolve_player(platform_player_id),
            is_starter=is_starter,
            lineup_slot=lineup_slot or BENCH_SLOT,
            points=safe_float(points) if points is not None else None,
            projected_points=safe_float(projected_points),
            platform_id=str(platform_player_id),
        )

    def parse_payload(self, schema, payload: Any, what: str):
        """
        Validate a whole payload. A payload that fails validation is a
        DecodingError for the entire fetch.
        """
        try:
            return schema.model_validate(payload)
        except ValidationError as e:
            raise DecodingError(f'platform {self.source.value} {what} payload invalid: {e}') from e

    def parse_records(self, schema, records: Any, what: str) -> list:
        """
        Validate a list of records, skipping (and logging) the ones that fail.

        Only a payload that is not a list at all is fatal.
        """
        if not isinstance(records, list):
            raise DecodingError(
                f'platform {self.source.value} {what} payload is {type(records).__name__}, expected list'
            )
        parsed = []
        for index, record in enumerate(records):
            try:
                parsed.append(schema.model_validate(record))
            except ValidationError as e:
                logger.warning(
                    f'Skipping malformed {what} record #{index} from platform {self.source.value}: '
                    f'{e.error_count()} error(s)'
                )
        return parsed

    def expect_mapping(self, payload: Any, what: str) -> Mapping:
        if not isinstance(payload, Mapping):
            raise DecodingError(
                f'platform {self.source.value} {what} payload is {type(payload).__name__}, expected object'
            )
        return payload
