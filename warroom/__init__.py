from .models import (
    EliminationStatus,
    LeagueInfo,
    LeagueKey,
    LeagueRef,
    LeagueStatus,
    MatchupSnapshot,
    MatchupStatus,
    PlatformSource,
    RawStatRecord,
    RefreshEvent,
    RefreshState,
    RosterEntry,
    RuleSource,
    ScoreBreakdown,
    ScoreBreakdownItem,
    SnapshotID,
    StatSource,
    TeamRanking,
    TeamSnapshot,
)
from .errors import (
    DecodingError,
    NetworkError,
    NoDataAvailable,
    RateLimited,
    SnapshotNotFound,
    UnresolvedScoringRules,
    WarRoomError,
)
from .stat_dictionary import canonicalize, display_name, to_canonical
from .identity import IdentityMapper
from .http_client import PlatformHTTPClient
from .base_adapter import BaseAdapter
from .platform_a import PlatformAAdapter
from .platform_b import PlatformBAdapter
from .store import MatchupDataStore, Subscription
from .scoring import compute_breakdown, score_with_table
from .scoring_rules import ScoringRuleBook
from .elimination import EliminationTracker, TeamWeekScore, compute_rankings
from .game_status import ScoreboardClient, SnapshotGameStatus
from .scheduler import CadenceState, RefreshScheduler
from .service import WarRoomService, build_scheduler, build_service

__all__ = [
    # Models
    'EliminationStatus',
    'LeagueInfo',
    'LeagueKey',
    'LeagueRef',
    'LeagueStatus',
    'MatchupSnapshot',
    'MatchupStatus',
    'PlatformSource',
    'RawStatRecord',
    'RefreshEvent',
    'RefreshState',
    'RosterEntry',
    'RuleSource',
    'ScoreBreakdown',
    'ScoreBreakdownItem',
    'SnapshotID',
    'StatSource',
    'TeamRanking',
    'TeamSnapshot',
    # Errors
    'DecodingError',
    'NetworkError',
    'NoDataAvailable',
    'RateLimited',
    'SnapshotNotFound',
    'UnresolvedScoringRules',
    'WarRoomError',
    # Stat dictionary / identity
    'canonicalize',
    'display_name',
    'to_canonical',
    'IdentityMapper',
    # Platform adapters
    'PlatformHTTPClient',
    'BaseAdapter',
    'PlatformAAdapter',
    'PlatformBAdapter',
    # Matchup store
    'MatchupDataStore',
    'Subscription',
    # Scoring
    'compute_breakdown',
    'score_with_table',
    'ScoringRuleBook',
    # Elimination
    'EliminationTracker',
    'TeamWeekScore',
    'compute_rankings',
    # Refresh scheduling
    'ScoreboardClient',
    'SnapshotGameStatus',
    'CadenceState',
    'RefreshScheduler',
    # Service
    'WarRoomService',
    'build_scheduler',
    'build_service',
]
