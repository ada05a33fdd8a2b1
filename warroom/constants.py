"""Constants and vocabularies shared across the warroom core."""

# Cache / refresh timing (seconds)
DEFAULT_TTL = 300.0
FORCE_REFRESH_THROTTLE = 2.0
FETCH_TIMEOUT = 10.0
LEAGUE_INFO_TTL = 3600.0

# Scheduler cadences (seconds)
LIVE_INTERVAL = 15.0
IDLE_INTERVAL = 300.0
STARTING_SOON_INTERVAL = 60.0
STARTING_SOON_WINDOW = 30 * 60
MAX_BACKOFF_MULTIPLIER = 8

# Scoring
DISCREPANCY_EPSILON = 0.01
CHANGED_POINTS_THRESHOLD = 0.01
REPORTED_TOTAL_STAT_KEY = 'fantasy_points'
REPORTED_TOTAL_LABEL = 'Fantasy Points Earned'

# Elimination
DOUBLE_ELIMINATION_THRESHOLD = 32
SEASON_WEEKS = 17
DEFAULT_PLAYOFF_WEEK_START = 15
DEFAULT_SCORE_STD_DEV = 10.0
SAFETY_FLOOR = 0.01
SAFETY_CEILING = 0.99

# Platform A league status vocabulary -> canonical status name
PLATFORM_A_STATUSES = {
    'pre_draft': 'PRE_DRAFT',
    'drafting': 'DRAFTING',
    'in_season': 'IN_SEASON',
    'post_season': 'IN_SEASON',
    'complete': 'COMPLETE',
}

# Platform A league type that denotes a guillotine / battle-royale league
PLATFORM_A_BATTLE_ROYALE_TYPE = 3

# Platform B lineup slot ids
PLATFORM_B_LINEUP_SLOTS = {
    0: 'QB',
    2: 'RB',
    3: 'RB/WR',
    4: 'WR',
    5: 'WR/TE',
    6: 'TE',
    7: 'OP',
    16: 'D/ST',
    17: 'K',
    20: 'BN',
    21: 'IR',
    23: 'FLEX',
}

# Slots that do not count toward a team's score
PLATFORM_B_NON_STARTER_SLOTS = frozenset({20, 21})

# Platform B statSourceId values
PLATFORM_B_ACTUAL_STATS = 0
PLATFORM_B_PROJECTED_STATS = 1

# Platform B matchup winner value for games still in progress
PLATFORM_B_UNDECIDED = 'UNDECIDED'

BENCH_SLOT = 'BN'

# Game status detail fragments that mean a game is being played
LIVE_GAME_MARKERS = ('1st', '2nd', '3rd', '4th', 'ot', 'halftime', 'end of')
