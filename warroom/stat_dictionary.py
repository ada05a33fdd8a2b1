"""Stat dictionary: platform stat identifiers to canonical stat keys.

Canonical keys are short snake_case names (``pass_yd``, ``rec``, ``def_sack``).
Platform A already reports most stats with these names; Platform B reports
numeric stat ids which are translated through ``PLATFORM_B_STAT_IDS``.
"""

import logging
import math
from collections.abc import Mapping
from typing import Optional

from .models import PlatformSource

logger = logging.getLogger('warroom.stat_dictionary')

# Platform B numeric stat id -> canonical stat key
PLATFORM_B_STAT_IDS: dict[int, str] = {
    # Passing
    0: 'pass_att',
    1: 'pass_cmp',
    3: 'pass_yd',
    4: 'pass_td',
    15: 'pass_td_40p',
    16: 'pass_td_50p',
    19: 'pass_2pt',
    20: 'pass_int',
    # Rushing
    23: 'rush_att',
    24: 'rush_yd',
    25: 'rush_td',
    26: 'rush_2pt',
    35: 'rush_td_40p',
    36: 'rush_td_50p',
    # Receiving
    41: 'rec',
    42: 'rec_yd',
    43: 'rec_td',
    44: 'rec_2pt',
    45: 'rec_td_40p',
    46: 'rec_td_50p',
    58: 'rec_tgt',
    # Fumbles
    68: 'fum',
    72: 'fum_lost',
    # Kicking
    74: 'fgm_50p',
    77: 'fgm_40_49',
    80: 'fgm_0_39',
    83: 'fgm',
    86: 'xpm',
    88: 'xpmiss',
    201: 'fgm_60p',
    # Defense / special teams
    95: 'def_int',
    96: 'def_fum_rec',
    97: 'blk_kick',
    98: 'def_safe',
    99: 'def_sack',
    101: 'kick_ret_td',
    102: 'punt_ret_td',
    103: 'int_td',
    104: 'fum_rec_td',
    106: 'def_fum_force',
    107: 'def_ast',
    108: 'def_solo',
    109: 'def_comb',
    113: 'def_pass_def',
    114: 'kick_ret_yd',
    115: 'punt_ret_yd',
    205: 'def_2pt_ret',
    206: 'def_2pt_ret',
    # First downs
    211: 'pass_fd',
    212: 'rush_fd',
    213: 'rec_fd',
}

# Keys that only appear on Platform A, or that Platform A spells differently
PLATFORM_A_ALIASES: dict[str, str] = {
    'pass_yds': 'pass_yd',
    'rush_yds': 'rush_yd',
    'rec_yds': 'rec_yd',
    'int': 'def_int',
    'sack': 'def_sack',
    'safe': 'def_safe',
    'fum_rec': 'def_fum_rec',
    'ff': 'def_fum_force',
    'tkl_solo': 'def_solo',
    'tkl_ast': 'def_ast',
    'pass_defended': 'def_pass_def',
}

STAT_DISPLAY_NAMES: dict[str, str] = {
    'pass_att': 'Pass Attempts',
    'pass_cmp': 'Completions',
    'pass_yd': 'Passing Yards',
    'pass_td': 'Passing TDs',
    'pass_td_40p': '40+ Yard Passing TDs',
    'pass_td_50p': '50+ Yard Passing TDs',
    'pass_2pt': 'Passing 2PT',
    'pass_int': 'Interceptions Thrown',
    'pass_fd': 'Passing First Downs',
    'rush_att': 'Rush Attempts',
    'rush_yd': 'Rushing Yards',
    'rush_td': 'Rushing TDs',
    'rush_td_40p': '40+ Yard Rushing TDs',
    'rush_td_50p': '50+ Yard Rushing TDs',
    'rush_2pt': 'Rushing 2PT',
    'rush_fd': 'Rushing First Downs',
    'rec': 'Receptions',
    'rec_yd': 'Receiving Yards',
    'rec_td': 'Receiving TDs',
    'rec_td_40p': '40+ Yard Receiving TDs',
    'rec_td_50p': '50+ Yard Receiving TDs',
    'rec_2pt': 'Receiving 2PT',
    'rec_tgt': 'Targets',
    'rec_fd': 'Receiving First Downs',
    'fum': 'Fumbles',
    'fum_lost': 'Fumbles Lost',
    'fgm': 'Field Goals Made',
    'fgm_0_19': 'FG Made (0-19)',
    'fgm_20_29': 'FG Made (20-29)',
    'fgm_30_39': 'FG Made (30-39)',
    'fgm_0_39': 'FG Made (0-39)',
    'fgm_40_49': 'FG Made (40-49)',
    'fgm_50_59': 'FG Made (50-59)',
    'fgm_50p': 'FG Made (50+)',
    'fgm_60p': 'FG Made (60+)',
    'fgmiss': 'Field Goals Missed',
    'xpm': 'Extra Points Made',
    'xpmiss': 'Extra Points Missed',
    'def_int': 'Defensive Interceptions',
    'def_fum_rec': 'Fumble Recoveries',
    'def_fum_force': 'Forced Fumbles',
    'def_sack': 'Sacks',
    'def_safe': 'Safeties',
    'def_td': 'Defensive TDs',
    'st_td': 'Special Teams TDs',
    'def_solo': 'Solo Tackles',
    'def_ast': 'Assisted Tackles',
    'def_comb': 'Combined Tackles',
    'def_pass_def': 'Passes Defended',
    'def_2pt_ret': 'Defensive 2PT Returns',
    'blk_kick': 'Blocked Kicks',
    'int_td': 'Interception Return TDs',
    'fum_rec_td': 'Fumble Return TDs',
    'kick_ret_td': 'Kick Return TDs',
    'punt_ret_td': 'Punt Return TDs',
    'kick_ret_yd': 'Kick Return Yards',
    'punt_ret_yd': 'Punt Return Yards',
    'pts_allow_0': 'Points Allowed (0)',
    'pts_allow_1_6': 'Points Allowed (1-6)',
    'pts_allow_7_13': 'Points Allowed (7-13)',
    'pts_allow_14_20': 'Points Allowed (14-20)',
    'pts_allow_21_27': 'Points Allowed (21-27)',
    'pts_allow_28_34': 'Points Allowed (28-34)',
    'pts_allow_35p': 'Points Allowed (35+)',
    'fantasy_points': 'Fantasy Points Earned',
}

CANONICAL_STATS = frozenset(STAT_DISPLAY_NAMES) | frozenset(PLATFORM_B_STAT_IDS.values())

# Reverse lookup; when two ids share a key the lowest id wins
_CANONICAL_TO_PLATFORM_B: dict[str, int] = {}
for _stat_id, _key in sorted(PLATFORM_B_STAT_IDS.items()):
    _CANONICAL_TO_PLATFORM_B.setdefault(_key, _stat_id)


def to_canonical(raw_key: str | int, source: PlatformSource) -> Optional[str]:
    """
    Translate one platform-native stat identifier to a canonical stat key.

    Args:
        raw_key: Native identifier (numeric id for Platform B, name for Platform A)
        source: Platform the identifier came from

    Returns:
        Canonical stat key, or None if the identifier is unknown
    """
    if source is PlatformSource.B:
        try:
            return PLATFORM_B_STAT_IDS.get(int(raw_key))
        except (TypeError, ValueError):
            return None

    key = str(raw_key)
    if key in PLATFORM_A_ALIASES:
        return PLATFORM_A_ALIASES[key]
    if key in CANONICAL_STATS or key.startswith('pts_allow_'):
        return key
    return None


def canonicalize(
    stats: Mapping, source: PlatformSource, combine: bool = True
) -> dict[str, float]:
    """
    Convert a native stat mapping to canonical keys.

    Unknown identifiers and non-numeric values are dropped. Values that land
    on the same canonical key (two Platform B ids for one stat) are summed
    when ``combine`` is set; otherwise the first value seen is kept.
    """
    result: dict[str, float] = {}
    for raw_key, raw_value in stats.items():
        key = to_canonical(raw_key, source)
        if key is None:
            continue
        try:
            value = float(raw_value)
        except (TypeError, ValueError):
            continue
        if math.isnan(value):
            continue
        if key in result and not combine:
            continue
        result[key] = result.get(key, 0.0) + value
    return result


def display_name(stat_key: str) -> str:
    """Human-readable label for a canonical stat key."""
    if stat_key in STAT_DISPLAY_NAMES:
        return STAT_DISPLAY_NAMES[stat_key]
    return stat_key.replace('_', ' ').title()


def platform_b_stat_id(stat_key: str) -> Optional[int]:
    """Numeric Platform B id for a canonical stat key, if one exists."""
    return _CANONICAL_TO_PLATFORM_B.get(stat_key)
