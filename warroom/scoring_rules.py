"""Bundled scoring tables and the per-league ruleset registry."""

import logging
from collections.abc import Iterable, Mapping
from typing import Optional

from .models import PlatformSource, ScoringRuleset
from .stat_dictionary import to_canonical

logger = logging.getLogger('warroom.scoring_rules')

# Default table for custom-scoring battle-royale (guillotine) leagues: full PPR
# with first-down and big-play bonuses.
BATTLE_ROYALE_SCORING: dict[str, float] = {
    # Passing
    'pass_yd': 0.04,
    'pass_td': 4.0,
    'pass_int': -1.0,
    'pass_fd': 1.0,
    'pass_2pt': 2.0,
    # Rushing
    'rush_yd': 0.1,
    'rush_td': 6.0,
    'rush_fd': 1.0,
    'rush_2pt': 2.0,
    # Receiving
    'rec': 1.0,
    'rec_yd': 0.1,
    'rec_td': 6.0,
    'rec_fd': 1.0,
    'rec_2pt': 2.0,
    # Fumbles
    'fum': -1.0,
    'fum_lost': -2.0,
    'fum_rec_td': 6.0,
    # Kicking
    'fgm_0_19': 3.0,
    'fgm_20_29': 3.0,
    'fgm_30_39': 3.0,
    'fgm_40_49': 4.0,
    'fgm_50p': 5.0,
    'fgmiss': -1.0,
    'xpm': 1.0,
    'xpmiss': -1.0,
    # Defense / special teams
    'def_td': 6.0,
    'def_int': 2.0,
    'def_fum_rec': 2.0,
    'def_sack': 1.0,
    'def_safe': 2.0,
    'blk_kick': 2.0,
    'def_pass_def': 0.5,
    'def_solo': 1.0,
    'def_ast': 0.5,
    'pts_allow_0': 10.0,
    'pts_allow_1_6': 7.0,
    'pts_allow_7_13': 4.0,
    'pts_allow_14_20': 1.0,
    'pts_allow_21_27': 0.0,
    'pts_allow_28_34': -1.0,
    'pts_allow_35p': -4.0,
}

# Generic standard-scoring table. Only ever used to label a breakdown for
# display; its total is never shown as a player's score.
STANDARD_SCORING_ESTIMATES: dict[str, float] = {
    'pass_yd': 0.04,
    'pass_td': 4.0,
    'pass_int': -1.0,
    'rush_yd': 0.1,
    'rush_td': 6.0,
    'rec': 1.0,
    'rec_yd': 0.1,
    'rec_td': 6.0,
    'fum_lost': -2.0,
    'fgm': 3.0,
    'xpm': 1.0,
    'def_td': 6.0,
    'def_int': 2.0,
    'def_fum_rec': 2.0,
    'def_sack': 1.0,
    'def_safe': 2.0,
}

# Platform B sometimes reports per-unit values for return yardage and tackle
# stats that its own scoring never applies. Values above the cap are dropped
# from the converted ruleset; volume stats such as attempts are left alone.
PLATFORM_B_CORRECTIONS: dict[str, float] = {
    'kick_ret_yd': 0.5,
    'punt_ret_yd': 0.5,
    'def_solo': 0.5,
    'def_ast': 0.5,
    'def_comb': 0.5,
}


def convert_platform_b_items(items: Iterable[tuple[int, float]]) -> dict[str, float]:
    """
    Convert Platform B (stat id, points) scoring items to a canonical ruleset.

    Unknown stat ids are skipped. When two ids map to one canonical key the
    first one wins.
    """
    ruleset: dict[str, float] = {}
    for stat_id, points in items:
        key = to_canonical(stat_id, PlatformSource.B)
        if key is None:
            logger.debug(f'Ignoring unknown Platform B scoring stat id {stat_id}')
            continue
        cap = PLATFORM_B_CORRECTIONS.get(key)
        if cap is not None and abs(points) > cap:
            logger.info(f'Dropping implausible Platform B scoring value {key}={points}')
            continue
        ruleset.setdefault(key, float(points))
    return ruleset


def describe_basis(ruleset: Optional[Mapping[str, float]]) -> str:
    """Short label for a ruleset's reception scoring: 'PPR', '0.5 PPR' or 'Standard'."""
    if not ruleset:
        return ''
    per_reception = ruleset.get('rec', 0.0)
    if per_reception == 0:
        return 'Standard'
    if per_reception == 1:
        return 'PPR'
    return f'{per_reception:g} PPR'


class ScoringRuleBook:
    """
    Registry of scoring tables known to the process.

    Holds league-specific rulesets (registered when league info is fetched)
    and optional legacy per-platform tables. Constructed once and passed to
    the services that need it.
    """

    def __init__(self, legacy_tables: Optional[Mapping[PlatformSource, Mapping[str, float]]] = None):
        self._rulesets: dict[tuple[str, PlatformSource], dict[str, float]] = {}
        self._bases: dict[tuple[str, PlatformSource], str] = {}
        self._legacy: dict[PlatformSource, dict[str, float]] = {
            source: dict(table) for source, table in (legacy_tables or {}).items()
        }

    def register(
        self,
        league_id: str,
        source: PlatformSource,
        ruleset: Optional[ScoringRuleset],
        basis: Optional[str] = None,
    ) -> None:
        """Record a league's ruleset. An empty or missing ruleset clears any previous one."""
        key = (league_id, source)
        if not ruleset:
            self._rulesets.pop(key, None)
            self._bases.pop(key, None)
            return
        self._rulesets[key] = dict(ruleset)
        self._bases[key] = basis or describe_basis(ruleset)

    def register_legacy_table(self, source: PlatformSource, table: Mapping[str, float]) -> None:
        self._legacy[source] = dict(table)

    def ruleset_for(self, league_id: str, source: PlatformSource) -> Optional[dict[str, float]]:
        return self._rulesets.get((league_id, source))

    def legacy_table_for(self, source: PlatformSource) -> Optional[dict[str, float]]:
        return self._legacy.get(source)

    def basis_for(self, league_id: str, source: PlatformSource) -> str:
        return self._bases.get((league_id, source), '')

    def has_ruleset(self, league_id: str, source: PlatformSource) -> bool:
        return (league_id, source) in self._rulesets

    def clear(self) -> None:
        self._rulesets.clear()
        self._bases.clear()
