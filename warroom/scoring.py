"""
Scoring reconciliation: recompute a player's points from raw stats and
compare the result with the total the platform reported.

Rules are resolved through a fixed priority chain:

1. the league's own ruleset
2. the bundled battle-royale table, for battle-royale leagues
3. a legacy per-platform table, when one is configured
4. the platform-reported total as a single synthetic line
5. the generic standard table, for display only

The platform-reported total is always what gets displayed when one exists;
a computed total that disagrees is surfaced, never substituted.
"""

import logging
from collections.abc import Mapping
from typing import Optional, Union

from .constants import DISCREPANCY_EPSILON, REPORTED_TOTAL_LABEL, REPORTED_TOTAL_STAT_KEY
from .errors import UnresolvedScoringRules
from .models import (
    CanonicalPlayerID,
    RawStatRecord,
    RuleSource,
    ScoreBreakdown,
    ScoreBreakdownItem,
    ScoringRuleset,
)
from .scoring_rules import BATTLE_ROYALE_SCORING, STANDARD_SCORING_ESTIMATES
from .stat_dictionary import canonicalize, display_name

logger = logging.getLogger('warroom.scoring')

RawStats = Union[RawStatRecord, Mapping[str, float]]


def canonical_stats(raw_stats: RawStats) -> dict[str, float]:
    """Canonical stat mapping from either a RawStatRecord or an already-canonical dict."""
    if isinstance(raw_stats, RawStatRecord):
        return canonicalize(raw_stats.stats, raw_stats.source)
    return {key: float(value) for key, value in raw_stats.items() if value is not None}


def sort_items(items: list[ScoreBreakdownItem]) -> tuple[ScoreBreakdownItem, ...]:
    """Largest absolute contribution first; ties by stat key."""
    return tuple(sorted(items, key=lambda item: (-abs(item.total_points), item.stat_key)))


def score_with_table(
    stats: Mapping[str, float], table: Mapping[str, float]
) -> tuple[float, tuple[ScoreBreakdownItem, ...]]:
    """
    Apply a points-per-unit table to canonical stats.

    Every key in the table contributes to the total; only keys with a
    non-zero raw value get a breakdown line.

    Args:
        stats: Canonical stat key -> raw value
        table: Canonical stat key -> points per unit

    Returns:
        Tuple of (total_points, sorted breakdown items)

    Example:
        >>> total, items = score_with_table({'rec': 5, 'rec_yd': 80}, {'rec': 1.0, 'rec_yd': 0.1})
        >>> round(total, 2)
        13.0
    """
    total = 0.0
    items = []
    for stat_key, points_per_unit in table.items():
        raw_value = stats.get(stat_key, 0.0)
        if raw_value == 0:
            continue
        points = raw_value * points_per_unit
        total += points
        items.append(
            ScoreBreakdownItem(
                stat_key=stat_key,
                display_name=display_name(stat_key),
                raw_value=raw_value,
                points_per_unit=points_per_unit,
                total_points=points,
            )
        )
    return total, sort_items(items)


def score_total(stats: RawStats, table: Mapping[str, float]) -> float:
    """Computed total only."""
    total, _ = score_with_table(canonical_stats(stats), table)
    return total


def resolve_rule_source(
    ruleset: Optional[ScoringRuleset] = None,
    battle_royale: bool = False,
    legacy_table: Optional[Mapping[str, float]] = None,
) -> tuple[RuleSource, Mapping[str, float]]:
    """
    First applicable scoring table in priority order.

    Raises:
        UnresolvedScoringRules: No table applies; the caller falls back to
            the reported total or the standard estimate
    """
    if ruleset:
        return RuleSource.LEAGUE_RULESET, ruleset
    if battle_royale:
        return RuleSource.BATTLE_ROYALE_TABLE, BATTLE_ROYALE_SCORING
    if legacy_table:
        return RuleSource.LEGACY_TABLE, legacy_table
    raise UnresolvedScoringRules('no league ruleset, battle-royale table or legacy table')


def compute_breakdown(
    raw_stats: RawStats,
    ruleset: Optional[ScoringRuleset] = None,
    platform_reported_total: Optional[float] = None,
    *,
    player_id: CanonicalPlayerID = '',
    week: int = 0,
    battle_royale: bool = False,
    legacy_table: Optional[Mapping[str, float]] = None,
    epsilon: float = DISCREPANCY_EPSILON,
) -> ScoreBreakdown:
    """
    Itemized breakdown of how a player's score was derived.

    Args:
        raw_stats: RawStatRecord (platform-native keys) or canonical stat dict
        ruleset: League scoring rules, if known
        platform_reported_total: The platform's own total for the player
        player_id: Canonical player id, recorded on the result
        week: Scoring period, recorded on the result
        battle_royale: League is a battle-royale format with bundled rules
        legacy_table: Legacy per-platform table to use when nothing better exists
        epsilon: Tolerance before a computed/reported mismatch is flagged

    Returns:
        ScoreBreakdown whose total_score is the reported total when one was
        given, and the computed total otherwise
    """
    if isinstance(raw_stats, RawStatRecord):
        player_id = player_id or raw_stats.player_id
        week = week or raw_stats.week
    stats = canonical_stats(raw_stats)

    try:
        rule_source, table = resolve_rule_source(ruleset, battle_royale, legacy_table)
    except UnresolvedScoringRules:
        return _fallback_breakdown(stats, platform_reported_total, player_id, week, epsilon)

    computed, items = score_with_table(stats, table)
    breakdown = ScoreBreakdown(
        player_id=player_id,
        week=week,
        items=items,
        total_score=platform_reported_total if platform_reported_total is not None else computed,
        rule_source=rule_source,
        computed_total=computed,
        reported_total=platform_reported_total,
        epsilon=epsilon,
    )

    if breakdown.has_discrepancy:
        logger.warning(
            f'Score mismatch for {player_id or "player"} week {week}: '
            f'computed {computed:.2f} ({rule_source.value}) vs reported {platform_reported_total:.2f}'
        )
    return breakdown


def _fallback_breakdown(
    stats: Mapping[str, float],
    reported: Optional[float],
    player_id: CanonicalPlayerID,
    week: int,
    epsilon: float,
) -> ScoreBreakdown:
    if reported is not None:
        item = ScoreBreakdownItem(
            stat_key=REPORTED_TOTAL_STAT_KEY,
            display_name=REPORTED_TOTAL_LABEL,
            raw_value=reported,
            points_per_unit=1.0,
            total_points=reported,
        )
        return ScoreBreakdown(
            player_id=player_id,
            week=week,
            items=(item,),
            total_score=reported,
            rule_source=RuleSource.REPORTED_TOTAL,
            reported_total=reported,
            epsilon=epsilon,
        )

    # Standard-table lines are informational; their sum is never the total
    _, items = score_with_table(stats, STANDARD_SCORING_ESTIMATES)
    return ScoreBreakdown(
        player_id=player_id,
        week=week,
        items=items,
        total_score=0.0,
        rule_source=RuleSource.STANDARD_ESTIMATE,
        epsilon=epsilon,
    )
