"""Sanity checks for normalized snapshots, breakdowns and rankings."""

from .models import MatchupSnapshot, ScoreBreakdown, TeamRanking, TeamSnapshot

# Allowed difference between a team's reported score and its starters' points
TEAM_SCORE_TOLERANCE = 0.5


def validate_team(team: TeamSnapshot) -> list[str]:
    """
    Check a single team snapshot for internal consistency.

    Checks:
    - No player listed twice on the roster
    - Projected score is not negative
    - Reported score matches the starters' points (when per-player points exist)

    Args:
        team: TeamSnapshot to validate

    Returns:
        List of warning messages (empty if valid)
    """
    warnings = []

    seen = set()
    duplicates = set()
    for player_id in team.player_ids:
        if player_id in seen:
            duplicates.add(player_id)
        seen.add(player_id)
    if duplicates:
        warnings.append(f'{team.team_id} lists players twice: {", ".join(sorted(duplicates))}')

    if team.projected_score < 0:
        warnings.append(f'{team.team_id} has a negative projection ({team.projected_score:.2f})')

    starters = team.starters
    if starters and any(entry.points is not None for entry in starters):
        starter_total = sum(entry.scored_points for entry in starters)
        diff = abs(starter_total - team.score)
        if diff > TEAM_SCORE_TOLERANCE:
            warnings.append(
                f'{team.team_id} score ({team.score:.2f}) != starter points ({starter_total:.2f}) '
                f'- difference: {diff:.2f}'
            )

    return warnings


def validate_snapshot(snapshot: MatchupSnapshot) -> list[str]:
    """
    Check a matchup snapshot: each team on its own, and no player rostered by both sides.

    Returns:
        List of warning messages (empty if valid)
    """
    warnings = []
    for team in snapshot.teams:
        warnings.extend(validate_team(team))

    if snapshot.away is not None:
        shared = set(snapshot.home.player_ids) & set(snapshot.away.player_ids)
        if shared:
            warnings.append(
                f'matchup {snapshot.snapshot_id.matchup_id} has players on both teams: '
                f'{", ".join(sorted(shared))}'
            )
        if snapshot.home.team_id == snapshot.away.team_id:
            warnings.append(
                f'matchup {snapshot.snapshot_id.matchup_id} pairs {snapshot.home.team_id} with itself'
            )

    return warnings


def validate_breakdown(breakdown: ScoreBreakdown) -> list[str]:
    """Report a computed/reported mismatch and line items that do not add up."""
    warnings = []

    if breakdown.has_discrepancy:
        warnings.append(
            f'{breakdown.player_id} week {breakdown.week}: computed {breakdown.computed_total:.2f} '
            f'vs reported {breakdown.reported_total:.2f} ({breakdown.rule_source.value})'
        )

    if breakdown.computed_total is not None:
        diff = abs(breakdown.items_total - breakdown.computed_total)
        if diff > breakdown.epsilon:
            warnings.append(
                f'{breakdown.player_id} line items sum to {breakdown.items_total:.2f}, '
                f'computed total is {breakdown.computed_total:.2f}'
            )

    return warnings


def validate_rankings(rankings: list[TeamRanking]) -> list[str]:
    """
    Check a week's rankings.

    Checks:
    - Ranks run 1..n with no gaps or repeats
    - Survival probabilities lie in [0, 1]
    - No eliminated team is ranked above a team still alive
    """
    warnings = []

    ranks = sorted(r.rank for r in rankings)
    if ranks != list(range(1, len(rankings) + 1)):
        warnings.append(f'ranks are not contiguous: {ranks}')

    for ranking in rankings:
        if not 0.0 <= ranking.survival_probability <= 1.0:
            warnings.append(
                f'{ranking.team_id} survival probability {ranking.survival_probability} outside [0, 1]'
            )

    ordered = sorted(rankings, key=lambda r: r.rank)
    seen_eliminated = False
    for ranking in ordered:
        if not ranking.is_alive:
            seen_eliminated = True
        elif seen_eliminated:
            warnings.append(f'{ranking.team_id} is alive but ranked below an eliminated team')
            break

    return warnings
